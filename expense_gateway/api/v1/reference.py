"""/v1/gl-accounts, /v1/departments, /v1/cost-centers - coding reference data"""

from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from expense_gateway.api.v1.schemas import (
    CostCenterCreate,
    CostCenterResponse,
    DepartmentCreate,
    DepartmentResponse,
    GLAccountCreate,
    GLAccountResponse,
)
from expense_gateway.infrastructure.database.repositories import ReferenceDataRepository
from expense_gateway.infrastructure.database.session import get_db, unit_of_work

router = APIRouter()


@router.get("/gl-accounts", response_model=List[GLAccountResponse])
def list_gl_accounts(db: Session = Depends(get_db)):
    return [GLAccountResponse.model_validate(a) for a in ReferenceDataRepository(db).list_gl_accounts()]


@router.post("/gl-accounts", response_model=GLAccountResponse, status_code=status.HTTP_201_CREATED)
def create_gl_account(request_body: GLAccountCreate, db: Session = Depends(get_db)):
    """Codes are unique; a duplicate is a conflict"""
    with unit_of_work(db):
        account = ReferenceDataRepository(db).create_gl_account(
            request_body.code, request_body.name, request_body.category
        )
    return GLAccountResponse.model_validate(account)


@router.get("/departments", response_model=List[DepartmentResponse])
def list_departments(db: Session = Depends(get_db)):
    return [DepartmentResponse.model_validate(d) for d in ReferenceDataRepository(db).list_departments()]


@router.post("/departments", response_model=DepartmentResponse, status_code=status.HTTP_201_CREATED)
def create_department(request_body: DepartmentCreate, db: Session = Depends(get_db)):
    with unit_of_work(db):
        department = ReferenceDataRepository(db).create_department(request_body.code, request_body.name)
    return DepartmentResponse.model_validate(department)


@router.get("/cost-centers", response_model=List[CostCenterResponse])
def list_cost_centers(db: Session = Depends(get_db)):
    return [CostCenterResponse.model_validate(c) for c in ReferenceDataRepository(db).list_cost_centers()]


@router.post("/cost-centers", response_model=CostCenterResponse, status_code=status.HTTP_201_CREATED)
def create_cost_center(request_body: CostCenterCreate, db: Session = Depends(get_db)):
    with unit_of_work(db):
        center = ReferenceDataRepository(db).create_cost_center(
            request_body.code, request_body.name, request_body.department_id
        )
    return CostCenterResponse.model_validate(center)
