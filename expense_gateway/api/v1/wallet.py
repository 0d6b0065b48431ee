"""/v1/wallet - company wallet balance, funding and debits"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from expense_gateway.api.v1.schemas import WalletAmount, WalletResponse
from expense_gateway.infrastructure.database.session import get_db
from expense_gateway.services.wallet import WalletService

router = APIRouter()


@router.get("/wallet", response_model=WalletResponse)
def get_wallet(db: Session = Depends(get_db)):
    return WalletResponse.model_validate(WalletService(db).get_wallet())


@router.post("/wallet/add-funds", response_model=WalletResponse)
def add_funds(request_body: WalletAmount, db: Session = Depends(get_db)):
    """Fund the wallet; zero and negative amounts are rejected"""
    return WalletResponse.model_validate(WalletService(db).fund(request_body.amount_cents))


@router.post("/wallet/debit", response_model=WalletResponse)
def debit(request_body: WalletAmount, db: Session = Depends(get_db)):
    """Withdraw from the wallet; refused when the balance does not cover it"""
    return WalletResponse.model_validate(WalletService(db).debit(request_body.amount_cents))
