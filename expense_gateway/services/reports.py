"""Reporting queries"""

from datetime import date
from sqlalchemy.orm import Session

from expense_gateway.domain.models import SpendReport
from expense_gateway.domain.reporting import build_spend_report
from expense_gateway.infrastructure.database.repositories import (
    CardRepository,
    ReferenceDataRepository,
    TransactionRepository,
)


class ReportService:
    def __init__(self, db: Session):
        self.db = db

    def spend_summary(self, today: date, months: int = 3) -> SpendReport:
        return build_spend_report(
            cards=CardRepository(self.db).list(),
            transactions=TransactionRepository(self.db).list(),
            gl_categories=ReferenceDataRepository(self.db).gl_categories(),
            today=today,
            months=months,
        )
