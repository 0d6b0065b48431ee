"""Company wallet - funding and internal debits"""

import logging
from sqlalchemy.orm import Session

from expense_gateway.domain.exceptions import InsufficientFundsError, ValidationError
from expense_gateway.infrastructure.database.models import CompanyWallet
from expense_gateway.infrastructure.database.repositories import WalletRepository
from expense_gateway.infrastructure.database.session import unit_of_work
from expense_gateway.infrastructure.observability.metrics import record_wallet_balance

logger = logging.getLogger(__name__)


class WalletService:
    """Funding and debits are separate operations with separate validation"""

    def __init__(self, db: Session):
        self.db = db
        self.wallets = WalletRepository(db)

    def get_wallet(self) -> CompanyWallet:
        with unit_of_work(self.db):
            wallet = self.wallets.get()
        return wallet

    def fund(self, amount_cents: int) -> CompanyWallet:
        if amount_cents is None or amount_cents <= 0:
            raise ValidationError("Funding amount must be positive")
        with unit_of_work(self.db):
            wallet = self.wallets.get_for_update()
            wallet.balance_cents += amount_cents
            balance = wallet.balance_cents
        record_wallet_balance(balance)
        logger.info("Wallet funded", extra={"amount_cents": amount_cents, "balance_cents": balance})
        return wallet

    def debit(self, amount_cents: int) -> CompanyWallet:
        if amount_cents is None or amount_cents <= 0:
            raise ValidationError("Debit amount must be positive")
        with unit_of_work(self.db):
            wallet = self.wallets.get_for_update()
            if wallet.balance_cents < amount_cents:
                raise InsufficientFundsError(amount_cents, wallet.balance_cents)
            wallet.balance_cents -= amount_cents
            balance = wallet.balance_cents
        record_wallet_balance(balance)
        logger.info("Wallet debited", extra={"amount_cents": amount_cents, "balance_cents": balance})
        return wallet
