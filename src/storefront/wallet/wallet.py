"""Wallet aggregate: one store-credit balance per customer.

The wallet owns an append-only ledger of ``WalletTransaction`` rows. Every
balance change goes through ``credit`` or ``debit``, which append exactly one
transaction, so the ledger always explains the balance. Wallets are opened
lazily the first time money is credited to a customer.
"""

from datetime import UTC, datetime
from enum import Enum

import structlog
from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, String
from protean.utils.globals import current_domain

from storefront import settings
from storefront.domain import storefront
from storefront.errors import InsufficientWalletBalance
from storefront.wallet.events import WalletCredited, WalletDebited

logger = structlog.get_logger(__name__)


class TransactionType(Enum):
    CREDIT = "Credit"
    DEBIT = "Debit"


class TransactionStatus(Enum):
    PENDING = "Pending"
    SUCCESSFUL = "Successful"
    FAILED = "Failed"


@storefront.entity(part_of="Wallet")
class WalletTransaction:
    transaction_type = String(choices=TransactionType, required=True)
    amount = Float(required=True, min_value=0.0)
    description = String(max_length=255)
    status = String(choices=TransactionStatus, default=TransactionStatus.SUCCESSFUL.value)
    created_at = DateTime()


@storefront.aggregate
class Wallet:
    user_id = Identifier(required=True)
    balance = Float(default=0.0, min_value=0.0)
    currency = String(max_length=3, default="INR")
    transactions = HasMany(WalletTransaction)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def balance_cannot_be_negative(self):
        if self.balance is not None and self.balance < 0:
            raise ValidationError({"balance": ["Wallet balance cannot be negative"]})

    @classmethod
    def open(cls, user_id, currency=None):
        now = datetime.now(UTC)
        return cls(
            user_id=user_id,
            balance=0.0,
            currency=currency or settings.currency(),
            created_at=now,
            updated_at=now,
        )

    def _record(self, type_: TransactionType, amount: float, description: str) -> WalletTransaction:
        transaction = WalletTransaction(
            transaction_type=type_.value,
            amount=amount,
            description=description,
            status=TransactionStatus.SUCCESSFUL.value,
            created_at=datetime.now(UTC),
        )
        self.add_transactions(transaction)
        return transaction

    def credit(self, amount: float, description: str) -> WalletTransaction:
        if amount is None or amount <= 0:
            raise ValidationError({"amount": ["Credit amount must be positive"]})

        self.balance = round((self.balance or 0.0) + amount, 2)
        self.updated_at = datetime.now(UTC)
        transaction = self._record(TransactionType.CREDIT, amount, description)

        self.raise_(
            WalletCredited(
                wallet_id=str(self.id),
                user_id=str(self.user_id),
                amount=amount,
                balance=self.balance,
                description=description,
            )
        )
        return transaction

    def debit(self, amount: float, description: str) -> WalletTransaction:
        if amount is None or amount <= 0:
            raise ValidationError({"amount": ["Debit amount must be positive"]})
        if amount > (self.balance or 0.0):
            raise InsufficientWalletBalance(str(self.user_id), self.balance or 0.0, amount)

        self.balance = round(self.balance - amount, 2)
        self.updated_at = datetime.now(UTC)
        transaction = self._record(TransactionType.DEBIT, amount, description)

        self.raise_(
            WalletDebited(
                wallet_id=str(self.id),
                user_id=str(self.user_id),
                amount=amount,
                balance=self.balance,
                description=description,
            )
        )
        return transaction

    def history(self) -> list[WalletTransaction]:
        """Transactions, newest first."""
        return sorted(self.transactions, key=lambda t: t.created_at, reverse=True)


@storefront.repository(part_of=Wallet)
class WalletRepository:
    def find_by_user(self, user_id) -> Wallet | None:
        return self._dao.query.filter(user_id=str(user_id)).all().first


def credit_wallet(user_id, amount: float, description: str) -> Wallet:
    """Credit a customer's wallet, opening it first if needed. Persists within the active Unit of Work."""
    repo = current_domain.repository_for(Wallet)
    wallet = repo.find_by_user(user_id)
    if wallet is None:
        wallet = Wallet.open(user_id)
        logger.info("Opened wallet", user_id=str(user_id), wallet_id=str(wallet.id))

    wallet.credit(amount, description)
    repo.add(wallet)
    logger.info("Wallet credited", user_id=str(user_id), amount=amount, balance=wallet.balance)
    return wallet


def debit_wallet(user_id, amount: float, description: str) -> Wallet:
    """Debit a customer's wallet. A missing wallet counts as a zero balance."""
    repo = current_domain.repository_for(Wallet)
    wallet = repo.find_by_user(user_id)
    if wallet is None:
        raise InsufficientWalletBalance(str(user_id), 0.0, amount)

    wallet.debit(amount, description)
    repo.add(wallet)
    logger.info("Wallet debited", user_id=str(user_id), amount=amount, balance=wallet.balance)
    return wallet


def wallet_summary(user_id) -> dict:
    """Balance and ledger of a customer's wallet, newest transaction first."""
    wallet = current_domain.repository_for(Wallet).find_by_user(user_id)
    if wallet is None:
        return {"user_id": str(user_id), "balance": 0.0, "currency": settings.currency(), "transactions": []}

    return {
        "user_id": str(wallet.user_id),
        "balance": wallet.balance,
        "currency": wallet.currency,
        "transactions": [
            {
                "id": str(t.id),
                "type": t.transaction_type,
                "amount": t.amount,
                "description": t.description,
                "status": t.status,
                "created_at": t.created_at,
            }
            for t in wallet.history()
        ],
    }
