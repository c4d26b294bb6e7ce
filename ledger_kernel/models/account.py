"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for the chart of accounts.
Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - account_class is the leading digit of the synthetic code.
    - Structural fields (codes, type) are frozen once a posted line
      references the account (db/immutability.py).  Accounts are never hard
      deleted; deactivation sets deleted_at.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.db.types import EnumString

BALANCE_SHEET_CLASSES = frozenset({0, 1, 2, 3, 4})
EXPENSE_CLASS = 5
REVENUE_CLASS = 6
CLOSING_CLASS = 7


class AccountType(str, Enum):
    """Classification of an account."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"


_DEFAULT_TYPE_BY_CLASS: dict[int, AccountType] = {
    0: AccountType.ASSET,
    1: AccountType.ASSET,
    2: AccountType.ASSET,
    3: AccountType.ASSET,
    4: AccountType.EQUITY,
    5: AccountType.EXPENSE,
    6: AccountType.REVENUE,
    7: AccountType.EQUITY,
}


def account_class_of(synthetic_code: str) -> int:
    """Leading digit of a synthetic code (e.g. "311" -> 3)."""
    return int(synthetic_code[0])


def default_account_type(synthetic_code: str) -> AccountType:
    """
    Type implied by the account class.

    Classes 8 and 9 (off-balance) default to asset; callers creating such
    accounts are expected to pass the type explicitly.
    """
    return _DEFAULT_TYPE_BY_CLASS.get(account_class_of(synthetic_code), AccountType.ASSET)


class Account(TrackedBase):
    """
    A chart-of-accounts entry addressed by synthetic + analytic code.

    Contract:
        Company-scoped.  (company_id, synthetic_code, analytic_code) is
        unique among non-deleted rows; AccountService checks this because
        soft-deleted rows keep their codes.
    """

    __tablename__ = "chart_of_accounts"

    __table_args__ = (
        Index("idx_account_company_code", "company_id", "synthetic_code", "analytic_code"),
        Index("idx_account_company_class", "company_id", "account_class"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    synthetic_code: Mapped[str] = mapped_column(String(10), nullable=False)

    analytic_code: Mapped[str] = mapped_column(String(20), nullable=False, default="")

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    account_type: Mapped[AccountType] = mapped_column(
        EnumString(AccountType, 20),
        nullable=False,
    )

    account_class: Mapped[int] = mapped_column(Integer, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<Account {self.full_code}: {self.name}>"

    @property
    def full_code(self) -> str:
        """"311" or "311.100" when an analytic code is present."""
        if self.analytic_code:
            return f"{self.synthetic_code}.{self.analytic_code}"
        return self.synthetic_code

    @property
    def is_balance_sheet(self) -> bool:
        return self.account_class in BALANCE_SHEET_CLASSES

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None
