"""
AccountService -- the chart-of-accounts directory.

Responsibility:
    Lookup and prefix filtering of company-scoped accounts addressed by
    synthetic + analytic code, plus account setup (create, find-or-create
    for the closing clearing accounts, deactivate).

Invariants enforced:
    - Synthetic codes are 1-10 digits; the leading digit is the class.
    - (company, synthetic, analytic) is unique among non-deleted accounts.
    - Accounts are only soft-deleted.

Failure modes:
    - InvalidAccountCodeError for a malformed code.
    - DuplicateAccountError when an active account with the same code exists.
    - AccountNotFoundError on get() of a missing or deleted account.
"""

from uuid import UUID

from sqlalchemy import or_, select

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    DuplicateAccountError,
    InvalidAccountCodeError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import (
    BALANCE_SHEET_CLASSES,
    EXPENSE_CLASS,
    REVENUE_CLASS,
    Account,
    AccountType,
    account_class_of,
    default_account_type,
)
from ledger_kernel.services.base import BaseService

logger = get_logger("services.account")

_FIXED_TYPE_BY_CLASS = {
    EXPENSE_CLASS: AccountType.EXPENSE,
    REVENUE_CLASS: AccountType.REVENUE,
}


class AccountService(BaseService):
    """
    Read-mostly account directory.

    Contract:
        Filters return an empty list, never an error, when nothing matches.
    """

    def __init__(self, session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, account_id: UUID) -> Account:
        account = self.session.get(Account, account_id)
        if account is None or account.is_deleted:
            raise AccountNotFoundError(str(account_id))
        return account

    def find_by_code(
        self,
        company_id: UUID,
        synthetic_code: str,
        analytic_code: str = "",
    ) -> Account | None:
        return self.session.execute(
            select(Account).where(
                Account.company_id == company_id,
                Account.synthetic_code == synthetic_code,
                Account.analytic_code == analytic_code,
                Account.deleted_at.is_(None),
            )
        ).scalar_one_or_none()

    def list_accounts(
        self,
        company_id: UUID,
        *,
        code_prefix: str | None = None,
        account_type: AccountType | None = None,
        active: bool | None = None,
        search: str | None = None,
    ) -> list[Account]:
        """
        Accounts of a company ordered by synthetic then analytic code.

        ``code_prefix`` matches the start of the synthetic code, so "6"
        selects every revenue-class account and "31" the receivables.
        """
        stmt = select(Account).where(
            Account.company_id == company_id,
            Account.deleted_at.is_(None),
        )
        if code_prefix:
            stmt = stmt.where(Account.synthetic_code.startswith(code_prefix, autoescape=True))
        if account_type is not None:
            stmt = stmt.where(Account.account_type == account_type)
        if active is not None:
            stmt = stmt.where(Account.is_active == active)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(
                or_(
                    Account.synthetic_code.ilike(pattern),
                    Account.analytic_code.ilike(pattern),
                    Account.name.ilike(pattern),
                )
            )
        stmt = stmt.order_by(Account.synthetic_code, Account.analytic_code)
        return list(self.session.execute(stmt).scalars())

    def accounts_in_classes(self, company_id: UUID, classes: frozenset[int]) -> list[Account]:
        stmt = (
            select(Account)
            .where(
                Account.company_id == company_id,
                Account.deleted_at.is_(None),
                Account.account_class.in_(sorted(classes)),
            )
            .order_by(Account.synthetic_code, Account.analytic_code)
        )
        return list(self.session.execute(stmt).scalars())

    def balance_sheet_accounts(self, company_id: UUID) -> list[Account]:
        """Accounts of classes 0-4."""
        return self.accounts_in_classes(company_id, BALANCE_SHEET_CLASSES)

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def create_account(
        self,
        company_id: UUID,
        synthetic_code: str,
        name: str,
        actor_id: UUID,
        analytic_code: str = "",
        account_type: AccountType | None = None,
    ) -> Account:
        synthetic_code = synthetic_code.strip()
        analytic_code = (analytic_code or "").strip()
        self._validate_codes(synthetic_code, analytic_code)

        account_class = account_class_of(synthetic_code)
        fixed_type = _FIXED_TYPE_BY_CLASS.get(account_class)
        if account_type is None:
            account_type = default_account_type(synthetic_code)
        elif fixed_type is not None and account_type != fixed_type:
            raise InvalidAccountCodeError(
                synthetic_code,
                f"class {account_class} accounts must be {fixed_type.value}",
            )

        existing = self.find_by_code(company_id, synthetic_code, analytic_code)
        if existing is not None:
            raise DuplicateAccountError(existing.full_code, str(existing.id))

        account = Account(
            company_id=company_id,
            synthetic_code=synthetic_code,
            analytic_code=analytic_code,
            name=name,
            account_type=account_type,
            account_class=account_class,
            is_active=True,
            created_by_id=actor_id,
        )
        self.session.add(account)
        self.session.flush()

        logger.info(
            "account_created",
            extra={
                "account_id": str(account.id),
                "account_code": account.full_code,
                "account_type": account_type.value,
            },
        )
        return account

    def find_or_create(
        self,
        company_id: UUID,
        synthetic_code: str,
        name: str,
        actor_id: UUID,
        account_type: AccountType | None = None,
    ) -> Account:
        """Synthetic-level account, created on first use."""
        account = self.find_by_code(company_id, synthetic_code)
        if account is not None:
            return account
        return self.create_account(
            company_id, synthetic_code, name, actor_id, account_type=account_type
        )

    def deactivate(self, account_id: UUID, actor_id: UUID) -> Account:
        """Soft delete: the row and its codes stay for posted history."""
        account = self.get(account_id)
        account.is_active = False
        account.deleted_at = self._clock.now()
        account.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "account_deactivated",
            extra={"account_id": str(account.id), "account_code": account.full_code},
        )
        return account

    @staticmethod
    def _validate_codes(synthetic_code: str, analytic_code: str) -> None:
        if not synthetic_code or not synthetic_code.isdigit():
            raise InvalidAccountCodeError(synthetic_code, "synthetic code must be digits")
        if len(synthetic_code) > 10:
            raise InvalidAccountCodeError(synthetic_code, "synthetic code is too long")
        if len(analytic_code) > 20:
            raise InvalidAccountCodeError(analytic_code, "analytic code is too long")
