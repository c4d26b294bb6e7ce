"""
Module: ledger_kernel.selectors.ledger_selector
Responsibility: Read-only ledger aggregation -- general ledger (netted),
    trial balance (un-netted MD/D with a balanced check), account detail
    with running balance, and per-account balances for closing.
    The ledger is a derived view over posted journal lines; there are no
    stored balances anywhere.
Architecture position: Kernel > Selectors.  May import from models/,
    domain/ and selectors/base.py.

Invariants enforced:
    - Only POSTED, non-deleted entries of the requested company count.
    - Opening balance = lines dated strictly before date_from.
    - Period movement = lines dated within [date_from, date_to] inclusive.
    - trial_balance().is_balanced re-derives the double-entry invariant
      independently of per-entry validation.

Failure modes:
    - InvalidDateRangeError when date_from > date_to.
    - AccountNotFoundError from account_detail() for an unknown account.
    - Otherwise returns empty reports rather than raising.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.orm import Session

from ledger_kernel.domain.constants import TRIAL_BALANCE_TOLERANCE
from ledger_kernel.domain.dtos import EntryStatus, LineSide
from ledger_kernel.exceptions import AccountNotFoundError, InvalidDateRangeError
from ledger_kernel.models.account import Account, AccountType
from ledger_kernel.models.journal import JournalEntry, JournalEntryLine
from ledger_kernel.selectors.base import BaseSelector

ZERO = Decimal("0")


@dataclass(frozen=True)
class LedgerTotals:
    """Report totals, MD and D kept apart."""

    pociatocny_zostatok_md: Decimal = ZERO
    pociatocny_zostatok_d: Decimal = ZERO
    obraty_md: Decimal = ZERO
    obraty_d: Decimal = ZERO
    konecny_zostatok_md: Decimal = ZERO
    konecny_zostatok_d: Decimal = ZERO


@dataclass(frozen=True)
class GeneralLedgerRow:
    """One account of the general ledger, netted to signed balances (MD - D)."""

    account_id: UUID
    synthetic_code: str
    analytic_code: str
    account_name: str
    account_type: AccountType
    opening_balance: Decimal
    period_debit: Decimal
    period_credit: Decimal
    closing_balance: Decimal
    has_movements: bool


@dataclass(frozen=True)
class GeneralLedgerReport:
    rows: tuple[GeneralLedgerRow, ...]
    totals: LedgerTotals


@dataclass(frozen=True)
class TrialBalanceRow:
    """One account of the trial balance, MD and D un-netted."""

    account_id: UUID
    synthetic_code: str
    analytic_code: str
    account_name: str
    account_type: AccountType
    pociatocny_zostatok_md: Decimal
    pociatocny_zostatok_d: Decimal
    obraty_md: Decimal
    obraty_d: Decimal
    konecny_zostatok_md: Decimal
    konecny_zostatok_d: Decimal


@dataclass(frozen=True)
class TrialBalanceReport:
    rows: tuple[TrialBalanceRow, ...]
    totals: LedgerTotals
    is_balanced: bool

    def row_for(self, synthetic_code: str, analytic_code: str = "") -> TrialBalanceRow | None:
        for row in self.rows:
            if row.synthetic_code == synthetic_code and row.analytic_code == analytic_code:
                return row
        return None


@dataclass(frozen=True)
class AccountMovement:
    line_id: UUID
    journal_entry_id: UUID
    entry_date: date
    document_number: str
    description: str
    md_amount: Decimal
    d_amount: Decimal
    running_balance: Decimal


@dataclass(frozen=True)
class AccountDetail:
    account_id: UUID
    synthetic_code: str
    analytic_code: str
    account_name: str
    opening_balance: Decimal
    total_md: Decimal
    total_d: Decimal
    closing_balance: Decimal
    movements: tuple[AccountMovement, ...]


@dataclass(frozen=True)
class AccountBalance:
    """Net balance of one account over a date range."""

    account_id: UUID
    synthetic_code: str
    analytic_code: str
    account_name: str
    debit_total: Decimal
    credit_total: Decimal

    @property
    def balance(self) -> Decimal:
        """Net balance (MD - D)."""
        return self.debit_total - self.credit_total


@dataclass(frozen=True)
class _Sums:
    opening_md: Decimal = ZERO
    opening_d: Decimal = ZERO
    period_md: Decimal = ZERO
    period_d: Decimal = ZERO

    @property
    def has_activity(self) -> bool:
        return any(value != 0 for value in (self.opening_md, self.opening_d, self.period_md, self.period_d))


class LedgerSelector(BaseSelector):
    """
    Selector for ledger aggregation.

    Contract:
        Every report is computed at query time from posted lines.  Filters
        on cost center and project apply to lines; account_id narrows the
        report to one account.

    Non-goals:
        - No currency conversion; amounts are the booked (domestic) amounts.
    """

    def __init__(
        self,
        session: Session,
        trial_balance_tolerance: Decimal = TRIAL_BALANCE_TOLERANCE,
    ):
        super().__init__(session)
        self._tolerance = trial_balance_tolerance

    def general_ledger(
        self,
        company_id: UUID,
        date_from: date,
        date_to: date,
        *,
        account_id: UUID | None = None,
        cost_center_id: UUID | None = None,
        project_id: UUID | None = None,
    ) -> GeneralLedgerReport:
        """
        Netted general ledger.

        Accounts with no activity are omitted unless ``account_id`` was
        given.  Totals put positive balances on the MD side and negative
        balances on the D side.
        """
        sums = self._sums(company_id, date_from, date_to, account_id, cost_center_id, project_id)
        account_ids = set(sums)
        if account_id is not None:
            account_ids.add(account_id)
        accounts = self._accounts(company_id, account_ids)

        rows = []
        for account in accounts:
            s = sums.get(account.id, _Sums())
            if not s.has_activity and account_id is None:
                continue
            opening = s.opening_md - s.opening_d
            rows.append(
                GeneralLedgerRow(
                    account_id=account.id,
                    synthetic_code=account.synthetic_code,
                    analytic_code=account.analytic_code,
                    account_name=account.name,
                    account_type=account.account_type,
                    opening_balance=opening,
                    period_debit=s.period_md,
                    period_credit=s.period_d,
                    closing_balance=opening + s.period_md - s.period_d,
                    has_movements=s.has_activity,
                )
            )

        totals = LedgerTotals(
            pociatocny_zostatok_md=sum((r.opening_balance for r in rows if r.opening_balance >= 0), ZERO),
            pociatocny_zostatok_d=sum((-r.opening_balance for r in rows if r.opening_balance < 0), ZERO),
            obraty_md=sum((r.period_debit for r in rows), ZERO),
            obraty_d=sum((r.period_credit for r in rows), ZERO),
            konecny_zostatok_md=sum((r.closing_balance for r in rows if r.closing_balance >= 0), ZERO),
            konecny_zostatok_d=sum((-r.closing_balance for r in rows if r.closing_balance < 0), ZERO),
        )
        return GeneralLedgerReport(rows=tuple(rows), totals=totals)

    def trial_balance(
        self,
        company_id: UUID,
        date_from: date,
        date_to: date,
        *,
        account_id: UUID | None = None,
        cost_center_id: UUID | None = None,
        project_id: UUID | None = None,
    ) -> TrialBalanceReport:
        """
        Un-netted trial balance.

        closing MD = opening MD + period MD (and likewise for D).  The report
        is balanced iff both the period totals and the closing totals agree
        within the trial balance tolerance (strictly below it).
        """
        sums = self._sums(company_id, date_from, date_to, account_id, cost_center_id, project_id)
        accounts = self._accounts(company_id, set(sums))

        rows = []
        for account in accounts:
            s = sums[account.id]
            if not s.has_activity:
                continue
            rows.append(
                TrialBalanceRow(
                    account_id=account.id,
                    synthetic_code=account.synthetic_code,
                    analytic_code=account.analytic_code,
                    account_name=account.name,
                    account_type=account.account_type,
                    pociatocny_zostatok_md=s.opening_md,
                    pociatocny_zostatok_d=s.opening_d,
                    obraty_md=s.period_md,
                    obraty_d=s.period_d,
                    konecny_zostatok_md=s.opening_md + s.period_md,
                    konecny_zostatok_d=s.opening_d + s.period_d,
                )
            )

        totals = LedgerTotals(
            pociatocny_zostatok_md=sum((r.pociatocny_zostatok_md for r in rows), ZERO),
            pociatocny_zostatok_d=sum((r.pociatocny_zostatok_d for r in rows), ZERO),
            obraty_md=sum((r.obraty_md for r in rows), ZERO),
            obraty_d=sum((r.obraty_d for r in rows), ZERO),
            konecny_zostatok_md=sum((r.konecny_zostatok_md for r in rows), ZERO),
            konecny_zostatok_d=sum((r.konecny_zostatok_d for r in rows), ZERO),
        )
        is_balanced = (
            abs(totals.obraty_md - totals.obraty_d) < self._tolerance
            and abs(totals.konecny_zostatok_md - totals.konecny_zostatok_d) < self._tolerance
        )
        return TrialBalanceReport(rows=tuple(rows), totals=totals, is_balanced=is_balanced)

    def account_detail(
        self,
        company_id: UUID,
        account_id: UUID,
        date_from: date,
        date_to: date,
    ) -> AccountDetail:
        """Opening balance, dated movements with running balance, closing balance."""
        self._check_range(date_from, date_to)
        account = self.session.execute(
            select(Account).where(
                Account.id == account_id,
                Account.company_id == company_id,
                Account.deleted_at.is_(None),
            )
        ).scalar_one_or_none()
        if account is None:
            raise AccountNotFoundError(str(account_id))

        opening = self.session.execute(
            select(
                func.sum(
                    case(
                        (JournalEntryLine.side == LineSide.MD, JournalEntryLine.amount),
                        else_=-JournalEntryLine.amount,
                    )
                )
            )
            .select_from(JournalEntryLine)
            .join(JournalEntry, JournalEntryLine.journal_entry_id == JournalEntry.id)
            .where(
                *self._posted(company_id),
                JournalEntryLine.account_id == account_id,
                JournalEntry.entry_date < date_from,
            )
        ).scalar_one() or ZERO

        rows = self.session.execute(
            select(JournalEntryLine, JournalEntry.entry_date, JournalEntry.number, JournalEntry.description)
            .join(JournalEntry, JournalEntryLine.journal_entry_id == JournalEntry.id)
            .where(
                *self._posted(company_id),
                JournalEntryLine.account_id == account_id,
                JournalEntry.entry_date >= date_from,
                JournalEntry.entry_date <= date_to,
            )
            .order_by(JournalEntry.entry_date, JournalEntry.created_at, JournalEntryLine.position)
        ).all()

        running = opening
        total_md = ZERO
        total_d = ZERO
        movements = []
        for line, entry_date, number, entry_description in rows:
            running += line.debit - line.credit
            total_md += line.debit
            total_d += line.credit
            movements.append(
                AccountMovement(
                    line_id=line.id,
                    journal_entry_id=line.journal_entry_id,
                    entry_date=entry_date,
                    document_number=number,
                    description=line.description or entry_description or "",
                    md_amount=line.debit,
                    d_amount=line.credit,
                    running_balance=running,
                )
            )

        return AccountDetail(
            account_id=account.id,
            synthetic_code=account.synthetic_code,
            analytic_code=account.analytic_code,
            account_name=account.name,
            opening_balance=opening,
            total_md=total_md,
            total_d=total_d,
            closing_balance=opening + total_md - total_d,
            movements=tuple(movements),
        )

    def account_balances(
        self,
        company_id: UUID,
        code_prefix: str | Sequence[str],
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[AccountBalance]:
        """
        Net MD - D per account whose synthetic code starts with a prefix.

        ``date_from=None`` sums from the beginning of the books.  Accounts
        netting to exactly zero are left out.
        """
        prefixes = (code_prefix,) if isinstance(code_prefix, str) else tuple(code_prefix)
        if date_from is not None and date_to is not None:
            self._check_range(date_from, date_to)

        debit_sum = func.sum(
            case((JournalEntryLine.side == LineSide.MD, JournalEntryLine.amount), else_=ZERO)
        ).label("debit_total")
        credit_sum = func.sum(
            case((JournalEntryLine.side == LineSide.D, JournalEntryLine.amount), else_=ZERO)
        ).label("credit_total")

        query = (
            select(
                Account.id,
                Account.synthetic_code,
                Account.analytic_code,
                Account.name,
                debit_sum,
                credit_sum,
            )
            .select_from(JournalEntryLine)
            .join(JournalEntry, JournalEntryLine.journal_entry_id == JournalEntry.id)
            .join(Account, JournalEntryLine.account_id == Account.id)
            .where(
                *self._posted(company_id),
                or_(*(Account.synthetic_code.startswith(prefix) for prefix in prefixes)),
            )
            .group_by(Account.id, Account.synthetic_code, Account.analytic_code, Account.name)
            .order_by(Account.synthetic_code, Account.analytic_code)
        )
        if date_from is not None:
            query = query.where(JournalEntry.entry_date >= date_from)
        if date_to is not None:
            query = query.where(JournalEntry.entry_date <= date_to)

        balances = [
            AccountBalance(
                account_id=row.id,
                synthetic_code=row.synthetic_code,
                analytic_code=row.analytic_code,
                account_name=row.name,
                debit_total=row.debit_total or ZERO,
                credit_total=row.credit_total or ZERO,
            )
            for row in self.session.execute(query).all()
        ]
        return [balance for balance in balances if balance.balance != 0]

    @staticmethod
    def _posted(company_id: UUID) -> tuple:
        return (
            JournalEntry.company_id == company_id,
            JournalEntry.status == EntryStatus.POSTED,
            JournalEntry.deleted_at.is_(None),
        )

    @staticmethod
    def _check_range(date_from: date, date_to: date) -> None:
        if date_from > date_to:
            raise InvalidDateRangeError(date_from.isoformat(), date_to.isoformat())

    def _sums(
        self,
        company_id: UUID,
        date_from: date,
        date_to: date,
        account_id: UUID | None,
        cost_center_id: UUID | None,
        project_id: UUID | None,
    ) -> dict[UUID, _Sums]:
        """Opening and period MD/D per account in one grouped query."""
        self._check_range(date_from, date_to)
        before = JournalEntry.entry_date < date_from
        within = JournalEntry.entry_date >= date_from
        is_md = JournalEntryLine.side == LineSide.MD
        is_d = JournalEntryLine.side == LineSide.D

        def bucket(*conditions):
            return func.sum(case((and_(*conditions), JournalEntryLine.amount), else_=ZERO))

        query = (
            select(
                JournalEntryLine.account_id,
                bucket(before, is_md).label("opening_md"),
                bucket(before, is_d).label("opening_d"),
                bucket(within, is_md).label("period_md"),
                bucket(within, is_d).label("period_d"),
            )
            .join(JournalEntry, JournalEntryLine.journal_entry_id == JournalEntry.id)
            .where(*self._posted(company_id), JournalEntry.entry_date <= date_to)
            .group_by(JournalEntryLine.account_id)
        )
        if account_id is not None:
            query = query.where(JournalEntryLine.account_id == account_id)
        if cost_center_id is not None:
            query = query.where(JournalEntryLine.cost_center_id == cost_center_id)
        if project_id is not None:
            query = query.where(JournalEntryLine.project_id == project_id)

        return {
            row.account_id: _Sums(
                opening_md=row.opening_md or ZERO,
                opening_d=row.opening_d or ZERO,
                period_md=row.period_md or ZERO,
                period_d=row.period_d or ZERO,
            )
            for row in self.session.execute(query).all()
        }

    def _accounts(self, company_id: UUID, account_ids: set[UUID]) -> list[Account]:
        """
        Accounts ordered by code.

        Deactivated accounts are included when they carry posted lines so
        that the report keeps balancing.
        """
        if not account_ids:
            return []
        return list(
            self.session.execute(
                select(Account)
                .where(Account.company_id == company_id, Account.id.in_(account_ids))
                .order_by(Account.synthetic_code, Account.analytic_code)
            ).scalars()
        )
