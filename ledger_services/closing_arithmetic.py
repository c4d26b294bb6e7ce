"""
ledger_services.closing_arithmetic -- Default year-end closing computations.

Responsibility:
    The four closing functions the orchestrator delegates to.  Each one
    reads posted balances through LedgerSelector, builds a single posted
    internal-document (ID) entry through JournalEntryService, and reports
    a ClosingResult.

    revenue_close      class 6 balances -> profit/loss clearing account (710)
    expense_close      class 5 balances -> 710
    profit_loss_close  710 -> closing balance account (702)
    balance_close      classes 0-4 -> opening entry against 701, dated the
                       day after period_end

Architecture position:
    Services -- composes kernel services and selectors.  Runs inside the
    caller's transaction; nothing here commits.

Invariants enforced:
    - Every produced entry balances: counterpart amounts are the sum of
      the already rounded account lines.
    - Balances below policy.zero_balance_threshold are left alone.
    - No qualifying balance -> success with no entry and accounts_count 0.

Failure modes:
    - Kernel exceptions from entry creation (PeriodLockedError,
      InvalidAccountError for a deactivated account carrying a balance)
      propagate unchanged; the orchestrator records nothing.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_config.schema import ClearingAccount, ClosingPolicy
from ledger_kernel.db.types import round_money
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import (
    ClosingOperationType,
    DocumentType,
    EntryHeaderInput,
    EntryLineInput,
    LineSide,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.selectors.ledger_selector import AccountBalance, LedgerSelector
from ledger_kernel.services.account_service import AccountService
from ledger_kernel.services.journal_service import JournalEntryService
from ledger_services._closing_types import ClosingFunction, ClosingResult

logger = get_logger("services.closing_arithmetic")

ZERO = Decimal("0")

REVENUE_PREFIX = "6"
EXPENSE_PREFIX = "5"
BALANCE_SHEET_PREFIXES = ("0", "1", "2", "3", "4")


class ClosingArithmetic:
    """
    Default closing functions over the kernel.

    Contract:
        Every public ``close_*`` / ``generate_*`` method satisfies the
        ClosingFunction protocol.  ``functions()`` returns them keyed by
        operation type for ClosingOrchestrator.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: ClosingPolicy | None = None,
        journal: JournalEntryService | None = None,
        accounts: AccountService | None = None,
        ledger: LedgerSelector | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._policy = policy or ClosingPolicy()
        self._journal = journal or JournalEntryService(
            session, self._clock, balance_tolerance=self._policy.balance_tolerance
        )
        self._accounts = accounts or AccountService(session, self._clock)
        self._ledger = ledger or LedgerSelector(session, self._policy.trial_balance_tolerance)

    def functions(self) -> dict[ClosingOperationType, ClosingFunction]:
        return {
            ClosingOperationType.REVENUE_CLOSE: self.close_revenue_accounts,
            ClosingOperationType.EXPENSE_CLOSE: self.close_expense_accounts,
            ClosingOperationType.PROFIT_LOSS_CLOSE: self.close_profit_loss_account,
            ClosingOperationType.BALANCE_CLOSE: self.generate_opening_balances,
        }

    # ------------------------------------------------------------------
    # Revenue / expense
    # ------------------------------------------------------------------

    def close_revenue_accounts(
        self,
        company_id: UUID,
        fiscal_year_id: UUID,
        period_start: date,
        period_end: date,
        actor_id: UUID,
    ) -> ClosingResult:
        """Debit every class 6 account with a credit balance, credit 710."""
        return self._close_to_profit_and_loss(
            company_id,
            period_start,
            period_end,
            actor_id,
            prefix=REVENUE_PREFIX,
            normal_side=LineSide.D,
            line_label="Uzavretie vynosoveho uctu",
            transfer_label="Prevod vynosov na ucet",
            header=f"Uzavretie vynosovych uctov triedy 6 za obdobie {period_start} - {period_end}",
        )

    def close_expense_accounts(
        self,
        company_id: UUID,
        fiscal_year_id: UUID,
        period_start: date,
        period_end: date,
        actor_id: UUID,
    ) -> ClosingResult:
        """Credit every class 5 account with a debit balance, debit 710."""
        return self._close_to_profit_and_loss(
            company_id,
            period_start,
            period_end,
            actor_id,
            prefix=EXPENSE_PREFIX,
            normal_side=LineSide.MD,
            line_label="Uzavretie nakladoveho uctu",
            transfer_label="Prevod nakladov na ucet",
            header=f"Uzavretie nakladovych uctov triedy 5 za obdobie {period_start} - {period_end}",
        )

    # ------------------------------------------------------------------
    # Profit / loss
    # ------------------------------------------------------------------

    def close_profit_loss_account(
        self,
        company_id: UUID,
        fiscal_year_id: UUID,
        period_start: date,
        period_end: date,
        actor_id: UUID,
    ) -> ClosingResult:
        """
        Transfer the 710 balance to 702.

        Profit (credit balance): MD 710 / D 702.
        Loss (debit balance): MD 702 / D 710.
        """
        pl_spec = self._policy.clearing_accounts.profit_and_loss
        balances = [
            balance
            for balance in self._ledger.account_balances(
                company_id, pl_spec.synthetic_code, period_start, period_end
            )
            if balance.synthetic_code == pl_spec.synthetic_code
        ]
        profit = round_money(sum((-b.balance for b in balances), ZERO))
        if abs(profit) < self._policy.zero_balance_threshold:
            return self._nothing_to_close(ClosingOperationType.PROFIT_LOSS_CLOSE)

        pl_account = self._clearing_account(company_id, pl_spec, actor_id)
        cb_spec = self._policy.clearing_accounts.closing_balance
        cb_account = self._clearing_account(company_id, cb_spec, actor_id)

        amount = abs(profit)
        if profit > 0:
            lines = [
                self._line(pl_account, LineSide.MD, amount, f"Uzavretie uctu {pl_spec.synthetic_code} - prevod zisku"),
                self._line(cb_account, LineSide.D, amount,
                           f"Prevod zisku z uctu {pl_spec.synthetic_code} na ucet {cb_spec.synthetic_code}"),
            ]
        else:
            lines = [
                self._line(pl_account, LineSide.D, amount, f"Uzavretie uctu {pl_spec.synthetic_code} - prevod straty"),
                self._line(cb_account, LineSide.MD, amount,
                           f"Prevod straty z uctu {pl_spec.synthetic_code} na ucet {cb_spec.synthetic_code}"),
            ]

        entry_id = self._post(
            company_id,
            period_end,
            f"Uzavretie vysledkoveho uctu {pl_spec.synthetic_code} za obdobie {period_start} - {period_end}",
            lines,
            actor_id,
        )
        return self._done(ClosingOperationType.PROFIT_LOSS_CLOSE, entry_id, amount, 1)

    # ------------------------------------------------------------------
    # Opening balances
    # ------------------------------------------------------------------

    def generate_opening_balances(
        self,
        company_id: UUID,
        fiscal_year_id: UUID,
        period_start: date,
        period_end: date,
        actor_id: UUID,
    ) -> ClosingResult:
        """
        Carry classes 0-4 into the next year against 701.

        Debit balances open as MD account / D 701, credit balances as
        MD 701 / D account.  The entry is dated ``period_end + 1 day``.
        Balances are taken over the period only; the previous year's
        opening entry is dated inside it.
        """
        balances = self._ledger.account_balances(
            company_id, BALANCE_SHEET_PREFIXES, period_start, period_end
        )

        lines: list[EntryLineInput] = []
        total_701_md = ZERO
        total_701_d = ZERO
        for balance in balances:
            if abs(balance.balance) < self._policy.zero_balance_threshold:
                continue
            net = round_money(balance.balance)
            description = f"Pociatocny zostatok uctu {balance.synthetic_code} - {balance.account_name}"
            if net > 0:
                lines.append(self._line_for(balance.account_id, LineSide.MD, net, description))
                total_701_d += net
            else:
                lines.append(self._line_for(balance.account_id, LineSide.D, -net, description))
                total_701_md += -net

        if not lines:
            return self._nothing_to_close(ClosingOperationType.BALANCE_CLOSE)

        ob_spec = self._policy.clearing_accounts.opening_balance
        ob_account = self._clearing_account(company_id, ob_spec, actor_id)
        accounts_count = len(lines)
        if total_701_d > 0:
            lines.append(self._line(ob_account, LineSide.D, total_701_d,
                                    f"{ob_spec.name} - aktivne zostatky"))
        if total_701_md > 0:
            lines.append(self._line(ob_account, LineSide.MD, total_701_md,
                                    f"{ob_spec.name} - pasivne zostatky"))

        opening_date = period_end + timedelta(days=1)
        entry_id = self._post(
            company_id,
            opening_date,
            f"Pociatocne stavy uctov - prevod z obdobia {period_start} - {period_end}",
            lines,
            actor_id,
        )
        return self._done(
            ClosingOperationType.BALANCE_CLOSE,
            entry_id,
            total_701_md + total_701_d,
            accounts_count,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _close_to_profit_and_loss(
        self,
        company_id: UUID,
        period_start: date,
        period_end: date,
        actor_id: UUID,
        *,
        prefix: str,
        normal_side: LineSide,
        line_label: str,
        transfer_label: str,
        header: str,
    ) -> ClosingResult:
        """
        Zero every account under ``prefix`` against the 710 clearing account.

        A balance on the account's normal side is closed from the opposite
        side; an abnormal balance is closed from the normal side.  The net
        transfer lands on 710 in a single counterpart line.
        """
        operation_type = (
            ClosingOperationType.REVENUE_CLOSE
            if prefix == REVENUE_PREFIX
            else ClosingOperationType.EXPENSE_CLOSE
        )
        balances = self._ledger.account_balances(company_id, prefix, period_start, period_end)

        lines: list[EntryLineInput] = []
        transferred = ZERO
        for balance in balances:
            normal_balance = self._normal_balance(balance, normal_side)
            if abs(normal_balance) < self._policy.zero_balance_threshold:
                continue
            amount = round_money(normal_balance)
            side = normal_side.opposite() if amount > 0 else normal_side
            lines.append(
                self._line_for(
                    balance.account_id,
                    side,
                    abs(amount),
                    f"{line_label} {balance.synthetic_code} - {balance.account_name}",
                )
            )
            transferred += amount

        if not lines:
            return self._nothing_to_close(operation_type)

        pl_spec = self._policy.clearing_accounts.profit_and_loss
        if transferred != 0:
            pl_account = self._clearing_account(company_id, pl_spec, actor_id)
            side = normal_side if transferred > 0 else normal_side.opposite()
            lines.append(
                self._line(
                    pl_account,
                    side,
                    abs(transferred),
                    f"{transfer_label} {pl_spec.synthetic_code} - {pl_spec.name}",
                )
            )

        entry_id = self._post(company_id, period_end, header, lines, actor_id)
        accounts_count = len(lines) - (1 if transferred != 0 else 0)
        return self._done(operation_type, entry_id, abs(transferred), accounts_count)

    @staticmethod
    def _normal_balance(balance: AccountBalance, normal_side: LineSide) -> Decimal:
        if normal_side == LineSide.MD:
            return balance.debit_total - balance.credit_total
        return balance.credit_total - balance.debit_total

    def _clearing_account(self, company_id: UUID, spec: ClearingAccount, actor_id: UUID):
        return self._accounts.find_or_create(company_id, spec.synthetic_code, spec.name, actor_id)

    def _line(self, account, side: LineSide, amount: Decimal, description: str) -> EntryLineInput:
        return self._line_for(account.id, side, amount, description)

    def _line_for(self, account_id: UUID, side: LineSide, amount: Decimal, description: str) -> EntryLineInput:
        return EntryLineInput(
            account_id=account_id,
            side=side,
            amount=amount,
            description=description,
            currency=self._policy.default_currency,
        )

    def _post(
        self,
        company_id: UUID,
        entry_date: date,
        description: str,
        lines: Sequence[EntryLineInput],
        actor_id: UUID,
    ) -> UUID:
        entry = self._journal.create_posted(
            company_id,
            EntryHeaderInput(
                entry_date=entry_date,
                document_type=DocumentType.INTERNAL,
                description=description,
            ),
            lines,
            actor_id,
        )
        return entry.id

    @staticmethod
    def _nothing_to_close(operation_type: ClosingOperationType) -> ClosingResult:
        logger.info("closing_nothing_to_close", extra={"operation_type": operation_type.value})
        return ClosingResult.nothing_to_close()

    @staticmethod
    def _done(
        operation_type: ClosingOperationType,
        entry_id: UUID,
        total_amount: Decimal,
        accounts_count: int,
    ) -> ClosingResult:
        logger.info(
            "closing_entry_posted",
            extra={
                "operation_type": operation_type.value,
                "journal_entry_id": str(entry_id),
                "total_amount": str(total_amount),
                "accounts_count": accounts_count,
            },
        )
        return ClosingResult(
            success=True,
            journal_entry_id=entry_id,
            total_amount=total_amount,
            accounts_count=accounts_count,
        )
