"""
ClosingChecklistService -- year-end prerequisite tracking.

Responsibility:
    Persists the status of a fixed set of prerequisite checks per fiscal
    year and aggregates them into the progress summary that gates the
    closing operations.  The checks themselves are external predicates
    (see ``ledger_services.checklist_verifiers``); this service only
    stores and aggregates their verdicts.

Invariants enforced:
    - Only ids from CHECKLIST_ITEMS are accepted.
    - One row per (company, fiscal year, item), upserted.
    - percentage = done / total * 100 (skipped and na are resolved but do
      not count as done); is_complete = no item pending.

Failure modes:
    - InvalidChecklistItemError for an unknown item id.
    - FiscalYearNotFoundError when updating or auto-verifying a year that
      is unknown or belongs to another company.
    - A verifier that raises leaves its item pending; the exception is
      logged and the item reported as failed.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.exceptions import FiscalYearNotFoundError, InvalidChecklistItemError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.closing import ChecklistItemStatus, ClosingChecklistItem
from ledger_kernel.models.fiscal_year import FiscalYear
from ledger_kernel.services.base import BaseService

logger = get_logger("services.checklist")


@dataclass(frozen=True)
class ChecklistItemDefinition:
    item_id: str
    name: str
    description: str
    required: bool = True
    auto_verifiable: bool = True


CHECKLIST_ITEMS: tuple[ChecklistItemDefinition, ...] = (
    ChecklistItemDefinition(
        "invoices_posted",
        "Vsetky faktury zauctovane",
        "All issued and received invoices are posted in the journal.",
    ),
    ChecklistItemDefinition(
        "bank_statements_matched",
        "Bankove vypisy importovane a sparovane",
        "All bank statements are imported and their transactions matched.",
    ),
    ChecklistItemDefinition(
        "cash_documents_posted",
        "Pokladnicne doklady zauctovane",
        "All cash receipts and cash payments are posted.",
    ),
    ChecklistItemDefinition(
        "internal_documents_posted",
        "Interne doklady zauctovane",
        "All internal documents are posted.",
    ),
    ChecklistItemDefinition(
        "vat_return_filed",
        "DPH priznanie podane",
        "VAT returns are filed for every tax period of the year.",
    ),
    ChecklistItemDefinition(
        "control_report_filed",
        "Kontrolny vykaz podany",
        "VAT control statements are filed for every tax period of the year.",
    ),
    ChecklistItemDefinition(
        "summary_declaration_filed",
        "Suhrnny vykaz podany",
        "EC sales list is filed where EU supplies were made.",
        required=False,
    ),
    ChecklistItemDefinition(
        "depreciation_calculated",
        "Odpisy majetku vypocitane",
        "Depreciation of long-term assets is calculated and posted.",
    ),
    ChecklistItemDefinition(
        "exchange_rate_differences",
        "Kurzove rozdiely zauctovane",
        "Foreign-currency receivables and payables are revalued at year end.",
        auto_verifiable=False,
    ),
    ChecklistItemDefinition(
        "accruals_posted",
        "Casove rozlisenie",
        "Deferred costs and revenues are posted.",
        auto_verifiable=False,
    ),
    ChecklistItemDefinition(
        "provisions_posted",
        "Opravne polozky",
        "Valuation allowances for receivables, inventory and assets are posted.",
        auto_verifiable=False,
    ),
    ChecklistItemDefinition(
        "reserves_posted",
        "Rezervy",
        "Statutory and other reserves are posted.",
        auto_verifiable=False,
    ),
    ChecklistItemDefinition(
        "inventory_done",
        "Inventarizacia vykonana",
        "Physical stocktake is done and reconciled with the books.",
        auto_verifiable=False,
    ),
    ChecklistItemDefinition(
        "trial_balance_checked",
        "Obratova predvaha skontrolovana",
        "Trial balance totals MD and D agree.",
    ),
    ChecklistItemDefinition(
        "income_tax_calculated",
        "Dan z prijmov vypocitana",
        "Income tax is calculated and posted.",
    ),
)

_ITEMS_BY_ID: dict[str, ChecklistItemDefinition] = {item.item_id: item for item in CHECKLIST_ITEMS}

# Predicate for one auto-verifiable item: True means "done".
ChecklistVerifier = Callable[[UUID, FiscalYear], bool]


@dataclass(frozen=True)
class ChecklistItemView:
    item_id: str
    name: str
    description: str
    required: bool
    auto_verifiable: bool
    status: ChecklistItemStatus
    note: str | None = None
    completed_at: datetime | None = None


@dataclass(frozen=True)
class ChecklistProgress:
    done: int
    skipped: int
    na: int
    pending: int
    total: int
    percentage: int
    is_complete: bool


@dataclass(frozen=True)
class AutoVerifyResult:
    verified: tuple[str, ...]
    failed: tuple[str, ...]
    progress: ChecklistProgress


def summarize(statuses: list[ChecklistItemStatus]) -> ChecklistProgress:
    """Aggregate item statuses into the gating summary."""
    total = len(statuses)
    done = statuses.count(ChecklistItemStatus.DONE)
    skipped = statuses.count(ChecklistItemStatus.SKIPPED)
    na = statuses.count(ChecklistItemStatus.NOT_APPLICABLE)
    pending = statuses.count(ChecklistItemStatus.PENDING)
    percentage = 0
    if total:
        percentage = int(
            (Decimal(done) * 100 / Decimal(total)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        )
    return ChecklistProgress(
        done=done,
        skipped=skipped,
        na=na,
        pending=pending,
        total=total,
        percentage=percentage,
        is_complete=pending == 0,
    )


class ClosingChecklistService(BaseService):
    """Stores checklist verdicts and computes progress."""

    def __init__(self, session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def get_checklist(self, company_id: UUID, fiscal_year_id: UUID) -> list[ChecklistItemView]:
        """Every defined item, pending where no verdict is stored yet."""
        rows = self._rows(company_id, fiscal_year_id)
        views = []
        for item in CHECKLIST_ITEMS:
            row = rows.get(item.item_id)
            views.append(
                ChecklistItemView(
                    item_id=item.item_id,
                    name=item.name,
                    description=item.description,
                    required=item.required,
                    auto_verifiable=item.auto_verifiable,
                    status=row.status if row else ChecklistItemStatus.PENDING,
                    note=row.note if row else None,
                    completed_at=row.completed_at if row else None,
                )
            )
        return views

    def progress(self, company_id: UUID, fiscal_year_id: UUID) -> ChecklistProgress:
        return summarize([view.status for view in self.get_checklist(company_id, fiscal_year_id)])

    def update_item(
        self,
        company_id: UUID,
        fiscal_year_id: UUID,
        item_id: str,
        status: ChecklistItemStatus,
        actor_id: UUID,
        note: str | None = None,
    ) -> ClosingChecklistItem:
        """Upsert the verdict for one item."""
        if item_id not in _ITEMS_BY_ID:
            raise InvalidChecklistItemError(item_id)
        self._fiscal_year(company_id, fiscal_year_id)
        status = ChecklistItemStatus(status)

        row = self.session.execute(
            select(ClosingChecklistItem).where(
                ClosingChecklistItem.company_id == company_id,
                ClosingChecklistItem.fiscal_year_id == fiscal_year_id,
                ClosingChecklistItem.item_id == item_id,
            )
        ).scalar_one_or_none()

        if row is None:
            row = ClosingChecklistItem(
                company_id=company_id,
                fiscal_year_id=fiscal_year_id,
                item_id=item_id,
                created_by_id=actor_id,
            )
            self.session.add(row)
        else:
            row.updated_by_id = actor_id

        row.status = status
        if note is not None:
            row.note = note
        if status == ChecklistItemStatus.PENDING:
            row.completed_at = None
            row.completed_by_id = None
        else:
            row.completed_at = self._clock.now()
            row.completed_by_id = actor_id
        self.session.flush()

        logger.info(
            "checklist_item_updated",
            extra={
                "fiscal_year_id": str(fiscal_year_id),
                "item_id": item_id,
                "status": status.value,
            },
        )
        return row

    def auto_verify(
        self,
        company_id: UUID,
        fiscal_year_id: UUID,
        verifiers: Mapping[str, ChecklistVerifier],
        actor_id: UUID,
    ) -> AutoVerifyResult:
        """
        Run the predicate of every auto-verifiable item still pending.

        Items without a predicate are left alone.  ``True`` upserts done;
        ``False`` or an exception leaves the item pending.
        """
        fiscal_year = self._fiscal_year(company_id, fiscal_year_id)

        verified: list[str] = []
        failed: list[str] = []
        for view in self.get_checklist(company_id, fiscal_year_id):
            if not view.auto_verifiable or view.status != ChecklistItemStatus.PENDING:
                continue
            verifier = verifiers.get(view.item_id)
            if verifier is None:
                continue
            try:
                passed = verifier(company_id, fiscal_year)
            except Exception:
                logger.warning(
                    "checklist_verifier_failed",
                    extra={"item_id": view.item_id},
                    exc_info=True,
                )
                failed.append(view.item_id)
                continue
            if passed:
                self.update_item(
                    company_id, fiscal_year_id, view.item_id,
                    ChecklistItemStatus.DONE, actor_id,
                )
                verified.append(view.item_id)
            else:
                failed.append(view.item_id)

        progress = self.progress(company_id, fiscal_year_id)
        logger.info(
            "checklist_auto_verified",
            extra={
                "fiscal_year_id": str(fiscal_year_id),
                "verified": verified,
                "failed": failed,
                "percentage": progress.percentage,
            },
        )
        return AutoVerifyResult(tuple(verified), tuple(failed), progress)

    def _fiscal_year(self, company_id: UUID, fiscal_year_id: UUID) -> FiscalYear:
        fiscal_year = self.session.get(FiscalYear, fiscal_year_id)
        if fiscal_year is None or fiscal_year.company_id != company_id:
            raise FiscalYearNotFoundError(str(fiscal_year_id))
        return fiscal_year

    def _rows(self, company_id: UUID, fiscal_year_id: UUID) -> dict[str, ClosingChecklistItem]:
        rows = self.session.execute(
            select(ClosingChecklistItem).where(
                ClosingChecklistItem.company_id == company_id,
                ClosingChecklistItem.fiscal_year_id == fiscal_year_id,
            )
        ).scalars()
        return {row.item_id: row for row in rows}
