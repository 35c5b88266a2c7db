"""Read-side views: admin review, partner history, daily checklist, overview and CSV export.

Every view that shows a payout takes the platform fee as an explicit argument and goes through
:func:`compute_payout`, so gross, fee and net always reconcile.
"""

import io
import math
from datetime import date

import pandas as pd

from app.core.db import DashboardStore
from app.core.models import (
    AdminReview,
    ChecklistEntry,
    DailyChecklist,
    DashboardOverview,
    HistoryEntry,
    OverviewEntry,
    OverviewSummary,
    PartnerHistory,
    TransactionOut,
    TransactionStatus,
)
from app.core.utils import Related, get_logger
from app.services.commission import compute_payout
from app.services.workflow import compute_aggregates

logger = get_logger("receipts-dashboard.views")

EXPORT_COLUMNS = [
    "date_expected",
    "company_name",
    "amount",
    "profit_percentage",
    "status",
    "notes",
    "receipt_url",
    "user_id",
    "created_at",
    "id",
]


def admin_review(store: DashboardStore) -> AdminReview:
    """All transactions, newest first, with the summary cards."""
    transactions = [TransactionOut.model_validate(txn) for txn in store.list_transactions()]
    return AdminReview(transactions=transactions, aggregates=compute_aggregates(transactions))


def partner_history(store: DashboardStore, user_id: str, fee_percent: float) -> PartnerHistory:
    """A partner's own transactions split into pending and processed, each with its payout."""
    pending: list[HistoryEntry] = []
    processed: list[HistoryEntry] = []
    for txn in store.list_transactions(user_id=user_id):
        entry = HistoryEntry(
            transaction=TransactionOut.model_validate(txn),
            payout=compute_payout(float(txn.amount), fee_percent),
        )
        if entry.transaction.status is TransactionStatus.PENDING:
            pending.append(entry)
        else:
            processed.append(entry)
    return PartnerHistory(platform_fee_percentage=fee_percent, pending=pending, processed=processed)


def daily_checklist(store: DashboardStore, tracking_date: date, fee_percent: float) -> DailyChecklist:
    """Which companies have an upload for the day, and the day's gross and payout.

    A tracking row only counts while the transaction it points at still exists.
    """
    uploaded: set[str] = set()
    amounts: list[float] = []
    for tracking, linked in store.list_daily_tracking(tracking_date):
        related = Related.of(linked)
        if related.kind == "none":
            logger.info(f"Tracking for company {tracking.company_id} points at a deleted transaction")
            continue
        amounts.append(float(related.first.amount))
        uploaded.add(tracking.company_id)
    companies = [
        ChecklistEntry(id=company.id, name=company.name, has_uploaded=company.id in uploaded)
        for company in store.list_companies()
    ]
    daily_total = math.fsum(amounts)
    return DailyChecklist(
        tracking_date=tracking_date,
        companies=companies,
        completed=sum(1 for entry in companies if entry.has_uploaded),
        daily_total=daily_total,
        platform_fee_percentage=fee_percent,
        payout=compute_payout(daily_total, fee_percent),
    )


def dashboard_overview(store: DashboardStore, tracking_date: date) -> DashboardOverview:
    """Each company's latest transaction for the day with headline totals."""
    transactions = store.list_transactions(date_expected=tracking_date)
    latest: dict[str, TransactionOut] = {}
    for txn in transactions:
        # Ordered newest first, so the first one seen per company wins.
        latest.setdefault(txn.company_id, TransactionOut.model_validate(txn))
    companies = []
    for company in store.list_companies():
        txn = latest.get(company.id)
        companies.append(
            OverviewEntry(
                id=company.id,
                name=company.name,
                has_uploaded=txn is not None,
                status=txn.status if txn else None,
                amount=txn.amount if txn else None,
            )
        )
    summary = OverviewSummary(
        total_companies=len(companies),
        uploaded_count=len(transactions),
        total_amount=math.fsum(float(txn.amount) for txn in transactions),
    )
    return DashboardOverview(tracking_date=tracking_date, companies=companies, summary=summary)


def export_transactions_csv(store: DashboardStore) -> str:
    """Render the admin review table as CSV."""
    rows = [TransactionOut.model_validate(txn).model_dump(mode="json") for txn in store.list_transactions()]
    data_frame = pd.DataFrame(rows, columns=EXPORT_COLUMNS)
    buffer = io.StringIO()
    data_frame.to_csv(buffer, index=False)
    logger.info(f"Exported {len(data_frame)} transactions to CSV")
    return buffer.getvalue()
