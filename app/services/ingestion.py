"""Receipt ingestion: blob upload, transaction creation and the daily tracking upsert."""

import math
from collections.abc import Callable
from datetime import date

from app.core.db import DashboardStore, Transaction
from app.core.errors import PersistenceError, StorageError, ValidationError
from app.core.models import ReceiptFile, TransactionStatus
from app.core.utils import get_logger, utc_today
from app.services.blob_store import BlobStore, receipt_key

logger = get_logger("receipts-dashboard.ingestion")


class IngestionPipeline:
    """Turns an uploaded receipt into a pending transaction and marks the company's day."""

    def __init__(
        self,
        store: DashboardStore,
        blob_store: BlobStore,
        today: Callable[[], date] = utc_today,
    ) -> None:
        """Initialize the pipeline with its store, blob store and a clock for the expected date."""
        self.store = store
        self.blob_store = blob_store
        self.today = today

    def _validate(self, company_id: str, amount: float, receipt: ReceiptFile) -> None:
        if not company_id or self.store.get_company(company_id) is None:
            msg = "Please select a registered company."
            raise ValidationError(msg)
        if isinstance(amount, bool) or not isinstance(amount, (int, float)) or not math.isfinite(amount):
            msg = "Amount must be a number."
            raise ValidationError(msg)
        if amount < 0:
            msg = "Amount cannot be negative."
            raise ValidationError(msg)
        if not receipt.data:
            msg = "Please attach the receipt image."
            raise ValidationError(msg)

    def ingest_receipt(
        self,
        company_id: str,
        amount: float,
        notes: str | None,
        receipt: ReceiptFile,
        user_id: str,
    ) -> Transaction:
        """Store the receipt, create a pending transaction and upsert today's tracking row.

        A blob stored before a failed insert is left in place, and a transaction whose tracking
        upsert fails is kept; both surface as errors to the caller.
        """
        self._validate(company_id, amount, receipt)
        key = receipt_key(company_id, receipt.extension)
        logger.info(f"Ingesting receipt for company={company_id} user={user_id} amount={amount} key={key}")
        try:
            receipt_url = self.blob_store.put(key, receipt.data, receipt.content_type)
        except StorageError:
            logger.exception(f"Receipt upload failed for company={company_id}")
            raise
        today = self.today()
        try:
            txn = self.store.insert_transaction(
                company_id=company_id,
                amount=float(amount),
                receipt_url=receipt_url,
                date_expected=today,
                status=TransactionStatus.PENDING.value,
                notes=notes or None,
                user_id=user_id,
            )
        except PersistenceError:
            logger.exception(f"Transaction insert failed; receipt {key} is orphaned")
            raise
        try:
            self.store.upsert_daily_tracking(company_id, today, txn.id)
        except PersistenceError:
            logger.exception(f"Daily tracking upsert failed for transaction {txn.id}")
            raise
        logger.info(f"Created transaction {txn.id} for company={company_id} on {today}")
        return txn
