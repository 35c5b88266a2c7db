"""FastAPI endpoints for the Receipts Dashboard API.

This module defines the routes the dashboard screens call: the upload form (company list, AI scan and receipt submission), the admin review table (listing, export, approve/reject, profit edits), partner history, the daily checklist, the overview, the platform fee settings and the admin credential vault. Domain errors propagate to the exception handlers registered in ``main.py``.
"""

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile
from fastapi.concurrency import run_in_threadpool

from app.agents.base import BaseScanAgent
from app.api.dependencies import (
    get_actor,
    get_blob_store,
    get_db_conn,
    get_platform_fee,
    get_scan_agent,
    require_admin,
)
from app.core.db import DashboardStore
from app.core.errors import NotFoundError
from app.core.models import (
    Actor,
    AdminReview,
    CompanyOut,
    CredentialIn,
    CredentialOut,
    DailyChecklist,
    DashboardOverview,
    PartnerHistory,
    PlatformFee,
    ProfitPercentageUpdate,
    ReceiptFile,
    ScanSuggestion,
    TransactionOut,
)
from app.core.utils import get_logger, utc_today
from app.services import views
from app.services.blob_store import BlobStore
from app.services.commission import save_platform_fee
from app.services.ingestion import IngestionPipeline
from app.services.suggestion_service import ReceiptSuggester
from app.services.workflow import TransactionWorkflow

router = APIRouter()
logger = get_logger("receipts-dashboard.api")


@router.get(
    "/health",
    summary="Health check",
    description="Simple health check endpoint. Returns status ok.",
    response_description="Status ok.",
    responses={200: {"description": "API is healthy.", "content": {"application/json": {"example": {"status": "ok"}}}}},
)
async def health() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}


@router.get("/companies", response_model=list[CompanyOut], summary="List registered companies")
def list_companies(
    _actor: Actor = Depends(get_actor),
    store: DashboardStore = Depends(get_db_conn),
) -> list[CompanyOut]:
    """Return the company registry ordered by name."""
    return [CompanyOut.model_validate(company) for company in store.list_companies()]


@router.post(
    "/receipts/scan",
    response_model=ScanSuggestion,
    summary="Suggest amount and company from a receipt image",
    description=(
        "Reads the receipt with a vision model and returns pre-fill values for the upload form. "
        "Scanning is best-effort: any model or parsing failure returns an empty suggestion, never an error."
    ),
)
async def scan_receipt(
    file: UploadFile = File(...),
    _actor: Actor = Depends(get_actor),
    store: DashboardStore = Depends(get_db_conn),
    agent: BaseScanAgent | None = Depends(get_scan_agent),
) -> ScanSuggestion:
    """Scan an uploaded receipt and return suggestions."""
    data = await file.read()
    logger.info(f"Received scan request: filename={file.filename} size={len(data)}")
    suggester = ReceiptSuggester(store, agent)
    # The model call can take seconds; run it in the threadpool.
    return await run_in_threadpool(suggester.suggest, data, file.content_type or "image/jpeg")


@router.post(
    "/receipts",
    status_code=201,
    response_model=TransactionOut,
    summary="Submit a receipt",
    description=(
        "Stores the receipt image, creates a pending transaction dated today and marks the company "
        "as uploaded in today's checklist.\n\n"
        "- 400: missing company, negative amount or empty file.\n"
        "- 503: storage or database unavailable; the form can be resubmitted."
    ),
)
async def submit_receipt(
    company_id: str = Form(...),
    amount: float = Form(...),
    notes: str = Form(""),
    file: UploadFile = File(...),
    actor: Actor = Depends(get_actor),
    store: DashboardStore = Depends(get_db_conn),
    blob_store: BlobStore = Depends(get_blob_store),
) -> TransactionOut:
    """Ingest a receipt for the calling partner."""
    logger.info(f"Received upload request: filename={file.filename} company={company_id} user={actor.id}")
    receipt = ReceiptFile(
        data=await file.read(),
        filename=file.filename or "receipt",
        content_type=file.content_type or "application/octet-stream",
    )

    def ingest() -> TransactionOut:
        txn = IngestionPipeline(store, blob_store).ingest_receipt(company_id, amount, notes, receipt, actor.id)
        return TransactionOut.model_validate(txn)

    # Blob upload and database writes block; keep them off the event loop.
    return await run_in_threadpool(ingest)


@router.get("/admin/transactions", response_model=AdminReview, summary="Admin review table")
def list_all_transactions(
    _admin: Actor = Depends(require_admin),
    store: DashboardStore = Depends(get_db_conn),
) -> AdminReview:
    """Return every transaction with pending/approved totals and estimated profit."""
    return views.admin_review(store)


@router.get("/admin/transactions/export", summary="Export the review table as CSV")
def export_transactions(
    _admin: Actor = Depends(require_admin),
    store: DashboardStore = Depends(get_db_conn),
) -> Response:
    """Download all transactions as a CSV file."""
    content = views.export_transactions_csv(store)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=transactions_{utc_today().isoformat()}.csv"},
    )


@router.post("/admin/transactions/{transaction_id}/approve", response_model=TransactionOut, summary="Approve")
def approve_transaction(
    transaction_id: str,
    admin: Actor = Depends(require_admin),
    store: DashboardStore = Depends(get_db_conn),
) -> TransactionOut:
    """Approve a pending transaction."""
    logger.info(f"Admin {admin.id} approving {transaction_id}")
    return TransactionOut.model_validate(TransactionWorkflow(store).approve(transaction_id))


@router.post("/admin/transactions/{transaction_id}/reject", response_model=TransactionOut, summary="Reject")
def reject_transaction(
    transaction_id: str,
    admin: Actor = Depends(require_admin),
    store: DashboardStore = Depends(get_db_conn),
) -> TransactionOut:
    """Reject a pending transaction."""
    logger.info(f"Admin {admin.id} rejecting {transaction_id}")
    return TransactionOut.model_validate(TransactionWorkflow(store).reject(transaction_id))


@router.put(
    "/admin/transactions/{transaction_id}/profit-percentage",
    response_model=TransactionOut,
    summary="Edit the profit percentage of a pending transaction",
)
def update_profit_percentage(
    transaction_id: str,
    body: ProfitPercentageUpdate,
    _admin: Actor = Depends(require_admin),
    store: DashboardStore = Depends(get_db_conn),
) -> TransactionOut:
    """Set the profit percentage used for the estimated profit."""
    txn = TransactionWorkflow(store).set_profit_percentage(transaction_id, body.profit_percentage)
    return TransactionOut.model_validate(txn)


@router.delete("/transactions/{transaction_id}", status_code=204, summary="Delete a pending upload")
def delete_transaction(
    transaction_id: str,
    actor: Actor = Depends(get_actor),
    store: DashboardStore = Depends(get_db_conn),
) -> Response:
    """Delete a pending transaction. Partners may only delete their own."""
    TransactionWorkflow(store).delete(transaction_id, requested_by=actor)
    return Response(status_code=204)


@router.get("/history", response_model=PartnerHistory, summary="The caller's upload history")
def history(
    actor: Actor = Depends(get_actor),
    store: DashboardStore = Depends(get_db_conn),
    fee: float = Depends(get_platform_fee),
) -> PartnerHistory:
    """Return the caller's transactions with payouts at the current fee."""
    return views.partner_history(store, actor.id, fee)


@router.get("/checklist/today", response_model=DailyChecklist, summary="Today's upload checklist")
def checklist_today(
    _actor: Actor = Depends(get_actor),
    store: DashboardStore = Depends(get_db_conn),
    fee: float = Depends(get_platform_fee),
) -> DailyChecklist:
    """Return which companies have uploaded today and the day's payout."""
    return views.daily_checklist(store, utc_today(), fee)


@router.get("/overview/today", response_model=DashboardOverview, summary="Today's overview")
def overview_today(
    _actor: Actor = Depends(get_actor),
    store: DashboardStore = Depends(get_db_conn),
) -> DashboardOverview:
    """Return today's status per company."""
    return views.dashboard_overview(store, utc_today())


@router.get("/settings/platform-fee", response_model=PlatformFee, summary="Read the platform fee")
def read_platform_fee(
    _actor: Actor = Depends(get_actor),
    fee: float = Depends(get_platform_fee),
) -> PlatformFee:
    """Return the platform fee percentage (10 when unset)."""
    return PlatformFee(platform_fee_percentage=fee)


@router.put("/settings/platform-fee", response_model=PlatformFee, summary="Update the platform fee")
def update_platform_fee(
    body: PlatformFee,
    _admin: Actor = Depends(require_admin),
    store: DashboardStore = Depends(get_db_conn),
) -> PlatformFee:
    """Store a new platform fee percentage."""
    return PlatformFee(platform_fee_percentage=save_platform_fee(store, body.platform_fee_percentage))


@router.get("/vault", response_model=list[CredentialOut], summary="List vault credentials")
def list_credentials(
    service: str | None = None,
    _admin: Actor = Depends(require_admin),
    store: DashboardStore = Depends(get_db_conn),
) -> list[CredentialOut]:
    """Return the stored credentials ordered by service name.

    ``service`` keeps only entries whose service name contains it, e.g. ``stripe`` for the Stripe access page.
    """
    return [CredentialOut.model_validate(cred) for cred in store.list_credentials(service)]


@router.post("/vault", status_code=201, response_model=CredentialOut, summary="Add a vault credential")
def add_credential(
    body: CredentialIn,
    admin: Actor = Depends(require_admin),
    store: DashboardStore = Depends(get_db_conn),
) -> CredentialOut:
    """Store a credential as entered."""
    credential = store.add_credential(**body.model_dump())
    logger.info(f"Admin {admin.id} added a credential for {body.service_name}")
    return CredentialOut.model_validate(credential)


@router.delete("/vault/{credential_id}", status_code=204, summary="Delete a vault credential")
def delete_credential(
    credential_id: str,
    admin: Actor = Depends(require_admin),
    store: DashboardStore = Depends(get_db_conn),
) -> Response:
    """Remove a credential."""
    if not store.delete_credential(credential_id):
        msg = f"Credential {credential_id} does not exist."
        raise NotFoundError(msg)
    logger.info(f"Admin {admin.id} deleted credential {credential_id}")
    return Response(status_code=204)
