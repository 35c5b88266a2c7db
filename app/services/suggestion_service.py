"""Pre-fill suggestions for the upload form from a receipt image."""

from app.agents.base import BaseScanAgent
from app.core.db import DashboardStore
from app.core.models import ScanSuggestion
from app.core.utils import get_logger
from app.services.company_resolver import resolve_company
from app.services.extraction_parser import parse_extraction

logger = get_logger("receipts-dashboard.suggestions")


class ReceiptSuggester:
    """Ask the scan agent about a receipt and map its answer onto the company registry."""

    def __init__(self, store: DashboardStore, agent: BaseScanAgent | None) -> None:
        """Initialize the suggester. A missing agent disables scanning."""
        self.store = store
        self.agent = agent

    def suggest(self, image: bytes, mime_type: str) -> ScanSuggestion:
        """Return whatever could be guessed from the image; failures yield an empty suggestion."""
        if self.agent is None:
            logger.warning("No scan agent configured; skipping receipt scan")
            return ScanSuggestion()
        if not image:
            return ScanSuggestion()
        try:
            companies = self.store.list_companies()
            answer = self.agent.scan(image, mime_type, [c.name for c in companies])
            extracted = parse_extraction(answer)
            company_id = resolve_company(extracted.company_guess, companies)
        except Exception:
            # The upload form must stay usable whatever the scan does.
            logger.exception("Receipt scan failed; continuing without a suggestion")
            return ScanSuggestion()
        suggestion = ScanSuggestion(
            amount=extracted.amount,
            company_id=company_id,
            company_guess=extracted.company_guess,
        )
        logger.info(f"Receipt scan suggestion: {suggestion}")
        return suggestion
