"""Pydantic models for the Receipts Dashboard.

This module defines the request and response models shared by the services and the API: the
transaction status enum, the read models for companies and transactions, and the derived views
(payouts, aggregates, scan suggestions, the daily checklist and the dashboard overview) and the
credential vault entries.
"""

import re
from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

_EXTENSION_RE = re.compile(r"[a-z0-9]{1,10}")


class TransactionStatus(str, Enum):
    """Review state of a transaction."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Role(str, Enum):
    """Role of the caller, as resolved by the authentication layer."""

    ADMIN = "admin"
    PARTNER = "partner"


class Actor(BaseModel):
    """The authenticated user performing a request."""

    id: str
    role: Role = Role.PARTNER

    @property
    def is_admin(self) -> bool:
        """Whether the actor has cross-cutting admin access."""
        return self.role == Role.ADMIN


class ReceiptFile(BaseModel):
    """An uploaded receipt image."""

    data: bytes
    filename: str = "receipt"
    content_type: str = "application/octet-stream"

    @property
    def extension(self) -> str:
        """Short alphanumeric file extension without the dot, otherwise ``bin``."""
        _, dot, ext = self.filename.rpartition(".")
        ext = ext.lower()
        return ext if dot and _EXTENSION_RE.fullmatch(ext) else "bin"


class CompanyOut(BaseModel):
    """A registered company."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str


class TransactionOut(BaseModel):
    """A transaction as shown in the review table and partner history."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    company_id: str
    company_name: str | None = None
    amount: float
    receipt_url: str
    date_expected: date
    status: TransactionStatus
    profit_percentage: float
    notes: str | None = None
    user_id: str
    created_at: datetime


class Payout(BaseModel):
    """Gross amount split into platform fee and partner payout."""

    fee: float
    net: float


class Aggregates(BaseModel):
    """Totals derived from a set of transactions."""

    total_pending: float = 0.0
    total_approved: float = 0.0
    estimated_profit: float = 0.0


class ExtractionSuggestion(BaseModel):
    """Fields guessed from a free-text model answer. Either may be missing."""

    amount: float | None = None
    company_guess: str | None = None


class ScanSuggestion(BaseModel):
    """Pre-fill values for the upload form."""

    amount: float | None = None
    company_id: str | None = None
    company_guess: str | None = None


class ProfitPercentageUpdate(BaseModel):
    """Request body for editing a transaction's profit percentage."""

    profit_percentage: float


class PlatformFee(BaseModel):
    """The platform commission percentage."""

    platform_fee_percentage: float = Field(ge=0, le=100)


class AdminReview(BaseModel):
    """The admin review table with its summary cards."""

    transactions: list[TransactionOut]
    aggregates: Aggregates


class HistoryEntry(BaseModel):
    """A partner's transaction with its payout at the current fee."""

    transaction: TransactionOut
    payout: Payout


class PartnerHistory(BaseModel):
    """A partner's own transactions, split by review state."""

    platform_fee_percentage: float
    pending: list[HistoryEntry]
    processed: list[HistoryEntry]


class ChecklistEntry(BaseModel):
    """Whether a company has uploaded today."""

    id: str
    name: str
    has_uploaded: bool


class DailyChecklist(BaseModel):
    """Today's per-company upload flags and the partner's payout for the day."""

    tracking_date: date
    companies: list[ChecklistEntry]
    completed: int
    daily_total: float
    platform_fee_percentage: float
    payout: Payout


class OverviewEntry(BaseModel):
    """A company's upload for today, if any."""

    id: str
    name: str
    has_uploaded: bool
    status: TransactionStatus | None = None
    amount: float | None = None


class OverviewSummary(BaseModel):
    """Headline numbers for today's overview."""

    total_companies: int
    uploaded_count: int
    total_amount: float


class DashboardOverview(BaseModel):
    """Today's upload status across all companies."""

    tracking_date: date
    companies: list[OverviewEntry]
    summary: OverviewSummary


class CredentialIn(BaseModel):
    """A new vault entry."""

    service_name: str = Field(min_length=1)
    username: str = Field(min_length=1)
    secret: str = Field(min_length=1)
    notes: str | None = None


class CredentialOut(BaseModel):
    """A stored vault entry, secret included."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    service_name: str
    username: str
    secret: str
    notes: str | None = None
