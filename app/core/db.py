"""DB connection, ORM tables and query helpers for the Receipts Dashboard."""

import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import date
from typing import Any

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    delete,
    select,
    update,
)
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, relationship, sessionmaker

from app.core.errors import PersistenceError
from app.core.utils import get_logger, utcnow

Base = declarative_base()
logger = get_logger("receipts-dashboard.db")

PLATFORM_FEE_SETTING = "platform_fee_percentage"


def _new_id() -> str:
    return str(uuid.uuid4())


class Company(Base):
    """An LLC for which receipts are tracked independently."""

    __tablename__ = "companies"
    id = Column(String, primary_key=True, default=_new_id)
    name = Column(String, unique=True, nullable=False, index=True)


class Transaction(Base):
    """A deposit receipt uploaded by a partner, awaiting or past admin review."""

    __tablename__ = "transactions"
    id = Column(String, primary_key=True, default=_new_id)
    company_id = Column(String, ForeignKey("companies.id"), nullable=False, index=True)
    amount = Column(Numeric(12, 2, asdecimal=False), nullable=False)
    receipt_url = Column(Text, nullable=False)
    date_expected = Column(Date, nullable=False, index=True)
    status = Column(String, nullable=False, default="pending")
    profit_percentage = Column(Numeric(5, 2, asdecimal=False), nullable=False, default=10)
    notes = Column(Text, nullable=True)
    user_id = Column(String, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    company = relationship("Company")

    @property
    def company_name(self) -> str | None:
        """Name of the owning company, if it is still registered."""
        return self.company.name if self.company is not None else None


class DailyTracking(Base):
    """Per-company, per-day marker of whether a receipt was uploaded.

    ``transaction_id`` is not a foreign key. Deleting a pending transaction leaves the pointer
    dangling.
    """

    __tablename__ = "daily_tracking"
    __table_args__ = (UniqueConstraint("company_id", "tracking_date", name="uq_daily_tracking_company_date"),)
    id = Column(String, primary_key=True, default=_new_id)
    company_id = Column(String, ForeignKey("companies.id"), nullable=False)
    tracking_date = Column(Date, nullable=False)
    has_uploaded = Column(Boolean, nullable=False, default=False)
    transaction_id = Column(String, nullable=True)


class GlobalSetting(Base):
    """A named, string-valued platform setting."""

    __tablename__ = "global_settings"
    setting_key = Column(String, primary_key=True)
    setting_value = Column(String, nullable=False)
    description = Column(Text, nullable=True)


class VaultCredential(Base):
    """Login details for a service an LLC uses. Stored in clear text."""

    __tablename__ = "vault_credentials"
    id = Column(String, primary_key=True, default=_new_id)
    service_name = Column(String, nullable=False, index=True)
    username = Column(String, nullable=False)
    secret = Column(Text, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


def get_engine(url: str | None = None) -> Engine:
    """Create a SQLAlchemy engine using the configured database URL."""
    from app.core.settings import get_settings

    url = url or get_settings().database_url
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args)


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=get_engine())


def get_db() -> "DashboardStore":
    """Get a DashboardStore instance using a SQLAlchemy session."""
    session = SessionLocal()
    return DashboardStore(session)


class DashboardStore:
    """Helper class for database operations in the Receipts Dashboard using SQLAlchemy.

    Every public method commits its own unit of work. Driver and constraint failures are
    rolled back and re-raised as :class:`PersistenceError`.
    """

    def __init__(self, session: Session) -> None:
        """Initialize the DashboardStore with a SQLAlchemy session."""
        self.session = session

    @contextmanager
    def _unit(self, action: str, *, commit: bool = True) -> Iterator[Session]:
        try:
            yield self.session
            if commit:
                self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception(f"Database failure while trying to {action}")
            msg = f"Could not {action}. Please try again."
            raise PersistenceError(msg) from exc

    def _dialect_insert(self) -> Callable[..., Any]:
        """Return the insert construct that supports ON CONFLICT for the bound dialect."""
        dialect = self.session.get_bind().dialect.name
        if dialect == "postgresql":
            return pg_insert
        if dialect == "sqlite":
            return sqlite_insert
        msg = f"Atomic upsert is not supported on the '{dialect}' database."
        raise PersistenceError(msg)

    # --- companies ---

    def list_companies(self) -> list[Company]:
        """Return all registered companies ordered by name."""
        with self._unit("load companies", commit=False) as session:
            return list(session.scalars(select(Company).order_by(Company.name)))

    def get_company(self, company_id: str) -> Company | None:
        """Return a company by id."""
        with self._unit("load the company", commit=False) as session:
            return session.get(Company, company_id)

    def add_company(self, name: str, company_id: str | None = None) -> Company:
        """Register a company. Used by admin setup scripts and tests."""
        with self._unit("register the company") as session:
            company = Company(id=company_id or _new_id(), name=name)
            session.add(company)
        return company

    # --- transactions ---

    def insert_transaction(self, **values: Any) -> Transaction:
        """Insert a transaction row and return it."""
        with self._unit("save the transaction") as session:
            txn = Transaction(**values)
            session.add(txn)
        return txn

    def get_transaction(self, transaction_id: str) -> Transaction | None:
        """Return a transaction by id."""
        with self._unit("load the transaction", commit=False) as session:
            return session.get(Transaction, transaction_id)

    def list_transactions(self, user_id: str | None = None, date_expected: date | None = None) -> list[Transaction]:
        """Return transactions, newest expected date first, optionally filtered."""
        stmt = select(Transaction).order_by(Transaction.date_expected.desc(), Transaction.created_at.desc())
        if user_id is not None:
            stmt = stmt.where(Transaction.user_id == user_id)
        if date_expected is not None:
            stmt = stmt.where(Transaction.date_expected == date_expected)
        with self._unit("load transactions", commit=False) as session:
            return list(session.scalars(stmt))

    def update_pending_transaction(self, transaction_id: str, **values: Any) -> int:
        """Update a transaction only while it is pending. Returns the number of rows changed."""
        stmt = (
            update(Transaction)
            .where(Transaction.id == transaction_id, Transaction.status == "pending")
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        with self._unit("update the transaction") as session:
            result = session.execute(stmt)
        return result.rowcount

    def delete_pending_transaction(self, transaction_id: str) -> int:
        """Delete a transaction only while it is pending. Returns the number of rows removed."""
        stmt = (
            delete(Transaction)
            .where(Transaction.id == transaction_id, Transaction.status == "pending")
            .execution_options(synchronize_session=False)
        )
        with self._unit("delete the transaction") as session:
            result = session.execute(stmt)
        return result.rowcount

    # --- daily tracking ---

    def upsert_daily_tracking(self, company_id: str, tracking_date: date, transaction_id: str) -> None:
        """Mark a company as uploaded for a day, pointing at the given transaction.

        Uses the dialect's ``INSERT .. ON CONFLICT DO UPDATE`` so concurrent uploads for the
        same company and day can never produce two rows.
        """
        insert_fn = self._dialect_insert()
        stmt = insert_fn(DailyTracking.__table__).values(
            id=_new_id(),
            company_id=company_id,
            tracking_date=tracking_date,
            has_uploaded=True,
            transaction_id=transaction_id,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["company_id", "tracking_date"],
            set_={"has_uploaded": stmt.excluded.has_uploaded, "transaction_id": stmt.excluded.transaction_id},
        )
        with self._unit("update the daily checklist") as session:
            session.execute(stmt)

    def list_daily_tracking(self, tracking_date: date) -> list[tuple[DailyTracking, Transaction | None]]:
        """Return uploaded tracking rows for a day with the transaction each one points at.

        The transaction is None when the pointer dangles.
        """
        stmt = (
            select(DailyTracking, Transaction)
            .outerjoin(Transaction, Transaction.id == DailyTracking.transaction_id)
            .where(DailyTracking.tracking_date == tracking_date, DailyTracking.has_uploaded.is_(True))
        )
        with self._unit("load the daily checklist", commit=False) as session:
            return [(row[0], row[1]) for row in session.execute(stmt).all()]

    # --- settings ---

    def get_setting(self, key: str) -> str | None:
        """Return the raw value of a global setting."""
        with self._unit("load settings", commit=False) as session:
            row = session.get(GlobalSetting, key)
            return row.setting_value if row is not None else None

    def upsert_setting(self, key: str, value: str, description: str | None = None) -> None:
        """Insert or overwrite a global setting."""
        insert_fn = self._dialect_insert()
        stmt = insert_fn(GlobalSetting.__table__).values(setting_key=key, setting_value=value, description=description)
        stmt = stmt.on_conflict_do_update(
            index_elements=["setting_key"],
            set_={"setting_value": stmt.excluded.setting_value, "description": stmt.excluded.description},
        )
        with self._unit("save settings") as session:
            session.execute(stmt)

    # --- vault ---

    def list_credentials(self, service_contains: str | None = None) -> list[VaultCredential]:
        """Return stored credentials ordered by service name, optionally filtered by a name fragment."""
        stmt = select(VaultCredential).order_by(VaultCredential.service_name, VaultCredential.created_at)
        if service_contains:
            stmt = stmt.where(VaultCredential.service_name.ilike(f"%{service_contains}%"))
        with self._unit("load the vault", commit=False) as session:
            return list(session.scalars(stmt))

    def add_credential(self, **values: Any) -> VaultCredential:
        """Insert a credential and return it."""
        with self._unit("save the credential") as session:
            credential = VaultCredential(**values)
            session.add(credential)
        return credential

    def delete_credential(self, credential_id: str) -> int:
        """Delete a credential by id. Returns the number of rows removed."""
        stmt = delete(VaultCredential).where(VaultCredential.id == credential_id).execution_options(
            synchronize_session=False
        )
        with self._unit("delete the credential") as session:
            result = session.execute(stmt)
        return result.rowcount

    def close(self) -> None:
        """Close the SQLAlchemy session."""
        self.session.close()
