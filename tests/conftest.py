"""Shared fixtures: in-memory database, fake blob store, fake scan agent and an API client."""

from collections.abc import Iterator
from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.agents.base import BaseScanAgent
from app.api.dependencies import get_blob_store, get_db_conn, get_scan_agent
from app.core.db import Base, Company, DashboardStore
from app.core.errors import StorageError
from app.core.models import ReceiptFile
from app.services.blob_store import BlobStore
from main import app

TODAY = date(2026, 10, 19)
PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-receipt"


class FakeBlobStore(BlobStore):
    """Keeps blobs in memory; can be told to fail like an unreachable store."""

    def __init__(self, *, fail: bool = False) -> None:
        self.objects: dict[str, bytes] = {}
        self.fail = fail

    def put(self, path: str, data: bytes, content_type: str) -> str:
        if self.fail:
            msg = "Could not store the receipt. Please try again."
            raise StorageError(msg)
        self.objects[path] = data
        return f"https://blobs.test/{path}"


class FakeScanAgent(BaseScanAgent):
    """Returns a canned answer, or raises a canned error."""

    def __init__(self, answer: str | None = None, error: Exception | None = None) -> None:
        self.answer = answer
        self.error = error
        self.calls: list[tuple[bytes, str, list[str]]] = []

    def scan(self, image: bytes, mime_type: str, company_names: list[str]) -> str | None:
        self.calls.append((image, mime_type, company_names))
        if self.error is not None:
            raise self.error
        return self.answer


@pytest.fixture
def engine() -> Iterator[Engine]:
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine: Engine) -> Iterator[DashboardStore]:
    store = DashboardStore(sessionmaker(bind=engine)())
    yield store
    store.close()


@pytest.fixture
def companies(store: DashboardStore) -> list[Company]:
    return [store.add_company("Acme LLC", "c1"), store.add_company("Beta Corp", "c2")]


@pytest.fixture
def blob_store() -> FakeBlobStore:
    return FakeBlobStore()


@pytest.fixture
def receipt() -> ReceiptFile:
    return ReceiptFile(data=PNG_BYTES, filename="deposit.PNG", content_type="image/png")


@pytest.fixture
def client(store: DashboardStore, blob_store: FakeBlobStore) -> Iterator[TestClient]:
    app.dependency_overrides[get_db_conn] = lambda: store
    app.dependency_overrides[get_blob_store] = lambda: blob_store
    app.dependency_overrides[get_scan_agent] = lambda: None
    yield TestClient(app)
    app.dependency_overrides.clear()
