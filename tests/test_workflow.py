"""Tests for the transaction review workflow and its statistics."""

import random
from collections.abc import Iterator
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from types import SimpleNamespace

import pytest
from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from app.core.db import Base, DailyTracking, DashboardStore, Transaction, get_engine
from app.core.errors import InvalidArgument, InvalidStateTransition, NotFoundError, PermissionDenied
from app.core.models import Actor, ReceiptFile, Role
from app.services.ingestion import IngestionPipeline
from app.services.workflow import TransactionWorkflow, compute_aggregates
from tests.conftest import PNG_BYTES, TODAY, FakeBlobStore


def _pending(store: DashboardStore, amount: float = 500.0, user_id: str = "u1") -> Transaction:
    return store.insert_transaction(
        company_id="c1",
        amount=amount,
        receipt_url="https://blobs.test/receipts/c1.png",
        date_expected=TODAY,
        status="pending",
        user_id=user_id,
    )


@pytest.fixture
def workflow(store: DashboardStore, companies: list) -> TransactionWorkflow:
    return TransactionWorkflow(store)


def test_approve_then_approve_again_fails(workflow: TransactionWorkflow, store: DashboardStore) -> None:
    """Approved is terminal."""
    txn_id = _pending(store).id
    if workflow.approve(txn_id).status != "approved":
        msg = "Expected the transaction to be approved"
        raise AssertionError(msg)
    with pytest.raises(InvalidStateTransition):
        workflow.approve(txn_id)
    with pytest.raises(InvalidStateTransition):
        workflow.reject(txn_id)


def test_reject_is_terminal(workflow: TransactionWorkflow, store: DashboardStore) -> None:
    """Rejected transactions cannot be approved later."""
    txn_id = _pending(store).id
    workflow.reject(txn_id)
    with pytest.raises(InvalidStateTransition):
        workflow.approve(txn_id)
    if store.get_transaction(txn_id).status != "rejected":
        msg = "Status should still be rejected"
        raise AssertionError(msg)


def test_unknown_transaction(workflow: TransactionWorkflow) -> None:
    """Missing ids are reported as not found."""
    with pytest.raises(NotFoundError):
        workflow.approve("does-not-exist")
    with pytest.raises(NotFoundError):
        workflow.delete("does-not-exist")


def test_profit_percentage_only_while_pending(workflow: TransactionWorkflow, store: DashboardStore) -> None:
    """Edits apply to pending transactions and are refused once approved."""
    txn_id = _pending(store).id
    if workflow.set_profit_percentage(txn_id, 12.5).profit_percentage != 12.5:  # noqa: PLR2004
        msg = "Expected the new profit percentage"
        raise AssertionError(msg)
    workflow.approve(txn_id)
    with pytest.raises(InvalidStateTransition):
        workflow.set_profit_percentage(txn_id, 50)
    if store.get_transaction(txn_id).profit_percentage != 12.5:  # noqa: PLR2004
        msg = "Profit percentage must not change after approval"
        raise AssertionError(msg)


@pytest.mark.parametrize("value", [-0.01, 100.01, float("nan"), True])
def test_profit_percentage_range(workflow: TransactionWorkflow, store: DashboardStore, value: float) -> None:
    """Values outside [0, 100] are invalid arguments."""
    txn_id = _pending(store).id
    with pytest.raises(InvalidArgument):
        workflow.set_profit_percentage(txn_id, value)


@pytest.mark.parametrize("value", [0, 100])
def test_profit_percentage_bounds_are_inclusive(
    workflow: TransactionWorkflow, store: DashboardStore, value: float
) -> None:
    """Both ends of the range are allowed."""
    txn_id = _pending(store).id
    if workflow.set_profit_percentage(txn_id, value).profit_percentage != value:
        msg = f"Expected {value} to be accepted"
        raise AssertionError(msg)


def test_delete_only_while_pending(workflow: TransactionWorkflow, store: DashboardStore) -> None:
    """Pending transactions can be deleted; approved ones cannot."""
    pending_id = _pending(store).id
    approved_id = _pending(store).id
    workflow.approve(approved_id)
    workflow.delete(pending_id)
    if store.get_transaction(pending_id) is not None:
        msg = "Pending transaction should be gone"
        raise AssertionError(msg)
    with pytest.raises(InvalidStateTransition):
        workflow.delete(approved_id)


def test_delete_leaves_tracking_pointer_dangling(
    store: DashboardStore, companies: list, workflow: TransactionWorkflow
) -> None:
    """Deleting the tracked transaction does not touch the daily tracking row."""
    pipeline = IngestionPipeline(store, FakeBlobStore(), today=lambda: TODAY)
    txn_id = pipeline.ingest_receipt("c1", 10, "", ReceiptFile(data=PNG_BYTES, content_type="image/png"), "u1").id
    workflow.delete(txn_id)
    rows = list(store.session.scalars(select(DailyTracking)))
    if len(rows) != 1 or rows[0].transaction_id != txn_id:
        msg = "Tracking row should remain and still reference the deleted id"
        raise AssertionError(msg)


def test_partner_delete_permissions(workflow: TransactionWorkflow, store: DashboardStore) -> None:
    """Partners delete only their own uploads; admins delete any pending one."""
    txn_id = _pending(store, user_id="u1").id
    with pytest.raises(PermissionDenied):
        workflow.delete(txn_id, requested_by=Actor(id="u2", role=Role.PARTNER))
    workflow.delete(txn_id, requested_by=Actor(id="u1", role=Role.PARTNER))
    other_id = _pending(store, user_id="u1").id
    workflow.delete(other_id, requested_by=Actor(id="admin-1", role=Role.ADMIN))


def _txn(amount: float, status: str, profit: float = 10.0) -> SimpleNamespace:
    return SimpleNamespace(amount=amount, status=status, profit_percentage=profit)


def test_compute_aggregates() -> None:
    """Pending and approved sums plus profit on approved only."""
    result = compute_aggregates(
        [_txn(100, "pending"), _txn(500, "approved", 10), _txn(250, "approved", 20), _txn(999, "rejected")]
    )
    expected = (100.0, 750.0, 100.0)
    if (result.total_pending, result.total_approved, result.estimated_profit) != expected:
        msg = f"Unexpected aggregates: {result}"
        raise AssertionError(msg)


def test_compute_aggregates_empty() -> None:
    """No transactions, all zeros."""
    result = compute_aggregates([])
    if (result.total_pending, result.total_approved, result.estimated_profit) != (0.0, 0.0, 0.0):
        msg = f"Unexpected aggregates: {result}"
        raise AssertionError(msg)


def test_compute_aggregates_is_order_independent() -> None:
    """Shuffling the input never changes the totals."""
    rng = random.Random(7)
    statuses = ["pending", "approved", "rejected"]
    transactions = [
        _txn(round(rng.uniform(0, 10_000), 2), rng.choice(statuses), round(rng.uniform(0, 100), 2)) for _ in range(200)
    ]
    baseline = compute_aggregates(transactions)
    for _ in range(20):
        shuffled = transactions[:]
        rng.shuffle(shuffled)
        if compute_aggregates(shuffled) != baseline:
            msg = "Aggregates changed with input order"
            raise AssertionError(msg)


def test_end_to_end_profit(store: DashboardStore, companies: list) -> None:
    """Ingest 500 for Acme, approve at 10%, estimated profit is 50."""
    pipeline = IngestionPipeline(store, FakeBlobStore(), today=lambda: TODAY)
    receipt = ReceiptFile(data=PNG_BYTES, filename="r.png", content_type="image/png")
    txn = pipeline.ingest_receipt("c1", 500, "", receipt, "u1")
    if (txn.status, txn.amount) != ("pending", 500.0):
        msg = f"Unexpected new transaction: {txn.status} {txn.amount}"
        raise AssertionError(msg)
    workflow = TransactionWorkflow(store)
    workflow.set_profit_percentage(txn.id, 10)
    workflow.approve(txn.id)
    aggregates = compute_aggregates(store.list_transactions())
    if aggregates.estimated_profit != 50.0 or aggregates.total_approved != 500.0:  # noqa: PLR2004
        msg = f"Unexpected aggregates: {aggregates}"
        raise AssertionError(msg)


@pytest.fixture
def file_sessions(tmp_path: Path) -> Iterator[sessionmaker]:
    engine = get_engine(f"sqlite:///{tmp_path / 'race.db'}")
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine)
    seed = DashboardStore(factory())
    seed.add_company("Acme LLC", "c1")
    seed.close()
    yield factory
    engine.dispose()


def test_concurrent_profit_edits_keep_one_written_value(file_sessions: sessionmaker) -> None:
    """Racing edits leave the row intact with one of the written values."""
    seed = DashboardStore(file_sessions())
    txn_id = _pending(seed).id
    seed.close()
    values = [5.0, 12.5, 20.0, 33.0, 47.5, 60.0]

    def edit(value: float) -> None:
        store = DashboardStore(file_sessions())
        try:
            TransactionWorkflow(store).set_profit_percentage(txn_id, value)
        finally:
            store.close()

    with ThreadPoolExecutor(max_workers=6) as executor:
        list(executor.map(edit, values))

    check = DashboardStore(file_sessions())
    txn = check.get_transaction(txn_id)
    if txn.profit_percentage not in values or (txn.status, txn.amount) != ("pending", 500.0):
        msg = f"Corrupted row: {txn.profit_percentage} {txn.status} {txn.amount}"
        raise AssertionError(msg)
    check.close()


def test_concurrent_approve_and_reject_pick_one(file_sessions: sessionmaker) -> None:
    """Exactly one of a racing approve and reject wins; the other is refused."""
    seed = DashboardStore(file_sessions())
    txn_id = _pending(seed).id
    seed.close()

    def review(action: str) -> str:
        store = DashboardStore(file_sessions())
        try:
            getattr(TransactionWorkflow(store), action)(txn_id)
        except InvalidStateTransition:
            return "refused"
        finally:
            store.close()
        return action

    with ThreadPoolExecutor(max_workers=2) as executor:
        outcomes = sorted(executor.map(review, ["approve", "reject"]))

    if outcomes not in (["approve", "refused"], ["refused", "reject"]):
        msg = f"Expected exactly one winner, got {outcomes}"
        raise AssertionError(msg)


def test_concurrent_uploads_share_one_tracking_row(file_sessions: sessionmaker) -> None:
    """Parallel uploads for one company and day never create a second tracking row."""

    def upload(amount: float) -> str:
        store = DashboardStore(file_sessions())
        try:
            pipeline = IngestionPipeline(store, FakeBlobStore(), today=lambda: TODAY)
            receipt = ReceiptFile(data=PNG_BYTES, filename="r.png", content_type="image/png")
            return pipeline.ingest_receipt("c1", amount, "", receipt, "u1").id
        finally:
            store.close()

    with ThreadPoolExecutor(max_workers=4) as executor:
        ids = list(executor.map(upload, [10.0, 20.0, 30.0, 40.0]))

    check = DashboardStore(file_sessions())
    rows = list(check.session.scalars(select(DailyTracking)))
    if len(rows) != 1 or rows[0].transaction_id not in ids or len(check.list_transactions()) != 4:  # noqa: PLR2004
        msg = f"Expected one tracking row among {ids}, got {[r.transaction_id for r in rows]}"
        raise AssertionError(msg)
    check.close()
