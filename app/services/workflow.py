"""Transaction review workflow and the statistics derived from it.

A transaction starts ``pending`` and moves once, to ``approved`` or ``rejected``; both are
terminal. Profit-percentage edits and deletion are only allowed while pending. Every guard is
applied inside the UPDATE/DELETE statement itself. Otherwise the last write wins.
"""

import math
from collections.abc import Iterable
from typing import Protocol

from app.core.db import DashboardStore, Transaction
from app.core.errors import InvalidArgument, InvalidStateTransition, NotFoundError, PermissionDenied
from app.core.models import Actor, Aggregates, TransactionStatus
from app.core.utils import get_logger

logger = get_logger("receipts-dashboard.workflow")


class _Aggregatable(Protocol):
    amount: float
    status: str
    profit_percentage: float


def compute_aggregates(transactions: Iterable[_Aggregatable]) -> Aggregates:
    """Sum pending and approved amounts and the estimated profit on approved ones.

    Uses exactly-rounded summation so the result does not depend on input order.
    """
    pending: list[float] = []
    approved: list[float] = []
    profit: list[float] = []
    for txn in transactions:
        status = TransactionStatus(txn.status)
        if status is TransactionStatus.PENDING:
            pending.append(float(txn.amount))
        elif status is TransactionStatus.APPROVED:
            approved.append(float(txn.amount))
            profit.append(float(txn.amount) * float(txn.profit_percentage) / 100)
    return Aggregates(
        total_pending=math.fsum(pending),
        total_approved=math.fsum(approved),
        estimated_profit=math.fsum(profit),
    )


class TransactionWorkflow:
    """State machine operations over stored transactions."""

    def __init__(self, store: DashboardStore) -> None:
        """Initialize the workflow with a store."""
        self.store = store

    def _require(self, transaction_id: str) -> Transaction:
        txn = self.store.get_transaction(transaction_id)
        if txn is None:
            msg = f"Transaction {transaction_id} does not exist."
            raise NotFoundError(msg)
        return txn

    def _refuse(self, transaction_id: str, action: str) -> None:
        """Raise the error that explains why a guarded write changed nothing."""
        txn = self._require(transaction_id)
        msg = f"Cannot {action} transaction {transaction_id}: it is already {txn.status}."
        logger.warning(msg)
        raise InvalidStateTransition(msg)

    def _transition(self, transaction_id: str, target: TransactionStatus, verb: str) -> Transaction:
        changed = self.store.update_pending_transaction(transaction_id, status=target.value)
        if not changed:
            self._refuse(transaction_id, verb)
        logger.info(f"Transaction {transaction_id} -> {target.value}")
        return self._require(transaction_id)

    def approve(self, transaction_id: str) -> Transaction:
        """Move a pending transaction to approved."""
        return self._transition(transaction_id, TransactionStatus.APPROVED, "approve")

    def reject(self, transaction_id: str) -> Transaction:
        """Move a pending transaction to rejected."""
        return self._transition(transaction_id, TransactionStatus.REJECTED, "reject")

    def set_profit_percentage(self, transaction_id: str, value: float) -> Transaction:
        """Change the profit percentage of a pending transaction."""
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            msg = "Profit percentage must be a number."
            raise InvalidArgument(msg)
        if not 0 <= value <= 100:
            msg = f"Profit percentage must be between 0 and 100, got {value}."
            raise InvalidArgument(msg)
        changed = self.store.update_pending_transaction(transaction_id, profit_percentage=float(value))
        if not changed:
            self._refuse(transaction_id, "edit the profit percentage of")
        logger.info(f"Transaction {transaction_id} profit percentage -> {value}")
        return self._require(transaction_id)

    def delete(self, transaction_id: str, requested_by: Actor | None = None) -> None:
        """Delete a pending transaction. Its daily tracking pointer is left as is."""
        if requested_by is not None and not requested_by.is_admin:
            txn = self._require(transaction_id)
            if txn.user_id != requested_by.id:
                msg = "You can only delete your own uploads."
                raise PermissionDenied(msg)
        removed = self.store.delete_pending_transaction(transaction_id)
        if not removed:
            self._refuse(transaction_id, "delete")
        logger.info(f"Deleted transaction {transaction_id}")
