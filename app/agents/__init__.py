"""Agents package: provides agent registry, base class, and agent implementations for receipt scanning."""

from .base import BaseScanAgent  # noqa: F401
from .receipt_agent import ReceiptScanAgent  # noqa: F401
from .registry import AgentRegistry  # noqa: F401
