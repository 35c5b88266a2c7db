"""Base agent abstraction for receipt scanning agents.

This module defines the abstract base class for all agents that read a receipt image and answer in free text, enforcing a standard interface so the suggestion service does not depend on a particular model provider.
"""

from abc import ABC, abstractmethod


class BaseScanAgent(ABC):
    """Abstract base class for all receipt scanning agents."""

    @abstractmethod
    def scan(self, image: bytes, mime_type: str, company_names: list[str]) -> str | None:
        """Return the model's free-text answer for a receipt image, or None when it gave none."""
