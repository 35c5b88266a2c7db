"""Shared utility functions for the Receipts Dashboard project."""

import logging
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any, Literal

import colorlog


def get_logger(name: str) -> logging.Logger:
    """Get a logger with a colorized format for the project.

    Dotted names are children of the project logger and log through its handlers.
    """
    root_name, _, child = name.partition(".")
    if child:
        get_logger(root_name)
        return logging.getLogger(name)
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = colorlog.ColoredFormatter(
            "%(log_color)s%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "bold_red",
            },
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.propagate = False
    return logger


def ensure_dir(path: str | Path) -> None:
    """Ensure a directory exists (like mkdir -p)."""
    Path(path).mkdir(parents=True, exist_ok=True)


def safe_cast(val: object, to_type: type, default: object = None) -> object:
    """Safely cast a value to a type, returning default on failure."""
    try:
        return to_type(val)
    except (ValueError, TypeError):
        return default


def utcnow() -> datetime:
    """Get the current UTC time as an aware datetime."""
    return datetime.now(UTC)


def utc_today() -> date:
    """Get the current calendar date in UTC."""
    return utcnow().date()


@dataclass(frozen=True)
class Related:
    """A value that may arrive as nothing, a single item, or a list of items.

    Join fetches and model answers are not consistent about which shape they use; callers
    normalise once with :meth:`of` and then read ``first`` or ``items``.
    """

    kind: Literal["none", "one", "many"]
    items: tuple[Any, ...] = field(default_factory=tuple)

    @classmethod
    def of(cls, value: object) -> "Related":
        """Normalise ``value`` into a tagged variant."""
        if value is None:
            return cls("none")
        if isinstance(value, (list, tuple)):
            if not value:
                return cls("none")
            if len(value) == 1:
                return cls("one", (value[0],))
            return cls("many", tuple(value))
        return cls("one", (value,))

    @property
    def first(self) -> Any | None:
        """Return the first item, or None for the empty variant."""
        return self.items[0] if self.items else None
