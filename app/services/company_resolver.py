"""Match a guessed company name against the registered companies."""

from collections.abc import Iterable
from typing import Protocol


class NamedCompany(Protocol):
    """Anything with an ``id`` and a ``name``."""

    id: str
    name: str


def resolve_company(guess: str | None, companies: Iterable[NamedCompany]) -> str | None:
    """Return the id of the first company whose name contains the guess or is contained by it.

    Matching is case-insensitive and lenient on purpose: a false positive is corrected by the
    partner on the form, a false negative just leaves the field empty.
    """
    if not guess or not guess.strip():
        return None
    needle = guess.strip().lower()
    for company in companies:
        name = (company.name or "").strip().lower()
        if not name:
            continue
        if needle in name or name in needle:
            return company.id
    return None
