"""Turn a vision model's free-text answer into an amount and a company guess.

The model is asked for ``{"amount": ..., "company": ...}`` but routinely wraps it in markdown
fences, writes thousands separators inside JSON numbers, or answers in prose. Parsing is
best-effort: anything that cannot be read becomes a missing field, never an exception.
"""

import json
import math
import re

from app.core.models import ExtractionSuggestion
from app.core.utils import Related, get_logger

logger = get_logger("receipts-dashboard.extraction")

UNKNOWN_COMPANY = "UNKNOWN"

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)
# Matches: amount: $1,234.56 | "amount": 1,234.56 | **Amount:** 1234 | Total amount 99.90
_AMOUNT_RE = re.compile(r"amount[*\"']*\s*[:=]?[\s*$\"']*(\d[\d,]*(?:\.\d+)?)", re.IGNORECASE)
# Matches: company: "Acme LLC" | "company": "Acme LLC" | **Company:** Acme LLC
_COMPANY_RE = re.compile(r"company[*\"']*\s*[:=][\s*\"']*([^\"\n}]+)", re.IGNORECASE)


def strip_fences(text: str) -> str:
    """Remove markdown code-fence markers."""
    return _FENCE_RE.sub("", text).strip()


def parse_amount(value: object) -> float | None:
    """Read a positive amount from a number or a numeric string with thousands separators."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        amount = float(value)
    elif isinstance(value, str):
        cleaned = value.replace(",", "").replace("$", "").strip()
        try:
            amount = float(cleaned)
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(amount) or amount <= 0:
        return None
    return amount


def clean_company(value: object) -> str | None:
    """Normalise a company guess, dropping markdown emphasis and the UNKNOWN sentinel."""
    if not isinstance(value, str):
        return None
    guess = value.replace("*", "").strip().strip(",").strip()
    if not guess or guess.upper() == UNKNOWN_COMPANY:
        return None
    return guess


def _from_json(text: str) -> ExtractionSuggestion | None:
    try:
        decoded = json.loads(text)
    except json.JSONDecodeError:
        return None
    candidate = Related.of(decoded).first
    if not isinstance(candidate, dict):
        logger.info(f"Model JSON is not an object: {type(candidate).__name__}")
        return ExtractionSuggestion()
    return ExtractionSuggestion(
        amount=parse_amount(candidate.get("amount")),
        company_guess=clean_company(candidate.get("company")),
    )


def _from_patterns(text: str) -> ExtractionSuggestion:
    amount_match = _AMOUNT_RE.search(text)
    company_match = _COMPANY_RE.search(text)
    return ExtractionSuggestion(
        amount=parse_amount(amount_match.group(1)) if amount_match else None,
        company_guess=clean_company(company_match.group(1)) if company_match else None,
    )


def parse_extraction(text: str | None) -> ExtractionSuggestion:
    """Extract an amount and a company guess from the model's answer.

    Tries JSON first; when the answer is not valid JSON, falls back to scanning for labelled
    ``amount`` and ``company`` values. Either field may come back as None.
    """
    if not text or not text.strip():
        return ExtractionSuggestion()
    stripped = strip_fences(text)
    parsed = _from_json(stripped)
    if parsed is not None:
        logger.info(f"Parsed model answer as JSON: {parsed}")
        return parsed
    logger.info("Model answer is not valid JSON, applying pattern fallback")
    return _from_patterns(stripped)
