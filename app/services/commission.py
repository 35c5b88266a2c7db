"""Commission math and the platform fee setting."""

import math

from app.core.db import PLATFORM_FEE_SETTING, DashboardStore
from app.core.errors import InvalidArgument, PersistenceError
from app.core.models import Payout
from app.core.utils import get_logger, safe_cast

DEFAULT_PLATFORM_FEE_PERCENTAGE = 10.0

logger = get_logger("receipts-dashboard.commission")


def compute_payout(gross_amount: float, fee_percent: float) -> Payout:
    """Split a gross amount into the platform fee and the partner's net payout.

    No rounding is applied; ``fee + net`` equals ``gross_amount`` up to float precision.
    """
    if not math.isfinite(gross_amount) or gross_amount < 0:
        msg = f"Gross amount must be a non-negative number, got {gross_amount}"
        raise InvalidArgument(msg)
    if not math.isfinite(fee_percent) or not 0 <= fee_percent <= 100:
        msg = f"Fee percentage must be between 0 and 100, got {fee_percent}"
        raise InvalidArgument(msg)
    fee = gross_amount * fee_percent / 100
    return Payout(fee=fee, net=gross_amount - fee)


def parse_platform_fee(raw: str | None) -> float:
    """Parse a stored fee value, falling back to the default when it is missing or invalid."""
    value = safe_cast(raw, float) if raw is not None else None
    if value is None or not math.isfinite(value) or not 0 <= value <= 100:
        if raw is not None:
            logger.warning(f"Ignoring invalid {PLATFORM_FEE_SETTING} value {raw!r}")
        return DEFAULT_PLATFORM_FEE_PERCENTAGE
    return value


def load_platform_fee(store: DashboardStore) -> float:
    """Read the platform fee percentage, defaulting to 10 when it cannot be read."""
    try:
        raw = store.get_setting(PLATFORM_FEE_SETTING)
    except PersistenceError:
        logger.warning(f"Could not read {PLATFORM_FEE_SETTING}; using {DEFAULT_PLATFORM_FEE_PERCENTAGE}")
        return DEFAULT_PLATFORM_FEE_PERCENTAGE
    return parse_platform_fee(raw)


def save_platform_fee(store: DashboardStore, value: float) -> float:
    """Persist a new platform fee percentage."""
    if not math.isfinite(value) or not 0 <= value <= 100:
        msg = f"Fee percentage must be between 0 and 100, got {value}"
        raise InvalidArgument(msg)
    store.upsert_setting(PLATFORM_FEE_SETTING, str(value), "Commission percentage deducted from the partner payout")
    logger.info(f"Platform fee set to {value}%")
    return value
