"""
Business configuration looked up by key from the system_settings table.

Values are stored as text. A missing key, an unparsable value or a
non-positive number falls back to the default for that key; this is a
recoverable configuration default, never an error.
"""
from __future__ import annotations

import logging
from typing import Dict, Optional

from .models import SystemSetting

logger = logging.getLogger(__name__)

FARMER_CONFIRMATION_WINDOW_DAYS = "FarmerConfirmationWindowDays"
SUPERVISOR_CONFIRMATION_WINDOW_DAYS = "SupervisorConfirmationWindowDays"
DISTRIBUTION_DAYS_BEFORE_TASK = "MaterialDistributionDaysBeforeTask"

DEFAULTS: Dict[str, int] = {
    FARMER_CONFIRMATION_WINDOW_DAYS: 3,
    SUPERVISOR_CONFIRMATION_WINDOW_DAYS: 2,
    DISTRIBUTION_DAYS_BEFORE_TASK: 7,
}


def _raw_value(key: str) -> Optional[str]:
    return (
        SystemSetting.objects
        .filter(setting_key=key)
        .values_list("setting_value", flat=True)
        .first()
    )


def get_setting_int(key: str, default: Optional[int] = None) -> int:
    """Return a positive integer setting, or the default for the key."""
    if default is None:
        default = DEFAULTS[key]
    raw = _raw_value(key)
    if raw is None:
        return default
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        logger.debug("Setting %s has unparsable value %r; using default %s", key, raw, default)
        return default
    if value <= 0:
        logger.debug("Setting %s is non-positive (%s); using default %s", key, value, default)
        return default
    return value


def farmer_confirmation_window_days() -> int:
    return get_setting_int(FARMER_CONFIRMATION_WINDOW_DAYS)


def supervisor_confirmation_window_days() -> int:
    return get_setting_int(SUPERVISOR_CONFIRMATION_WINDOW_DAYS)


def distribution_days_before_task() -> int:
    return get_setting_int(DISTRIBUTION_DAYS_BEFORE_TASK)
