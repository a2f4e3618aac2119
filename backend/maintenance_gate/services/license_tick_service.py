from __future__ import annotations

import logging
import time
from typing import Optional

from flask import after_this_request

from maintenance_gate.services.license_service import LicenseManager


logger = logging.getLogger(__name__)


_LAST_CHECK_SCHEDULED_MONOTONIC: Optional[float] = None


def schedule_license_check_if_needed(license_manager: LicenseManager, min_interval_seconds: int = 60) -> bool:
    """Schedule a best-effort license re-check after the response closes.

    Throttled per process; whether the check is actually due is decided by
    ``LicenseManager.check_license_status`` from the persisted last-check time.
    Returns True when a check was scheduled for this request.
    """

    min_interval = max(1, min(int(min_interval_seconds or 60), 3600))

    global _LAST_CHECK_SCHEDULED_MONOTONIC
    now_mono = time.monotonic()
    if _LAST_CHECK_SCHEDULED_MONOTONIC is not None:
        if (now_mono - _LAST_CHECK_SCHEDULED_MONOTONIC) < float(min_interval):
            return False

    _LAST_CHECK_SCHEDULED_MONOTONIC = now_mono

    @after_this_request
    def _attach_on_close(response):
        response.call_on_close(lambda: run_license_check_best_effort(license_manager))
        return response

    return True


def run_license_check_best_effort(license_manager: LicenseManager) -> Optional[bool]:
    try:
        result = license_manager.check_license_status()
    except Exception:
        logger.exception("License check crashed")
        return None

    if result is not None:
        logger.info(f"License check: active={result}")
    return result


def reset_throttle() -> None:
    global _LAST_CHECK_SCHEDULED_MONOTONIC
    _LAST_CHECK_SCHEDULED_MONOTONIC = None
