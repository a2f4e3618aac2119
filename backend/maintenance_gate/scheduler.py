from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from maintenance_gate.config import Settings
from maintenance_gate.services.license_service import LicenseManager
import logging

logger = logging.getLogger(__name__)


def verify_license_job(license_manager: LicenseManager):
    """Background task to re-verify the stored license"""
    try:
        result = license_manager.check_license_status(force=True)
        logger.info(f"Scheduled license verification completed: active={result}")
    except Exception as e:
        logger.error(f"Scheduled license verification failed: {e}", exc_info=True)


def start_scheduler(license_manager: LicenseManager, app_settings: Settings):
    """Start the APScheduler for periodic license verification"""
    interval_hours = app_settings.license_check_interval_hours
    if interval_hours <= 0:
        logger.warning(
            "LICENSE_CHECK_INTERVAL_HOURS must be > 0; "
            "falling back to daily verification"
        )
        interval_hours = 24

    scheduler = BackgroundScheduler(daemon=True)
    scheduler.add_job(
        verify_license_job,
        trigger=IntervalTrigger(hours=interval_hours),
        args=[license_manager],
        id="license_verify",
        name="Verify license with the licensing service",
        replace_existing=True,
    )

    scheduler.start()
    logger.info(f"Scheduler started - license verification every {interval_hours} hours")
    return scheduler
