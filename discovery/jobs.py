"""Periodic maintenance jobs for the discovery service."""

from datetime import date, timedelta
from typing import Optional

import sentry_sdk

from discovery.config import settings
from discovery.services.quota_service import QuotaTracker
from discovery.utils.database import Database
from discovery.utils.errors import DatabaseError
from discovery.utils.logging import get_logger

logger = get_logger(__name__)


def expire_stale_quota_records(
    tracker: Optional[QuotaTracker] = None,
    today: Optional[date] = None,
    retention_days: Optional[int] = None,
) -> int:
    """Job to delete quota counters older than the retention window.

    Counters are keyed by day, so old rows are never read again once their day
    has passed. They are kept for `QUOTA_RETENTION_DAYS` for support queries.

    Returns:
        int: Number of records deleted, 0 if the job failed.
    """
    tracker = tracker or QuotaTracker(Database.get_session_factory())
    today = today or date.today()
    retention = settings.QUOTA_RETENTION_DAYS if retention_days is None else retention_days
    cutoff = today - timedelta(days=retention)

    logger.info("Running quota cleanup job", cutoff=cutoff.isoformat())
    with sentry_sdk.start_span(op="job.quota_cleanup", name="expire_stale_quota_records") as span:
        try:
            deleted = tracker.purge_before(cutoff)
        except DatabaseError as e:
            logger.error("Quota cleanup job failed", error=str(e), details=e.details)
            return 0
        span.set_data("deleted", deleted)
        logger.info("Quota cleanup job finished", deleted=deleted)
        return deleted
