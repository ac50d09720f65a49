"""Daily interest-action quota."""

from datetime import date
from typing import Optional

import sentry_sdk
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from discovery.models.quota import UNLIMITED, QuotaDecision
from discovery.utils.database import QuotaRecordDB, SessionFactory, session_scope, utcnow
from discovery.utils.errors import DatabaseError
from discovery.utils.logging import get_logger

logger = get_logger(__name__)

# Attempts at creating the first record of a day before giving up
_INSERT_ATTEMPTS = 3


class QuotaTracker:
    """
    Per-user, per-day counter of interest actions.

    The ceiling is passed on every call rather than stored, so a tier change
    applies to the very next swipe. Check-and-increment is a single
    conditional UPDATE, which the database applies atomically per row: two
    concurrent calls can never both take the last slot.
    """

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    def try_consume(self, user_id: str, day: date, ceiling: int) -> QuotaDecision:
        """
        Consume one slot of the user's quota for `day` if one is left.

        Args:
            user_id (str): User taking the action.
            day (date): Calendar day the action counts against.
            ceiling (int): Maximum actions for the day, negative for unlimited.

        Returns:
            QuotaDecision: ``allowed`` with the slots left after this one, or
            not allowed with ``remaining=0`` and no state change.

        Raises:
            DatabaseError: If the quota store is unavailable.
        """
        with sentry_sdk.start_span(op="quota.consume", name=user_id) as span:
            span.set_data("ceiling", ceiling)

            if ceiling == 0:
                logger.info("Quota ceiling is zero", user_id=user_id, day=day.isoformat())
                return QuotaDecision(allowed=False, remaining=0)

            limit = None if ceiling < 0 else ceiling
            for _ in range(_INSERT_ATTEMPTS):
                try:
                    with session_scope(self._session_factory, "try_consume") as session:
                        count = self._increment(session, user_id, day, limit)
                except IntegrityError:
                    logger.debug("Concurrent quota insert, retrying", user_id=user_id, day=day.isoformat())
                    continue

                if count is None:
                    logger.info("Quota exhausted", user_id=user_id, day=day.isoformat(), ceiling=ceiling)
                    span.set_data("allowed", False)
                    return QuotaDecision(allowed=False, remaining=0)

                remaining = UNLIMITED if limit is None else limit - count
                logger.debug("Quota consumed", user_id=user_id, day=day.isoformat(), count=count, remaining=remaining)
                span.set_data("allowed", True)
                return QuotaDecision(allowed=True, remaining=remaining)

        raise DatabaseError("Could not update quota record", details={"user_id": user_id, "day": day.isoformat()})

    @staticmethod
    def _increment(session: Session, user_id: str, day: date, limit: Optional[int]) -> Optional[int]:
        """Increment the day's counter, returning the new count or None when the limit is reached."""
        stmt = (
            update(QuotaRecordDB)
            .where(QuotaRecordDB.user_id == user_id, QuotaRecordDB.day == day)
            .values(count=QuotaRecordDB.count + 1, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if limit is not None:
            stmt = stmt.where(QuotaRecordDB.count < limit)

        if session.execute(stmt).rowcount == 1:
            return session.scalar(
                select(QuotaRecordDB.count).where(QuotaRecordDB.user_id == user_id, QuotaRecordDB.day == day)
            )

        if session.get(QuotaRecordDB, (user_id, day)) is not None:
            return None

        # First action of the day
        session.add(QuotaRecordDB(user_id=user_id, day=day, count=1, updated_at=utcnow()))
        session.flush()
        return 1

    def get_count(self, user_id: str, day: date) -> int:
        with session_scope(self._session_factory, "get_quota_count") as session:
            count = session.scalar(
                select(QuotaRecordDB.count).where(QuotaRecordDB.user_id == user_id, QuotaRecordDB.day == day)
            )
        return count or 0

    def get_remaining(self, user_id: str, day: date, ceiling: int) -> int:
        """Slots left for `day` without consuming one. -1 for unlimited ceilings."""
        if ceiling < 0:
            return UNLIMITED
        return max(0, ceiling - self.get_count(user_id, day))

    def purge_before(self, day: date) -> int:
        """Delete records of days before `day`. Returns the number of rows removed."""
        with session_scope(self._session_factory, "purge_quota") as session:
            result = session.execute(
                delete(QuotaRecordDB).where(QuotaRecordDB.day < day).execution_options(synchronize_session=False)
            )
            removed = result.rowcount or 0
        logger.info("Stale quota records purged", before=day.isoformat(), removed=removed)
        return removed
