"""Interest ledger: the record of every swipe decision."""

from typing import List, Set

import sentry_sdk
from sqlalchemy import and_, delete, or_, select
from sqlalchemy.exc import IntegrityError

from discovery.models.interest import Decision, InterestEdge
from discovery.utils.database import InterestEdgeDB, SessionFactory, session_scope, utcnow
from discovery.utils.errors import DatabaseError, LedgerWriteFailedError, ValidationError
from discovery.utils.logging import get_logger

logger = get_logger(__name__)


class InterestLedger:
    """
    Store of directional interest edges.

    Holds at most one edge per ordered (actor, target) pair; recording a new
    decision overwrites the old one. It is the source of truth for "already
    seen" exclusion and for reciprocity checks.
    """

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    def record_decision(self, actor_id: str, target_id: str, decision: Decision) -> InterestEdge:
        """
        Record or overwrite the decision of `actor_id` about `target_id`.

        Args:
            actor_id (str): User making the decision.
            target_id (str): User the decision is about.
            decision (Decision): ``interested`` or ``passed``.

        Returns:
            InterestEdge: The stored edge.

        Raises:
            ValidationError: If the actor targets itself.
            LedgerWriteFailedError: If the store is unavailable. The decision
                must be treated as not recorded.
        """
        if actor_id == target_id:
            raise ValidationError("Users cannot swipe on themselves", details={"user_id": actor_id})

        decision = Decision(decision)
        with sentry_sdk.start_span(op="ledger.record", name=f"{actor_id} -> {target_id}"):
            # A concurrent first write for the same pair loses the insert race
            # and is retried as an update.
            for attempt in range(2):
                try:
                    with session_scope(self._session_factory, "record_decision") as session:
                        row = session.get(InterestEdgeDB, (actor_id, target_id))
                        if row is None:
                            now = utcnow()
                            row = InterestEdgeDB(
                                actor_id=actor_id,
                                target_id=target_id,
                                decision=decision.value,
                                created_at=now,
                                updated_at=now,
                            )
                            session.add(row)
                        else:
                            row.decision = decision.value
                            row.updated_at = utcnow()
                        session.flush()
                        edge = InterestEdge.model_validate(row)
                    logger.info("Decision recorded", actor=actor_id, target=target_id, decision=decision.value)
                    return edge
                except IntegrityError as e:
                    if attempt == 0:
                        logger.debug("Concurrent edge insert, retrying as update", actor=actor_id, target=target_id)
                        continue
                    raise LedgerWriteFailedError(
                        "Could not record decision", details={"actor": actor_id, "target": target_id}
                    ) from e
                except DatabaseError as e:
                    logger.error("Failed to record decision", actor=actor_id, target=target_id, error=str(e))
                    raise LedgerWriteFailedError(
                        "Could not record decision", details={"actor": actor_id, "target": target_id, **e.details}
                    ) from e

        raise LedgerWriteFailedError("Could not record decision", details={"actor": actor_id, "target": target_id})

    def get_decision(self, actor_id: str, target_id: str) -> InterestEdge | None:
        with session_scope(self._session_factory, "get_decision") as session:
            row = session.get(InterestEdgeDB, (actor_id, target_id))
            return InterestEdge.model_validate(row) if row is not None else None

    def has_reciprocal(self, actor_id: str, target_id: str) -> bool:
        """True iff `target_id` has recorded interest in `actor_id`."""
        edge = self.get_decision(target_id, actor_id)
        return edge is not None and edge.decision == Decision.INTERESTED

    def list_decided_targets(self, actor_id: str) -> Set[str]:
        """IDs of every user `actor_id` has swiped on, in either direction."""
        with session_scope(self._session_factory, "list_decided_targets") as session:
            rows = session.scalars(select(InterestEdgeDB.target_id).where(InterestEdgeDB.actor_id == actor_id))
            return set(rows)

    def list_interested_actors(self, target_id: str) -> List[str]:
        """IDs of users interested in `target_id`, most recent first."""
        with session_scope(self._session_factory, "list_interested_actors") as session:
            rows = session.scalars(
                select(InterestEdgeDB.actor_id)
                .where(
                    InterestEdgeDB.target_id == target_id,
                    InterestEdgeDB.decision == Decision.INTERESTED.value,
                )
                .order_by(InterestEdgeDB.updated_at.desc())
            )
            return list(rows)

    def delete_pair(self, user_a: str, user_b: str) -> int:
        """
        Remove both directional edges between two users.

        Used when a match is dissolved so the pair cannot re-match from stale
        decisions.

        Returns:
            int: Number of edges removed.
        """
        with session_scope(self._session_factory, "delete_pair") as session:
            result = session.execute(
                delete(InterestEdgeDB).where(
                    or_(
                        and_(InterestEdgeDB.actor_id == user_a, InterestEdgeDB.target_id == user_b),
                        and_(InterestEdgeDB.actor_id == user_b, InterestEdgeDB.target_id == user_a),
                    )
                )
            )
            removed = result.rowcount or 0
        logger.info("Interest edges removed", user_a=user_a, user_b=user_b, removed=removed)
        return removed
