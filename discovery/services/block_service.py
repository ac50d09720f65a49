"""Block records kept by the discovery core."""

from typing import Set

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import IntegrityError

from discovery.utils.database import BlockDB, SessionFactory, session_scope
from discovery.utils.errors import ValidationError
from discovery.utils.logging import get_logger

logger = get_logger(__name__)


class BlockList:
    """Directional block records. Exclusion always applies in both directions."""

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    def block(self, blocker_id: str, blocked_id: str) -> bool:
        """
        Record that `blocker_id` blocked `blocked_id`.

        Returns:
            bool: False when the block already existed.

        Raises:
            ValidationError: If a user tries to block itself.
        """
        if blocker_id == blocked_id:
            raise ValidationError("Users cannot block themselves", details={"user_id": blocker_id})
        try:
            with session_scope(self._session_factory, "block") as session:
                if session.get(BlockDB, (blocker_id, blocked_id)) is not None:
                    return False
                session.add(BlockDB(blocker_id=blocker_id, blocked_id=blocked_id))
        except IntegrityError:
            return False
        logger.info("User blocked", blocker=blocker_id, blocked=blocked_id)
        return True

    def unblock(self, blocker_id: str, blocked_id: str) -> bool:
        """Remove a block. Returns False when there was nothing to remove."""
        with session_scope(self._session_factory, "unblock") as session:
            result = session.execute(
                delete(BlockDB).where(BlockDB.blocker_id == blocker_id, BlockDB.blocked_id == blocked_id)
            )
            removed = bool(result.rowcount)
        if removed:
            logger.info("User unblocked", blocker=blocker_id, blocked=blocked_id)
        return removed

    def is_blocked_pair(self, user_a: str, user_b: str) -> bool:
        return user_b in self.list_blocked_pairs(user_a)

    def list_blocked_pairs(self, user_id: str) -> Set[str]:
        """IDs that `user_id` blocked or was blocked by."""
        with session_scope(self._session_factory, "list_blocked_pairs") as session:
            rows = session.execute(
                select(BlockDB.blocker_id, BlockDB.blocked_id).where(
                    or_(BlockDB.blocker_id == user_id, BlockDB.blocked_id == user_id)
                )
            ).all()
        return {blocked if blocker == user_id else blocker for blocker, blocked in rows}
