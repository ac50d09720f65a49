"""Match materialization for the MeetsMatch discovery service."""

from typing import List, Optional, Tuple

import sentry_sdk
from sqlalchemy import and_, delete, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from discovery.custom_types import ProfileStore
from discovery.models.match import (
    ConversationChannel,
    Match,
    ParticipantSnapshot,
    canonical_pair,
    match_id_for,
)
from discovery.models.profile import Profile
from discovery.services.block_service import BlockList
from discovery.utils.database import (
    BlockDB,
    ConversationChannelDB,
    MatchDB,
    SessionFactory,
    session_scope,
    utcnow,
)
from discovery.utils.errors import DatabaseError, MatchCreationConflict
from discovery.utils.logging import get_logger

logger = get_logger(__name__)


def _has_block(session: Session, user_a: str, user_b: str) -> bool:
    """True when a block row exists in either direction."""
    row = session.execute(
        select(BlockDB.blocker_id)
        .where(
            or_(
                and_(BlockDB.blocker_id == user_a, BlockDB.blocked_id == user_b),
                and_(BlockDB.blocker_id == user_b, BlockDB.blocked_id == user_a),
            )
        )
        .limit(1)
    ).first()
    return row is not None


def snapshot(profile: Profile) -> ParticipantSnapshot:
    """Copy the display fields of a profile for storage on a match."""
    return ParticipantSnapshot(
        first_name=profile.first_name or "User",
        last_name=profile.last_name or "",
        photo_url=profile.primary_photo,
    )


class MatchMaterializer:
    """
    Creates matches and their conversation channels exactly once per pair.

    Both participants address the same record through the canonical pair ID,
    and the primary key on that ID makes creation a conditional insert: when
    two requests race, one inserts and the other reads back the winner.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        profile_store: ProfileStore,
        block_list: Optional[BlockList] = None,
    ) -> None:
        self._session_factory = session_factory
        self._profile_store = profile_store
        self._block_list = block_list

    def materialize_if_absent(self, user_a: str, user_b: str) -> Tuple[Optional[Match], bool]:
        """
        Create the match between two users unless it already exists.

        Args:
            user_a (str): One participant.
            user_b (str): The other participant.

        Returns:
            Tuple[Optional[Match], bool]: The match and whether this call
            created it. ``(None, False)`` when either user blocked the other.

        Raises:
            NotFoundError: If either profile does not exist.
            DatabaseError: If the match store is unavailable.
        """
        match_id = match_id_for(user_a, user_b)

        with sentry_sdk.start_span(op="match.materialize", name=match_id) as span:
            existing = self.get_match_for_pair(user_a, user_b)
            if existing is not None:
                logger.info("Match already exists", match_id=match_id)
                span.set_data("action", "existing")
                return existing, False

            low, high = canonical_pair(user_a, user_b)
            profile_low = self._profile_store.get_profile(low)
            profile_high = self._profile_store.get_profile(high)

            if self._is_blocked(profile_low, profile_high):
                logger.info("Match skipped, pair is blocked", match_id=match_id)
                span.set_data("action", "blocked")
                return None, False

            try:
                match = self._create(match_id, profile_low, profile_high)
            except MatchCreationConflict:
                winner = self.get_match(match_id)
                if winner is None:
                    raise DatabaseError("Match conflict without a stored match", details={"match_id": match_id})
                logger.info("Match created concurrently by the other participant", match_id=match_id)
                span.set_data("action", "conflict")
                return winner, False

            if match is None or self._blocked_after_insert(low, high):
                logger.info("Match skipped, pair was blocked concurrently", match_id=match_id)
                span.set_data("action", "blocked")
                return None, False

            logger.info("Match created", match_id=match_id, user1_id=low, user2_id=high)
            span.set_data("action", "created")
            return match, True

    def _is_blocked(self, profile_a: Profile, profile_b: Profile) -> bool:
        if profile_a.has_blocked(profile_b.id) or profile_b.has_blocked(profile_a.id):
            return True
        return self._block_list is not None and self._block_list.is_blocked_pair(profile_a.id, profile_b.id)

    def _blocked_after_insert(self, low: str, high: str) -> bool:
        """
        Dissolve a just-created match if the pair was blocked while it was inserted.

        A block committed before this read is removed here; one committed
        after it finds the match already stored and removes it itself.
        """
        if self._block_list is None or not self._block_list.is_blocked_pair(low, high):
            return False
        self.delete_match(low, high)
        return True

    def _create(self, match_id: str, profile_low: Profile, profile_high: Profile) -> Optional[Match]:
        """Insert the match and its channel in one transaction. None when a block row exists."""
        now = utcnow()
        match = Match(
            id=match_id,
            user1_id=profile_low.id,
            user2_id=profile_high.id,
            participants={profile_low.id: snapshot(profile_low), profile_high.id: snapshot(profile_high)},
            unread_counts={profile_low.id: 0, profile_high.id: 0},
            created_at=now,
        )
        try:
            with session_scope(self._session_factory, "create_match") as session:
                if _has_block(session, match.user1_id, match.user2_id):
                    return None
                session.add(
                    MatchDB(
                        id=match.id,
                        user1_id=match.user1_id,
                        user2_id=match.user2_id,
                        participants={uid: snap.model_dump() for uid, snap in match.participants.items()},
                        unread_counts=dict(match.unread_counts),
                        created_at=now,
                    )
                )
                session.add(
                    ConversationChannelDB(
                        id=match.id,
                        user1_id=match.user1_id,
                        user2_id=match.user2_id,
                        created_at=now,
                    )
                )
                session.flush()
        except IntegrityError as e:
            raise MatchCreationConflict("Match already created", details={"match_id": match_id}) from e
        return match

    def get_match(self, match_id: str) -> Optional[Match]:
        with session_scope(self._session_factory, "get_match") as session:
            row = session.get(MatchDB, match_id)
            return Match.model_validate(row) if row is not None else None

    def get_match_for_pair(self, user_a: str, user_b: str) -> Optional[Match]:
        low, high = canonical_pair(user_a, user_b)
        match = self.get_match(match_id_for(low, high))
        if match is None or match.user_ids != (low, high):
            return None
        return match

    def get_channel(self, match_id: str) -> Optional[ConversationChannel]:
        with session_scope(self._session_factory, "get_channel") as session:
            row = session.get(ConversationChannelDB, match_id)
            return ConversationChannel.model_validate(row) if row is not None else None

    def list_matches(self, user_id: str, limit: int = 50, offset: int = 0) -> List[Match]:
        """Matches involving `user_id`, newest first."""
        with session_scope(self._session_factory, "list_matches") as session:
            rows = session.scalars(
                select(MatchDB)
                .where(or_(MatchDB.user1_id == user_id, MatchDB.user2_id == user_id))
                .order_by(MatchDB.created_at.desc())
                .limit(limit)
                .offset(offset)
            ).all()
            return [Match.model_validate(row) for row in rows]

    def delete_match(self, user_a: str, user_b: str) -> bool:
        """
        Delete the match between two users together with its channel.

        Returns:
            bool: True if a match existed.
        """
        low, high = canonical_pair(user_a, user_b)
        match_id = match_id_for(low, high)
        with session_scope(self._session_factory, "delete_match") as session:
            session.execute(
                delete(ConversationChannelDB).where(
                    ConversationChannelDB.id == match_id,
                    ConversationChannelDB.user1_id == low,
                    ConversationChannelDB.user2_id == high,
                )
            )
            result = session.execute(
                delete(MatchDB).where(MatchDB.id == match_id, MatchDB.user1_id == low, MatchDB.user2_id == high)
            )
            removed = bool(result.rowcount)
        if removed:
            logger.info("Match deleted", match_id=match_id)
        return removed
