from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch

import pytest

from discovery.models.match import match_id_for
from discovery.services.block_service import BlockList
from discovery.services.match_service import MatchMaterializer
from discovery.utils.errors import NotFoundError
from tests.conftest import make_profile


@pytest.fixture
def pair(profile_store):
    profile_store.add(make_profile("bob", photos=["bob.jpg", "bob2.jpg"]))
    profile_store.add(make_profile("alice", last_name="Smith"))
    return "bob", "alice"


class TestMatchIds:
    def test_canonical_id_is_order_independent(self):
        assert match_id_for("bob", "alice") == "alice_bob"
        assert match_id_for("alice", "bob") == "alice_bob"

    def test_underscores_in_ids_never_collide(self):
        assert match_id_for("a_b", "c") != match_id_for("a", "b_c")
        assert match_id_for("a_b", "c") == "a\\_b_c"


class TestMatchMaterializer:
    def test_creates_match_and_channel(self, materializer, pair):
        match, created = materializer.materialize_if_absent(*pair)

        assert created is True
        assert match.id == "alice_bob"
        assert match.user1_id == "alice"
        assert match.user2_id == "bob"
        assert match.unread_counts == {"alice": 0, "bob": 0}
        assert match.participants["bob"].photo_url == "bob.jpg"
        assert match.participants["alice"].last_name == "Smith"
        assert match.participants["alice"].photo_url is None

        channel = materializer.get_channel(match.id)
        assert channel is not None
        assert channel.user1_id == "alice"
        assert channel.last_message_at is None

    def test_second_call_returns_existing(self, materializer, pair):
        first, _ = materializer.materialize_if_absent("bob", "alice")
        second, created = materializer.materialize_if_absent("alice", "bob")

        assert created is False
        assert second.id == first.id
        assert len(materializer.list_matches("alice")) == 1

    def test_concurrent_creation_yields_one_match(self, materializer, pair):
        calls = [pair, tuple(reversed(pair))] * 4

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda p: materializer.materialize_if_absent(*p), calls))

        assert sum(created for _, created in results) == 1
        assert {match.id for match, _ in results} == {"alice_bob"}
        assert len(materializer.list_matches("bob")) == 1

    def test_blocked_pair_creates_nothing(self, materializer, profile_store, pair):
        profile_store.add(make_profile("carol", blocked_ids={"bob"}))

        match, created = materializer.materialize_if_absent("bob", "carol")

        assert match is None
        assert created is False
        assert materializer.get_match_for_pair("bob", "carol") is None

    def test_block_list_record_prevents_match(self, materializer, block_list, pair):
        block_list.block("alice", "bob")

        assert materializer.materialize_if_absent(*pair) == (None, False)

    def test_missing_profile_raises(self, materializer, pair):
        with pytest.raises(NotFoundError):
            materializer.materialize_if_absent("bob", "ghost")

    def test_delete_match_removes_channel(self, materializer, pair):
        match, _ = materializer.materialize_if_absent(*pair)

        assert materializer.delete_match("alice", "bob") is True
        assert materializer.get_match(match.id) is None
        assert materializer.get_channel(match.id) is None
        assert materializer.delete_match("alice", "bob") is False

    def test_list_matches_for_user(self, materializer, profile_store, pair):
        profile_store.add(make_profile("carol"))
        materializer.materialize_if_absent("bob", "alice")
        materializer.materialize_if_absent("bob", "carol")

        assert {m.id for m in materializer.list_matches("bob")} == {"alice_bob", "bob_carol"}
        assert [m.id for m in materializer.list_matches("carol")] == ["bob_carol"]
        assert len(materializer.list_matches("bob", limit=1)) == 1

    def test_pairs_sharing_an_underscore_boundary_stay_separate(self, materializer, profile_store):
        for user_id in ("a_b", "c", "a", "b_c"):
            profile_store.add(make_profile(user_id))
        first, _ = materializer.materialize_if_absent("a_b", "c")

        assert materializer.get_match_for_pair("a", "b_c") is None
        assert materializer.delete_match("a", "b_c") is False

        second, created = materializer.materialize_if_absent("a", "b_c")

        assert created is True
        assert second.id != first.id
        assert second.user_ids == ("a", "b_c")
        assert materializer.get_match_for_pair("a_b", "c").id == first.id


class BlockDuringCheck(BlockList):
    """Records `block` right after the first pre-insert check has passed."""

    def __init__(self, session_factory, block):
        super().__init__(session_factory)
        self._pending = block

    def is_blocked_pair(self, user_a, user_b):
        blocked = super().is_blocked_pair(user_a, user_b)
        if self._pending is not None:
            blocker, blocked_id = self._pending
            self._pending = None
            self.block(blocker, blocked_id)
        return blocked


class TestBlockRaces:
    def test_block_between_check_and_insert(self, session_factory, profile_store, pair):
        block_list = BlockDuringCheck(session_factory, block=("alice", "bob"))
        materializer = MatchMaterializer(session_factory, profile_store, block_list)

        assert materializer.materialize_if_absent(*pair) == (None, False)
        assert materializer.get_match_for_pair(*pair) is None
        assert materializer.get_channel(match_id_for(*pair)) is None

    def test_block_committed_during_insert_dissolves_match(self, session_factory, profile_store, pair):
        block_list = BlockList(session_factory)
        materializer = MatchMaterializer(session_factory, profile_store, block_list)
        block_list.block("alice", "bob")

        # The pre-insert check and the insert both run before the block lands
        with (
            patch.object(MatchMaterializer, "_is_blocked", return_value=False),
            patch("discovery.services.match_service._has_block", return_value=False),
        ):
            result = materializer.materialize_if_absent(*pair)

        assert result == (None, False)
        assert materializer.get_match_for_pair(*pair) is None
        assert materializer.get_channel(match_id_for(*pair)) is None
