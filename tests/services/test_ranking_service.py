import math

from discovery.models.profile import FeedFilters
from discovery.services.ranking_service import calculate_compatibility, rank
from tests.conftest import TODAY, make_profile


def _east_of_origin(km: float):
    """Point on the equator `km` kilometres east of (0, 0)."""
    return (0.0, math.degrees(km / 6371))


class TestCalculateCompatibility:
    def test_share_of_larger_tag_list(self):
        assert calculate_compatibility(["music", "travel"], ["music"]) == 50
        assert calculate_compatibility(["music", "travel"], ["music", "travel", "art"]) == 67

    def test_rounds_half_up(self):
        # 1 of 8 shared is 12.5%
        tags = [f"tag{i}" for i in range(8)]
        assert calculate_compatibility(tags, ["tag0"]) == 13

    def test_empty_lists_score_zero(self):
        assert calculate_compatibility([], ["music"]) == 0
        assert calculate_compatibility(["music"], []) == 0

    def test_identical_lists(self):
        assert calculate_compatibility(["a", "b"], ["b", "a"]) == 100


class TestRank:
    def test_higher_compatibility_ranks_first_on_rating_tie(self):
        requester = make_profile("req", interests=["Music", "Travel"])
        x = make_profile("x", interests=["Music"], rating=3)
        y = make_profile("y", interests=["Music", "Travel", "Art"], rating=3)

        feed = rank(requester, set(), [x, y], today=TODAY)

        assert [c.id for c in feed] == ["y", "x"]
        assert feed[0].compatibility == 67
        assert feed[1].compatibility == 50

    def test_rating_dominates_compatibility(self):
        requester = make_profile("req", interests=["music"])
        perfect = make_profile("perfect", interests=["music"], rating=1)
        rated = make_profile("rated", interests=[], rating=4)

        feed = rank(requester, set(), [perfect, rated], today=TODAY)

        assert [c.id for c in feed] == ["rated", "perfect"]

    def test_distance_breaks_remaining_ties(self):
        requester = make_profile("req", location=(0.0, 0.0))
        far = make_profile("far", location=_east_of_origin(40))
        near = make_profile("near", location=_east_of_origin(10))

        feed = rank(requester, set(), [far, near], today=TODAY)

        assert [c.id for c in feed] == ["near", "far"]
        assert feed[0].distance_km == 10.0

    def test_distance_exclusion(self):
        requester = make_profile("req", location=(0.0, 0.0))
        candidate = make_profile("c", location=_east_of_origin(120))

        assert rank(requester, set(), [candidate], FeedFilters(max_distance_km=100), today=TODAY) == []

        feed = rank(requester, set(), [candidate], FeedFilters(max_distance_km=150), today=TODAY)
        assert [c.id for c in feed] == ["c"]
        assert feed[0].distance_km == 120.0

    def test_missing_location_is_not_disqualifying(self):
        requester = make_profile("req", location=(0.0, 0.0))
        candidate = make_profile("c", location=None)

        feed = rank(requester, set(), [candidate], FeedFilters(max_distance_km=1), today=TODAY)

        assert len(feed) == 1
        assert feed[0].distance_km == 0.0

    def test_excludes_self_history_and_blocks(self):
        requester = make_profile("req", blocked_ids={"blocked_by_me"})
        candidates = [
            make_profile("req"),
            make_profile("seen"),
            make_profile("blocked_by_me"),
            make_profile("blocks_me", blocked_ids={"req"}),
            make_profile("fresh"),
        ]

        feed = rank(requester, {"seen"}, candidates, today=TODAY)

        assert [c.id for c in feed] == ["fresh"]

    def test_age_bounds_and_missing_birth_date(self):
        requester = make_profile("req")
        candidates = [
            make_profile("young", age=20),
            make_profile("inside", age=30),
            make_profile("old", age=45),
            make_profile("unknown", age=None),
        ]

        feed = rank(requester, set(), candidates, FeedFilters(min_age=25, max_age=40), today=TODAY)

        assert [c.id for c in feed] == ["inside"]
        assert feed[0].age_years == 30

    def test_gender_filter(self):
        requester = make_profile("req")
        candidates = [make_profile("m", gender="male"), make_profile("f", gender="female")]

        feed = rank(requester, set(), candidates, FeedFilters(interested_in={"Male"}), today=TODAY)
        assert [c.id for c in feed] == ["m"]

        feed = rank(requester, set(), candidates, FeedFilters(), today=TODAY)
        assert {c.id for c in feed} == {"m", "f"}

    def test_looking_for_is_advisory(self):
        requester = make_profile("req")
        candidate = make_profile("c", looking_for=["Friendship", "dating"])

        feed = rank(requester, set(), [candidate], FeedFilters(looking_for={"dating"}), today=TODAY)

        assert len(feed) == 1
        assert feed[0].shared_intents == ["dating"]

        feed = rank(requester, set(), [candidate], FeedFilters(looking_for={"marriage"}), today=TODAY)
        assert len(feed) == 1
        assert feed[0].shared_intents == []

    def test_inverted_age_bounds_return_empty(self):
        requester = make_profile("req")

        feed = rank(requester, set(), [make_profile("c")], FeedFilters(min_age=40, max_age=30), today=TODAY)

        assert feed == []

    def test_ranking_is_deterministic(self):
        requester = make_profile("req", interests=["music", "art"], location=(0.0, 0.0))
        candidates = [
            make_profile(f"user{i}", interests=["music"] if i % 2 else ["art", "music"], rating=i % 3,
                         location=_east_of_origin(i * 3))
            for i in range(12)
        ]

        first = rank(requester, set(), candidates, today=TODAY)
        second = rank(requester, set(), candidates, today=TODAY)

        assert [c.id for c in first] == [c.id for c in second]
        assert len(first) == 12

    def test_full_ties_keep_store_order(self):
        requester = make_profile("req")
        candidates = [make_profile(name) for name in ("c3", "c1", "c2")]

        feed = rank(requester, set(), candidates, today=TODAY)

        assert [c.id for c in feed] == ["c3", "c1", "c2"]
