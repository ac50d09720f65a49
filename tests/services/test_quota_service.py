from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest

from discovery.models.quota import UNLIMITED
from tests.conftest import TODAY


class TestQuotaTracker:
    def test_consumes_until_ceiling(self, quota):
        decisions = [quota.try_consume("alice", TODAY, 3) for _ in range(5)]

        assert [d.allowed for d in decisions] == [True, True, True, False, False]
        assert [d.remaining for d in decisions] == [2, 1, 0, 0, 0]
        assert quota.get_count("alice", TODAY) == 3

    def test_denied_call_does_not_mutate(self, quota):
        quota.try_consume("alice", TODAY, 1)
        quota.try_consume("alice", TODAY, 1)
        quota.try_consume("alice", TODAY, 1)

        assert quota.get_count("alice", TODAY) == 1

    def test_new_day_starts_at_zero(self, quota):
        for _ in range(2):
            quota.try_consume("alice", TODAY, 2)

        tomorrow = quota.try_consume("alice", TODAY + timedelta(days=1), 2)

        assert tomorrow.allowed is True
        assert tomorrow.remaining == 1

    def test_users_are_counted_separately(self, quota):
        quota.try_consume("alice", TODAY, 1)

        assert quota.try_consume("bob", TODAY, 1).allowed is True
        assert quota.try_consume("alice", TODAY, 1).allowed is False

    def test_zero_ceiling_denies(self, quota):
        decision = quota.try_consume("alice", TODAY, 0)

        assert decision.allowed is False
        assert quota.get_count("alice", TODAY) == 0

    def test_unlimited_ceiling_still_counts(self, quota):
        decisions = [quota.try_consume("alice", TODAY, UNLIMITED) for _ in range(10)]

        assert all(d.allowed for d in decisions)
        assert all(d.remaining == UNLIMITED for d in decisions)
        assert quota.get_count("alice", TODAY) == 10
        assert quota.get_remaining("alice", TODAY, UNLIMITED) == UNLIMITED

    def test_raised_ceiling_applies_immediately(self, quota):
        for _ in range(5):
            quota.try_consume("alice", TODAY, 5)
        assert quota.try_consume("alice", TODAY, 5).allowed is False

        upgraded = quota.try_consume("alice", TODAY, 50)

        assert upgraded.allowed is True
        assert upgraded.remaining == 44

    def test_get_remaining(self, quota):
        assert quota.get_remaining("alice", TODAY, 5) == 5
        quota.try_consume("alice", TODAY, 5)
        assert quota.get_remaining("alice", TODAY, 5) == 4
        assert quota.get_remaining("alice", TODAY, 0) == 0

    @pytest.mark.parametrize("calls, ceiling", [(20, 5), (4, 10), (10, 10)])
    def test_concurrent_consumption_allows_exactly_min_of_calls_and_ceiling(self, quota, calls, ceiling):
        with ThreadPoolExecutor(max_workers=8) as pool:
            decisions = list(pool.map(lambda _: quota.try_consume("alice", TODAY, ceiling), range(calls)))

        assert sum(d.allowed for d in decisions) == min(calls, ceiling)
        assert quota.get_count("alice", TODAY) == min(calls, ceiling)

    def test_purge_before(self, quota):
        quota.try_consume("alice", TODAY - timedelta(days=10), 5)
        quota.try_consume("alice", TODAY - timedelta(days=1), 5)
        quota.try_consume("alice", TODAY, 5)

        assert quota.purge_before(TODAY - timedelta(days=7)) == 1
        assert quota.get_count("alice", TODAY - timedelta(days=10)) == 0
        assert quota.get_count("alice", TODAY - timedelta(days=1)) == 1
