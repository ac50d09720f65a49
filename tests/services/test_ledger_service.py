from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch

import pytest

from discovery.models.interest import Decision
from discovery.utils.errors import DatabaseError, LedgerWriteFailedError, ValidationError


class TestInterestLedger:
    def test_record_decision_returns_edge(self, ledger):
        edge = ledger.record_decision("alice", "bob", Decision.INTERESTED)

        assert edge.actor_id == "alice"
        assert edge.target_id == "bob"
        assert edge.decision == Decision.INTERESTED
        assert edge.created_at == edge.updated_at

    def test_new_decision_overwrites(self, ledger):
        first = ledger.record_decision("alice", "bob", Decision.INTERESTED)
        second = ledger.record_decision("alice", "bob", "passed")

        assert second.decision == Decision.PASSED
        assert second.created_at == first.created_at
        assert ledger.get_decision("alice", "bob").decision == Decision.PASSED
        assert ledger.list_decided_targets("alice") == {"bob"}

    def test_self_swipe_rejected(self, ledger):
        with pytest.raises(ValidationError):
            ledger.record_decision("alice", "alice", Decision.INTERESTED)

    def test_has_reciprocal_reads_opposite_edge(self, ledger):
        ledger.record_decision("bob", "alice", Decision.INTERESTED)

        assert ledger.has_reciprocal("alice", "bob") is True
        assert ledger.has_reciprocal("bob", "alice") is False

    def test_passed_edge_is_not_reciprocal(self, ledger):
        ledger.record_decision("bob", "alice", Decision.PASSED)

        assert ledger.has_reciprocal("alice", "bob") is False

    def test_list_decided_targets_covers_both_decisions(self, ledger):
        ledger.record_decision("alice", "bob", Decision.INTERESTED)
        ledger.record_decision("alice", "carol", Decision.PASSED)
        ledger.record_decision("dave", "alice", Decision.INTERESTED)

        assert ledger.list_decided_targets("alice") == {"bob", "carol"}
        assert ledger.list_decided_targets("nobody") == set()

    def test_list_interested_actors(self, ledger):
        ledger.record_decision("bob", "alice", Decision.INTERESTED)
        ledger.record_decision("carol", "alice", Decision.PASSED)
        ledger.record_decision("dave", "alice", Decision.INTERESTED)

        assert set(ledger.list_interested_actors("alice")) == {"bob", "dave"}

    def test_delete_pair_removes_both_directions(self, ledger):
        ledger.record_decision("alice", "bob", Decision.INTERESTED)
        ledger.record_decision("bob", "alice", Decision.INTERESTED)
        ledger.record_decision("alice", "carol", Decision.INTERESTED)

        assert ledger.delete_pair("bob", "alice") == 2
        assert ledger.get_decision("alice", "bob") is None
        assert ledger.get_decision("bob", "alice") is None
        assert ledger.list_decided_targets("alice") == {"carol"}

    def test_store_failure_raises_ledger_write_failed(self, ledger):
        with patch(
            "discovery.services.ledger_service.session_scope",
            side_effect=DatabaseError("Database operation failed: record_decision"),
        ):
            with pytest.raises(LedgerWriteFailedError):
                ledger.record_decision("alice", "bob", Decision.INTERESTED)

    def test_concurrent_writes_leave_one_edge(self, ledger):
        decisions = [Decision.INTERESTED, Decision.PASSED] * 4

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(lambda d: ledger.record_decision("alice", "bob", d), decisions))

        assert ledger.list_decided_targets("alice") == {"bob"}
        assert ledger.get_decision("alice", "bob").decision in (Decision.INTERESTED, Decision.PASSED)
