"""
Tests for roster reconciliation.

Run with: pytest test_roster.py -v
"""

from models.session import Participant, Role
from roster import RosterReconciler


def entry(name, role="player", locked_out=False):
    return {"name": name, "role": role, "locked_out": locked_out}


class TestReplace:

    def test_replaces_wholesale(self):
        roster = RosterReconciler()
        roster.replace([entry("Alice", "admin"), entry("Bob")], "Alice", Role.ADMIN)
        roster.replace([entry("Alice", "admin"), entry("Carol")], "Alice", Role.ADMIN)

        assert [p.name for p in roster.participants] == ["Alice", "Carol"]

    def test_preserves_broadcast_order(self):
        roster = RosterReconciler()
        roster.replace([entry("Zed"), entry("Alice"), entry("Mia")], "Alice", Role.PLAYER)
        assert [p.name for p in roster.participants] == ["Zed", "Alice", "Mia"]

    def test_local_name_missing_means_removed(self):
        roster = RosterReconciler()
        change = roster.replace([entry("Bob", "admin")], "Alice", Role.PLAYER)

        assert change.removed
        assert change.role is None
        assert roster.get("Bob") is not None

    def test_promotion(self):
        roster = RosterReconciler()
        change = roster.replace([entry("Alice", "admin")], "Alice", Role.PLAYER)

        assert not change.removed
        assert change.role == Role.ADMIN
        assert change.promoted
        assert not change.demoted

    def test_demotion(self):
        roster = RosterReconciler()
        change = roster.replace([entry("Alice"), entry("Bob", "admin")], "Alice", Role.ADMIN)

        assert change.role == Role.PLAYER
        assert change.demoted
        assert not change.promoted

    def test_unchanged_role(self):
        roster = RosterReconciler()
        change = roster.replace([entry("Alice", "admin")], "Alice", Role.ADMIN)
        assert not change.promoted
        assert not change.demoted

    def test_no_previous_role_is_not_a_promotion(self):
        """The first roster after a restore only establishes the role."""
        roster = RosterReconciler()
        change = roster.replace([entry("Alice", "admin")], "Alice", None)
        assert change.role == Role.ADMIN
        assert not change.promoted

    def test_duplicate_names_first_wins(self):
        roster = RosterReconciler()
        roster.replace([entry("Alice", "admin"), entry("Alice", "player")], "Alice", Role.ADMIN)

        assert len(roster.participants) == 1
        assert roster.get("Alice").role == Role.ADMIN

    def test_malformed_entries_skipped(self):
        roster = RosterReconciler()
        roster.replace([{"role": "admin"}, None, entry("Alice")], "Alice", Role.PLAYER)
        assert [p.name for p in roster.participants] == ["Alice"]

    def test_unknown_role_defaults_to_player(self):
        roster = RosterReconciler()
        roster.replace([{"name": "Alice", "role": "wizard"}], "Alice", Role.PLAYER)
        assert roster.get("Alice").role == Role.PLAYER

    def test_lockout_flags_carried(self):
        roster = RosterReconciler()
        roster.replace([entry("Alice"), entry("Bob", locked_out=True)], "Alice", Role.PLAYER)
        assert roster.is_locked_out("Bob")
        assert not roster.is_locked_out("Alice")


class TestLockouts:

    def test_lock_and_clear(self):
        roster = RosterReconciler()
        roster.replace([entry("Alice"), entry("Bob")], "Alice", Role.PLAYER)

        roster.lock_out("Bob")
        roster.lock_out("Nobody")
        assert roster.is_locked_out("Bob")
        assert not roster.is_locked_out("Nobody")

        roster.clear_lockouts()
        assert not roster.is_locked_out("Bob")

    def test_player_list(self):
        roster = RosterReconciler()
        roster.participants = [Participant("Alice", Role.ADMIN, True)]
        assert roster.player_list() == [{"name": "Alice", "role": "admin", "locked_out": True}]

    def test_clear(self):
        roster = RosterReconciler()
        roster.replace([entry("Alice")], "Alice", Role.PLAYER)
        roster.clear()
        assert roster.participants == []
        assert roster.get("Alice") is None
