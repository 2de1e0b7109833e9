"""
Tests for the round state machine.

Run with: pytest test_round_state.py -v
"""

from models.session import BuzzOutcome, Role, RoundPhase
from round_state import RoundStateMachine
from roster import RosterReconciler


def make_machine(reopen_on_timeout=True, names=("Alice", "Bob", "Carol")):
    roster = RosterReconciler()
    roster.replace([{"name": n, "role": "player"} for n in names], "Alice", Role.PLAYER)
    return RoundStateMachine(roster, reopen_on_timeout=reopen_on_timeout), roster


class TestRoundLifecycle:

    def test_starts_idle_and_buzzable(self):
        machine, _ = make_machine()
        assert machine.phase == RoundPhase.IDLE
        assert machine.can_buzz(True, "Alice")
        assert not machine.can_buzz(False, "Alice")

    def test_round_started_opens(self):
        machine, roster = make_machine()
        roster.lock_out("Alice")
        machine.has_buzzed = True

        machine.on_round_started()

        assert machine.phase == RoundPhase.OPEN
        assert not machine.has_buzzed
        assert not roster.is_locked_out("Alice")
        assert machine.can_buzz(True, "Alice")

    def test_accepted_self_wins(self):
        machine, _ = make_machine()
        machine.on_round_started()

        outcome = machine.on_accepted("Alice", "Alice", deadline_in_ms=5000)

        assert outcome == BuzzOutcome.WON
        assert machine.locked
        assert machine.winner_name == "Alice"
        assert machine.deadline_in_ms == 5000
        assert machine.has_buzzed
        assert not machine.can_buzz(True, "Alice")

    def test_accepted_other_loses(self):
        machine, _ = make_machine()
        machine.on_round_started()

        outcome = machine.on_accepted("Bob", "Alice")

        assert outcome == BuzzOutcome.LOST
        assert machine.locked
        assert not machine.has_buzzed
        assert not machine.can_buzz(True, "Alice")
        assert machine.status_text(True, "Alice") == "Someone is answering."

    def test_rejected_while_open(self):
        machine, _ = make_machine()
        machine.on_round_started()
        machine.on_rejected()

        assert machine.phase == RoundPhase.REJECTED
        assert machine.outcome == BuzzOutcome.REJECTED

    def test_rejected_while_locked_stays_locked(self):
        machine, _ = make_machine()
        machine.on_round_started()
        machine.on_accepted("Bob", "Alice")
        machine.on_rejected()

        assert machine.locked
        assert machine.outcome == BuzzOutcome.REJECTED

    def test_reset(self):
        machine, _ = make_machine()
        machine.on_round_started()
        machine.on_accepted("Alice", "Alice")
        machine.reset()

        assert machine.phase == RoundPhase.IDLE
        assert machine.outcome == BuzzOutcome.NONE
        assert machine.winner_name is None
        assert not machine.has_buzzed


class TestTimeoutAndContinue:

    def test_timeout_locks_out_and_reopens(self):
        machine, roster = make_machine()
        machine.on_round_started()
        machine.on_accepted("Bob", "Alice")

        machine.on_timed_out("Bob")

        assert roster.is_locked_out("Bob")
        assert machine.phase == RoundPhase.OPEN
        assert machine.winner_name is None
        assert machine.can_buzz(True, "Alice")
        assert not machine.can_buzz(True, "Bob")

    def test_timeout_without_reopen_stays_locked(self):
        machine, roster = make_machine(reopen_on_timeout=False)
        machine.on_round_started()
        machine.on_accepted("Bob", "Alice")

        machine.on_timed_out("Bob")

        assert roster.is_locked_out("Bob")
        assert machine.locked
        assert not machine.can_buzz(True, "Alice")

    def test_own_timeout_locks_self_out(self):
        machine, _ = make_machine()
        machine.on_round_started()
        machine.on_accepted("Alice", "Alice")
        machine.on_timed_out("Alice")

        assert not machine.can_buzz(True, "Alice")
        assert machine.status_text(True, "Alice") == "Locked out this round."

    def test_continue_locks_out_answering_player(self):
        machine, roster = make_machine()
        machine.on_round_started()
        machine.on_accepted("Carol", "Alice")

        machine.on_round_continued()

        assert roster.is_locked_out("Carol")
        assert machine.phase == RoundPhase.OPEN
        assert machine.can_buzz(True, "Alice")

    def test_lockouts_accumulate_until_new_round(self):
        machine, roster = make_machine()
        machine.on_round_started()
        machine.on_accepted("Bob", "Alice")
        machine.on_timed_out("Bob")
        machine.on_accepted("Carol", "Alice")
        machine.on_round_continued()

        assert roster.is_locked_out("Bob")
        assert roster.is_locked_out("Carol")

        machine.on_round_started()
        assert not roster.is_locked_out("Bob")
        assert not roster.is_locked_out("Carol")


class TestStatusText:

    def test_messages(self):
        machine, _ = make_machine()
        assert machine.status_text(False, "Alice") == "Connect to buzz."
        assert machine.status_text(True, "Alice") == "Tap once per round or press space."

        machine.on_accepted("Alice", "Alice")
        assert machine.status_text(True, "Alice") == ""
