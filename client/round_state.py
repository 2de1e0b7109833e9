"""
Round state for the buzzer client.

The state here is derived entirely from server events: the client never
decides who won, it only mirrors what the server broadcast. The one local
guess is the "already buzzed" flag, which the next server event confirms
or clears.

Phases:
    IDLE      fresh connection, no round context yet
    OPEN      buzzing is open
    LOCKED    a buzz was accepted; waiting for the answer verdict
    REJECTED  our buzz was refused while buzzing was open
"""

import logging
from typing import Optional

from models.session import BuzzOutcome, RoundPhase
from roster import RosterReconciler

logger = logging.getLogger(__name__)


class RoundStateMachine:
    """
    Applies round events in receipt order.

    Lockout flags live on the roster, since the server reports them there
    as well; this machine marks and clears them as rounds progress.

    Attributes:
        phase: Current RoundPhase.
        outcome: Local BuzzOutcome for the round.
        winner_name: Name of the accepted buzzer, if any.
        answering_player: Participant currently answering, locked out if
            the admin continues the round.
        has_buzzed: Local player's buzz was accepted this round.
    """

    def __init__(self, roster: RosterReconciler, reopen_on_timeout: bool = True):
        self.roster = roster
        self.reopen_on_timeout = reopen_on_timeout
        self.phase = RoundPhase.IDLE
        self.outcome = BuzzOutcome.NONE
        self.winner_name: Optional[str] = None
        self.answering_player: Optional[str] = None
        self.deadline_in_ms: Optional[int] = None
        self.has_buzzed = False

    @property
    def locked(self) -> bool:
        return self.phase == RoundPhase.LOCKED

    def reset(self) -> None:
        """Forget all round context (fresh connection or teardown)."""
        self.phase = RoundPhase.IDLE
        self.outcome = BuzzOutcome.NONE
        self.winner_name = None
        self.answering_player = None
        self.deadline_in_ms = None
        self.has_buzzed = False

    def _clear_winner(self) -> None:
        self.outcome = BuzzOutcome.NONE
        self.winner_name = None
        self.answering_player = None
        self.deadline_in_ms = None

    def on_round_started(self) -> None:
        """A fresh round: everyone may buzz again."""
        self._clear_winner()
        self.has_buzzed = False
        self.roster.clear_lockouts()
        self.phase = RoundPhase.OPEN

    def on_accepted(self, name: str, local_name: str, deadline_in_ms: Optional[int] = None) -> BuzzOutcome:
        """
        The server accepted a buzz from `name`.

        Returns:
            WON if it was ours, LOST otherwise.
        """
        self.phase = RoundPhase.LOCKED
        self.winner_name = name
        self.answering_player = name
        self.deadline_in_ms = deadline_in_ms
        if name == local_name:
            self.outcome = BuzzOutcome.WON
            self.has_buzzed = True
        else:
            self.outcome = BuzzOutcome.LOST
        return self.outcome

    def on_rejected(self) -> None:
        """Our buzz was refused. A locked round stays locked."""
        self.outcome = BuzzOutcome.REJECTED
        if self.phase != RoundPhase.LOCKED:
            self.phase = RoundPhase.REJECTED

    def on_timed_out(self, name: str) -> None:
        """
        The answering player ran out of time and is out for this round.

        The stock server reopens buzzing on timeout. With reopen_on_timeout
        off, the round stays locked until the admin continues or restarts it.
        """
        self.roster.lock_out(name)
        self._clear_winner()
        self.phase = RoundPhase.OPEN if self.reopen_on_timeout else RoundPhase.LOCKED

    def on_round_continued(self) -> None:
        """Admin reopened buzzing; whoever was answering is out for this round."""
        if self.answering_player:
            self.roster.lock_out(self.answering_player)
        self._clear_winner()
        self.phase = RoundPhase.OPEN

    def can_buzz(self, connected: bool, local_name: str) -> bool:
        """
        Check whether a local buzz should be transmitted.

        The server remains the arbiter; this only avoids sending buzzes
        that are certain to be refused.
        """
        if not connected:
            return False
        if self.phase == RoundPhase.LOCKED:
            return False
        if self.has_buzzed:
            return False
        if self.roster.is_locked_out(local_name):
            return False
        return True

    def status_text(self, connected: bool, local_name: str) -> str:
        """One-line status for display."""
        if self.phase == RoundPhase.LOCKED:
            return "" if self.winner_name == local_name else "Someone is answering."
        if self.roster.is_locked_out(local_name):
            return "Locked out this round."
        if self.has_buzzed:
            return ""
        if connected:
            return "Tap once per round or press space."
        return "Connect to buzz."
