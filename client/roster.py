"""
Roster reconciliation for the buzzer client.

The server broadcasts the full participant list whenever membership, roles
or lockouts change. Each broadcast replaces the local roster wholesale;
nothing is diffed incrementally. Reconciling a broadcast against the local
identity tells the session whether it was promoted, demoted or removed.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from models.session import Participant, Role

logger = logging.getLogger(__name__)


@dataclass
class RosterChange:
    """
    Outcome of applying one roster broadcast for the local identity.

    Attributes:
        removed: The local name is absent from the new roster.
        role: The local role in the new roster (None when removed).
        promoted: Role changed from player to admin.
        demoted: Role changed from admin to player.
    """

    removed: bool = False
    role: Optional[Role] = None
    promoted: bool = False
    demoted: bool = False


class RosterReconciler:
    """
    Holds the latest participant list.

    Participants are keyed by display name. Name uniqueness is the server's
    responsibility; if a broadcast repeats a name, the first entry wins.
    """

    def __init__(self) -> None:
        self.participants: list[Participant] = []

    def replace(
        self,
        entries: list[dict],
        local_name: str,
        current_role: Optional[Role],
    ) -> RosterChange:
        """
        Replace the roster and reconcile the local identity.

        Args:
            entries: Raw participant dicts from a "participants" broadcast.
            local_name: Display name used at join time.
            current_role: Local role before this broadcast.

        Returns:
            RosterChange describing what happened to the local identity.
        """
        roster: list[Participant] = []
        seen: set[str] = set()
        for entry in entries:
            try:
                participant = Participant.from_dict(entry)
            except (KeyError, TypeError):
                logger.warning(f"Skipping malformed roster entry: {entry!r}")
                continue
            if participant.name in seen:
                logger.warning(f"Duplicate participant name in roster: {participant.name}")
                continue
            seen.add(participant.name)
            roster.append(participant)

        self.participants = roster

        me = self.get(local_name)
        if me is None:
            return RosterChange(removed=True)

        was_admin = current_role == Role.ADMIN
        is_admin = me.role == Role.ADMIN
        return RosterChange(
            role=me.role,
            promoted=is_admin and not was_admin and current_role is not None,
            demoted=was_admin and not is_admin,
        )

    def get(self, name: str) -> Optional[Participant]:
        """Get a participant by display name, or None if not found."""
        for p in self.participants:
            if p.name == name:
                return p
        return None

    def is_locked_out(self, name: str) -> bool:
        participant = self.get(name)
        return participant.locked_out if participant else False

    def lock_out(self, name: str) -> None:
        """Bar a participant from buzzing for the rest of the round."""
        participant = self.get(name)
        if participant:
            participant.locked_out = True

    def clear_lockouts(self) -> None:
        for p in self.participants:
            p.locked_out = False

    def clear(self) -> None:
        self.participants = []

    def player_list(self) -> list[dict]:
        """Get the roster as plain dicts for display."""
        return [p.to_dict() for p in self.participants]
