"""Server event handlers for the buzzer client.

Each handler corresponds to a single message type from the server.
Handlers are dispatched via the HANDLERS dict by BuzzerSession.handle_frame
and run to completion before the next frame is read.
"""

import logging

from models.events import EventType, ServerEvent
from models.session import BuzzOutcome
from services.notifications import FlashTone, SoundCue, Tone

logger = logging.getLogger(__name__)


ACTION_DENIED_TEXT = {
    "forbidden": "Only the admin can do that.",
    "user_not_found": "That participant is no longer in the room.",
    "cannot_set_yourself_admin": "You are already the admin.",
    "cannot_kick_self": "You cannot kick yourself.",
    "rate_limited": "Slow down! Too many actions.",
}


# ---------------------------------------------------------------------------
# Round handlers
# ---------------------------------------------------------------------------

async def handle_round_started(event: ServerEvent, session) -> None:
    session.round.on_round_started()
    session.notices.show_notice("Round started. Buzz now!", Tone.OK, 2200)
    session.notices.play(SoundCue.ROUND_START)


async def handle_accepted(event: ServerEvent, session) -> None:
    outcome = session.round.on_accepted(event.name, session.my_name, event.deadline_in_ms)
    if outcome == BuzzOutcome.WON:
        session.notices.trigger_flash(FlashTone.WIN)
        session.notices.play(SoundCue.WIN)
    else:
        session.notices.trigger_flash(FlashTone.LOSE)
        session.notices.play(SoundCue.LOSE)


async def handle_rejected(event: ServerEvent, session) -> None:
    session.round.on_rejected()


async def handle_timed_out(event: ServerEvent, session) -> None:
    session.round.on_timed_out(event.name)
    session.notices.play(SoundCue.TIMEOUT)
    if event.name == session.my_name:
        session.notices.show_notice("You timed out!", Tone.WARN, 2200)
    elif session.round.reopen_on_timeout:
        session.notices.show_notice(f"Buzzer open! {event.name} timed out", Tone.OK, 2200)
    else:
        session.notices.show_notice(f"{event.name} timed out", Tone.OK, 2200)


async def handle_round_continued(event: ServerEvent, session) -> None:
    session.round.on_round_continued()
    session.notices.show_notice("Buzzer open!", Tone.OK, 2200)
    session.notices.play(SoundCue.ROUND_CONTINUED)


# ---------------------------------------------------------------------------
# Membership handlers
# ---------------------------------------------------------------------------

async def handle_participants(event: ServerEvent, session) -> None:
    change = session.roster.replace(event.participants, session.my_name, session.role)

    if change.removed:
        if session.in_room():
            logger.info(f"{session.my_name} missing from roster, treating as removal")
            await session.reset_session("removed")
            session.notices.show_notice("You were removed from the room.", Tone.BAD, 6000)
        return

    await session.apply_role(change.role)
    if change.promoted:
        session.notices.show_notice("You are now the admin.", Tone.OK, 3000)
    elif change.demoted:
        session.notices.show_notice("You are no longer the admin.", Tone.WARN, 3000)


async def handle_kicked(event: ServerEvent, session) -> None:
    await session.reset_session("kicked")
    session.notices.show_notice("You were kicked from the room.", Tone.BAD, 6000)


async def handle_action_denied(event: ServerEvent, session) -> None:
    reason = event.reason
    logger.info(f"Action denied: {reason}")
    session.notices.show_notice(ACTION_DENIED_TEXT.get(reason, reason), Tone.WARN)


# ---------------------------------------------------------------------------
# Handler dispatch table
# ---------------------------------------------------------------------------

HANDLERS = {
    EventType.ROUND_STARTED: handle_round_started,
    EventType.ACCEPTED: handle_accepted,
    EventType.REJECTED: handle_rejected,
    EventType.TIMED_OUT: handle_timed_out,
    EventType.ROUND_CONTINUED: handle_round_continued,
    EventType.PARTICIPANTS: handle_participants,
    EventType.KICKED: handle_kicked,
    EventType.ACTION_DENIED: handle_action_denied,
}
