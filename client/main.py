"""Terminal front-end for the buzzer client."""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from config import ClientConfig, config
from logging_config import setup_logging
from services.auth_gateway import AuthGateway
from services.notifications import FlashTone, Notice, NotificationSink, SoundCue, Tone
from session import BuzzerSession
from errors import BuzzerError
from stores.redis_session_store import RedisSessionStore
from stores.session_store import MemorySessionStore, SessionStore, SqliteSessionStore

# Initialize Sentry if configured
if config.SENTRY_DSN:
    try:
        import sentry_sdk

        sentry_sdk.init(
            dsn=config.SENTRY_DSN,
            environment=config.ENVIRONMENT,
            traces_sample_rate=0.1 if config.ENVIRONMENT == "production" else 1.0,
        )
        logging.getLogger(__name__).info("Sentry error tracking initialized")
    except ImportError:
        logging.getLogger(__name__).warning("sentry-sdk not installed, error tracking disabled")

logger = logging.getLogger(__name__)

HELP = """Commands:
  <enter> / b      buzz
  s                start round (admin)
  c                continue round (admin)
  k NAME           kick a participant (admin)
  a NAME           make NAME admin (admin)
  w                who is in the room
  l                invite link
  m [CUE]          toggle all sounds, or one cue
  q                leave the room and quit
"""

TONE_PREFIX = {Tone.OK: "*", Tone.WARN: "!", Tone.BAD: "X"}


class TerminalSink(NotificationSink):
    """Prints notices to stdout and rings the terminal bell for sounds."""

    def show_notice(self, notice: Notice) -> None:
        print(f"{TONE_PREFIX[notice.tone]} {notice.text}")

    def flash(self, tone: FlashTone) -> None:
        print("=== YOU GOT IT ===" if tone == FlashTone.WIN else "--- too slow ---")

    def play(self, cue: SoundCue) -> None:
        sys.stdout.write("\a")
        sys.stdout.flush()


async def create_session_store(cfg: ClientConfig) -> SessionStore:
    """Build the configured session store."""
    if cfg.SESSION_STORE == "redis":
        return await RedisSessionStore.create(cfg.REDIS_URL)
    if cfg.SESSION_STORE == "memory":
        return MemorySessionStore()
    return SqliteSessionStore(cfg.SESSION_DB_PATH)


def print_roster(session: BuzzerSession) -> None:
    for p in session.roster.player_list():
        marks = []
        if p["role"] == "admin":
            marks.append("admin")
        if p["locked_out"]:
            marks.append("locked out")
        if p["name"] == session.my_name:
            marks.append("you")
        suffix = f" ({', '.join(marks)})" if marks else ""
        print(f"  {p['name']}{suffix}")


async def run_command(session: BuzzerSession, line: str) -> bool:
    """Run one input line. Returns False when the user quits."""
    cmd, _, arg = line.strip().partition(" ")
    arg = arg.strip()

    if cmd in ("", "b"):
        if not await session.send_buzz():
            print(session.round.status_text(session.connection.is_connected, session.my_name) or "Already buzzed.")
    elif cmd == "s":
        await session.start_round()
    elif cmd == "c":
        await session.continue_round()
    elif cmd == "k" and arg:
        await session.kick(arg)
    elif cmd == "a" and arg:
        await session.set_admin(arg)
    elif cmd == "w":
        print_roster(session)
    elif cmd == "l":
        print(session.invite_link())
    elif cmd == "m":
        settings = session.notices.sound_settings
        if arg:
            try:
                enabled = settings.toggle(SoundCue(arg))
            except ValueError:
                print(f"Unknown cue. Choose from: {', '.join(c.value for c in SoundCue)}")
                return True
            print(f"{arg}: {'on' if enabled else 'off'}")
        else:
            print("Sound on" if settings.toggle_master() else "Sound off")
    elif cmd == "q":
        await session.leave()
        return False
    else:
        print(HELP)
    return True


async def interact(session: BuzzerSession) -> None:
    loop = asyncio.get_running_loop()
    role = "admin" if session.session.is_admin else "player"
    print(f"In room {session.session.room_id} as {session.my_name} ({role})")
    print(HELP)
    while session.in_room():
        line = await loop.run_in_executor(None, sys.stdin.readline)
        if not line:
            await session.leave()
            break
        if not session.in_room():
            break
        if not await run_command(session, line):
            break


async def run(args: argparse.Namespace) -> int:
    store = await create_session_store(config)
    gateway = AuthGateway(config.API_BASE_URL, timeout=config.HTTP_TIMEOUT_SECS)
    session = BuzzerSession(gateway, store, TerminalSink())

    try:
        if args.command == "create":
            await session.create_room(args.name, args.answer_window_ms)
            print(f"Room {session.session.room_id} created. Invite: {session.invite_link()}")
        elif args.command == "join":
            await session.join_room(args.room_id, args.name or "")
        else:
            if not await session.restore(args.room_id):
                print("No saved session to resume.")
                return 1
        await interact(session)
    except BuzzerError as e:
        logger.error(f"{args.command} failed: {e.code}")
        print(f"Error: {session.status_error() or e.message}")
        return 1
    finally:
        await session.reset_session("exit")
        await gateway.aclose()
        await store.close()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Buzzer round client")
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create", help="Create a room and become its admin")
    create.add_argument("name")
    create.add_argument("--answer-window-ms", type=int, default=None)

    join = sub.add_parser("join", help="Join (or rejoin) a room")
    join.add_argument("room_id")
    join.add_argument("name", nargs="?")

    resume = sub.add_parser("resume", help="Resume the last active session")
    resume.add_argument("room_id", nargs="?", default=None)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(
        level="DEBUG" if config.DEBUG else config.LOG_LEVEL,
        environment=config.ENVIRONMENT,
    )
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
