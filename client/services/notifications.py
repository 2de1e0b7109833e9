"""
Transient notices, flashes and sound cues.

The NotificationSink is the boundary to whatever renders the client (a
terminal, a GUI, a test recorder). It holds no logic. NoticeBoard owns the
timers that clear notices and flashes: at most one of each is pending, and
starting a new one cancels its predecessor.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class Tone(str, Enum):
    OK = "ok"
    WARN = "warn"
    BAD = "bad"


class FlashTone(str, Enum):
    WIN = "win"
    LOSE = "lose"


class SoundCue(str, Enum):
    ROUND_START = "round_start"
    ROUND_CONTINUED = "round_continued"
    WIN = "win"
    LOSE = "lose"
    TIMEOUT = "timeout"


@dataclass
class Notice:
    text: str
    tone: Tone = Tone.OK
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


class NotificationSink:
    """Receives display and audio side effects. Subclass and override."""

    def show_notice(self, notice: Notice) -> None:
        pass

    def clear_notice(self) -> None:
        pass

    def flash(self, tone: FlashTone) -> None:
        pass

    def clear_flash(self) -> None:
        pass

    def play(self, cue: SoundCue) -> None:
        pass


class LoggingNotificationSink(NotificationSink):
    """Sink that writes everything to the log."""

    def show_notice(self, notice: Notice) -> None:
        level = logging.WARNING if notice.tone == Tone.BAD else logging.INFO
        logger.log(level, f"[{notice.tone.value}] {notice.text}")

    def flash(self, tone: FlashTone) -> None:
        logger.debug(f"flash: {tone.value}")

    def play(self, cue: SoundCue) -> None:
        logger.debug(f"sound: {cue.value}")


@dataclass
class SoundSettings:
    """Per-cue sound switches."""
    round_start: bool = True
    round_continued: bool = True
    win: bool = True
    lose: bool = True
    timeout: bool = True

    _backup: Optional[dict] = field(default=None, repr=False, compare=False)

    def _values(self) -> dict[str, bool]:
        return {f.name: getattr(self, f.name) for f in fields(self) if not f.name.startswith("_")}

    @property
    def any_enabled(self) -> bool:
        return any(self._values().values())

    def is_enabled(self, cue: SoundCue) -> bool:
        return getattr(self, cue.value)

    def toggle(self, cue: SoundCue) -> bool:
        """Flip one cue; returns its new state."""
        value = not getattr(self, cue.value)
        setattr(self, cue.value, value)
        return value

    def toggle_master(self) -> bool:
        """
        Mute everything, or restore the selection in place before muting.

        Returns:
            Whether any sound is enabled afterwards.
        """
        if self.any_enabled:
            self._backup = self._values()
            for name in self._values():
                setattr(self, name, False)
            return False

        restored = self._backup or {name: True for name in self._values()}
        for name, value in restored.items():
            setattr(self, name, value)
        return self.any_enabled


class PendingTimer:
    """
    A single owned timer slot.

    start() cancels any timer already pending. Each callback is tagged with
    the generation it was scheduled under and is dropped if the slot has
    moved on, so a late callback never fires after cancel().
    """

    def __init__(self):
        self._handle: Optional[asyncio.TimerHandle] = None
        self._generation = 0

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def start(self, delay_secs: float, callback: Callable[[], None]) -> None:
        self.cancel()
        generation = self._generation
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(delay_secs, self._fire, generation, callback)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._generation += 1

    def _fire(self, generation: int, callback: Callable[[], None]) -> None:
        if generation != self._generation:
            return
        self._handle = None
        callback()


class NoticeBoard:
    """Routes notices, flashes and sounds to a sink, with auto-clear timers."""

    def __init__(
        self,
        sink: Optional[NotificationSink] = None,
        sound_settings: Optional[SoundSettings] = None,
        notice_duration_ms: int = 2800,
        flash_duration_ms: int = 800,
    ):
        self.sink = sink or LoggingNotificationSink()
        self.sound_settings = sound_settings or SoundSettings()
        self.notice_duration_ms = notice_duration_ms
        self.flash_duration_ms = flash_duration_ms

        self.notice: Optional[Notice] = None
        self.flash_tone: Optional[FlashTone] = None
        self.notice_timer = PendingTimer()
        self.flash_timer = PendingTimer()

    def show_notice(self, text: str, tone: Tone = Tone.OK, duration_ms: Optional[int] = None) -> Notice:
        """
        Display a notice. A duration of 0 keeps it until replaced.
        """
        if duration_ms is None:
            duration_ms = self.notice_duration_ms
        notice = Notice(text=text, tone=tone)
        self.notice = notice
        self.notice_timer.cancel()
        self.sink.show_notice(notice)
        if duration_ms > 0:
            self.notice_timer.start(duration_ms / 1000, self._clear_notice)
        return notice

    def _clear_notice(self) -> None:
        self.notice = None
        self.sink.clear_notice()

    def trigger_flash(self, tone: FlashTone) -> None:
        self.flash_tone = tone
        self.sink.flash(tone)
        self.flash_timer.start(self.flash_duration_ms / 1000, self._clear_flash)

    def _clear_flash(self) -> None:
        self.flash_tone = None
        self.sink.clear_flash()

    def play(self, cue: SoundCue) -> bool:
        """Play a cue if its setting is on. Returns whether it was played."""
        if not self.sound_settings.is_enabled(cue):
            return False
        self.sink.play(cue)
        return True

    def cancel_timers(self) -> None:
        """Cancel pending clears and drop the current notice and flash."""
        self.notice_timer.cancel()
        self.flash_timer.cancel()
        if self.notice is not None:
            self._clear_notice()
        if self.flash_tone is not None:
            self._clear_flash()
