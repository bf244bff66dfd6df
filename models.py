"""Data models for keyboard-to-MIDI translation (key events, actions, session settings)."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

PRESS = 'press'
RELEASE = 'release'

LABEL_ESCAPE = 'escape'
LABEL_DELETE = 'delete'
LABEL_SPACE = 'space'

MIN_NOTE = 0
MAX_NOTE = 127
MIN_VELOCITY = 0
MAX_VELOCITY = 127


@dataclass(frozen=True)
class KeyEvent:
    """Raw input: a physical key (layout-independent scancode) going down or up.

    *label* is only set for the keys the translator treats specially
    (escape, delete, space).
    """
    scancode: int
    action: str
    label: Optional[str] = None

    @property
    def is_press(self) -> bool:
        return self.action == PRESS

    @property
    def is_release(self) -> bool:
        return self.action == RELEASE

    @classmethod
    def press(cls, scancode: int, label: Optional[str] = None) -> 'KeyEvent':
        return cls(scancode, PRESS, label)

    @classmethod
    def release(cls, scancode: int, label: Optional[str] = None) -> 'KeyEvent':
        return cls(scancode, RELEASE, label)


class ActionType(Enum):
    EXIT = 'exit'
    NOTE_ON = 'note_on'
    NOTE_OFF = 'note_off'
    SUSTAIN_ON = 'sustain_on'
    SUSTAIN_OFF = 'sustain_off'
    KILL_ALL = 'kill_all'
    NONE = 'none'


@dataclass(frozen=True)
class Action:
    """Result of translating one key event; only NOTE_ON / NOTE_OFF carry a note."""
    type: ActionType
    note: Optional[int] = None

    @classmethod
    def note_on(cls, note: int) -> 'Action':
        return cls(ActionType.NOTE_ON, note)

    @classmethod
    def note_off(cls, note: int) -> 'Action':
        return cls(ActionType.NOTE_OFF, note)

    def __str__(self) -> str:
        if self.note is None:
            return self.type.value
        return f"{self.type.value}({self.note})"


EXIT = Action(ActionType.EXIT)
KILL_ALL = Action(ActionType.KILL_ALL)
SUSTAIN_ON = Action(ActionType.SUSTAIN_ON)
SUSTAIN_OFF = Action(ActionType.SUSTAIN_OFF)
NO_ACTION = Action(ActionType.NONE)


@dataclass
class SessionConfig:
    """Per-session settings. Channel is 1-based (1-16) as the user sees it."""
    channel: int = 1
    note_on_velocity: int = MAX_VELOCITY
    note_off_velocity: int = MIN_VELOCITY
    base_note: int = 36
    use_number_row: bool = False
    send_pedal_cc: bool = False
    kill_all_releases_notes: bool = False

    @property
    def midi_channel(self) -> int:
        """Zero-based channel as it appears in the status byte."""
        return self.channel - 1

    def validate(self) -> 'SessionConfig':
        if not 1 <= self.channel <= 16:
            raise ValueError(f"channel must be within 1-16, got {self.channel}")
        for name in ('note_on_velocity', 'note_off_velocity'):
            value = getattr(self, name)
            if not MIN_VELOCITY <= value <= MAX_VELOCITY:
                raise ValueError(f"{name} must be within 0-127, got {value}")
        if not MIN_NOTE <= self.base_note <= MAX_NOTE:
            raise ValueError(f"base_note must be within 0-127, got {self.base_note}")
        return self
