"""Key mapping, key/pedal state, event translation and MIDI encoding."""

import logging
from typing import Dict, Iterable, Iterator, List, Optional

import mido

from models import (Action, ActionType, KeyEvent, SessionConfig,
                    EXIT, KILL_ALL, SUSTAIN_ON, SUSTAIN_OFF, NO_ACTION,
                    LABEL_ESCAPE, LABEL_DELETE, LABEL_SPACE,
                    MIN_NOTE, MAX_NOTE)

logger = logging.getLogger(__name__)

SUSTAIN_CONTROL = 64


# ---------------------------------------------------------------------------
# Key mapping  (scancodes are PC set 1 / evdev codes, layout independent)
# ---------------------------------------------------------------------------

class KeyMapper:
    """Map a physical key scancode to a MIDI note.

    Rows are walked bottom to top, keys left to right, so the note rises
    one semitone per key. On a UK QWERTY board:

        bottom  44 z .. 53 /
        home    30 a .. 40 ', 43 #
        top     16 q .. 27 ]
        number   2 1 .. 13 =   (only with use_number_row)
    """

    BOTTOM_ROW = tuple(range(44, 54))
    HOME_ROW = tuple(range(30, 41)) + (43,)
    TOP_ROW = tuple(range(16, 28))
    NUMBER_ROW = tuple(range(2, 14))

    def __init__(self, base_note: int = 36, use_number_row: bool = False):
        self.base_note = base_note
        self.use_number_row = use_number_row
        self.key_map: Dict[int, int] = {}
        self._build()

    @classmethod
    def from_config(cls, config: SessionConfig) -> 'KeyMapper':
        return cls(config.base_note, config.use_number_row)

    def _build(self):
        rows = [self.BOTTOM_ROW, self.HOME_ROW, self.TOP_ROW]
        if self.use_number_row:
            rows.append(self.NUMBER_ROW)
        index = 0
        for row in rows:
            for code in row:
                note = self.base_note + index
                if MIN_NOTE <= note <= MAX_NOTE:
                    self.key_map[code] = note
                index += 1

    def map(self, scancode: int) -> Optional[int]:
        note = self.key_map.get(scancode)
        logger.debug("Scancode: %s, note: %s", scancode, note)
        return note

    def mapped_scancodes(self) -> List[int]:
        return sorted(self.key_map, key=self.key_map.get)

    @staticmethod
    def note_name(note: int) -> str:
        names = ["C", "C#", "D", "D#", "E", "F",
                 "F#", "G", "G#", "A", "A#", "B"]
        return f"{names[note % 12]}{(note // 12) - 1}"


# ---------------------------------------------------------------------------
# Key and pedal state
# ---------------------------------------------------------------------------

class KeyTracker:
    """Scancodes this engine considers held down.

    A second press without a release is OS key-repeat; a release without a
    tracked press is spurious. Both report False.
    """

    def __init__(self):
        self._pressed = set()

    def on_press(self, scancode: int) -> bool:
        if scancode in self._pressed:
            return False
        self._pressed.add(scancode)
        return True

    def on_release(self, scancode: int) -> bool:
        if scancode not in self._pressed:
            return False
        self._pressed.remove(scancode)
        return True

    def clear(self):
        self._pressed.clear()

    @property
    def pressed(self) -> frozenset:
        return frozenset(self._pressed)

    def __contains__(self, scancode) -> bool:
        return scancode in self._pressed

    def __len__(self) -> int:
        return len(self._pressed)


class SustainPedal:
    """Pedal flag plus the notes whose note-off is waiting for the pedal to lift.

    Deferred notes keep insertion order so a flush is reproducible.
    """

    def __init__(self):
        self.is_held = False
        self._deferred: Dict[int, None] = {}

    @property
    def deferred(self) -> List[int]:
        return list(self._deferred)

    def pedal_down(self):
        self.is_held = True

    def pedal_up(self) -> List[int]:
        self.is_held = False
        notes = list(self._deferred)
        self._deferred.clear()
        return notes

    def note_released(self, note: int) -> Optional[Action]:
        if self.is_held:
            self._deferred.setdefault(note, None)
            return None
        return Action.note_off(note)


# ---------------------------------------------------------------------------
# Event translation
# ---------------------------------------------------------------------------

class EventTranslator:
    """Turn raw key events into actions, owning the key and pedal state for a session.

    ``handle_event`` returns the primary action first, followed by any
    note-offs released by the same event (pedal lift, kill-all).
    """

    def __init__(self, mapper: Optional[KeyMapper] = None,
                 config: Optional[SessionConfig] = None):
        self.config = config or SessionConfig()
        self.mapper = mapper or KeyMapper.from_config(self.config)
        self.keys = KeyTracker()
        self.sustain = SustainPedal()
        self.closed = False

    def handle_event(self, event: KeyEvent) -> List[Action]:
        logger.debug("keyboard input %s", event)
        if self.closed:
            return [NO_ACTION]

        if event.label == LABEL_ESCAPE:
            self.closed = True
            return [EXIT]

        if event.is_press:
            return self._on_press(event)
        return self._on_release(event)

    def _on_press(self, event: KeyEvent) -> List[Action]:
        if event.label == LABEL_DELETE:
            return self._kill_all()

        if not self.keys.on_press(event.scancode):
            return [NO_ACTION]

        if event.label == LABEL_SPACE:
            self.sustain.pedal_down()
            return [SUSTAIN_ON]

        note = self.mapper.map(event.scancode)
        if note is None:
            return [NO_ACTION]
        return [Action.note_on(note)]

    def _on_release(self, event: KeyEvent) -> List[Action]:
        if not self.keys.on_release(event.scancode):
            return [NO_ACTION]

        if event.label == LABEL_SPACE:
            released = self.sustain.pedal_up()
            return [SUSTAIN_OFF] + [Action.note_off(n) for n in released]

        note = self.mapper.map(event.scancode)
        if note is None:
            return [NO_ACTION]
        action = self.sustain.note_released(note)
        return [action if action is not None else NO_ACTION]

    def _kill_all(self) -> List[Action]:
        """Forget every tracked key.

        By default nothing else changes: a held pedal stays down, and since
        Space is no longer tracked its release is ignored, so note-offs keep
        being deferred until the next Space press and release. With
        ``kill_all_releases_notes`` the pedal is lifted as well and every
        held or deferred note gets a note-off.
        """
        actions = [KILL_ALL]
        if self.config.kill_all_releases_notes:
            held = (self.mapper.map(code) for code in self.keys.pressed)
            notes = {n: None for n in sorted(n for n in held if n is not None)}
            was_held = self.sustain.is_held
            for note in self.sustain.pedal_up():
                notes.setdefault(note, None)
            if was_held:
                actions.append(SUSTAIN_OFF)
            actions.extend(Action.note_off(n) for n in notes)
        self.keys.clear()
        return actions


# ---------------------------------------------------------------------------
# MIDI encoding
# ---------------------------------------------------------------------------

class EncodingError(ValueError):
    """An action's note or velocity is outside the MIDI data byte range."""


class MessageCodec:
    """Encode note actions into raw MIDI frames for the session channel."""

    def __init__(self, config: Optional[SessionConfig] = None):
        self.config = config or SessionConfig()

    def encode(self, action: Action) -> Optional[bytes]:
        message = self.to_message(action)
        if message is None:
            return None
        return bytes(message.bytes())

    def encode_many(self, actions: Iterable[Action]) -> Iterator[bytes]:
        for action in actions:
            frame = self.encode(action)
            if frame is not None:
                yield frame

    def to_message(self, action: Action) -> Optional[mido.Message]:
        channel = self.config.midi_channel
        try:
            if action.type is ActionType.NOTE_ON:
                return mido.Message('note_on', channel=channel, note=action.note,
                                    velocity=self.config.note_on_velocity)
            if action.type is ActionType.NOTE_OFF:
                return mido.Message('note_off', channel=channel, note=action.note,
                                    velocity=self.config.note_off_velocity)
            if action.type in (ActionType.SUSTAIN_ON, ActionType.SUSTAIN_OFF):
                if not self.config.send_pedal_cc:
                    return None
                value = 127 if action.type is ActionType.SUSTAIN_ON else 0
                return mido.Message('control_change', channel=channel,
                                    control=SUSTAIN_CONTROL, value=value)
        except (ValueError, TypeError) as e:
            raise EncodingError(f"Cannot encode {action}: {e}") from e
        return None
