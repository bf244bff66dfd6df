"""Convert pynput and Qt key events into layout-independent KeyEvents."""

import logging
import sys
from enum import Enum
from typing import Optional

from PyQt6.QtCore import QObject, Qt, pyqtSignal as Signal

from models import KeyEvent, PRESS, RELEASE, LABEL_ESCAPE, LABEL_DELETE, LABEL_SPACE

logger = logging.getLogger(__name__)

ESCAPE_SCANCODE = 1
SPACE_SCANCODE = 57
DELETE_SCANCODE = 111

# US QWERTY character -> scancode, used when the platform gives no scan code
_ROWS = [
    (2, "1234567890-=", "!@#$%^&*()_+"),
    (16, "qwertyuiop[]", "QWERTYUIOP{}"),
    (30, "asdfghjkl;'`", 'ASDFGHJKL:"~'),
    (43, "\\", "|"),
    (44, "zxcvbnm,./", "ZXCVBNM<>?"),
]
CHAR_SCANCODES = {}
for _start, _plain, _shifted in _ROWS:
    for _offset, (_a, _b) in enumerate(zip(_plain, _shifted)):
        CHAR_SCANCODES[_a] = _start + _offset
        CHAR_SCANCODES[_b] = _start + _offset

# pynput Key members by name; the pynput import needs a display, so it waits for KeyListener.start
PYNPUT_SPECIAL = {
    'esc': (ESCAPE_SCANCODE, LABEL_ESCAPE),
    'delete': (DELETE_SCANCODE, LABEL_DELETE),
    'space': (SPACE_SCANCODE, LABEL_SPACE),
}

QT_LABELS = {
    Qt.Key.Key_Escape.value: LABEL_ESCAPE,
    Qt.Key.Key_Delete.value: LABEL_DELETE,
    Qt.Key.Key_Space.value: LABEL_SPACE,
}

LABEL_SCANCODES = {label: code for code, label in PYNPUT_SPECIAL.values()}


def scancode_for_char(char: Optional[str]) -> Optional[int]:
    if not char:
        return None
    return CHAR_SCANCODES.get(char)


def from_pynput(key, action: str) -> Optional[KeyEvent]:
    """KeyEvent for a pynput key, or None when no scancode can be worked out."""
    if isinstance(key, Enum):
        if key.name not in PYNPUT_SPECIAL:
            logger.debug("No scancode for %s", key)
            return None
        scancode, label = PYNPUT_SPECIAL[key.name]
        return KeyEvent(scancode, action, label)
    scancode = getattr(key, '_scan', None)
    if not scancode:
        scancode = scancode_for_char(getattr(key, 'char', None))
    if scancode is None:
        logger.debug("No scancode for %s", key)
        return None
    return KeyEvent(scancode, action)


def scancode_from_native(native: int, platform: str = sys.platform) -> Optional[int]:
    """Qt native scan codes are X keycodes (evdev + 8) on Linux and set 1 codes on Windows."""
    if native <= 0:
        return None
    if platform.startswith('linux'):
        return native - 8 if native > 8 else None
    return native


def from_qt(event, action: str) -> Optional[KeyEvent]:
    """KeyEvent for a Qt key event. OS auto-repeat (a release/press pair on X11) is dropped."""
    if event.isAutoRepeat():
        return None
    label = QT_LABELS.get(int(event.key()))
    scancode = scancode_from_native(event.nativeScanCode())
    if scancode is None:
        scancode = scancode_for_char(event.text())
    if scancode is None:
        if label is None:
            logger.debug("No scancode for Qt key %s", event.key())
            return None
        scancode = LABEL_SCANCODES[label]
    return KeyEvent(scancode, action, label)


class KeyListener(QObject):
    """Global keyboard listener; events reach the Qt thread through ``key_event``."""
    key_event = Signal(object)

    def __init__(self):
        super().__init__()
        self.listener = None

    def start(self):
        from pynput import keyboard
        self.listener = keyboard.Listener(on_press=self.on_press, on_release=self.on_release)
        self.listener.start()

    def stop(self):
        if self.listener:
            self.listener.stop()
            self.listener = None

    def on_press(self, key):
        self._emit(from_pynput(key, PRESS))

    def on_release(self, key):
        self._emit(from_pynput(key, RELEASE))

    def _emit(self, event: Optional[KeyEvent]):
        if event is not None:
            self.key_event.emit(event)
