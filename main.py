#!/usr/bin/env python3
import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from PyQt6.QtWidgets import QApplication, QLabel, QVBoxLayout, QWidget
from PyQt6.QtCore import Qt

from config import CONFIG_PATH, load_config, save_config
from keyinput import KeyListener, from_qt
from models import KeyEvent, PRESS, RELEASE, SessionConfig
from output import ConnectBy, ConnectError, connect, device_name, list_outputs
from session import Session

APP_NAME = "keys2midi"
UI_MODES = ("window", "listener")

LOG_LEVELS = [logging.CRITICAL + 10, logging.ERROR, logging.WARNING,
              logging.INFO, logging.DEBUG, logging.NOTSET]

logger = logging.getLogger(APP_NAME)


def get_log_level(quiet: int, verbose: int) -> int:
    level = min(max(3 + verbose - quiet, 0), len(LOG_LEVELS) - 1)
    return LOG_LEVELS[level]


def init_logging(quiet: int = 0, verbose: int = 0):
    logging.basicConfig(level=get_log_level(quiet, verbose),
                        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s")
    logger.debug("Logging initialized")


def channel_arg(value: str) -> int:
    try:
        channel = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid channel {value!r}")
    if not 1 <= channel <= 16:
        raise argparse.ArgumentTypeError(f"channel must be within 1-16, got {channel}")
    return channel


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=APP_NAME, description="Play a MIDI device from the computer keyboard.")
    parser.add_argument("-c", "--channel", type=channel_arg, help="MIDI channel to run on (1-16, default 1)")
    port = parser.add_mutually_exclusive_group()
    port.add_argument("-p", "--port-name", help="Name (prefix) of the port to connect to")
    port.add_argument("-i", "--port-index", type=int, help="Index of the port to connect to")
    parser.add_argument("-l", "--list-midi-outputs", action="store_true",
                        help="List available MIDI output ports then exit")
    parser.add_argument("-v", dest="verbose", action="count", default=0,
                        help="Output more information, can be passed multiple times")
    parser.add_argument("-q", dest="quiet", action="count", default=0,
                        help="Output less information, can be passed multiple times")
    parser.add_argument("-u", "--ui-mode", choices=UI_MODES, default="window",
                        help="window: play while the window has focus; listener: global keyboard hook")
    parser.add_argument("--config", type=Path, default=CONFIG_PATH, help="Settings file")
    parser.add_argument("--save-config", action="store_true", help="Write the effective settings to the settings file")
    return parser


def session_config(args: argparse.Namespace) -> SessionConfig:
    config = load_config(args.config)
    if args.channel is not None:
        config.channel = args.channel
    return config.validate()


def connect_by(args: argparse.Namespace) -> ConnectBy:
    return ConnectBy(name=args.port_name, index=args.port_index)


class KeyboardWindow(QWidget):
    """Bare focus window; every key event goes through the session."""

    def __init__(self, session: Session, listener: Optional[KeyListener] = None):
        super().__init__()
        self.session = session
        self.listener = listener
        self.setWindowTitle(APP_NAME)
        self.setMinimumSize(360, 120)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)

        layout = QVBoxLayout(self)
        hint = "Listening to the whole keyboard." if listener else "Keep this window focused to play."
        label = QLabel(f"{hint}\nSpace: sustain   Delete: kill all   Esc: quit\n"
                       f"Channel {session.config.channel}")
        label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        layout.addWidget(label)

        if listener:
            listener.key_event.connect(self.handle_key_event)
            listener.start()

    def keyPressEvent(self, event):
        if self.listener is None:
            self._forward(event, PRESS)

    def keyReleaseEvent(self, event):
        if self.listener is None:
            self._forward(event, RELEASE)

    def _forward(self, event, action: str):
        key_event = from_qt(event, action)
        if key_event is not None:
            self.handle_key_event(key_event)

    def handle_key_event(self, event: KeyEvent):
        if not self.session.handle_event(event):
            self.close()

    def closeEvent(self, event):
        if self.listener:
            self.listener.stop()
        event.accept()


def run(args: argparse.Namespace) -> int:
    try:
        config = session_config(args)
    except ValueError as e:
        logger.error("Error: %s", e)
        return 1
    if args.save_config:
        save_config(config, args.config)

    try:
        output = connect(connect_by(args), APP_NAME)
    except ConnectError as e:
        logger.error("Error: %s", e)
        return 1

    with output:
        app = QApplication.instance() or QApplication(sys.argv[:1])
        session = Session(output, config)
        listener = KeyListener() if args.ui_mode == "listener" else None
        window = KeyboardWindow(session, listener)
        window.show()
        app.exec()
    logger.info("Sent %d messages, dropped %d", session.sent, session.dropped)
    return 0


def print_outputs() -> int:
    try:
        ports = list_outputs()
    except ConnectError as e:
        logger.error("Error: %s", e)
        return 1
    print("Available MIDI outputs")
    for i, name in enumerate(ports):
        print(f"{i}: {device_name(name)}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    init_logging(args.quiet, args.verbose)

    if args.list_midi_outputs:
        return print_outputs()
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
