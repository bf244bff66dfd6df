"""One playing session: translate key events, encode them and push frames to the output."""

import logging
from typing import Optional

from core import EncodingError, EventTranslator, KeyMapper, MessageCodec
from models import Action, ActionType, KeyEvent, SessionConfig
from output import SendError

logger = logging.getLogger(__name__)


class Session:
    """Owns the translator for one run. Encoding and send failures drop the frame and carry on."""

    def __init__(self, sink, config: Optional[SessionConfig] = None):
        self.config = config or SessionConfig()
        self.sink = sink
        self.translator = EventTranslator(KeyMapper.from_config(self.config), self.config)
        self.codec = MessageCodec(self.config)
        self.running = True
        self.sent = 0
        self.dropped = 0

    def handle_event(self, event: KeyEvent) -> bool:
        """Process one key event. Returns False once the session should end."""
        if not self.running:
            return False
        for action in self.translator.handle_event(event):
            self._dispatch(action)
        return self.running

    def _dispatch(self, action: Action):
        kind = action.type
        if kind is ActionType.EXIT:
            logger.info("Exiting...")
            self.running = False
        elif kind is ActionType.NONE:
            pass
        elif kind is ActionType.KILL_ALL:
            logger.info("Kill all: released tracked keys")
        elif kind in (ActionType.NOTE_ON, ActionType.NOTE_OFF,
                      ActionType.SUSTAIN_ON, ActionType.SUSTAIN_OFF):
            self._send(action)
        else:
            raise ValueError(f"Unhandled action {action}")

    def _send(self, action: Action):
        try:
            frame = self.codec.encode(action)
        except EncodingError as e:
            logger.warning("Dropping %s: %s", action, e)
            self.dropped += 1
            return
        if frame is None:
            logger.debug("%s has no wire message", action)
            return
        try:
            self.sink.send(frame)
        except SendError as e:
            logger.warning("Dropping %s: %s", action, e)
            self.dropped += 1
            return
        self.sent += 1
        logger.debug("Sent %s as %s", action, frame.hex(' '))

