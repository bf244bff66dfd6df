"""End-to-end tests: key events in, MIDI frames out."""

import logging

import pytest

from models import KeyEvent, SessionConfig, LABEL_DELETE, LABEL_ESCAPE, LABEL_SPACE
from output import SendError
from session import Session

A = 30
S = 31
SPACE = 57
DELETE = 111


class RecordingSink:
    def __init__(self):
        self.frames = []

    def send(self, frame):
        self.frames.append(bytes(frame))


class FailingSink:
    def __init__(self, fail_times=1):
        self.fail_times = fail_times
        self.frames = []

    def send(self, frame):
        if self.fail_times:
            self.fail_times -= 1
            raise SendError("port went away")
        self.frames.append(bytes(frame))


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def session(sink):
    return Session(sink)


def note_of(session, code):
    return session.translator.mapper.map(code)


def test_press_release_sends_on_and_off(session, sink):
    note = note_of(session, A)
    assert session.handle_event(KeyEvent.press(A))
    assert session.handle_event(KeyEvent.release(A))
    assert sink.frames == [bytes([0x90, note, 127]), bytes([0x80, note, 0])]
    assert session.sent == 2


def test_sustain_flushes_on_space_release(session, sink):
    note = note_of(session, A)
    session.handle_event(KeyEvent.press(SPACE, LABEL_SPACE))
    assert sink.frames == []
    session.handle_event(KeyEvent.press(A))
    session.handle_event(KeyEvent.release(A))
    assert sink.frames == [bytes([0x90, note, 127])]
    session.handle_event(KeyEvent.release(SPACE, LABEL_SPACE))
    assert sink.frames[-1] == bytes([0x80, note, 0])


def test_key_repeat_sends_once(session, sink):
    session.handle_event(KeyEvent.press(A))
    session.handle_event(KeyEvent.press(A))
    assert len(sink.frames) == 1


def test_delete_sends_nothing_by_default(session, sink):
    session.handle_event(KeyEvent.press(A))
    session.handle_event(KeyEvent.press(DELETE, LABEL_DELETE))
    assert len(sink.frames) == 1
    assert len(session.translator.keys) == 0


def test_escape_ends_session(session, sink):
    session.handle_event(KeyEvent.press(SPACE, LABEL_SPACE))
    session.handle_event(KeyEvent.press(A))
    session.handle_event(KeyEvent.release(A))
    assert session.handle_event(KeyEvent.press(1, LABEL_ESCAPE)) is False
    assert session.handle_event(KeyEvent.release(SPACE, LABEL_SPACE)) is False
    assert session.handle_event(KeyEvent.press(S)) is False
    assert len(sink.frames) == 1


def test_send_failure_is_logged_and_session_continues(caplog):
    sink = FailingSink()
    session = Session(sink)
    with caplog.at_level(logging.WARNING, logger="session"):
        assert session.handle_event(KeyEvent.press(A))
    assert "port went away" in caplog.text
    assert session.dropped == 1
    assert session.handle_event(KeyEvent.release(A))
    assert len(sink.frames) == 1


def test_encoding_failure_is_logged_and_dropped(sink, caplog):
    session = Session(sink, SessionConfig(note_on_velocity=300))
    with caplog.at_level(logging.WARNING, logger="session"):
        assert session.handle_event(KeyEvent.press(A))
        assert session.handle_event(KeyEvent.release(A))
    assert session.dropped == 1
    assert len(sink.frames) == 1
    assert "Dropping note_on" in caplog.text


def test_pedal_cc_when_enabled(sink):
    session = Session(sink, SessionConfig(channel=10, send_pedal_cc=True))
    session.handle_event(KeyEvent.press(SPACE, LABEL_SPACE))
    session.handle_event(KeyEvent.release(SPACE, LABEL_SPACE))
    assert sink.frames == [bytes([0xB9, 64, 127]), bytes([0xB9, 64, 0])]


def test_kill_all_lifts_pedal_on_the_wire_when_configured(sink):
    session = Session(sink, SessionConfig(send_pedal_cc=True, kill_all_releases_notes=True))
    note = note_of(session, A)
    session.handle_event(KeyEvent.press(SPACE, LABEL_SPACE))
    session.handle_event(KeyEvent.press(A))
    session.handle_event(KeyEvent.release(A))
    session.handle_event(KeyEvent.press(DELETE, LABEL_DELETE))
    assert sink.frames[-2:] == [bytes([0xB0, 64, 0]), bytes([0x80, note, 0])]
    assert not session.translator.sustain.is_held
