"""MIDI output port selection and the frame sink the session writes to."""

import logging
from dataclasses import dataclass
from typing import List, Optional

import mido

logger = logging.getLogger(__name__)


class ConnectError(IOError):
    """No output port could be opened for the requested selector."""


class SendError(IOError):
    """The backend rejected a frame."""


@dataclass(frozen=True)
class ConnectBy:
    """Port selector: name prefix, index into the port list, or neither for the first port."""
    name: Optional[str] = None
    index: Optional[int] = None

    def describe(self) -> str:
        if self.name is not None:
            return f"name {self.name!r}"
        if self.index is not None:
            return f"index {self.index}"
        return "first available port"


def list_outputs() -> List[str]:
    try:
        return list(mido.get_output_names())
    except Exception as e:
        raise ConnectError(f"Could not list MIDI outputs: {e}") from e


def device_name(port_name: str) -> str:
    """Device part of a port name ('Midi Through:Midi Through Port-0 14:0' -> 'Midi Through')."""
    return port_name.split(':', 1)[0]


def resolve_port_name(connect_by: ConnectBy, ports: List[str]) -> str:
    if connect_by.name is not None:
        logger.debug("Connecting to port with name %s", connect_by.name)
        for port in ports:
            if port.startswith(connect_by.name):
                return port
        raise ConnectError(f"No MIDI port named {connect_by.name}")
    if connect_by.index is not None:
        logger.debug("Connecting to port with index %s", connect_by.index)
        if not 0 <= connect_by.index < len(ports):
            raise ConnectError(f"Port index {connect_by.index} out of range")
        return ports[connect_by.index]
    logger.debug("Connecting to first available port")
    if not ports:
        raise ConnectError("No available MIDI outputs")
    return ports[0]


class MidiOutput:
    """Sends pre-encoded MIDI frames to an open mido output port."""

    def __init__(self, port, name: str = '<unknown>'):
        self.port = port
        self.name = name

    def send(self, frame: bytes):
        try:
            message = mido.Message.from_bytes(frame)
            self.port.send(message)
        except Exception as e:
            raise SendError(f"Couldn't send {bytes(frame).hex(' ')} to \"{self.name}\": {e}") from e

    def close(self):
        if not self.port.closed:
            logger.debug("Closing midi port \"%s\"", self.name)
            self.port.close()

    def __enter__(self) -> 'MidiOutput':
        return self

    def __exit__(self, *exc):
        self.close()


def connect(connect_by: ConnectBy = ConnectBy(), client_name: str = 'keys2midi') -> MidiOutput:
    """Open the output port picked by *connect_by*."""
    ports = list_outputs()
    port_name = resolve_port_name(connect_by, ports)
    logger.info("Connecting to midi port \"%s\"", port_name)
    try:
        port = mido.open_output(port_name, client_name=client_name)
    except Exception as e:
        raise ConnectError(f"Couldn't connect to MIDI output port \"{port_name}\": {e}") from e
    return MidiOutput(port, port_name)
