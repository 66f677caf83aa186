import struct
import logging
from dataclasses import dataclass

from .exceptions import FrameMismatchError, DeviceStatusError

logger = logging.getLogger(__name__)

REPLY_MARKER = 0x02
HEADER_SIZE = 3  # marker + opcode + status
_LENGTH = struct.Struct("<H")


@dataclass(frozen=True)
class Reply:
    """A reply frame with its header split into fields."""

    length: int
    marker: int
    opcode: int
    status: int
    body: bytes


def build_frame(payload: bytes) -> bytes:
    """Prefix a command payload with its u16 little-endian length."""
    return _LENGTH.pack(len(payload)) + bytes(payload)


class FrameCodec:
    """Sends command frames and reads validated replies over one channel."""

    def __init__(self, channel):
        self.channel = channel

    def send(self, payload: bytes) -> None:
        # One write: the brick reads a short frame as "more data pending"
        self.channel.write(build_frame(payload))

    def read_reply(self) -> Reply:
        (length,) = _LENGTH.unpack(self.channel.read(_LENGTH.size))
        if length < HEADER_SIZE:
            raise FrameMismatchError("reply", f"length >= {HEADER_SIZE}", length)
        data = self.channel.read(length)
        return Reply(length, data[0], data[1], data[2], bytes(data[HEADER_SIZE:]))

    def expect(self, opcode: int, reply_length: int, operation: str = "") -> bytes:
        """
        Reads the reply to the command just sent and returns its body.
        :param opcode: opcode the brick must echo
        :param reply_length: value of the length prefix for a successful reply
        :param operation: name used in error messages
        :raises FrameMismatchError: header does not belong to this command
        :raises DeviceStatusError: well-formed reply carrying a non-zero status
        """
        operation = operation or f"opcode 0x{opcode:02X}"
        reply = self.read_reply()

        if reply.marker != REPLY_MARKER:
            raise FrameMismatchError(operation, f"marker 0x{REPLY_MARKER:02X}", f"0x{reply.marker:02X}")
        if reply.opcode != opcode:
            raise FrameMismatchError(operation, f"opcode 0x{opcode:02X}", f"0x{reply.opcode:02X}")
        # the full reply was consumed, so a status error leaves the link in sync
        if reply.status != 0:
            raise DeviceStatusError(operation, reply.status)
        if reply.length != reply_length:
            raise FrameMismatchError(operation, f"length {reply_length}", reply.length)

        return reply.body
