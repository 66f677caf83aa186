import unittest
from nxt_lcp.frame_codec import FrameCodec, build_frame
from nxt_lcp.exceptions import FrameMismatchError, DeviceStatusError, TransportTimeoutError

class ByteChannel:
    def __init__(self, incoming: bytes = b""):
        self.incoming = bytearray(incoming)
        self.writes = []

    def write(self, data: bytes) -> None:
        self.writes.append(bytes(data))

    def read(self, size: int) -> bytes:
        if len(self.incoming) < size:
            raise TransportTimeoutError("short read")
        data = bytes(self.incoming[:size])
        del self.incoming[:size]
        return data

class TestFrameCodec(unittest.TestCase):
    def test_build_frame_length_prefix(self):
        self.assertEqual(build_frame(b"\x01\x9B"), b"\x02\x00\x01\x9B")
        self.assertEqual(build_frame(bytes(300))[:2], b"\x2C\x01")

    def test_send_is_a_single_write(self):
        channel = ByteChannel()
        FrameCodec(channel).send(b"\x00\x0B")
        self.assertEqual(channel.writes, [b"\x02\x00\x00\x0B"])

    def test_expect_returns_body(self):
        channel = ByteChannel(b"\x05\x00\x02\x0B\x00\xE8\x1C")
        body = FrameCodec(channel).expect(0x0B, 5)
        self.assertEqual(body, b"\xE8\x1C")
        self.assertEqual(len(channel.incoming), 0)

    def test_wrong_marker(self):
        channel = ByteChannel(b"\x03\x00\x01\x98\x00")
        with self.assertRaises(FrameMismatchError):
            FrameCodec(channel).expect(0x98, 3)

    def test_wrong_opcode(self):
        channel = ByteChannel(b"\x03\x00\x02\x09\x00")
        with self.assertRaises(FrameMismatchError) as ctx:
            FrameCodec(channel).expect(0x04, 3, "SET_OUTPUT_STATE")
        self.assertEqual(ctx.exception.operation, "SET_OUTPUT_STATE")
        self.assertEqual(ctx.exception.actual, "0x09")

    def test_wrong_length(self):
        channel = ByteChannel(b"\x04\x00\x02\x04\x00\x00")
        with self.assertRaises(FrameMismatchError):
            FrameCodec(channel).expect(0x04, 3)

    def test_length_shorter_than_header(self):
        channel = ByteChannel(b"\x02\x00\x02\x04")
        with self.assertRaises(FrameMismatchError):
            FrameCodec(channel).expect(0x04, 3)

    def test_status_error_consumes_reply(self):
        channel = ByteChannel(b"\x05\x00\x02\x0B\xBD\x00\x00" + b"\x05\x00\x02\x0B\x00\xE8\x1C")
        codec = FrameCodec(channel)
        with self.assertRaises(DeviceStatusError) as ctx:
            codec.expect(0x0B, 5)
        self.assertEqual(ctx.exception.status, 0xBD)
        self.assertIn("request failed", str(ctx.exception))
        # next reply still parses: the link stayed in sync
        self.assertEqual(codec.expect(0x0B, 5), b"\xE8\x1C")

    def test_short_read_times_out(self):
        channel = ByteChannel(b"\x05\x00\x02")
        with self.assertRaises(TransportTimeoutError):
            FrameCodec(channel).expect(0x0B, 5)

if __name__ == '__main__':
    unittest.main()
