import struct
from typing import Optional, Callable, List, Tuple
from .commands import Opcode, COMMANDS, NO_REPLY, ALL_MOTORS, decode_string
from .exceptions import TransportTimeoutError, SessionClosedError
from .frame_codec import REPLY_MARKER
from .types import SensorKind, SensorMode, OutputMode, RegulationMode, RunState

class MockSerialInterface:
    """
    In-memory NXT brick answering LCP frames, with hooks to inject
    device status errors, dropped replies and garbled replies.
    """
    def __init__(self, port: str = "mock", baud_rate: int = 115200,
                 command_msg_callback: Optional[Callable] = None,
                 read_timeout: float = 1.5,
                 write_timeout: float = 1.5,
                 reconnect_timeout: float = 0):
        self.port = port
        self.baud_rate = baud_rate
        self.command_msg_callback = command_msg_callback
        self._rx = bytearray()
        self._tx = bytearray()

        # (command type, opcode, arguments) for every frame received
        self.commands: List[Tuple[int, int, bytes]] = []
        self.close_count = 0
        self.fail_status = {}      # opcode -> status byte for the next reply
        self.drop_reply = set()    # opcodes whose next reply never arrives
        self.garble_reply = set()  # opcodes whose next reply echoes a wrong opcode

        self.name = "NXT"
        self.bt_address = bytes([0x00, 0x16, 0x53, 0x0A, 0x0B, 0x0C, 0x00])
        self.signal = 0
        self.free_memory = 42000
        self.protocol_version = (1, 124)
        self.firmware_version = (1, 29)
        self.battery_mv = 7400
        self.running_program = None
        self.mailboxes = [[] for _ in range(10)]
        self.tones = []
        self.inputs = [{"kind": SensorKind.NONE, "mode": SensorMode.RAW, "scaled": 0} for _ in range(4)]
        self.outputs = [self._idle_output() for _ in range(3)]
        self.is_open = False
        self.connect(reconnect_timeout)

    @staticmethod
    def _idle_output() -> dict:
        return {"power": 0, "mode": OutputMode.NONE, "regulation": RegulationMode.IDLE,
                "turn": 0, "run": RunState.IDLE, "limit": 0,
                "tacho_count": 0, "block_count": 0, "rotation_count": 0}

    def connect(self, timeout: float) -> bool:
        # Simulate connection
        self.is_open = True
        return True

    def close(self):
        if self.is_open:
            self.close_count += 1
        self.is_open = False

    def sent(self, opcode: int) -> List[bytes]:
        """Arguments of every received frame with the given opcode."""
        return [args for _, op, args in self.commands if op == opcode]

    def write(self, data: bytes) -> None:
        if not self.is_open:
            raise SessionClosedError("Serial not open")
        if self.command_msg_callback:
            self.command_msg_callback(data, False)

        self._tx += data
        while len(self._tx) >= 2:
            (length,) = struct.unpack_from("<H", self._tx)
            if len(self._tx) < 2 + length:
                break
            payload = bytes(self._tx[2:2 + length])
            del self._tx[:2 + length]
            self._handle(payload)

    def read(self, size: int) -> bytes:
        if not self.is_open:
            raise SessionClosedError("Serial not open")
        if len(self._rx) < size:
            raise TransportTimeoutError(f"Read timeout, expected {size} bytes, got {len(self._rx)}")
        data = bytes(self._rx[:size])
        del self._rx[:size]
        if self.command_msg_callback:
            self.command_msg_callback(data, True)
        return data

    def _handle(self, payload: bytes) -> None:
        command_type, opcode, args = payload[0], payload[1], payload[2:]
        self.commands.append((command_type, opcode, args))

        handler = getattr(self, f"_on_{Opcode(opcode).name.lower()}")
        body = handler(args) or b""
        if command_type & NO_REPLY:
            return

        status = self.fail_status.pop(opcode, 0)
        if opcode in self.drop_reply:
            self.drop_reply.discard(opcode)
            return
        if opcode in self.garble_reply:
            self.garble_reply.discard(opcode)
            opcode ^= 0xFF
        if status:
            # error replies carry the full body size, zero-filled
            body = bytes(COMMANDS[Opcode(payload[1])].reply_length - 3)
        reply = bytes([REPLY_MARKER, opcode, status]) + body
        self._rx += struct.pack("<H", len(reply)) + reply

    def _on_start_program(self, args):
        self.running_program = decode_string(args)

    def _on_stop_program(self, args):
        self.running_program = None

    def _on_play_tone(self, args):
        self.tones.append(struct.unpack("<HH", args))

    def _on_set_output_state(self, args):
        port, power, mode, regulation, turn, run, limit = struct.unpack("<BbBBbBI", args)
        ports = range(3) if port == ALL_MOTORS else [port]
        for p in ports:
            self.outputs[p].update(power=power, mode=OutputMode(mode), regulation=RegulationMode(regulation),
                                   turn=turn, run=RunState(run), limit=limit)

    def _on_set_input_mode(self, args):
        port, kind, mode = args
        self.inputs[port].update(kind=SensorKind(kind), mode=SensorMode(mode))

    def _on_get_output_state(self, args):
        port = args[0]
        s = self.outputs[port]
        return struct.pack("<BbBBbBIiii", port, s["power"], s["mode"], s["regulation"], s["turn"], s["run"],
                           s["limit"], s["tacho_count"], s["block_count"], s["rotation_count"])

    def _on_get_input_values(self, args):
        port = args[0]
        s = self.inputs[port]
        return struct.pack("<BBBBBHHhh", port, 1, 0, s["kind"], s["mode"], 0, 0, s["scaled"], 0)

    def _on_reset_input_scaled_value(self, args):
        self.inputs[args[0]]["scaled"] = 0

    def _on_message_write(self, args):
        mailbox, size = args[0], args[1]
        self.mailboxes[mailbox].append(decode_string(args[2:2 + size]))

    def _on_reset_motor_position(self, args):
        port, relative = args
        ports = range(3) if port == ALL_MOTORS else [port]
        for p in ports:
            self.outputs[p]["block_count" if relative else "rotation_count"] = 0

    def _on_get_battery_level(self, args):
        return struct.pack("<H", self.battery_mv)

    def _on_keep_alive(self, args):
        pass

    def _on_get_version(self, args):
        return bytes(self.protocol_version + self.firmware_version)

    def _on_set_brick_name(self, args):
        self.name = decode_string(args)

    def _on_get_device_info(self, args):
        return struct.pack("<15s7sII", self.name.encode("ascii"), self.bt_address, self.signal, self.free_memory)
