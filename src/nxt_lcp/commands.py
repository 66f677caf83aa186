import struct
from enum import IntEnum, IntFlag
from typing import NamedTuple, Optional

from .exceptions import ValidationError, ResponseDecodeError
from .types import (SensorKind, SensorMode, OutputMode, RegulationMode, RunState,
                    InputValue, OutputState, DeviceInfo, VersionInfo)

DIRECT = 0x00
SYSTEM = 0x01
NO_REPLY = 0x80

SENSOR_PORTS = range(4)
MOTOR_PORTS = range(3)
ALL_MOTORS = 0xFF

MAX_POWER = 100
FILENAME_SIZE = 20       # 19 characters + terminator
BRICK_NAME_SIZE = 16     # 15 characters + terminator
MAX_NAME_LENGTH = BRICK_NAME_SIZE - 1
MAX_FILENAME_LENGTH = FILENAME_SIZE - 1
MAX_MESSAGE_LENGTH = 59
MAILBOXES = range(10)

class Opcode(IntEnum):
    START_PROGRAM = 0x00
    STOP_PROGRAM = 0x01
    PLAY_TONE = 0x03
    SET_OUTPUT_STATE = 0x04
    SET_INPUT_MODE = 0x05
    GET_OUTPUT_STATE = 0x06
    GET_INPUT_VALUES = 0x07
    RESET_INPUT_SCALED_VALUE = 0x08
    MESSAGE_WRITE = 0x09
    RESET_MOTOR_POSITION = 0x0A
    GET_BATTERY_LEVEL = 0x0B
    KEEP_ALIVE = 0x0D
    GET_VERSION = 0x88
    SET_BRICK_NAME = 0x98
    GET_DEVICE_INFO = 0x9B

class Command(NamedTuple):
    command_type: int
    opcode: Opcode
    reply_length: Optional[int]  # None for fire-and-forget commands

    @property
    def expects_reply(self) -> bool:
        return self.reply_length is not None

# StartProgram, StopProgram and MessageWrite are direct commands on the brick
COMMANDS = {
    Opcode.START_PROGRAM: Command(DIRECT, Opcode.START_PROGRAM, 3),
    Opcode.STOP_PROGRAM: Command(DIRECT, Opcode.STOP_PROGRAM, 3),
    Opcode.PLAY_TONE: Command(DIRECT | NO_REPLY, Opcode.PLAY_TONE, None),
    Opcode.SET_OUTPUT_STATE: Command(DIRECT, Opcode.SET_OUTPUT_STATE, 3),
    Opcode.SET_INPUT_MODE: Command(DIRECT | NO_REPLY, Opcode.SET_INPUT_MODE, None),
    Opcode.GET_OUTPUT_STATE: Command(DIRECT, Opcode.GET_OUTPUT_STATE, 25),
    Opcode.GET_INPUT_VALUES: Command(DIRECT, Opcode.GET_INPUT_VALUES, 16),
    Opcode.RESET_INPUT_SCALED_VALUE: Command(DIRECT | NO_REPLY, Opcode.RESET_INPUT_SCALED_VALUE, None),
    Opcode.MESSAGE_WRITE: Command(DIRECT, Opcode.MESSAGE_WRITE, 3),
    Opcode.RESET_MOTOR_POSITION: Command(DIRECT | NO_REPLY, Opcode.RESET_MOTOR_POSITION, None),
    Opcode.GET_BATTERY_LEVEL: Command(DIRECT, Opcode.GET_BATTERY_LEVEL, 5),
    Opcode.KEEP_ALIVE: Command(DIRECT | NO_REPLY, Opcode.KEEP_ALIVE, None),
    Opcode.GET_VERSION: Command(SYSTEM, Opcode.GET_VERSION, 7),
    Opcode.SET_BRICK_NAME: Command(SYSTEM, Opcode.SET_BRICK_NAME, 3),
    Opcode.GET_DEVICE_INFO: Command(SYSTEM, Opcode.GET_DEVICE_INFO, 33),
}

_OUTPUT_STATE = struct.Struct("<BbBBbBIiii")
_INPUT_VALUES = struct.Struct("<BBBBBHHhh")
_DEVICE_INFO = struct.Struct("<15s7sII")

def header(opcode: Opcode) -> bytes:
    cmd = COMMANDS[opcode]
    return bytes([cmd.command_type, cmd.opcode])

def _check_range(name: str, value: int, valid) -> int:
    if value not in valid:
        raise ValidationError(f"{name} out of range: {value}")
    return int(value)

def _check_enum(enum_cls, value) -> int:
    try:
        member = enum_cls(value)
    except (ValueError, TypeError):
        raise ValidationError(f"Invalid {enum_cls.__name__}: {value!r}") from None
    # IntFlag accepts undefined bits, reject them here
    if issubclass(enum_cls, IntFlag):
        known = 0
        for flag in enum_cls:
            known |= flag.value
        if int(member) & ~known:
            raise ValidationError(f"Invalid {enum_cls.__name__}: {value!r}")
    return int(member)

def _check_sensor_port(port: int) -> int:
    return _check_range("Sensor port", port, SENSOR_PORTS)

def _check_motor_port(port: int, allow_all: bool = False) -> int:
    if allow_all and port == ALL_MOTORS:
        return port
    return _check_range("Motor port", port, MOTOR_PORTS)

def _ascii(text: str, strict: bool) -> bytes:
    try:
        return text.encode("ascii")
    except UnicodeEncodeError as e:
        if strict:
            raise ValidationError(f"Not an ASCII string: {text!r}") from e
        return text.encode("ascii", errors="replace")

def filename_buffer(name: str) -> bytes:
    """Zero-padded 20-byte filename; names over 19 characters are rejected."""
    if len(name) > MAX_FILENAME_LENGTH:
        raise ValidationError(f"Name too long: {len(name)} > {MAX_FILENAME_LENGTH} characters")
    return _ascii(name, strict=True).ljust(FILENAME_SIZE, b"\x00")

def decode_string(data: bytes) -> str:
    """Decodes the bytes before the first zero byte."""
    end = data.find(b"\x00")
    if end >= 0:
        data = data[:end]
    return data.decode("ascii", errors="replace")

def decode_enum(enum_cls, value: int):
    try:
        return enum_cls(value)
    except ValueError:
        raise ResponseDecodeError(f"Unknown {enum_cls.__name__} value 0x{value:02X}") from None

def decode_flags(flag_cls, value: int):
    result = flag_cls(0)
    remaining = value
    for member in flag_cls:
        if member.value and value & member.value == member.value:
            result |= member
            remaining &= ~member.value
    if remaining:
        raise ResponseDecodeError(f"Unknown {flag_cls.__name__} bits 0x{remaining:02X} in 0x{value:02X}")
    return result

def encode_keep_alive() -> bytes:
    return header(Opcode.KEEP_ALIVE)

def encode_get_device_info() -> bytes:
    return header(Opcode.GET_DEVICE_INFO)

def encode_get_version() -> bytes:
    return header(Opcode.GET_VERSION)

def encode_get_battery_level() -> bytes:
    return header(Opcode.GET_BATTERY_LEVEL)

def encode_set_brick_name(name: str) -> bytes:
    """Names longer than 15 characters are truncated, never rejected."""
    truncated = _ascii(name[:MAX_NAME_LENGTH], strict=False)
    return header(Opcode.SET_BRICK_NAME) + truncated.ljust(BRICK_NAME_SIZE, b"\x00")

def encode_play_tone(frequency: int, duration_ms: int) -> bytes:
    frequency = _check_range("Frequency", frequency, range(0x10000))
    duration_ms = _check_range("Duration", duration_ms, range(0x10000))
    return header(Opcode.PLAY_TONE) + struct.pack("<HH", frequency, duration_ms)

def encode_set_input_mode(port: int, kind: SensorKind, mode: SensorMode) -> bytes:
    port = _check_sensor_port(port)
    # a mask for the slope bits, not a mode
    if mode == SensorMode.SLOPE_MASK:
        raise ValidationError("SLOPE_MASK is not a sensor mode")
    return header(Opcode.SET_INPUT_MODE) + bytes([port, _check_enum(SensorKind, kind), _check_enum(SensorMode, mode)])

def encode_get_input_values(port: int) -> bytes:
    return header(Opcode.GET_INPUT_VALUES) + bytes([_check_sensor_port(port)])

def encode_reset_input_scaled_value(port: int) -> bytes:
    return header(Opcode.RESET_INPUT_SCALED_VALUE) + bytes([_check_sensor_port(port)])

def encode_set_output_state(port: int, power: int, mode: OutputMode, regulation: RegulationMode,
                            turn: int, run: RunState, limit: int) -> bytes:
    port = _check_motor_port(port, allow_all=True)
    power = _check_range("Power", power, range(-MAX_POWER, MAX_POWER + 1))
    turn = _check_range("Turn ratio", turn, range(-100, 101))
    limit = _check_range("Tacho limit", limit, range(0x100000000))
    return header(Opcode.SET_OUTPUT_STATE) + struct.pack(
        "<BbBBbBI", port, power, _check_enum(OutputMode, mode), _check_enum(RegulationMode, regulation),
        turn, _check_enum(RunState, run), limit)

def encode_get_output_state(port: int) -> bytes:
    return header(Opcode.GET_OUTPUT_STATE) + bytes([_check_motor_port(port)])

def encode_reset_motor_position(port: int, relative: bool) -> bytes:
    port = _check_motor_port(port, allow_all=True)
    return header(Opcode.RESET_MOTOR_POSITION) + bytes([port, 1 if relative else 0])

def encode_message_write(mailbox: int, text: str) -> bytes:
    """Messages longer than 59 characters are truncated, never rejected."""
    mailbox = _check_range("Mailbox", mailbox, MAILBOXES)
    message = _ascii(text[:MAX_MESSAGE_LENGTH], strict=False)
    return header(Opcode.MESSAGE_WRITE) + bytes([mailbox, len(message) + 1]) + message + b"\x00"

def encode_start_program(name: str) -> bytes:
    return header(Opcode.START_PROGRAM) + filename_buffer(name)

def encode_stop_program() -> bytes:
    return header(Opcode.STOP_PROGRAM)

def decode_device_info(body: bytes) -> DeviceInfo:
    name, address, signal, memory = _DEVICE_INFO.unpack(body)
    return DeviceInfo(name=decode_string(name), bt_address=address, signal=signal, memory=memory)

def decode_version(body: bytes) -> VersionInfo:
    def major_minor(major, minor):
        return float(f"{major}.{minor}")

    return VersionInfo(protocol=major_minor(body[0], body[1]),
                       firmware=major_minor(body[2], body[3]))

def decode_battery_level(body: bytes) -> float:
    """Battery voltage in volts."""
    (millivolts,) = struct.unpack("<H", body)
    return millivolts / 1000.0

def decode_input_values(body: bytes) -> InputValue:
    _port, valid, calibrated, kind, mode, raw, normalized, scaled, calibrated_value = _INPUT_VALUES.unpack(body)
    return InputValue(is_valid=valid == 1,
                      is_calibrated=calibrated == 1,
                      kind=decode_enum(SensorKind, kind),
                      mode=decode_enum(SensorMode, mode),
                      raw=raw,
                      normalized=normalized,
                      scaled=scaled,
                      calibrated=calibrated_value)

def decode_output_state(body: bytes) -> OutputState:
    (_port, power, mode, regulation, turn, run,
     limit, tacho_count, block_count, rotation_count) = _OUTPUT_STATE.unpack(body)
    return OutputState(power=power,
                       mode=decode_flags(OutputMode, mode),
                       regulation=decode_enum(RegulationMode, regulation),
                       turn=turn,
                       run=decode_flags(RunState, run),
                       limit=limit,
                       tacho_count=tacho_count,
                       block_count=block_count,
                       rotation_count=rotation_count)
