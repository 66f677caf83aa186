from dataclasses import dataclass
from enum import IntEnum, IntFlag


class SensorKind(IntEnum):
    NONE = 0x00
    SWITCH = 0x01
    TEMPERATURE = 0x02
    REFLECTION = 0x03
    ANGLE = 0x04
    LIGHT_ACTIVE = 0x05
    LIGHT_INACTIVE = 0x06
    SOUND_DB = 0x07
    SOUND_DBA = 0x08
    CUSTOM = 0x09
    LOW_SPEED = 0x0A
    LOW_SPEED_9V = 0x0B
    COLOR = 0x0D


class SensorMode(IntEnum):
    RAW = 0x00
    BOOLEAN = 0x20
    TRANSITION_COUNT = 0x40
    PERIOD_COUNTER = 0x60
    PCT_FULL_SCALE = 0x80
    CELSIUS = 0xA0
    FAHRENHEIT = 0xC0
    ANGLE_STEPS = 0xE0
    SLOPE_MASK = 0x1F


class OutputMode(IntFlag):
    NONE = 0x00
    MOTOR_ON = 0x01
    BRAKE = 0x02
    REGULATED = 0x04


class RegulationMode(IntEnum):
    IDLE = 0x00
    MOTOR_SPEED = 0x01
    MOTOR_SYNC = 0x02


class RunState(IntFlag):
    IDLE = 0x00
    RAMP_UP = 0x10
    RUNNING = 0x20
    RAMP_DOWN = 0x40


@dataclass(frozen=True)
class InputValue:
    is_valid: bool
    is_calibrated: bool
    kind: SensorKind
    mode: SensorMode
    raw: int
    normalized: int
    scaled: int
    calibrated: int


@dataclass(frozen=True)
class OutputState:
    power: int
    mode: OutputMode
    regulation: RegulationMode
    turn: int
    run: RunState
    limit: int
    tacho_count: int
    block_count: int
    rotation_count: int


@dataclass(frozen=True)
class DeviceInfo:
    name: str
    bt_address: bytes
    signal: int
    memory: int


@dataclass(frozen=True)
class VersionInfo:
    protocol: float
    firmware: float
