import logging
import threading
from enum import Enum
from . import commands
from .commands import Opcode, COMMANDS, SENSOR_PORTS, MOTOR_PORTS
from .exceptions import NXTError, SessionBusyError, SessionClosedError
from .frame_codec import FrameCodec
from .serial_interface import SerialInterface, READ_TIMEOUT_S, WRITE_TIMEOUT_S
from .mock_serial_interface import MockSerialInterface
from .types import (SensorKind, SensorMode, OutputMode, RegulationMode, RunState,
                    InputValue, OutputState, DeviceInfo, VersionInfo)

logger = logging.getLogger(__name__)

class SessionState(Enum):
    DISCONNECTED = 'disconnected'
    IDLE = 'idle'
    AWAITING_RESPONSE = 'awaiting_response'
    DESYNCED = 'desynced'
    CLOSED = 'closed'

class NXTBrick:
    """
    One LCP session with an NXT brick over a serial link.

    Commands are synchronous and half-duplex: every method writes one frame and,
    where the command has a reply, blocks until that reply has been read.
    Calls from several threads are serialized on the session lock.
    """

    def __init__(self, show_communication: bool = True, mock: bool = False,
                 read_timeout: float = READ_TIMEOUT_S, write_timeout: float = WRITE_TIMEOUT_S):
        self.serial = None
        self.codec = None
        self.state = SessionState.DISCONNECTED
        self.show_communication = show_communication
        self.mock = mock
        self.read_timeout = read_timeout
        self.write_timeout = write_timeout

        # held for a whole command, and for the whole shutdown sequence
        self._lock = threading.RLock()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()
        return False

    @property
    def is_connected(self) -> bool:
        return self.state in (SessionState.IDLE, SessionState.AWAITING_RESPONSE)

    def connect(self, port: str, baud_rate: int = 115200, reconnect_timeout: float = 0) -> None:
        """
        Opens a new session on the given port. A previous session on this object is shut down first.
        :param port: serial port of the brick, e.g. 'COM3' or '/dev/rfcomm0'
        :param reconnect_timeout: seconds to keep retrying the open, 0 for a single attempt
        """
        with self._lock:
            if self.serial is not None: self.disconnect()

            interface_cls = MockSerialInterface if self.mock else SerialInterface
            self.serial = interface_cls(port, baud_rate,
                                        command_msg_callback=self.command_msg_callback,
                                        read_timeout=self.read_timeout,
                                        write_timeout=self.write_timeout,
                                        reconnect_timeout=reconnect_timeout)
            self.codec = FrameCodec(self.serial)
            self.state = SessionState.IDLE

    def disconnect(self) -> None:
        """
        Returns the brick to a safe state and closes the link: all sensor ports to NONE,
        all motors to zero power, then close. Every step is attempted even if earlier ones fail.
        """
        with self._lock:
            if self.serial is None:
                return

            try:
                for port in SENSOR_PORTS:
                    self._cleanup_step(self.set_input_mode, port, SensorKind.NONE, SensorMode.RAW)
                for port in MOTOR_PORTS:
                    self._cleanup_step(self.set_output_state, port, 0, OutputMode.MOTOR_ON,
                                       RegulationMode.IDLE, 0, RunState.IDLE, 0)
            finally:
                self._close()
                logger.info("Disconnected")

    def _cleanup_step(self, method, port, *args) -> None:
        try:
            method(port, *args)
        except Exception as e:
            logger.warning(f"Cleanup {method.__name__}({port}) failed: {e}")

    def _close(self) -> None:
        if self.serial is not None:
            self.serial.close()
        self.serial = None
        self.codec = None
        self.state = SessionState.CLOSED

    def command_msg_callback(self, data: bytes, is_reply: bool) -> None:
        if not self.show_communication:
            return
        logger.debug(f"{'<' if is_reply else '>'} {data.hex(' ')}")

    def _transact(self, payload: bytes) -> bytes:
        """
        Sends one command payload and reads its reply if the command has one.
        :return: the reply body, or b'' for commands without reply
        """
        with self._lock:
            if self.state == SessionState.AWAITING_RESPONSE:
                raise SessionBusyError("A command is already in flight on this session")
            if self.state != SessionState.IDLE:
                raise SessionClosedError(f"Session is {self.state.value}, open a new session")

            command = COMMANDS[Opcode(payload[1])]
            name = command.opcode.name
            self.state = SessionState.AWAITING_RESPONSE
            try:
                self.codec.send(payload)
                body = b""
                if command.expects_reply:
                    body = self.codec.expect(command.opcode, command.reply_length, name)
            except Exception as e:
                # anything but a device-reported error leaves the link in an unknown state
                if not isinstance(e, NXTError) or e.session_fatal:
                    self.state = SessionState.DESYNCED
                    logger.error(f"{name} failed, link is out of sync and will be closed: {e}")
                    # stale bytes may be pending, no further traffic on this channel
                    self._close()
                else:
                    self.state = SessionState.IDLE
                raise
            self.state = SessionState.IDLE
            return body

    def keep_alive(self) -> None:
        self._transact(commands.encode_keep_alive())

    def get_device_info(self) -> DeviceInfo:
        return commands.decode_device_info(self._transact(commands.encode_get_device_info()))

    def get_version(self) -> VersionInfo:
        return commands.decode_version(self._transact(commands.encode_get_version()))

    def get_battery_level(self) -> float:
        """
        :return: battery voltage in volts
        """
        return commands.decode_battery_level(self._transact(commands.encode_get_battery_level()))

    def set_brick_name(self, name: str) -> None:
        """
        Renames the brick. Names longer than 15 characters are truncated.
        """
        self._transact(commands.encode_set_brick_name(name))

    def play_tone(self, frequency: int, duration_ms: int) -> None:
        self._transact(commands.encode_play_tone(frequency, duration_ms))

    def set_input_mode(self, port: int, kind: SensorKind, mode: SensorMode) -> None:
        self._transact(commands.encode_set_input_mode(port, kind, mode))

    def get_input_values(self, port: int) -> InputValue:
        return commands.decode_input_values(self._transact(commands.encode_get_input_values(port)))

    def reset_input_scaled_value(self, port: int) -> None:
        self._transact(commands.encode_reset_input_scaled_value(port))

    def set_output_state(self, port: int, power: int, mode: OutputMode, regulation: RegulationMode,
                         turn: int, run: RunState, limit: int = 0) -> None:
        """
        Drives a motor.
        :param port: motor port 0-2, or 0xFF for all motors
        :param power: -100 to 100
        :param turn: turn ratio -100 to 100, used with RegulationMode.MOTOR_SYNC
        :param limit: tacho limit in degrees, 0 runs forever
        """
        self._transact(commands.encode_set_output_state(port, power, mode, regulation, turn, run, limit))

    def get_output_state(self, port: int) -> OutputState:
        return commands.decode_output_state(self._transact(commands.encode_get_output_state(port)))

    def reset_motor_position(self, port: int, relative: bool) -> None:
        self._transact(commands.encode_reset_motor_position(port, relative))

    def message_write(self, mailbox: int, text: str) -> None:
        """
        Writes a message to one of the 10 mailboxes of the running program.
        Messages longer than 59 characters are truncated.
        """
        self._transact(commands.encode_message_write(mailbox, text))

    def start_program(self, name: str) -> None:
        """
        :param name: program file name, at most 19 characters (e.g. 'drive.rxe')
        :raises ValidationError: name too long; nothing is sent
        """
        self._transact(commands.encode_start_program(name))

    def stop_program(self) -> None:
        self._transact(commands.encode_stop_program())
