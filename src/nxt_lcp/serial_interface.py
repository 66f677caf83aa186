import time

import logging
from typing import Optional, Callable
import serial
from .exceptions import DeviceNotFoundError, TransportError, TransportTimeoutError, SessionClosedError

logger = logging.getLogger(__name__)

READ_TIMEOUT_S = 1.5
WRITE_TIMEOUT_S = 1.5

class SerialInterface:

    def __init__(self, port: str, baud_rate: int = 115200,
                 command_msg_callback: Optional[Callable] = None,
                 read_timeout: float = READ_TIMEOUT_S,
                 write_timeout: float = WRITE_TIMEOUT_S,
                 reconnect_timeout: float = 0):
        """
        Opens the serial link to the brick.
        :param port: Serial port name (e.g., 'COM3' or '/dev/rfcomm0').
        :param baud_rate: Serial baud rate.
        :param command_msg_callback: called with (data, is_reply) for every frame on the wire
        :param read_timeout: seconds a read may block before the link is considered lost
        :param write_timeout: seconds a write may block before the link is considered lost
        :param reconnect_timeout: seconds to keep retrying the open; 0 means a single attempt
        """
        self.port = port
        self.baud_rate = baud_rate
        self.read_timeout = read_timeout
        self.write_timeout = write_timeout
        self.reconnect_timeout = reconnect_timeout
        self.serial = None  # initialized on connect

        self.command_msg_callback = command_msg_callback

        self.connect(self.reconnect_timeout)

    @property
    def is_open(self) -> bool:
        return self.serial is not None and self.serial.is_open

    def connect(self, timeout: float) -> bool:
        """
        Try to open the serial port. Retry until timeout expires.
        """
        deadline = time.time() + timeout
        logger.info(f"Connecting to port '{self.port}'...")
        while True:
            try:
                self.serial = serial.Serial(self.port, self.baud_rate,
                                            timeout=self.read_timeout,
                                            write_timeout=self.write_timeout)
                logger.info(f"Connected to '{self.port}'")
                return True
            except (serial.SerialException, OSError) as e:
                if time.time() >= deadline:
                    self.serial = None
                    raise DeviceNotFoundError(f"Could not connect to port {self.port}: {e}") from e
                time.sleep(0.2)

    def write(self, data: bytes) -> None:
        """
        Writes a complete frame and blocks until it is flushed to the wire.
        :raises TransportError: if the port fails or the write times out
        """
        if not self.is_open:
            raise SessionClosedError('Serial not open')

        if self.command_msg_callback:
            self.command_msg_callback(data, False)

        try:
            self.serial.write(data)
            self.serial.flush()
        except serial.SerialTimeoutException as e:
            logger.warning("Write timeout, device didn't accept data in time")
            raise TransportTimeoutError(f"Write of {len(data)} bytes timed out") from e
        except (serial.SerialException, OSError) as e:
            logger.error(f"Lost connection: {e}")
            raise TransportError(f"Write of {len(data)} bytes failed: {e}") from e

    def read(self, size: int) -> bytes:
        """
        Reads exactly size bytes.
        :raises TransportTimeoutError: if fewer bytes arrive before the read timeout
        :raises TransportError: if the port fails
        """
        if not self.is_open:
            raise SessionClosedError('Serial not open')

        try:
            data = self.serial.read(size)
        except (serial.SerialException, OSError) as e:
            logger.error(f"Lost connection: {e}")
            raise TransportError(f"Read of {size} bytes failed: {e}") from e
        if len(data) < size:
            logger.warning("Read timeout, device didn't reply in time")
            raise TransportTimeoutError(f"Read timeout, expected {size} bytes, got {len(data)}")

        if self.command_msg_callback:
            self.command_msg_callback(data, True)
        return data

    def close(self):
        """Closes the serial port."""
        try:
            if self.serial and self.serial.is_open:
                self.serial.close()
        except (serial.SerialException, OSError) as e:
            logger.warning(f"Error closing port: {e}")
        finally:
            self.serial = None
