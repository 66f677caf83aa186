import threading
import logging
from typing import Optional, Tuple

import numpy as np

from .commands import MOTOR_PORTS, MAX_POWER
from .exceptions import NXTError, SessionClosedError, ValidationError
from .types import OutputMode, RegulationMode, RunState

logger = logging.getLogger(__name__)

POWER_SCALE = 200.0


def gesture_to_power(value: float) -> int:
    """
    Maps a control value to motor power: round(value * 200) clamped to [-100, 100].
    Non-finite values give 0.
    """
    if not np.isfinite(value):
        return 0
    return int(np.clip(np.rint(value * POWER_SCALE), -MAX_POWER, MAX_POWER))


class CoalescingCommandQueue:
    """
    Holds at most one pending power per motor port. A newer value for a port
    replaces the pending one; put() never blocks.
    """

    def __init__(self, ports=MOTOR_PORTS):
        self.ports = tuple(ports)
        self._pending = {}
        self._closed = False
        self._condition = threading.Condition()
        self.superseded = 0

    def __len__(self) -> int:
        with self._condition:
            return len(self._pending)

    @property
    def closed(self) -> bool:
        return self._closed

    def put(self, port: int, power: int) -> None:
        if port not in self.ports:
            raise ValidationError(f"Motor port out of range: {port}")
        with self._condition:
            if self._closed:
                return
            if self._pending.pop(port, None) is not None:
                self.superseded += 1
            self._pending[port] = power
            self._condition.notify()

    def get(self, timeout: Optional[float] = None) -> Optional[Tuple[int, int]]:
        """
        Waits for the oldest pending port.
        :return: (port, power), or None when the queue is closed or the timeout expires
        """
        with self._condition:
            if not self._condition.wait_for(lambda: self._pending or self._closed, timeout=timeout):
                return None
            if not self._pending:
                return None
            port = next(iter(self._pending))
            return port, self._pending.pop(port)

    def close(self) -> None:
        with self._condition:
            self._closed = True
            self._pending.clear()
            self._condition.notify_all()


class GestureDriver:
    """
    Sends queued gesture powers to the brick, one motor-on / running
    command per port, from a background worker thread.
    """

    def __init__(self, brick, left_port: int = 0, right_port: int = 2):
        self.brick = brick
        self.left_port = left_port
        self.right_port = right_port
        self.queue = CoalescingCommandQueue()
        self._worker = None

    def update(self, left: float, right: float) -> None:
        """Called by the gesture source for every tracked frame."""
        self.queue.put(self.left_port, gesture_to_power(left))
        self.queue.put(self.right_port, gesture_to_power(right))

    def drive(self, port: int, power: int) -> None:
        self.brick.set_output_state(port, power, OutputMode.MOTOR_ON, RegulationMode.IDLE,
                                    0, RunState.RUNNING, 0)

    def drain(self) -> int:
        """
        Sends every pending command from the calling thread.
        :return: number of commands sent
        """
        sent = 0
        while True:
            item = self.queue.get(timeout=0)
            if item is None:
                return sent
            self.drive(*item)
            sent += 1

    def start(self) -> None:
        if self._worker is not None:
            return
        self._worker = threading.Thread(target=self._worker_loop, daemon=True)
        self._worker.start()

    def stop(self, timeout: float = 2.0) -> None:
        self.queue.close()
        if self._worker is not None:
            self._worker.join(timeout)
            self._worker = None

    def _worker_loop(self) -> None:
        while True:
            item = self.queue.get()
            if item is None:
                return
            port, power = item
            try:
                self.drive(port, power)
            except SessionClosedError as e:
                logger.error(f"Gesture driver stopped: {e}")
                self.queue.close()
                return
            except NXTError as e:
                logger.warning(f"Motor {port} command failed: {e}")
                if e.session_fatal:
                    self.queue.close()
                    return
