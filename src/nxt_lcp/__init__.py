from .interface import NXTBrick, SessionState
from .types import (SensorKind, SensorMode, OutputMode, RegulationMode, RunState,
                    InputValue, OutputState, DeviceInfo, VersionInfo)
from .gesture import GestureDriver, gesture_to_power
