# backend/core/state.py

from enum import Enum

class CallState(str, Enum):
    UNINITIALIZED = "uninitialized"
    SET_UP = "set_up"
    JOINED = "joined"
    ENDED = "ended"


class DeviceState(str, Enum):
    DISABLED = "disabled"
    REQUESTING = "requesting"
    ENABLED = "enabled"
    ERROR = "error"


class DeviceKind(str, Enum):
    CAMERA = "camera"
    MICROPHONE = "microphone"
