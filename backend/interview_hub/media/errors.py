from __future__ import annotations

from core.state import DeviceKind


class MediaError(Exception):
    category = "unknown"


class PermissionDeniedError(MediaError):
    category = "permission"


class DeviceUnavailableError(MediaError):
    category = "not_found"


class DeviceBusyError(MediaError):
    category = "busy"


class ConstraintError(MediaError):
    category = "constraint"


class UnknownMediaError(MediaError):
    category = "unknown"


_LABELS = {
    DeviceKind.CAMERA: ("Camera", "camera", "video"),
    DeviceKind.MICROPHONE: ("Microphone", "microphone", "audio"),
}

_BUSY_HINTS = {
    DeviceKind.CAMERA: "Close other apps using the camera (Zoom, Teams, Skype, etc.)",
    DeviceKind.MICROPHONE: "Close other apps using the microphone",
}


def _error_name(exc: BaseException) -> str:
    return str(getattr(exc, "name", "") or type(exc).__name__)


def is_permission_denial(exc: BaseException) -> bool:
    message = str(exc)
    return (
        isinstance(exc, PermissionDeniedError)
        or _error_name(exc) == "NotAllowedError"
        or "permission" in message.lower()
        or "not granted" in message
    )


def classify_media_error(exc: BaseException, kind: DeviceKind) -> MediaError:
    """Map a platform or call-infrastructure failure onto the media taxonomy."""
    if isinstance(exc, MediaError):
        return exc

    name = _error_name(exc)
    message = str(exc)
    _, _, source = _LABELS[kind]

    if is_permission_denial(exc):
        return PermissionDeniedError(message)
    if name == "NotFoundError" or "NotFoundError" in message or "not found" in message:
        return DeviceUnavailableError(message)
    if (
        name == "NotReadableError"
        or "NotReadableError" in message
        or f"Could not start {source} source" in message
        or f"{source} source" in message
        or "in use" in message
    ):
        return DeviceBusyError(message)
    if name == "OverconstrainedError" or "OverconstrainedError" in message or "constraint" in message:
        return ConstraintError(message)
    return UnknownMediaError(message)


def user_message(error: MediaError, kind: DeviceKind) -> str:
    title, noun, _ = _LABELS[kind]
    if isinstance(error, PermissionDeniedError):
        return (
            f"{title} permission denied. Please allow {noun} access in your browser settings "
            "and refresh the page."
        )
    if isinstance(error, DeviceUnavailableError):
        return f"No {noun} device found. Please connect a {noun}."
    if isinstance(error, DeviceBusyError):
        return (
            f"{title} is being used by another application or is locked. Please:\n"
            f"1. {_BUSY_HINTS[kind]}\n"
            "2. Restart your browser\n"
            f"3. Check if {noun} is locked by system settings"
        )
    if isinstance(error, ConstraintError):
        return f"{title} settings are not supported. Please try different settings."
    detail = str(error) or "Unknown error"
    return (
        f"Failed to enable {noun}: {detail}. Please check your browser settings "
        f"and ensure no other apps are using the {noun}."
    )


def no_device_message(kind: DeviceKind) -> str:
    _, noun, _ = _LABELS[kind]
    return f"No {noun} found. Please connect a {noun} device."
