from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Protocol

from core.logger import log_event
from core.state import DeviceKind, DeviceState
from interview_hub.media.errors import (
    DeviceUnavailableError,
    MediaError,
    PermissionDeniedError,
    classify_media_error,
    is_permission_denial,
    no_device_message,
    user_message,
)
from interview_hub.system_metrics import increment_metric

logger = logging.getLogger("app.media.negotiator")

NotifyFn = Callable[[str, str], Any]

_INPUT_KINDS = {
    DeviceKind.CAMERA: "videoinput",
    DeviceKind.MICROPHONE: "audioinput",
}


class MediaStream(Protocol):
    def stop(self) -> None:
        ...


class MediaPlatform(Protocol):
    """Browser-side media access: permission probe and device listing."""

    async def request_access(self, kind: DeviceKind) -> MediaStream:
        ...

    async def enumerate_devices(self) -> list[Any]:
        ...


class DeviceControl(Protocol):
    async def enable(self) -> None:
        ...

    async def disable(self) -> None:
        ...


@dataclass
class NegotiatorMessage:
    kind: DeviceKind
    level: str
    category: str
    text: str


def _device_kind_of(device: Any) -> str:
    if isinstance(device, dict):
        return str(device.get("kind") or "")
    return str(getattr(device, "kind", "") or "")


class DeviceNegotiator:
    """Per-call camera/microphone enable state machine.

    Toggles for one device class run one at a time, in the order issued.
    Camera and microphone are independent of each other.
    """

    def __init__(self, call, platform: MediaPlatform, notify: NotifyFn | None = None, session_id: str = ""):
        self._call = call
        self._platform = platform
        self._notify = notify
        self._session_id = str(session_id or getattr(call, "id", "") or "")
        self._states = {kind: DeviceState.DISABLED for kind in DeviceKind}
        self._locks = {kind: asyncio.Lock() for kind in DeviceKind}
        self._closed = False
        self.last_error: dict[DeviceKind, MediaError | None] = {kind: None for kind in DeviceKind}
        self.messages: list[NegotiatorMessage] = []

    @property
    def closed(self) -> bool:
        return self._closed

    def state(self, kind: DeviceKind) -> DeviceState:
        return self._states[DeviceKind(kind)]

    def snapshot(self) -> dict[str, str]:
        view = {}
        for kind, state in self._states.items():
            if state == DeviceState.REQUESTING:
                view[kind.value] = "pending"
            elif state == DeviceState.ENABLED:
                view[kind.value] = "enabled"
            else:
                view[kind.value] = "disabled"
        return view

    def _control(self, kind: DeviceKind) -> DeviceControl:
        return getattr(self._call, kind.value)

    async def _emit(self, kind: DeviceKind, level: str, category: str, text: str) -> None:
        self.messages.append(NegotiatorMessage(kind=kind, level=level, category=category, text=text))
        if self._notify is None:
            return
        result = self._notify(level, text)
        if inspect.isawaitable(result):
            await result

    async def _fail(self, kind: DeviceKind, error: MediaError, text: str) -> DeviceState:
        if self._closed:
            return self._states[kind]
        self._states[kind] = DeviceState.DISABLED
        self.last_error[kind] = error
        increment_metric("device_enable_failures")
        log_event("media", "device_enable_failed", self._session_id, device=kind.value, category=error.category)
        await self._emit(kind, "error", error.category, text)
        return self._states[kind]

    async def toggle(self, kind: DeviceKind, enabled: bool) -> DeviceState:
        kind = DeviceKind(kind)
        async with self._locks[kind]:
            if self._closed:
                logger.info("toggle ignored after close | call=%s device=%s", self._session_id, kind.value)
                return self._states[kind]
            if enabled:
                return await self._enable(kind)
            return await self._disable(kind)

    async def initial_setup(self) -> dict[str, str]:
        # camera starts off, microphone starts on
        await asyncio.gather(
            self.toggle(DeviceKind.CAMERA, False),
            self.toggle(DeviceKind.MICROPHONE, True),
        )
        return self.snapshot()

    async def _disable(self, kind: DeviceKind) -> DeviceState:
        try:
            await self._control(kind).disable()
        except Exception as exc:
            logger.error("Error disabling %s | call=%s err=%s", kind.value, self._session_id, exc)
            if not self._closed:
                self._states[kind] = DeviceState.DISABLED
                await self._emit(kind, "error", "disable_failed", f"Failed to disable {kind.value}")
            return self._states[kind]
        if not self._closed:
            self._states[kind] = DeviceState.DISABLED
        return self._states[kind]

    async def _enable(self, kind: DeviceKind) -> DeviceState:
        if self._states[kind] == DeviceState.ENABLED:
            return self._states[kind]

        self._states[kind] = DeviceState.REQUESTING
        self.last_error[kind] = None

        # permission probe; the stream is released straight away
        try:
            stream = await self._platform.request_access(kind)
            stream.stop()
        except Exception as exc:
            if is_permission_denial(exc):
                error = PermissionDeniedError(str(exc))
                return await self._fail(kind, error, user_message(error, kind))
            logger.info("permission probe failed, continuing | device=%s err=%s", kind.value, exc)

        try:
            devices = await self._platform.enumerate_devices()
            if not any(_device_kind_of(device) == _INPUT_KINDS[kind] for device in devices or []):
                error = DeviceUnavailableError(f"no {_INPUT_KINDS[kind]} device")
                return await self._fail(kind, error, no_device_message(kind))

            await self._control(kind).enable()
        except Exception as exc:
            logger.error("Error enabling %s | call=%s err=%s", kind.value, self._session_id, exc)
            error = classify_media_error(exc, kind)
            return await self._fail(kind, error, user_message(error, kind))

        if self._closed:
            return self._states[kind]
        self._states[kind] = DeviceState.ENABLED
        log_event("media", "device_enabled", self._session_id, device=kind.value)
        return self._states[kind]

    def close(self) -> None:
        self._closed = True
