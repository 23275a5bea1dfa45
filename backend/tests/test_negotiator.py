import asyncio

import pytest

from core.state import DeviceKind, DeviceState
from fakes import FakeCall, FakePlatform, NamedError, Recorder
from interview_hub.media.errors import (
    ConstraintError,
    DeviceBusyError,
    DeviceUnavailableError,
    PermissionDeniedError,
    UnknownMediaError,
    classify_media_error,
)
from interview_hub.media.negotiator import DeviceNegotiator


def _negotiator(call=None, platform=None):
    recorder = Recorder()
    call = call or FakeCall()
    platform = platform or FakePlatform()
    return DeviceNegotiator(call, platform, notify=recorder.notify), call, platform, recorder


@pytest.mark.asyncio
async def test_enable_camera_runs_probe_enumeration_and_enable():
    negotiator, call, platform, recorder = _negotiator()

    state = await negotiator.toggle(DeviceKind.CAMERA, True)

    assert state == DeviceState.ENABLED
    assert call.camera.enabled is True
    assert platform.probe_calls == ["camera"]
    assert all(stream.stopped for stream in platform.streams)
    assert platform.enumerate_calls == 1
    assert recorder.toasts == []
    assert negotiator.snapshot() == {"camera": "enabled", "microphone": "disabled"}


@pytest.mark.asyncio
async def test_denied_permission_reverts_and_reports_once():
    platform = FakePlatform(probe_errors={"camera": NamedError("NotAllowedError", "Permission denied")})
    negotiator, call, platform, recorder = _negotiator(platform=platform)

    state = await negotiator.toggle(DeviceKind.CAMERA, True)

    assert state == DeviceState.DISABLED
    assert call.camera.enable_calls == 0
    assert platform.enumerate_calls == 0
    errors = [text for level, text in recorder.toasts if level == "error"]
    assert len(errors) == 1
    assert errors[0].startswith("Camera permission denied")
    assert isinstance(negotiator.last_error[DeviceKind.CAMERA], PermissionDeniedError)

    # a second toggle walks the whole sequence again
    platform.probe_errors.clear()
    assert await negotiator.toggle(DeviceKind.CAMERA, True) == DeviceState.ENABLED
    assert platform.probe_calls == ["camera", "camera"]
    assert len(recorder.toasts) == 1


@pytest.mark.asyncio
async def test_non_permission_probe_error_continues():
    platform = FakePlatform(probe_errors={"microphone": NamedError("AbortError", "probe aborted")})
    negotiator, call, platform, recorder = _negotiator(platform=platform)

    assert await negotiator.toggle(DeviceKind.MICROPHONE, True) == DeviceState.ENABLED
    assert call.microphone.enabled is True
    assert recorder.toasts == []


@pytest.mark.asyncio
async def test_missing_device_reports_no_device():
    platform = FakePlatform(devices=[{"kind": "audioinput"}])
    negotiator, call, platform, recorder = _negotiator(platform=platform)

    assert await negotiator.toggle(DeviceKind.CAMERA, True) == DeviceState.DISABLED
    assert call.camera.enable_calls == 0
    assert recorder.toasts == [("error", "No camera found. Please connect a camera device.")]
    assert isinstance(negotiator.last_error[DeviceKind.CAMERA], DeviceUnavailableError)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error, expected_type, prefix",
    [
        (NamedError("NotAllowedError", "denied"), PermissionDeniedError, "Microphone permission denied"),
        (NamedError("NotFoundError", "gone"), DeviceUnavailableError, "No microphone device found"),
        (NamedError("NotReadableError", "Could not start audio source"), DeviceBusyError, "Microphone is being used"),
        (NamedError("OverconstrainedError", "bad constraint"), ConstraintError, "Microphone settings are not supported"),
        (RuntimeError("socket hang up"), UnknownMediaError, "Failed to enable microphone: socket hang up"),
    ],
)
async def test_enable_failures_are_classified(error, expected_type, prefix):
    call = FakeCall()
    call.microphone.enable_error = error
    negotiator, call, platform, recorder = _negotiator(call=call)

    assert await negotiator.toggle(DeviceKind.MICROPHONE, True) == DeviceState.DISABLED
    assert isinstance(negotiator.last_error[DeviceKind.MICROPHONE], expected_type)
    assert len(recorder.toasts) == 1
    assert recorder.toasts[0][1].startswith(prefix)


def test_classify_by_message_when_name_is_missing():
    assert isinstance(classify_media_error(Exception("camera in use"), DeviceKind.CAMERA), DeviceBusyError)
    assert isinstance(classify_media_error(Exception("Could not start video source"), DeviceKind.CAMERA), DeviceBusyError)
    assert isinstance(classify_media_error(Exception("permission not granted"), DeviceKind.CAMERA), PermissionDeniedError)
    assert isinstance(classify_media_error(Exception("device not found"), DeviceKind.CAMERA), DeviceUnavailableError)


@pytest.mark.asyncio
async def test_disable_skips_permission_sequence():
    negotiator, call, platform, recorder = _negotiator()
    await negotiator.toggle(DeviceKind.CAMERA, True)

    assert await negotiator.toggle(DeviceKind.CAMERA, False) == DeviceState.DISABLED
    assert call.camera.disable_calls == 1
    assert platform.probe_calls == ["camera"]
    assert call.camera.enabled is False


@pytest.mark.asyncio
async def test_disable_failure_is_reported_and_settles_disabled():
    negotiator, call, _, recorder = _negotiator()
    await negotiator.toggle(DeviceKind.CAMERA, True)
    call.camera.disable_error = RuntimeError("track stuck")

    assert await negotiator.toggle(DeviceKind.CAMERA, False) == DeviceState.DISABLED
    assert recorder.toasts == [("error", "Failed to disable camera")]
    assert negotiator.messages[-1].category == "disable_failed"


@pytest.mark.asyncio
async def test_toggles_for_one_device_are_serialized_in_order():
    call = FakeCall()
    call.camera.delay = 0.01
    negotiator, call, platform, recorder = _negotiator(call=call)

    results = await asyncio.gather(
        negotiator.toggle(DeviceKind.CAMERA, True),
        negotiator.toggle(DeviceKind.CAMERA, False),
        negotiator.toggle(DeviceKind.CAMERA, True),
    )

    assert results == [DeviceState.ENABLED, DeviceState.DISABLED, DeviceState.ENABLED]
    assert call.camera.events == ["enable:start", "enable:done", "disable", "enable:start", "enable:done"]
    assert negotiator.state(DeviceKind.CAMERA) == DeviceState.ENABLED


@pytest.mark.asyncio
async def test_device_classes_progress_independently():
    call = FakeCall()
    call.camera.delay = 0.05
    negotiator, call, platform, recorder = _negotiator(call=call)

    camera_task = asyncio.create_task(negotiator.toggle(DeviceKind.CAMERA, True))
    await asyncio.sleep(0.01)
    assert negotiator.snapshot()["camera"] == "pending"

    assert await negotiator.toggle(DeviceKind.MICROPHONE, True) == DeviceState.ENABLED
    assert negotiator.snapshot()["camera"] == "pending"
    assert await camera_task == DeviceState.ENABLED


@pytest.mark.asyncio
async def test_close_discards_in_flight_result():
    call = FakeCall()
    call.camera.delay = 0.02
    call.camera.enable_error = NamedError("NotReadableError", "in use")
    negotiator, call, platform, recorder = _negotiator(call=call)

    task = asyncio.create_task(negotiator.toggle(DeviceKind.CAMERA, True))
    await asyncio.sleep(0.005)
    negotiator.close()
    await task

    assert call.camera.enable_calls == 1
    assert recorder.toasts == []
    assert negotiator.messages == []
    assert await negotiator.toggle(DeviceKind.CAMERA, True) == negotiator.state(DeviceKind.CAMERA)
    assert call.camera.enable_calls == 1


@pytest.mark.asyncio
async def test_initial_setup_turns_microphone_on_and_camera_off():
    negotiator, call, platform, recorder = _negotiator()

    snapshot = await negotiator.initial_setup()

    assert snapshot == {"camera": "disabled", "microphone": "enabled"}
    assert call.camera.disable_calls == 1
    assert call.microphone.enabled is True
