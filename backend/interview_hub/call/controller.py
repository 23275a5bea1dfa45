from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from core.logger import log_event
from core.state import CallState
from interview_hub.call.directory import call_owner_id
from interview_hub.db.interview_store import InterviewStore
from interview_hub.errors import CallNotEndableError
from interview_hub.media.negotiator import DeviceNegotiator, MediaPlatform, NotifyFn
from interview_hub.models import Interview, InterviewStatus
from interview_hub.scheduling.service import transition_status
from interview_hub.system_metrics import increment_metric

logger = logging.getLogger("app.call.controller")

HOME_PATH = "/"


async def _maybe_await(fn: Callable | None, *args) -> Any:
    if fn is None:
        return None
    result = fn(*args)
    if inspect.isawaitable(result):
        return await result
    return result


@dataclass
class EndCallOutcome:
    call_ended: bool = False
    status_updated: bool = False
    interview: Interview | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.call_ended and self.status_updated


class CallLifecycleController:
    """Drives one call through set-up, join and end for the local participant."""

    def __init__(
        self,
        user_id: str,
        interview_store: InterviewStore,
        platform: MediaPlatform,
        notify: NotifyFn | None = None,
        navigate: Callable[[str], Any] | None = None,
        on_setup_complete: Callable[[], Any] | None = None,
    ):
        self.user_id = str(user_id or "")
        self.state = CallState.UNINITIALIZED
        self.call = None
        self.negotiator: DeviceNegotiator | None = None
        self._store = interview_store
        self._platform = platform
        self._notify = notify
        self._navigate = navigate
        self._on_setup_complete = on_setup_complete
        self._lock = asyncio.Lock()

    @property
    def call_id(self) -> str:
        return str(getattr(self.call, "id", "") or "")

    def attach(self, call) -> DeviceNegotiator:
        if self.state != CallState.UNINITIALIZED:
            raise RuntimeError(f"call already attached (state={self.state.value})")
        self.call = call
        self.negotiator = DeviceNegotiator(call, self._platform, notify=self._notify, session_id=self.call_id)
        self.state = CallState.SET_UP
        log_event("call", "set_up", self.call_id, user_id=self.user_id)
        return self.negotiator

    async def join(self) -> bool:
        async with self._lock:
            if self.state != CallState.SET_UP:
                logger.info("join skipped | call=%s state=%s", self.call_id, self.state.value)
                return False
            await self.call.join()
            self.state = CallState.JOINED
            log_event("call", "joined", self.call_id, user_id=self.user_id)
        await _maybe_await(self._on_setup_complete)
        return True

    def is_owner(self, participant_id: str | None = None) -> bool:
        if self.call is None:
            return False
        participant = self.user_id if participant_id is None else str(participant_id or "")
        return participant == call_owner_id(self.call)

    async def backing_interview(self) -> Interview | None:
        if self.call is None:
            return None
        return await self._store.find_by_call_id(self.call_id)

    async def can_end_call(self, participant_id: str | None = None) -> bool:
        if self.call is None or self.is_owner(participant_id):
            return False
        return await self.backing_interview() is not None

    async def end_call(self) -> EndCallOutcome:
        """End the call, then mark its interview completed.

        Both steps are attempted. Any failure is reported, and the user is
        sent home either way.
        """
        async with self._lock:
            if self.state not in (CallState.JOINED, CallState.ENDED):
                raise CallNotEndableError(f"call is not joined (state={self.state.value})")
            if self.is_owner():
                raise CallNotEndableError("call owner cannot end the call from here")

            outcome = EndCallOutcome()
            try:
                interview = await self.backing_interview()
            except Exception as exc:
                # lookup failed: still end the call, the reconcile sweep completes the record later
                logger.error("interview lookup failed | call=%s err=%s", self.call_id, exc)
                outcome.errors.append(f"find_by_call_id: {exc}")
                interview = None
            else:
                if interview is None:
                    raise CallNotEndableError(f"no interview scheduled for call {self.call_id}")
            outcome.interview = interview

            try:
                await self.call.end_call()
                outcome.call_ended = True
                increment_metric("calls_ended")
            except Exception as exc:
                logger.error("end_call failed | call=%s err=%s", self.call_id, exc)
                outcome.errors.append(f"end_call: {exc}")

            if interview is not None:
                try:
                    outcome.interview = await transition_status(
                        self._store,
                        interview.id,
                        InterviewStatus.COMPLETED.value,
                        self.user_id,
                    )
                    outcome.status_updated = True
                except Exception as exc:
                    logger.error("status update failed | call=%s interview=%s err=%s", self.call_id, interview.id, exc)
                    outcome.errors.append(f"set_status: {exc}")

            self.state = CallState.ENDED
            if self.negotiator is not None:
                self.negotiator.close()

        try:
            if outcome.ok:
                await _maybe_await(self._notify, "success", "Meeting ended successfully")
            else:
                increment_metric("call_end_failures")
                # call infrastructure and interview record may now disagree
                log_event(
                    "call",
                    "end_partial_failure",
                    self.call_id,
                    level=logging.WARNING,
                    interview_id=interview.id if interview is not None else None,
                    call_ended=outcome.call_ended,
                    status_updated=outcome.status_updated,
                    errors=outcome.errors,
                )
                await _maybe_await(self._notify, "error", "Failed to end meeting")
        finally:
            await _maybe_await(self._navigate, HOME_PATH)
        return outcome

    def teardown(self) -> None:
        if self.negotiator is not None:
            self.negotiator.close()
