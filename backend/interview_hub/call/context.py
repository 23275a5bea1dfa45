from __future__ import annotations

import inspect
import logging
from typing import Any, Callable

from interview_hub.call.controller import CallLifecycleController
from interview_hub.call.directory import CallClient, get_call_by_id
from interview_hub.db.interview_store import InterviewStore
from interview_hub.media.negotiator import MediaPlatform, NotifyFn
from interview_hub.session.registry import CallSessionRegistry, call_session_registry
from interview_hub.system_metrics import set_metric

logger = logging.getLogger("app.call.context")


class CallSessionContext:
    """Long-lived clients and collaborators for one signed-in user.

    Use as ``async with CallSessionContext(...) as ctx``; every controller
    handed out is torn down when the context closes.
    """

    def __init__(
        self,
        user_id: str,
        call_client: CallClient,
        interview_store: InterviewStore,
        platform: MediaPlatform,
        notify: NotifyFn | None = None,
        navigate: Callable[[str], Any] | None = None,
        registry: CallSessionRegistry | None = None,
    ):
        self.user_id = str(user_id or "")
        self.call_client = call_client
        self.interview_store = interview_store
        self.platform = platform
        self.notify = notify
        self.navigate = navigate
        self.registry = registry or call_session_registry
        self._controllers: dict[str, CallLifecycleController] = {}
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    async def open(self) -> "CallSessionContext":
        if not self.user_id:
            raise ValueError("user_id is required to open a call session")
        self._open = True
        return self

    async def load_call(
        self,
        call_id: str,
        on_setup_complete: Callable[[], Any] | None = None,
    ) -> CallLifecycleController | None:
        """Re-derive call state from its id; None when the call is unknown."""
        if not self._open:
            raise RuntimeError("call session context is not open")

        existing = self._controllers.get(call_id)
        if existing is not None:
            self.registry.touch(call_id, self.user_id)
            return existing

        call = await get_call_by_id(self.call_client, call_id)
        if call is None:
            return None

        controller = CallLifecycleController(
            user_id=self.user_id,
            interview_store=self.interview_store,
            platform=self.platform,
            notify=self.notify,
            navigate=self.navigate,
            on_setup_complete=on_setup_complete,
        )
        controller.attach(call)
        self._controllers[call_id] = controller
        self.registry.register(call_id, self.user_id, controller)
        set_metric("call_sessions_active", float(self.registry.active_count()))
        return controller

    async def release_call(self, call_id: str) -> None:
        controller = self._controllers.pop(call_id, None)
        if controller is None:
            return
        controller.teardown()
        self.registry.mark_inactive(call_id, self.user_id)
        set_metric("call_sessions_active", float(self.registry.active_count()))

    async def close(self) -> None:
        for call_id in list(self._controllers):
            await self.release_call(call_id)

        disconnect = getattr(self.call_client, "disconnect_user", None)
        if callable(disconnect):
            try:
                result = disconnect()
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                logger.warning("call client disconnect failed | user=%s err=%s", self.user_id, exc)
        self._open = False

    async def __aenter__(self) -> "CallSessionContext":
        return await self.open()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
