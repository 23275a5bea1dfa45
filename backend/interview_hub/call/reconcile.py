from __future__ import annotations

import logging

from core.logger import log_event
from interview_hub.call.directory import CallClient, get_call_by_id
from interview_hub.db.interview_store import InterviewStore
from interview_hub.models import InterviewStatus
from interview_hub.system_metrics import increment_metric

logger = logging.getLogger("app.call.reconcile")

_SETTLED = {InterviewStatus.COMPLETED.value, InterviewStatus.CANCELLED.value}


async def reconcile_ended_calls(client: CallClient, store: InterviewStore) -> int:
    """Complete interviews whose call has ended but whose record never caught up.

    Returns the number of interviews moved to completed.
    """
    reconciled = 0
    for interview in await store.list_all():
        if interview.status in _SETTLED:
            continue
        call = await get_call_by_id(client, interview.stream_call_id)
        if call is None:
            continue
        if not getattr(getattr(call, "state", None), "ended_at", None):
            continue
        try:
            await store.set_status(interview.id, InterviewStatus.COMPLETED.value)
        except Exception as exc:
            logger.error("reconcile failed | interview=%s err=%s", interview.id, exc)
            continue
        reconciled += 1
        increment_metric("calls_reconciled")
        log_event("reconcile", "interview_completed", interview.stream_call_id, interview_id=interview.id)
    return reconciled
