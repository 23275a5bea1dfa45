from __future__ import annotations

import logging

from core.logger import log_event
from interview_hub.db.interview_store import InterviewStore
from interview_hub.errors import AuthenticationError, AuthorizationError, InterviewNotFoundError
from interview_hub.models import Interview, InterviewCreate, InterviewStatus
from interview_hub.system_metrics import increment_metric

logger = logging.getLogger("app.scheduling")


def _require_identity(actor_id: str | None) -> str:
    if not actor_id:
        raise AuthenticationError("User is not authenticated")
    return actor_id


async def list_all(store: InterviewStore, actor_id: str | None) -> list[Interview]:
    _require_identity(actor_id)
    return await store.list_all()


async def list_mine(store: InterviewStore, actor_id: str | None) -> list[Interview]:
    candidate_id = _require_identity(actor_id)
    return await store.list_mine(candidate_id)


async def find_by_call_id(store: InterviewStore, call_id: str) -> Interview | None:
    return await store.find_by_call_id(call_id)


async def create_interview(store: InterviewStore, actor_id: str | None, fields: InterviewCreate) -> Interview:
    _require_identity(actor_id)
    interview = await store.create(fields)
    increment_metric("interviews_created")
    log_event(
        "scheduling",
        "interview_created",
        interview.stream_call_id,
        interview_id=interview.id,
        status=interview.status,
        interviewers=len(interview.interviewer_ids),
    )
    return interview


async def transition_status(
    store: InterviewStore,
    interview_id: str,
    status: str,
    actor_id: str | None,
) -> Interview:
    """Move an interview to ``status`` on behalf of one of its participants."""
    actor = _require_identity(actor_id)
    current = await store.get(interview_id)
    if current is None:
        raise InterviewNotFoundError(interview_id)
    if not current.is_participant(actor):
        logger.warning("status change refused | interview=%s actor=%s", interview_id, actor)
        raise AuthorizationError("Only interview participants may change its status")

    updated = await store.set_status(interview_id, status)
    if updated.status == InterviewStatus.COMPLETED.value and current.status != updated.status:
        increment_metric("interviews_completed")
    log_event(
        "scheduling",
        "status_changed",
        updated.stream_call_id,
        interview_id=interview_id,
        previous=current.status,
        status=updated.status,
        end_time=updated.end_time,
    )
    return updated
