from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, field_validator


class UserRole(str, Enum):
    CANDIDATE = "candidate"
    INTERVIEWER = "interviewer"


class InterviewStatus(str, Enum):
    """Known interview statuses. Stored status is an open string."""

    SCHEDULED = "scheduled"
    LIVE = "live"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class User(BaseModel):
    id: str
    clerk_id: str
    email: str
    name: str
    image: str | None = None
    role: UserRole = UserRole.CANDIDATE


class InterviewCreate(BaseModel):
    title: str
    description: str | None = None
    start_time: int
    status: str = InterviewStatus.SCHEDULED.value
    stream_call_id: str = Field(min_length=1)
    candidate_id: str
    interviewer_ids: list[str] = Field(default_factory=list)

    @field_validator("interviewer_ids")
    @classmethod
    def _dedupe_interviewers(cls, value: list[str]) -> list[str]:
        seen: list[str] = []
        for item in value or []:
            if item not in seen:
                seen.append(item)
        return seen


class Interview(InterviewCreate):
    id: str
    end_time: int | None = None

    def is_participant(self, user_id: str) -> bool:
        return bool(user_id) and (user_id == self.candidate_id or user_id in self.interviewer_ids)
