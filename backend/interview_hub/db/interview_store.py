from __future__ import annotations

import asyncio
import json
import time
import uuid
from typing import Callable, Protocol

from core.config import REDIS_URL, USE_REDIS_STORE
from interview_hub.errors import DuplicateCallIdError, InterviewNotFoundError, StorageError
from interview_hub.models import Interview, InterviewCreate, InterviewStatus

Clock = Callable[[], int]

COMPLETED = InterviewStatus.COMPLETED.value


def now_ms() -> int:
    return int(time.time() * 1000)


def apply_status(current: Interview, status: str, now: int) -> dict:
    """Fields to write for a status transition.

    end_time is stamped once, on the first move into completed, and cleared on
    any move out of it.
    """
    status = str(status or "").strip()
    if status == COMPLETED:
        if current.status == COMPLETED and current.end_time is not None:
            return {"status": status, "end_time": current.end_time}
        return {"status": status, "end_time": now}
    return {"status": status, "end_time": None}


class InterviewStore(Protocol):
    async def list_all(self) -> list[Interview]:
        ...

    async def list_mine(self, candidate_id: str) -> list[Interview]:
        ...

    async def get(self, interview_id: str) -> Interview | None:
        ...

    async def find_by_call_id(self, call_id: str) -> Interview | None:
        ...

    async def create(self, fields: InterviewCreate) -> Interview:
        ...

    async def set_status(self, interview_id: str, status: str) -> Interview:
        ...


class LocalInterviewStore:
    def __init__(self, clock: Clock | None = None):
        self._lock = asyncio.Lock()
        self._clock = clock or now_ms
        self._interviews: dict[str, Interview] = {}
        self._by_call_id: dict[str, str] = {}
        self._by_candidate: dict[str, list[str]] = {}

    async def list_all(self) -> list[Interview]:
        async with self._lock:
            return [item.model_copy() for item in self._interviews.values()]

    async def list_mine(self, candidate_id: str) -> list[Interview]:
        async with self._lock:
            ids = self._by_candidate.get(candidate_id, [])
            return [self._interviews[item_id].model_copy() for item_id in ids]

    async def get(self, interview_id: str) -> Interview | None:
        async with self._lock:
            item = self._interviews.get(interview_id)
            return item.model_copy() if item else None

    async def find_by_call_id(self, call_id: str) -> Interview | None:
        if not call_id:
            return None
        async with self._lock:
            interview_id = self._by_call_id.get(call_id)
            item = self._interviews.get(interview_id) if interview_id else None
            return item.model_copy() if item else None

    async def create(self, fields: InterviewCreate) -> Interview:
        async with self._lock:
            if fields.stream_call_id in self._by_call_id:
                raise DuplicateCallIdError(fields.stream_call_id)
            payload = fields.model_dump()
            end_time = self._clock() if payload.get("status") == COMPLETED else None
            interview = Interview(id=uuid.uuid4().hex, end_time=end_time, **payload)
            self._interviews[interview.id] = interview
            self._by_call_id[interview.stream_call_id] = interview.id
            self._by_candidate.setdefault(interview.candidate_id, []).append(interview.id)
            return interview.model_copy()

    async def set_status(self, interview_id: str, status: str) -> Interview:
        async with self._lock:
            current = self._interviews.get(interview_id)
            if current is None:
                raise InterviewNotFoundError(interview_id)
            updated = current.model_copy(update=apply_status(current, status, self._clock()))
            self._interviews[interview_id] = updated
            return updated.model_copy()


class RedisInterviewStore:
    """Redis-backed interview records.

    Keys:
    - interview:{id} (hash)
    - interviews:all (set)
    - interviews:by_call_id (hash call_id -> id)
    - interviews:by_candidate:{candidate_id} (set)
    """

    _all_key = "interviews:all"
    _call_index_key = "interviews:by_call_id"

    def __init__(self, redis_url: str = "", clock: Clock | None = None, client=None):
        self._clock = clock or now_ms
        if client is not None:
            self._redis = client
            return
        try:
            import redis.asyncio as redis_async  # type: ignore
        except Exception as exc:
            raise RuntimeError("redis package not installed; install 'redis' to enable the redis interview store") from exc

        self._redis = redis_async.from_url(redis_url, decode_responses=True)

    @staticmethod
    def _interview_key(interview_id: str) -> str:
        return f"interview:{interview_id}"

    @staticmethod
    def _candidate_key(candidate_id: str) -> str:
        return f"interviews:by_candidate:{candidate_id}"

    @staticmethod
    def _from_hash(data: dict) -> Interview:
        end_time = data.get("end_time")
        return Interview(
            id=str(data.get("id") or ""),
            title=str(data.get("title") or ""),
            description=data.get("description") or None,
            start_time=int(data.get("start_time") or 0),
            status=str(data.get("status") or ""),
            stream_call_id=str(data.get("stream_call_id") or ""),
            candidate_id=str(data.get("candidate_id") or ""),
            interviewer_ids=json.loads(data.get("interviewer_ids") or "[]"),
            end_time=int(end_time) if end_time else None,
        )

    @staticmethod
    def _to_mapping(interview: Interview) -> dict:
        mapping = {
            "id": interview.id,
            "title": interview.title,
            "description": interview.description or "",
            "start_time": str(interview.start_time),
            "status": interview.status,
            "stream_call_id": interview.stream_call_id,
            "candidate_id": interview.candidate_id,
            "interviewer_ids": json.dumps(interview.interviewer_ids),
        }
        if interview.end_time is not None:
            mapping["end_time"] = str(interview.end_time)
        return mapping

    async def _load_many(self, interview_ids) -> list[Interview]:
        items = []
        for interview_id in interview_ids:
            data = await self._redis.hgetall(self._interview_key(interview_id))
            if data:
                items.append(self._from_hash(data))
        return items

    async def list_all(self) -> list[Interview]:
        try:
            return await self._load_many(await self._redis.smembers(self._all_key))
        except Exception as exc:
            raise StorageError(f"list_all failed: {exc}") from exc

    async def list_mine(self, candidate_id: str) -> list[Interview]:
        try:
            return await self._load_many(await self._redis.smembers(self._candidate_key(candidate_id)))
        except Exception as exc:
            raise StorageError(f"list_mine failed: {exc}") from exc

    async def get(self, interview_id: str) -> Interview | None:
        try:
            data = await self._redis.hgetall(self._interview_key(interview_id))
        except Exception as exc:
            raise StorageError(f"get failed: {exc}") from exc
        return self._from_hash(data) if data else None

    async def find_by_call_id(self, call_id: str) -> Interview | None:
        if not call_id:
            return None
        try:
            interview_id = await self._redis.hget(self._call_index_key, call_id)
        except Exception as exc:
            raise StorageError(f"find_by_call_id failed: {exc}") from exc
        if not interview_id:
            return None
        return await self.get(interview_id)

    async def create(self, fields: InterviewCreate) -> Interview:
        payload = fields.model_dump()
        end_time = self._clock() if payload.get("status") == COMPLETED else None
        interview = Interview(id=uuid.uuid4().hex, end_time=end_time, **payload)
        try:
            claimed = await self._redis.hsetnx(self._call_index_key, interview.stream_call_id, interview.id)
            if not claimed:
                raise DuplicateCallIdError(interview.stream_call_id)
            try:
                async with self._redis.pipeline(transaction=True) as pipe:
                    pipe.hset(self._interview_key(interview.id), mapping=self._to_mapping(interview))
                    pipe.sadd(self._all_key, interview.id)
                    pipe.sadd(self._candidate_key(interview.candidate_id), interview.id)
                    await pipe.execute()
            except Exception:
                # no call index entry may outlive a failed record write
                await self._redis.hdel(self._call_index_key, interview.stream_call_id)
                raise
        except StorageError:
            raise
        except Exception as exc:
            raise StorageError(f"create failed: {exc}") from exc
        return interview

    async def set_status(self, interview_id: str, status: str) -> Interview:
        current = await self.get(interview_id)
        if current is None:
            raise InterviewNotFoundError(interview_id)
        updates = apply_status(current, status, self._clock())
        updated = current.model_copy(update=updates)
        key = self._interview_key(interview_id)
        try:
            # status and end_time land in one MULTI/EXEC
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.hset(key, "status", updated.status)
                if updated.end_time is None:
                    pipe.hdel(key, "end_time")
                else:
                    pipe.hset(key, "end_time", str(updated.end_time))
                await pipe.execute()
        except Exception as exc:
            raise StorageError(f"set_status failed: {exc}") from exc
        return updated


def build_interview_store() -> InterviewStore:
    if not USE_REDIS_STORE:
        return LocalInterviewStore()

    if not REDIS_URL:
        raise RuntimeError("USE_REDIS_STORE=true requires REDIS_URL")
    return RedisInterviewStore(REDIS_URL)
