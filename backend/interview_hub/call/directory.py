from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

logger = logging.getLogger("app.call.directory")


class CallClient(Protocol):
    """Video infrastructure client able to query calls."""

    async def query_calls(self, filter_conditions: dict, sort: list[dict] | None = None) -> dict:
        ...


@dataclass
class CallBuckets:
    ended: list = field(default_factory=list)
    upcoming: list = field(default_factory=list)
    live: list = field(default_factory=list)


def _as_datetime(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(float(value), tz=timezone.utc)
    text = str(value).replace("Z", "+00:00")
    parsed = datetime.fromisoformat(text)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def call_owner_id(call) -> str:
    created_by = getattr(getattr(call, "state", None), "created_by", None)
    return str(getattr(created_by, "id", "") or "")


async def get_call_by_id(client: CallClient, call_id: str):
    """First call matching ``call_id``, or None when absent or the query fails."""
    if not call_id:
        return None
    try:
        result = await client.query_calls(filter_conditions={"id": call_id})
    except Exception as exc:
        logger.error("query_calls failed | call=%s err=%s", call_id, exc)
        return None

    calls = list((result or {}).get("calls") or [])
    return calls[0] if calls else None


async def list_user_calls(client: CallClient, user_id: str) -> list:
    if not user_id:
        return []
    try:
        result = await client.query_calls(
            filter_conditions={
                "starts_at": {"$exists": True},
                "$or": [
                    {"created_by_user_id": user_id},
                    {"members": {"$in": [user_id]}},
                ],
            },
            sort=[{"field": "starts_at", "direction": -1}],
        )
    except Exception as exc:
        logger.error("Error loading calls | user=%s err=%s", user_id, exc)
        return []
    return list((result or {}).get("calls") or [])


def bucket_calls(calls: list, now: datetime | None = None) -> CallBuckets:
    now = now or datetime.now(timezone.utc)
    buckets = CallBuckets()
    for call in calls or []:
        state = getattr(call, "state", None)
        starts_at = _as_datetime(getattr(state, "starts_at", None))
        ended_at = getattr(state, "ended_at", None)

        if (starts_at and starts_at < now) or ended_at:
            buckets.ended.append(call)
        if starts_at and starts_at > now:
            buckets.upcoming.append(call)
        if starts_at and starts_at < now and not ended_at:
            buckets.live.append(call)
    return buckets
