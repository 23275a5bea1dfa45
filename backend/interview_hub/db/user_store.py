from __future__ import annotations

import asyncio
import uuid
from typing import Protocol

from core.config import REDIS_URL, USE_REDIS_STORE
from interview_hub.errors import StorageError
from interview_hub.models import User, UserRole


class UserStore(Protocol):
    async def get_by_clerk_id(self, clerk_id: str) -> User | None:
        ...

    async def insert(self, clerk_id: str, email: str, name: str, image: str | None, role: UserRole) -> User:
        ...

    async def patch(self, user_id: str, updates: dict) -> User:
        ...

    async def list_by_role(self, role: UserRole) -> list[User]:
        ...


class LocalUserStore:
    def __init__(self):
        self._lock = asyncio.Lock()
        self._users: dict[str, User] = {}
        self._by_clerk_id: dict[str, str] = {}

    async def get_by_clerk_id(self, clerk_id: str) -> User | None:
        if not clerk_id:
            return None
        async with self._lock:
            user_id = self._by_clerk_id.get(clerk_id)
            user = self._users.get(user_id) if user_id else None
            return user.model_copy() if user else None

    async def insert(self, clerk_id: str, email: str, name: str, image: str | None, role: UserRole) -> User:
        async with self._lock:
            if clerk_id in self._by_clerk_id:
                raise StorageError(f"User {clerk_id} already exists")
            user = User(
                id=uuid.uuid4().hex,
                clerk_id=clerk_id,
                email=email,
                name=name,
                image=image,
                role=role,
            )
            self._users[user.id] = user
            self._by_clerk_id[clerk_id] = user.id
            return user.model_copy()

    async def patch(self, user_id: str, updates: dict) -> User:
        async with self._lock:
            current = self._users.get(user_id)
            if current is None:
                raise StorageError(f"User {user_id} not found")
            # identity fields are immutable
            allowed = {k: v for k, v in updates.items() if k not in {"id", "clerk_id"}}
            merged = current.model_copy(update=allowed)
            self._users[user_id] = merged
            return merged.model_copy()

    async def list_by_role(self, role: UserRole) -> list[User]:
        async with self._lock:
            return [user.model_copy() for user in self._users.values() if user.role == role]


class RedisUserStore:
    """Redis-backed user records.

    Keys:
    - user:{id} (hash)
    - users:by_clerk_id (hash clerk_id -> id)
    """

    def __init__(self, redis_url: str = "", client=None):
        if client is not None:
            self._redis = client
            return
        try:
            import redis.asyncio as redis_async  # type: ignore
        except Exception as exc:
            raise RuntimeError("redis package not installed; install 'redis' to enable the redis user store") from exc

        self._redis = redis_async.from_url(redis_url, decode_responses=True)

    @staticmethod
    def _user_key(user_id: str) -> str:
        return f"user:{user_id}"

    _clerk_index_key = "users:by_clerk_id"

    @staticmethod
    def _from_hash(data: dict) -> User:
        return User(
            id=str(data.get("id") or ""),
            clerk_id=str(data.get("clerk_id") or ""),
            email=str(data.get("email") or ""),
            name=str(data.get("name") or ""),
            image=data.get("image") or None,
            role=UserRole(str(data.get("role") or UserRole.CANDIDATE.value)),
        )

    @staticmethod
    def _to_mapping(user: User) -> dict:
        return {
            "id": user.id,
            "clerk_id": user.clerk_id,
            "email": user.email,
            "name": user.name,
            "image": user.image or "",
            "role": user.role.value,
        }

    async def _get(self, user_id: str) -> User | None:
        data = await self._redis.hgetall(self._user_key(user_id))
        if not data:
            return None
        return self._from_hash(data)

    async def get_by_clerk_id(self, clerk_id: str) -> User | None:
        if not clerk_id:
            return None
        try:
            user_id = await self._redis.hget(self._clerk_index_key, clerk_id)
            if not user_id:
                return None
            return await self._get(user_id)
        except Exception as exc:
            raise StorageError(f"get_by_clerk_id failed: {exc}") from exc

    async def insert(self, clerk_id: str, email: str, name: str, image: str | None, role: UserRole) -> User:
        user = User(id=uuid.uuid4().hex, clerk_id=clerk_id, email=email, name=name, image=image, role=role)
        try:
            claimed = await self._redis.hsetnx(self._clerk_index_key, clerk_id, user.id)
            if not claimed:
                raise StorageError(f"User {clerk_id} already exists")
            try:
                await self._redis.hset(self._user_key(user.id), mapping=self._to_mapping(user))
            except Exception:
                # no index entry may outlive a failed record write
                await self._redis.hdel(self._clerk_index_key, clerk_id)
                raise
        except StorageError:
            raise
        except Exception as exc:
            raise StorageError(f"insert failed: {exc}") from exc
        return user

    async def patch(self, user_id: str, updates: dict) -> User:
        try:
            current = await self._get(user_id)
            if current is None:
                raise StorageError(f"User {user_id} not found")
            allowed = {k: v for k, v in updates.items() if k not in {"id", "clerk_id"}}
            merged = current.model_copy(update=allowed)
            await self._redis.hset(self._user_key(user_id), mapping=self._to_mapping(merged))
        except StorageError:
            raise
        except Exception as exc:
            raise StorageError(f"patch failed: {exc}") from exc
        return merged

    async def list_by_role(self, role: UserRole) -> list[User]:
        try:
            user_ids = await self._redis.hvals(self._clerk_index_key)
            users = []
            for user_id in user_ids:
                user = await self._get(user_id)
                if user is not None and user.role == role:
                    users.append(user)
            return users
        except Exception as exc:
            raise StorageError(f"list_by_role failed: {exc}") from exc


def build_user_store() -> UserStore:
    if not USE_REDIS_STORE:
        return LocalUserStore()

    if not REDIS_URL:
        raise RuntimeError("USE_REDIS_STORE=true requires REDIS_URL")
    return RedisUserStore(REDIS_URL)
