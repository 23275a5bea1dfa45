from __future__ import annotations

import logging
from dataclasses import dataclass

from core.config import DEFAULT_USER_ROLE
from core.logger import log_event
from interview_hub.db.user_store import UserStore
from interview_hub.errors import StorageError
from interview_hub.models import User, UserRole
from interview_hub.system_metrics import increment_metric

logger = logging.getLogger("app.identity.sync")

USER_CREATED = "user.created"
USER_UPDATED = "user.updated"
USER_DELETED = "user.deleted"

# role each event kind implies; only the update path of an existing user honours it
_IMPLIED_ROLES = {
    USER_CREATED: UserRole.CANDIDATE,
    USER_UPDATED: UserRole.INTERVIEWER,
}


@dataclass
class IdentityEvent:
    type: str
    clerk_id: str = ""
    email: str = ""
    name: str = ""
    image: str | None = None

    @classmethod
    def from_payload(cls, payload: dict) -> "IdentityEvent":
        event_type = str(payload.get("type") or "")
        data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
        if event_type not in _IMPLIED_ROLES:
            return cls(type=event_type, clerk_id=str(data.get("id") or ""))

        addresses = data.get("email_addresses") or []
        email = ""
        if addresses and isinstance(addresses[0], dict):
            email = str(addresses[0].get("email_address") or "")
        first_name = str(data.get("first_name") or "")
        last_name = str(data.get("last_name") or "")
        return cls(
            type=event_type,
            clerk_id=str(data.get("id") or ""),
            email=email,
            name=f"{first_name} {last_name}".strip(),
            image=data.get("image_url") or None,
        )


def _default_role() -> UserRole:
    try:
        return UserRole(DEFAULT_USER_ROLE)
    except ValueError:
        logger.warning("DEFAULT_USER_ROLE=%s is not a known role; using candidate", DEFAULT_USER_ROLE)
        return UserRole.CANDIDATE


async def upsert_user(
    store: UserStore,
    clerk_id: str,
    email: str,
    name: str,
    image: str | None,
    role: UserRole,
) -> User:
    """Insert or update the user keyed by identity subject.

    Updates overwrite email, name, image and role. Inserts always take the
    default role, ignoring ``role``.
    """
    if not clerk_id:
        raise StorageError("clerk_id is required")

    existing = await store.get_by_clerk_id(clerk_id)
    if existing is not None:
        user = await store.patch(
            existing.id,
            {"email": email, "name": name, "image": image, "role": UserRole(role)},
        )
        log_event("identity", "user_updated", clerk_id, role=user.role.value, email=email)
    else:
        user = await store.insert(clerk_id, email, name, image, _default_role())
        log_event("identity", "user_inserted", clerk_id, role=user.role.value, implied_role=UserRole(role).value)

    increment_metric("users_upserted")
    return user


async def handle_identity_event(store: UserStore, event: IdentityEvent) -> User | None:
    implied_role = _IMPLIED_ROLES.get(event.type)
    if implied_role is None:
        if event.type == USER_DELETED:
            # deprovisioning is not handled; acknowledge only
            log_event("identity", "user_deleted_ignored", event.clerk_id)
        else:
            log_event("identity", "event_ignored", event.clerk_id, event_type=event.type)
        return None

    return await upsert_user(
        store,
        clerk_id=event.clerk_id,
        email=event.email,
        name=event.name,
        image=event.image,
        role=implied_role,
    )
