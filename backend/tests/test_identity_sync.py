import pytest

from interview_hub.db.user_store import LocalUserStore
from interview_hub.errors import StorageError
from interview_hub.identity import sync
from interview_hub.identity.sync import IdentityEvent, handle_identity_event, upsert_user
from interview_hub.models import UserRole


def _payload(event_type: str, clerk_id: str = "user_U1", first: str = "Ada", last: str = "Lovelace") -> dict:
    return {
        "type": event_type,
        "data": {
            "id": clerk_id,
            "email_addresses": [
                {"email_address": "ada@example.com"},
                {"email_address": "second@example.com"},
            ],
            "first_name": first,
            "last_name": last,
            "image_url": "https://img.example.com/ada.png",
        },
    }


def test_identity_event_maps_clerk_payload():
    event = IdentityEvent.from_payload(_payload("user.created"))

    assert event.clerk_id == "user_U1"
    assert event.email == "ada@example.com"
    assert event.name == "Ada Lovelace"
    assert event.image == "https://img.example.com/ada.png"


def test_identity_event_trims_missing_name_parts():
    event = IdentityEvent.from_payload(_payload("user.updated", first="Ada", last=None))
    assert event.name == "Ada"


@pytest.mark.asyncio
async def test_upsert_is_idempotent():
    store = LocalUserStore()
    args = dict(clerk_id="user_U1", email="a@example.com", name="Ada", image=None, role=UserRole.CANDIDATE)

    first = await upsert_user(store, **args)
    second = await upsert_user(store, **args)

    assert second == first
    stored = await store.get_by_clerk_id("user_U1")
    assert stored == first
    assert len(await store.list_by_role(UserRole.CANDIDATE)) == 1


@pytest.mark.asyncio
async def test_created_event_yields_candidate():
    store = LocalUserStore()
    user = await handle_identity_event(store, IdentityEvent.from_payload(_payload("user.created")))
    assert user.role == UserRole.CANDIDATE


@pytest.mark.asyncio
async def test_updated_event_for_unknown_subject_still_inserts_candidate():
    store = LocalUserStore()
    user = await handle_identity_event(store, IdentityEvent.from_payload(_payload("user.updated")))

    assert user.role == UserRole.CANDIDATE
    assert (await store.get_by_clerk_id("user_U1")).role == UserRole.CANDIDATE


@pytest.mark.asyncio
async def test_updated_event_for_known_subject_applies_interviewer_role():
    store = LocalUserStore()
    await handle_identity_event(store, IdentityEvent.from_payload(_payload("user.created")))
    user = await handle_identity_event(
        store, IdentityEvent.from_payload(_payload("user.updated", first="Grace", last="Hopper"))
    )

    assert user.role == UserRole.INTERVIEWER
    assert user.name == "Grace Hopper"
    assert user.clerk_id == "user_U1"


@pytest.mark.asyncio
async def test_insert_uses_configured_default_role(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(sync, "DEFAULT_USER_ROLE", "interviewer")
    store = LocalUserStore()

    user = await handle_identity_event(store, IdentityEvent.from_payload(_payload("user.created")))
    assert user.role == UserRole.INTERVIEWER


@pytest.mark.asyncio
async def test_deleted_and_unknown_events_do_not_mutate():
    store = LocalUserStore()
    await handle_identity_event(store, IdentityEvent.from_payload(_payload("user.created")))
    before = await store.get_by_clerk_id("user_U1")

    assert await handle_identity_event(store, IdentityEvent.from_payload({"type": "user.deleted", "data": {"id": "user_U1"}})) is None
    assert await handle_identity_event(store, IdentityEvent.from_payload({"type": "session.created", "data": {}})) is None
    assert await store.get_by_clerk_id("user_U1") == before


@pytest.mark.asyncio
async def test_storage_failure_propagates():
    class _BrokenStore(LocalUserStore):
        async def insert(self, *args, **kwargs):
            raise StorageError("disk full")

    with pytest.raises(StorageError):
        await handle_identity_event(_BrokenStore(), IdentityEvent.from_payload(_payload("user.created")))
