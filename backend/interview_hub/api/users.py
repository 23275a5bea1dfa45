from fastapi import APIRouter, HTTPException, Request

from interview_hub.auth import get_user_id_async
from interview_hub.db import stores
from interview_hub.models import User, UserRole

router = APIRouter(prefix="/api/users")


@router.get("")
async def list_users(request: Request, role: str = UserRole.INTERVIEWER.value) -> list[User]:
    await get_user_id_async(request)
    try:
        wanted = UserRole(str(role or "").strip().lower())
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown role: {role}")
    return await stores.user_store.list_by_role(wanted)


@router.get("/{clerk_id}")
async def get_user_by_clerk_id(clerk_id: str, request: Request) -> User | None:
    await get_user_id_async(request)
    return await stores.user_store.get_by_clerk_id(clerk_id)
