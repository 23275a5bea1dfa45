from fastapi import APIRouter, HTTPException, Request

from interview_hub.auth import get_user_id_async
from interview_hub.db import stores
from interview_hub.errors import AuthorizationError, DuplicateCallIdError, InterviewNotFoundError, StorageError
from interview_hub.models import Interview, InterviewCreate
from interview_hub.schemas import StatusUpdateRequest
from interview_hub.scheduling import service

router = APIRouter(prefix="/api/interviews")


@router.get("")
async def get_all_interviews(request: Request) -> list[Interview]:
    user_id = await get_user_id_async(request)
    return await service.list_all(stores.interview_store, user_id)


@router.get("/mine")
async def get_my_interviews(request: Request) -> list[Interview]:
    user_id = await get_user_id_async(request)
    return await service.list_mine(stores.interview_store, user_id)


@router.get("/by-call/{call_id}")
async def get_interview_by_call_id(call_id: str) -> Interview | None:
    return await service.find_by_call_id(stores.interview_store, call_id)


@router.post("", status_code=201)
async def create_interview(payload: InterviewCreate, request: Request) -> Interview:
    user_id = await get_user_id_async(request)
    try:
        return await service.create_interview(stores.interview_store, user_id, payload)
    except DuplicateCallIdError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except StorageError as exc:
        raise HTTPException(status_code=500, detail=f"Failed to create interview: {exc}")


@router.patch("/{interview_id}/status")
async def update_interview_status(interview_id: str, payload: StatusUpdateRequest, request: Request) -> Interview:
    user_id = await get_user_id_async(request)
    status = payload.status.strip()
    if not status:
        raise HTTPException(status_code=400, detail="status must not be empty")
    try:
        return await service.transition_status(stores.interview_store, interview_id, status, user_id)
    except InterviewNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except AuthorizationError as exc:
        raise HTTPException(status_code=403, detail=str(exc))
    except StorageError as exc:
        raise HTTPException(status_code=500, detail=f"Failed to update status: {exc}")
