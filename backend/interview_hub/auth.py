from fastapi import HTTPException, Request
from jose import JWTError, jwt
import os
import logging
import httpx

from interview_hub.errors import AuthenticationError

logger = logging.getLogger("app.auth")

AUTH_JWT_SECRET = os.getenv("AUTH_JWT_SECRET")
CLERK_JWT_KEY = os.getenv("CLERK_JWT_KEY")
CLERK_API_URL = os.getenv("CLERK_API_URL", "https://api.clerk.com/v1")
CLERK_SECRET_KEY = os.getenv("CLERK_SECRET_KEY")
ENVIRONMENT = os.getenv("ENV", "development").lower()


def _allow_unverified_dev() -> bool:
    return str(os.getenv("ALLOW_UNVERIFIED_JWT_DEV", "false")).strip().lower() in {"1", "true", "yes", "on"}


def _environment() -> str:
    return os.getenv("ENV", ENVIRONMENT).lower()


async def _verify_with_clerk_async(token: str) -> str | None:
    if not CLERK_SECRET_KEY:
        return None

    url = f"{CLERK_API_URL.rstrip('/')}/clients/verify"
    try:
        async with httpx.AsyncClient(timeout=6.0) as client:
            response = await client.post(
                url,
                headers={"Authorization": f"Bearer {CLERK_SECRET_KEY}"},
                json={"token": token},
            )
    except httpx.HTTPError as exc:
        logger.warning("identity provider verification failed | err=%s", exc)
        return None

    if response.status_code != 200:
        return None

    try:
        data = response.json()
    except ValueError:
        return None

    active_session = data.get("last_active_session_id")
    for session in data.get("sessions") or []:
        if session.get("id") == active_session and session.get("user_id"):
            return str(session["user_id"])
    return None


def _decode_locally(token: str) -> dict | None:
    if CLERK_JWT_KEY:
        try:
            return jwt.decode(token, CLERK_JWT_KEY, algorithms=["RS256"], options={"verify_aud": False})
        except JWTError:
            raise AuthenticationError("Invalid token")
    if AUTH_JWT_SECRET:
        try:
            return jwt.decode(token, AUTH_JWT_SECRET, algorithms=["HS256"], options={"verify_aud": False})
        except JWTError:
            raise AuthenticationError("Invalid token")
    return None


async def resolve_user_id_from_token_async(token: str) -> str:
    payload = _decode_locally(token)
    if payload is None:
        user_id = await _verify_with_clerk_async(token)
        if user_id:
            payload = {"sub": user_id}
        else:
            if _environment() == "production":
                raise AuthenticationError("Token verification is not configured")
            if not _allow_unverified_dev():
                raise AuthenticationError(
                    "Token verification unavailable in development; configure AUTH_JWT_SECRET or set ALLOW_UNVERIFIED_JWT_DEV=true",
                )
            try:
                payload = jwt.get_unverified_claims(token)
                logger.warning("ALLOW_UNVERIFIED_JWT_DEV enabled; using unverified token claims in non-production mode")
            except JWTError:
                raise AuthenticationError("Invalid token")

    user_id = (payload or {}).get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token")
    return str(user_id)


def _bearer_token(request: Request) -> str:
    auth = request.headers.get("Authorization")
    if not auth or not auth.startswith("Bearer "):
        raise AuthenticationError("User is not authenticated")
    return auth.replace("Bearer ", "", 1)


async def get_user_id_async(request: Request) -> str:
    try:
        return await resolve_user_id_from_token_async(_bearer_token(request))
    except AuthenticationError as exc:
        raise HTTPException(401, str(exc) or "Unauthorized")
