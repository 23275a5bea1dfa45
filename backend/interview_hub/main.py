from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import asyncio
import logging
import os

from core import config
from interview_hub.api.interviews import router as interviews_router
from interview_hub.api.users import router as users_router
from interview_hub.api.webhooks import router as webhooks_router
from interview_hub.call.directory import CallClient
from interview_hub.call.reconcile import reconcile_ended_calls
from interview_hub.db import stores
from interview_hub.session.registry import call_session_registry
from interview_hub.system_metrics import get_metrics_snapshot

logging.basicConfig(
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    level=logging.INFO,
)

app = FastAPI(title="Interview Hub")
logger = logging.getLogger("app.main")


def _get_allowed_origins() -> list[str]:
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if not raw:
        return [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ]
    return [item.strip() for item in raw.split(",") if item.strip()]


_allowed_origins = _get_allowed_origins()

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)

_call_client: CallClient | None = None
_background_tasks: list[asyncio.Task] = []


def configure_call_client(client: CallClient | None) -> None:
    """Install the video infrastructure client used by the reconcile sweep."""
    global _call_client
    _call_client = client


async def run_reconcile_once() -> int:
    if _call_client is None:
        return 0
    return await reconcile_ended_calls(_call_client, stores.interview_store)


@app.on_event("startup")
async def startup_banner():
    logger.info("[SYSTEM] CORS allow_origins=%s", _allowed_origins)
    logger.info("[SYSTEM] store backend=%s", "redis" if config.USE_REDIS_STORE else "memory")
    if not config.CLERK_WEBHOOK_SECRET:
        logger.warning("[SYSTEM] CLERK_WEBHOOK_SECRET is not set; /clerk-webhook will answer 500")

    async def _session_cleanup_loop():
        while True:
            await asyncio.sleep(config.SESSION_CLEANUP_INTERVAL_SEC)
            removed = call_session_registry.cleanup_inactive(config.SESSION_CLEANUP_TTL_SEC)
            if removed > 0:
                logger.info("[SYSTEM] cleaned inactive call sessions=%s", removed)

    async def _reconcile_loop():
        while True:
            await asyncio.sleep(config.RECONCILE_INTERVAL_SEC)
            try:
                reconciled = await run_reconcile_once()
            except Exception as exc:
                logger.error("[SYSTEM] reconcile sweep failed: %s", exc)
                continue
            if reconciled > 0:
                logger.info("[SYSTEM] reconciled ended calls=%s", reconciled)

    _background_tasks.append(asyncio.create_task(_session_cleanup_loop()))
    _background_tasks.append(asyncio.create_task(_reconcile_loop()))


@app.on_event("shutdown")
async def shutdown_handler():
    for task in _background_tasks:
        task.cancel()
    await asyncio.gather(*_background_tasks, return_exceptions=True)
    _background_tasks.clear()
    logger.info("[SYSTEM] shutdown complete")


@app.get("/healthz")
async def healthz():
    return {"status": "ok", "service": "interview-hub"}


@app.get("/api/system/metrics")
async def system_metrics():
    return get_metrics_snapshot(extra={"call_sessions_active": call_session_registry.active_count()})


app.include_router(webhooks_router)
app.include_router(interviews_router)
app.include_router(users_router)
