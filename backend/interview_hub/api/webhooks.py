import logging

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse

from core import config
from core.logger import log_event
from interview_hub.db import stores
from interview_hub.errors import WebhookVerificationError
from interview_hub.identity.sync import IdentityEvent, handle_identity_event
from interview_hub.identity.webhook import REQUIRED_HEADERS, WebhookVerifier
from interview_hub.system_metrics import increment_metric

router = APIRouter()
logger = logging.getLogger("app.api.webhooks")


@router.post("/clerk-webhook", response_class=PlainTextResponse)
async def clerk_webhook(request: Request):
    increment_metric("webhooks_received")
    if not config.CLERK_WEBHOOK_SECRET:
        logger.error("MISSING CLERK_WEBHOOK_SECRET environment variable")
        return PlainTextResponse("Webhook secret is not configured", status_code=500)

    if not all(request.headers.get(name) for name in REQUIRED_HEADERS):
        increment_metric("webhooks_rejected")
        return PlainTextResponse("Missing SVIX headers", status_code=400)

    try:
        verifier = WebhookVerifier(config.CLERK_WEBHOOK_SECRET)
    except ValueError as exc:
        logger.error("CLERK_WEBHOOK_SECRET is unusable | err=%s", exc)
        return PlainTextResponse("Webhook secret is not configured", status_code=500)

    body = await request.body()
    try:
        payload = verifier.verify(body, request.headers)
    except WebhookVerificationError as exc:
        increment_metric("webhooks_rejected")
        logger.warning("webhook verification failed | svix_id=%s err=%s", request.headers.get("svix-id"), exc)
        return PlainTextResponse("Invalid SVIX payload", status_code=400)

    event = IdentityEvent.from_payload(payload)
    try:
        await handle_identity_event(stores.user_store, event)
    except Exception as exc:
        increment_metric("webhooks_failed")
        logger.error("Failed to upsert user | clerk_id=%s err=%s", event.clerk_id, exc)
        log_event("identity", "upsert_failed", event.clerk_id, level=logging.ERROR, event_type=event.type)
        return PlainTextResponse("Failed to upsert user", status_code=500)

    return PlainTextResponse("WEBHOOK Processed successfully", status_code=200)
