from __future__ import annotations

import logging
from typing import Mapping

from svix.webhooks import Webhook
from svix.webhooks import WebhookVerificationError as SvixVerificationError

from interview_hub.errors import WebhookVerificationError

logger = logging.getLogger("app.identity.webhook")

REQUIRED_HEADERS = ("svix-id", "svix-timestamp", "svix-signature")


class WebhookVerifier:
    """Checks Clerk deliveries against the Svix signing secret (``whsec_...``).

    Signature matching and the five minute timestamp window are enforced by
    ``svix``; this wrapper only insists on the ``svix-*`` header names and
    maps every rejection to our own ``WebhookVerificationError``.
    """

    def __init__(self, secret: str):
        if not secret:
            raise ValueError("webhook secret is required")
        try:
            self._webhook = Webhook(secret)
        except ValueError as exc:
            raise ValueError("webhook secret is not valid base64") from exc

    def verify(self, body: str | bytes, headers: Mapping[str, str]) -> dict:
        normalized = {str(k).lower(): str(v) for k, v in headers.items()}
        if not all(normalized.get(name, "").strip() for name in REQUIRED_HEADERS):
            raise WebhookVerificationError("Missing SVIX headers")

        if isinstance(body, bytes):
            try:
                body = body.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise WebhookVerificationError("Webhook body is not valid UTF-8") from exc

        try:
            payload = self._webhook.verify(body, normalized)
        except SvixVerificationError as exc:
            raise WebhookVerificationError(str(exc)) from exc
        except ValueError as exc:
            raise WebhookVerificationError("Webhook body is not valid JSON") from exc

        if not isinstance(payload, dict):
            raise WebhookVerificationError("Webhook body must be a JSON object")
        return payload
