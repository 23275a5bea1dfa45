import json
from datetime import datetime, timedelta, timezone

import pytest
from svix.webhooks import Webhook

from fakes import TEST_WEBHOOK_SECRET
from interview_hub.errors import WebhookVerificationError
from interview_hub.identity.webhook import WebhookVerifier


def _headers(secret: str, body: str, msg_id: str = "msg_1", sent_at: datetime | None = None) -> dict:
    sent_at = sent_at or datetime.now(tz=timezone.utc)
    return {
        "svix-id": msg_id,
        "svix-timestamp": str(int(sent_at.timestamp())),
        "svix-signature": Webhook(secret).sign(msg_id, sent_at, body),
    }


def test_verify_accepts_valid_signature():
    verifier = WebhookVerifier(TEST_WEBHOOK_SECRET)
    body = json.dumps({"type": "user.created", "data": {"id": "user_1"}})

    payload = verifier.verify(body, _headers(TEST_WEBHOOK_SECRET, body))
    assert payload["type"] == "user.created"


def test_verify_accepts_any_matching_signature_in_list():
    verifier = WebhookVerifier(TEST_WEBHOOK_SECRET)
    body = '{"type": "user.updated", "data": {}}'
    headers = _headers(TEST_WEBHOOK_SECRET, body)
    headers["svix-signature"] = "v1,bm90LXRoZS1yaWdodC1vbmU= " + headers["svix-signature"]

    assert verifier.verify(body.encode("utf-8"), headers)["type"] == "user.updated"


def test_verify_rejects_tampered_body():
    verifier = WebhookVerifier(TEST_WEBHOOK_SECRET)
    body = '{"type": "user.created", "data": {"id": "user_1"}}'
    headers = _headers(TEST_WEBHOOK_SECRET, body)

    with pytest.raises(WebhookVerificationError):
        verifier.verify(body.replace("user_1", "user_2"), headers)


def test_verify_rejects_missing_header():
    verifier = WebhookVerifier(TEST_WEBHOOK_SECRET)
    body = "{}"
    headers = _headers(TEST_WEBHOOK_SECRET, body)
    headers.pop("svix-id")

    with pytest.raises(WebhookVerificationError, match="Missing SVIX headers"):
        verifier.verify(body, headers)


def test_verify_rejects_stale_timestamp():
    verifier = WebhookVerifier(TEST_WEBHOOK_SECRET)
    body = "{}"
    headers = _headers(TEST_WEBHOOK_SECRET, body, sent_at=datetime.now(tz=timezone.utc) - timedelta(hours=1))

    with pytest.raises(WebhookVerificationError, match="too old"):
        verifier.verify(body, headers)


def test_verify_rejects_other_secret():
    verifier = WebhookVerifier(TEST_WEBHOOK_SECRET)
    body = "{}"

    with pytest.raises(WebhookVerificationError):
        verifier.verify(body, _headers("whsec_" + "b3RoZXItc2VjcmV0LWtleQ==", body))


def test_verify_rejects_body_that_is_not_utf8():
    verifier = WebhookVerifier(TEST_WEBHOOK_SECRET)
    headers = _headers(TEST_WEBHOOK_SECRET, "{}")

    with pytest.raises(WebhookVerificationError, match="UTF-8"):
        verifier.verify(b"\xff\xfe{}", headers)


def test_verify_rejects_signed_body_that_is_not_an_object():
    verifier = WebhookVerifier(TEST_WEBHOOK_SECRET)
    body = "[1, 2]"

    with pytest.raises(WebhookVerificationError, match="JSON object"):
        verifier.verify(body, _headers(TEST_WEBHOOK_SECRET, body))


def test_secret_must_be_base64():
    with pytest.raises(ValueError):
        WebhookVerifier("whsec_***not-base64***")
