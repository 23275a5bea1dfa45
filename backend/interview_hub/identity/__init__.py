from interview_hub.identity.sync import IdentityEvent, handle_identity_event, upsert_user
from interview_hub.identity.webhook import WebhookVerifier

__all__ = [
    "IdentityEvent",
    "WebhookVerifier",
    "handle_identity_event",
    "upsert_user",
]
