class AuthenticationError(Exception):
    """Caller is not authenticated for a protected read or write."""


class AuthorizationError(Exception):
    """Caller is authenticated but not allowed to act on the resource."""


class WebhookVerificationError(Exception):
    """Inbound identity webhook failed header or signature checks."""


class StorageError(Exception):
    pass


class DuplicateCallIdError(StorageError):
    def __init__(self, call_id: str):
        super().__init__(f"Interview already exists for call {call_id}")
        self.call_id = call_id


class InterviewNotFoundError(Exception):
    def __init__(self, interview_id: str):
        super().__init__(f"Interview {interview_id} not found")
        self.interview_id = interview_id


class CallNotEndableError(Exception):
    """The call has no backing interview record or the caller owns it."""
