from interview_hub.call.context import CallSessionContext
from interview_hub.call.controller import CallLifecycleController, EndCallOutcome

__all__ = ["CallLifecycleController", "CallSessionContext", "EndCallOutcome"]
