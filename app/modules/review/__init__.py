from .models import (
    Candidate,
    ErrorInfo,
    Phase,
    Provenance,
    ReviewItem,
    ReviewStatus,
    WorkflowState,
)
from .machine import (
    INITIAL_STATE,
    MAX_AUTO_RETRIES,
    Transition,
    can_auto_retry,
    get_retry_delay,
    requires_confirmation,
    transition,
)
from .navigation import NavigationGuard
from .session import ReviewSession

__all__ = [
    "Candidate",
    "ErrorInfo",
    "Phase",
    "Provenance",
    "ReviewItem",
    "ReviewStatus",
    "WorkflowState",
    "INITIAL_STATE",
    "MAX_AUTO_RETRIES",
    "Transition",
    "can_auto_retry",
    "get_retry_delay",
    "requires_confirmation",
    "transition",
    "NavigationGuard",
    "ReviewSession",
]
