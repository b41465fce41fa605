from __future__ import annotations

from typing import Callable

from app.modules.review.machine import requires_confirmation
from app.modules.review.models import WorkflowState

LEAVE_WARNING = "You have unsaved flashcards. Are you sure you want to leave?"


class NavigationGuard:
    """Best-effort hook for a host that is about to tear the session down.

    ``before_unload`` is synchronous and only says whether leaving should be
    blocked. It gives no durability guarantee; only a completed save does.
    """

    def __init__(self, get_state: Callable[[], WorkflowState]):
        self._get_state = get_state
        self.enabled = True

    def before_unload(self) -> bool:
        return self.enabled and requires_confirmation(self._get_state())

    @property
    def message(self) -> str:
        return LEAVE_WARNING
