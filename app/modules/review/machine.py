"""Pure transition function for the review workflow.

    idle -> generating -> reviewing -> saving -> idle
                 |                       |
                 +-------> error <-------+

``transition(state, event)`` never mutates ``state``. An event that is not
allowed in the current phase, or that fails a guard, comes back as a
``Transition`` with the unchanged state and a user-facing ``message``.
Backoff waits are the caller's job; ``get_retry_delay`` gives the schedule.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable, Optional

from app.core.config import settings
from app.core.db.schemas.flashcards import BACK_MAX_LENGTH, FRONT_MAX_LENGTH
from app.modules.review.models import (
    Abandon,
    AcceptAll,
    AcceptItem,
    EditItem,
    ErrorInfo,
    Event,
    GenerationFailed,
    GenerationSucceeded,
    Phase,
    Provenance,
    RejectAll,
    RejectItem,
    RequestSave,
    Retry,
    ReviewItem,
    ReviewStatus,
    SaveFailed,
    SaveSucceeded,
    SetSourceText,
    SubmitGeneration,
    WorkflowState,
)

BASE_RETRY_DELAY_MS = 2000
MAX_RETRY_DELAY_MS = 15000
MAX_AUTO_RETRIES = 3

INITIAL_STATE = WorkflowState()


@dataclass(frozen=True)
class Transition:
    state: WorkflowState
    message: Optional[str] = None

    @property
    def applied(self) -> bool:
        return self.message is None


def get_retry_delay(retry_count: int) -> int:
    """Backoff in milliseconds: 2000, 4000, 8000, then capped at 15000."""
    return min(BASE_RETRY_DELAY_MS * 2 ** max(retry_count, 0), MAX_RETRY_DELAY_MS)


def can_auto_retry(state: WorkflowState) -> bool:
    """Whether a retry affordance should still be offered for the current error."""
    return (
        state.phase is Phase.ERROR
        and state.error is not None
        and state.error.retryable
        and state.retry_count < MAX_AUTO_RETRIES
    )


def requires_confirmation(state: WorkflowState) -> bool:
    return state.has_unsaved_work


def validate_source_text(text: str) -> Optional[str]:
    low = settings.generation.min_source_length
    high = settings.generation.max_source_length
    if not low <= len(text) <= high:
        return f"Text must be between {low} and {high} characters (currently {len(text)})"
    return None


def _reject(state: WorkflowState, message: str) -> Transition:
    return Transition(state, message)


def _not_allowed(state: WorkflowState, event: Event) -> Transition:
    return _reject(
        state, f"{type(event).__name__} is not allowed while {state.phase.value}"
    )


def _with_item(
    state: WorkflowState, index: int, update: Callable[[ReviewItem], ReviewItem]
) -> Transition:
    if not 0 <= index < len(state.items):
        return _reject(state, f"No flashcard at position {index}")
    items = list(state.items)
    items[index] = update(items[index])
    return Transition(replace(state, items=tuple(items)))


def _on_set_source_text(state: WorkflowState, event: SetSourceText) -> Transition:
    if state.phase is Phase.IDLE or (
        state.phase is Phase.ERROR and state.failed_phase is Phase.GENERATING
    ):
        return Transition(replace(state, source_text=event.text))
    return _not_allowed(state, event)


def _on_submit(state: WorkflowState, event: SubmitGeneration) -> Transition:
    if state.phase is not Phase.IDLE and not (
        state.phase is Phase.ERROR and state.failed_phase is Phase.GENERATING
    ):
        return _not_allowed(state, event)
    text = event.source_text if event.source_text is not None else state.source_text
    problem = validate_source_text(text)
    if problem:
        return _reject(state, problem)
    return Transition(
        replace(
            state,
            phase=Phase.GENERATING,
            source_text=text,
            items=(),
            generation_id=None,
            error=None,
            failed_phase=None,
        )
    )


def _on_generation_succeeded(
    state: WorkflowState, event: GenerationSucceeded
) -> Transition:
    if state.phase is not Phase.GENERATING:
        return _not_allowed(state, event)
    items = tuple(
        ReviewItem(
            id=f"card-{event.generation_id}-{i}",
            front=c.front,
            back=c.back,
        )
        for i, c in enumerate(event.candidates)
    )
    return Transition(
        replace(
            state,
            phase=Phase.REVIEWING,
            items=items,
            generation_id=event.generation_id,
            error=None,
            retry_count=0,
            failed_phase=None,
        )
    )


def _enter_error(state: WorkflowState, error: ErrorInfo) -> Transition:
    return Transition(
        replace(state, phase=Phase.ERROR, error=error, failed_phase=state.phase)
    )


def _on_generation_failed(state: WorkflowState, event: GenerationFailed) -> Transition:
    if state.phase is not Phase.GENERATING:
        return _not_allowed(state, event)
    return _enter_error(state, event.error)


def _on_retry(state: WorkflowState, event: Retry) -> Transition:
    if state.phase is not Phase.ERROR or state.failed_phase is None:
        return _not_allowed(state, event)
    if state.error is not None and not state.error.retryable:
        return _reject(state, "This error cannot be retried")
    return Transition(
        replace(
            state,
            phase=state.failed_phase,
            error=None,
            retry_count=state.retry_count + 1,
            failed_phase=None,
        )
    )


def _set_status(status: ReviewStatus) -> Callable[[ReviewItem], ReviewItem]:
    return lambda item: replace(item, status=status)


def _on_accept(state: WorkflowState, event: AcceptItem) -> Transition:
    if state.phase is not Phase.REVIEWING:
        return _not_allowed(state, event)
    return _with_item(state, event.index, _set_status(ReviewStatus.ACCEPTED))


def _on_reject(state: WorkflowState, event: RejectItem) -> Transition:
    if state.phase is not Phase.REVIEWING:
        return _not_allowed(state, event)
    return _with_item(state, event.index, _set_status(ReviewStatus.REJECTED))


def _bulk(status: ReviewStatus) -> Callable[[WorkflowState, Event], Transition]:
    def handler(state: WorkflowState, event: Event) -> Transition:
        if state.phase is not Phase.REVIEWING:
            return _not_allowed(state, event)
        items = tuple(replace(i, status=status) for i in state.items)
        return Transition(replace(state, items=items))

    return handler


def _on_edit(state: WorkflowState, event: EditItem) -> Transition:
    if state.phase is not Phase.REVIEWING:
        return _not_allowed(state, event)
    front, back = event.front.strip(), event.back.strip()
    if not front or not back:
        return _reject(state, "Front and back must not be empty")
    if len(front) > FRONT_MAX_LENGTH:
        return _reject(state, f"Front must not exceed {FRONT_MAX_LENGTH} characters")
    if len(back) > BACK_MAX_LENGTH:
        return _reject(state, f"Back must not exceed {BACK_MAX_LENGTH} characters")
    return _with_item(
        state,
        event.index,
        lambda item: replace(
            item,
            front=front,
            back=back,
            status=ReviewStatus.ACCEPTED,
            is_edited=True,
            source=Provenance.AI_EDITED,
        ),
    )


def _on_request_save(state: WorkflowState, event: RequestSave) -> Transition:
    if state.phase is not Phase.REVIEWING:
        return _not_allowed(state, event)
    if not state.accepted_items:
        return _reject(state, "Accept at least one flashcard before saving")
    if state.generation_id is None:
        return _reject(state, "Missing generation id; generate flashcards first")
    return Transition(replace(state, phase=Phase.SAVING, error=None))


def _on_save_succeeded(state: WorkflowState, event: SaveSucceeded) -> Transition:
    if state.phase is not Phase.SAVING:
        return _not_allowed(state, event)
    return Transition(INITIAL_STATE)


def _on_save_failed(state: WorkflowState, event: SaveFailed) -> Transition:
    if state.phase is not Phase.SAVING:
        return _not_allowed(state, event)
    return _enter_error(state, event.error)


def _on_abandon(state: WorkflowState, event: Abandon) -> Transition:
    if state.phase is Phase.IDLE:
        return Transition(state)
    if requires_confirmation(state) and not event.confirmed:
        return _reject(
            state, "You have unsaved flashcards. Confirm to discard them."
        )
    return Transition(INITIAL_STATE)


_HANDLERS: dict[type, Callable[[WorkflowState, Event], Transition]] = {
    SetSourceText: _on_set_source_text,
    SubmitGeneration: _on_submit,
    GenerationSucceeded: _on_generation_succeeded,
    GenerationFailed: _on_generation_failed,
    Retry: _on_retry,
    AcceptItem: _on_accept,
    RejectItem: _on_reject,
    AcceptAll: _bulk(ReviewStatus.ACCEPTED),
    RejectAll: _bulk(ReviewStatus.REJECTED),
    EditItem: _on_edit,
    RequestSave: _on_request_save,
    SaveSucceeded: _on_save_succeeded,
    SaveFailed: _on_save_failed,
    Abandon: _on_abandon,
}  # type: ignore[dict-item]


def transition(state: WorkflowState, event: Event) -> Transition:
    handler = _HANDLERS.get(type(event))
    if handler is None:
        raise TypeError(f"Unknown review event: {event!r}")
    return handler(state, event)


__all__ = [
    "Transition",
    "transition",
    "get_retry_delay",
    "can_auto_retry",
    "requires_confirmation",
    "validate_source_text",
    "INITIAL_STATE",
    "MAX_AUTO_RETRIES",
]
