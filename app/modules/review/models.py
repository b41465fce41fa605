"""State and event types for the generate / review / save workflow.

Everything here is immutable. ``machine.transition`` takes a state and an
event and returns a new state, so the same objects can be shared freely
between a UI layer, ``ReviewSession`` and tests.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional, Union


class Phase(str, enum.Enum):
    IDLE = "idle"
    GENERATING = "generating"
    REVIEWING = "reviewing"
    SAVING = "saving"
    ERROR = "error"


class ReviewStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class Provenance(str, enum.Enum):
    AI_GENERATED = "ai-generated"
    AI_EDITED = "ai-edited"


@dataclass(frozen=True)
class Candidate:
    front: str
    back: str


@dataclass(frozen=True)
class ReviewItem:
    id: str
    front: str
    back: str
    source: Provenance = Provenance.AI_GENERATED
    status: ReviewStatus = ReviewStatus.PENDING
    is_edited: bool = False


@dataclass(frozen=True)
class ErrorInfo:
    code: str
    message: str
    retryable: bool = False


@dataclass(frozen=True)
class WorkflowState:
    phase: Phase = Phase.IDLE
    source_text: str = ""
    items: tuple[ReviewItem, ...] = ()
    generation_id: Optional[int] = None
    error: Optional[ErrorInfo] = None
    retry_count: int = 0
    # Phase the current error came from; a retry re-enters it
    failed_phase: Optional[Phase] = None

    @property
    def accepted_items(self) -> tuple[ReviewItem, ...]:
        return tuple(i for i in self.items if i.status is ReviewStatus.ACCEPTED)

    @property
    def visible_items(self) -> tuple[ReviewItem, ...]:
        return tuple(i for i in self.items if i.status is not ReviewStatus.REJECTED)

    @property
    def is_busy(self) -> bool:
        return self.phase in (Phase.GENERATING, Phase.SAVING)

    @property
    def has_unsaved_work(self) -> bool:
        if self.phase in (Phase.REVIEWING, Phase.SAVING):
            return True
        return self.phase is Phase.ERROR and self.failed_phase is Phase.SAVING


# Events


@dataclass(frozen=True)
class SetSourceText:
    text: str


@dataclass(frozen=True)
class SubmitGeneration:
    source_text: Optional[str] = None


@dataclass(frozen=True)
class GenerationSucceeded:
    generation_id: int
    candidates: tuple[Candidate, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class GenerationFailed:
    error: ErrorInfo


@dataclass(frozen=True)
class Retry:
    pass


@dataclass(frozen=True)
class AcceptItem:
    index: int


@dataclass(frozen=True)
class RejectItem:
    index: int


@dataclass(frozen=True)
class AcceptAll:
    pass


@dataclass(frozen=True)
class RejectAll:
    pass


@dataclass(frozen=True)
class EditItem:
    index: int
    front: str
    back: str


@dataclass(frozen=True)
class RequestSave:
    pass


@dataclass(frozen=True)
class SaveSucceeded:
    pass


@dataclass(frozen=True)
class SaveFailed:
    error: ErrorInfo


@dataclass(frozen=True)
class Abandon:
    confirmed: bool = False


Event = Union[
    SetSourceText,
    SubmitGeneration,
    GenerationSucceeded,
    GenerationFailed,
    Retry,
    AcceptItem,
    RejectItem,
    AcceptAll,
    RejectAll,
    EditItem,
    RequestSave,
    SaveSucceeded,
    SaveFailed,
    Abandon,
]
