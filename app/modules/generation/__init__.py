from .fingerprint import fingerprint
from .service import (
    CandidateFlashcard,
    GenerationError,
    GenerationOrchestrator,
    GenerationResult,
)

__all__ = [
    "fingerprint",
    "CandidateFlashcard",
    "GenerationError",
    "GenerationOrchestrator",
    "GenerationResult",
]
