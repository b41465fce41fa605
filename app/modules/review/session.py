"""Async driver that runs the review workflow against the HTTP API.

``ReviewSession`` owns the single ``WorkflowState`` of one user session. It
feeds events into ``machine.transition``, performs the generation and batch
save calls with ``httpx`` and waits out the backoff before a retried call.
Concurrent triggers are refused while a call is in flight.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional

import httpx

from app.core.logging import get_logger
from app.modules.review.machine import (
    INITIAL_STATE,
    Transition,
    can_auto_retry,
    get_retry_delay,
    transition,
)
from app.modules.review.models import (
    Abandon,
    AcceptAll,
    AcceptItem,
    Candidate,
    EditItem,
    ErrorInfo,
    Event,
    GenerationFailed,
    GenerationSucceeded,
    Phase,
    RejectAll,
    RejectItem,
    RequestSave,
    Retry,
    SaveFailed,
    SaveSucceeded,
    SubmitGeneration,
    WorkflowState,
)
from app.modules.review.navigation import NavigationGuard

logger = get_logger(__name__)

UNAUTHORIZED = "UNAUTHORIZED"
NETWORK_ERROR = "NETWORK_ERROR"

# Server-side failures that another attempt will not fix
NON_RETRYABLE_CODES = frozenset(
    {
        "NO_FLASHCARDS_GENERATED",
        "DB_INSERT_FAILED",
        "MISSING_API_KEY",
        "INSUFFICIENT_CREDITS",
        "AUTHENTICATION_ERROR",
        "NOT_FOUND",
        "INVALID_REQUEST",
    }
)


def error_info_from_response(response: httpx.Response) -> ErrorInfo:
    """Classify an error response from the generations or flashcards API."""
    code = f"HTTP_{response.status_code}"
    message = response.reason_phrase or "Request failed"
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        code = body["error"].get("code") or code
        message = body["error"].get("message") or message

    status = response.status_code
    if status == 401:
        return ErrorInfo(UNAUTHORIZED, "Your session has expired. Please log in again.", False)
    if status == 429:
        return ErrorInfo(code, message, True)
    if status >= 500:
        return ErrorInfo(code, message, code not in NON_RETRYABLE_CODES)
    return ErrorInfo(code, message, False)


class ReviewSession:
    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        api_version: str = "v1",
        on_auth_required: Optional[Callable[[], Any]] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.http = http
        self.api_version = api_version
        self.on_auth_required = on_auth_required
        self._sleep = sleep
        self._state: WorkflowState = INITIAL_STATE
        # Bumped per request and on abandon; a response whose token is stale is dropped
        self._request_token = 0
        self.last_message: Optional[str] = None
        self.navigation = NavigationGuard(lambda: self._state)

    @property
    def state(self) -> WorkflowState:
        return self._state

    @property
    def retry_offered(self) -> bool:
        return can_auto_retry(self._state)

    def dispatch(self, event: Event) -> Transition:
        result = transition(self._state, event)
        self._state = result.state
        self.last_message = result.message
        if result.message:
            logger.debug("Review event %s rejected: %s", type(event).__name__, result.message)
        return result

    # Curation shortcuts

    def accept(self, index: int) -> Transition:
        return self.dispatch(AcceptItem(index))

    def reject(self, index: int) -> Transition:
        return self.dispatch(RejectItem(index))

    def accept_all(self) -> Transition:
        return self.dispatch(AcceptAll())

    def reject_all(self) -> Transition:
        return self.dispatch(RejectAll())

    def edit(self, index: int, front: str, back: str) -> Transition:
        return self.dispatch(EditItem(index, front, back))

    def abandon(self, confirmed: bool = False) -> Transition:
        result = self.dispatch(Abandon(confirmed=confirmed))
        if result.applied:
            self._request_token += 1
        return result

    # Network-backed actions

    def _busy(self) -> Optional[Transition]:
        if self._state.is_busy:
            self.last_message = "A request is already in progress"
            return Transition(self._state, self.last_message)
        return None

    async def generate(self, source_text: Optional[str] = None) -> Transition:
        busy = self._busy()
        if busy:
            return busy
        started = self.dispatch(SubmitGeneration(source_text))
        if not started.applied:
            return started
        return await self._run_generation()

    async def save(self) -> Transition:
        busy = self._busy()
        if busy:
            return busy
        started = self.dispatch(RequestSave())
        if not started.applied:
            return started
        return await self._run_save()

    async def retry(self) -> Transition:
        result = self.dispatch(Retry())
        if not result.applied:
            return result
        delay_ms = get_retry_delay(self._state.retry_count - 1)
        logger.info("Retrying %s in %dms", self._state.phase.value, delay_ms)
        await self._sleep(delay_ms / 1000)
        if self._state.phase is Phase.GENERATING:
            return await self._run_generation()
        return await self._run_save()

    def _begin_request(self) -> int:
        self._request_token += 1
        return self._request_token

    def _superseded(self, token: int) -> Optional[Transition]:
        if token == self._request_token:
            return None
        logger.debug("Dropping response for superseded request %d", token)
        self.last_message = "Request was superseded"
        return Transition(self._state, self.last_message)

    async def _run_generation(self) -> Transition:
        token = self._begin_request()
        try:
            response = await self.http.post(
                f"/{self.api_version}/generations",
                json={"source_text": self._state.source_text},
            )
        except httpx.TransportError as e:
            return self._superseded(token) or self.dispatch(
                GenerationFailed(self._network_error(e))
            )

        stale = self._superseded(token)
        if stale:
            return stale
        if response.status_code == 200:
            body = response.json()
            candidates = tuple(
                Candidate(front=c["front"], back=c["back"])
                for c in body.get("suggested_flashcards", [])
            )
            return self.dispatch(
                GenerationSucceeded(body["generation_id"], candidates)
            )
        return self.dispatch(GenerationFailed(self._error_from(response)))

    async def _run_save(self) -> Transition:
        payload = {
            "generation_id": self._state.generation_id,
            "flashcards": [
                {"front": i.front, "back": i.back, "source": i.source.value}
                for i in self._state.accepted_items
            ],
        }
        token = self._begin_request()
        try:
            response = await self.http.post(
                f"/{self.api_version}/flashcards/batch", json=payload
            )
        except httpx.TransportError as e:
            return self._superseded(token) or self.dispatch(
                SaveFailed(self._network_error(e))
            )

        stale = self._superseded(token)
        if stale:
            return stale
        if response.status_code == 201:
            return self.dispatch(SaveSucceeded())
        return self.dispatch(SaveFailed(self._error_from(response)))

    def _error_from(self, response: httpx.Response) -> ErrorInfo:
        error = error_info_from_response(response)
        if error.code == UNAUTHORIZED and self.on_auth_required is not None:
            self.on_auth_required()
        return error

    @staticmethod
    def _network_error(exc: Exception) -> ErrorInfo:
        logger.warning("Network failure talking to the API: %s", exc)
        return ErrorInfo(
            NETWORK_ERROR, "Network error occurred. Please check your connection.", True
        )
