"""
Remote API collaborator.

``RemoteAPI`` is the contract the sync manager consumes; ``HttpRemoteAPI`` is
its implementation over HTTP using httpx. Every transport failure, non-success
status and malformed body surfaces as ``NetworkError``; a rejected assessment
surfaces as ``ValidationError``.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

import httpx
from pydantic import ValidationError as SchemaError

from assessment_engine.errors import InvalidAnswerSet, NetworkError, ValidationError
from assessment_engine.models import AssessmentResult, AssessmentType, MoodEntry, StreakState
from assessment_engine.questionnaires import get_questionnaire
from assessment_engine.scoring import verify_result

from .config import get_settings

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], Optional[str]]


@dataclass(frozen=True)
class MoodSubmission:
    """Server response to a mood check-in."""

    entry: MoodEntry
    streak: StreakState


class RemoteAPI(Protocol):
    """Operations the sync manager needs from the remote source of truth."""

    async def submit_assessment(
        self, assessment_type: AssessmentType, answers: Sequence[int]
    ) -> AssessmentResult: ...

    async def submit_mood(self, mood_value: int, note: Optional[str] = None) -> MoodSubmission: ...

    async def load_mood_history(self, max_days: int) -> List[MoodEntry]: ...

    async def load_streak(self) -> StreakState: ...

    async def load_assessment_history(self) -> List[AssessmentResult]: ...


class HttpRemoteAPI:
    """RemoteAPI over the MindTrack HTTP API.

    Timeouts are enforced by the httpx client and reported like any other
    failure.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token_provider: Optional[TokenProvider] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the remote API client.

        Args:
            base_url: API root, e.g. ``http://localhost:3000/api`` (default from settings)
            token_provider: Returns the current bearer token, or None
            timeout: Request timeout in seconds (default from settings)
            client: Pre-built httpx client; the caller keeps ownership
        """
        settings = get_settings()
        self.base_url = base_url or settings.api_url
        self._token_provider = token_provider
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout if timeout is not None else settings.request_timeout),
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpRemoteAPI":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # RemoteAPI operations
    # ------------------------------------------------------------------

    async def submit_assessment(
        self, assessment_type: AssessmentType, answers: Sequence[int]
    ) -> AssessmentResult:
        questionnaire = get_questionnaire(assessment_type)
        try:
            data = await self._request(
                "POST", f"/assessments/{questionnaire.slug}", json={"answers": list(answers)}
            )
        except NetworkError as e:
            if e.status_code in (400, 422):
                raise ValidationError(f"{questionnaire.name} rejected by server: {e}") from e
            raise
        return self._verified(data)

    async def submit_mood(self, mood_value: int, note: Optional[str] = None) -> MoodSubmission:
        payload: Dict[str, Any] = {"moodValue": mood_value}
        if note is not None:
            payload["note"] = note
        data = await self._request("POST", "/mood", json=payload)
        if not isinstance(data, dict):
            raise NetworkError("Malformed mood response")
        return MoodSubmission(
            entry=self._parse(MoodEntry, data.get("entry")),
            streak=self._parse(StreakState, data.get("streak")),
        )

    async def load_mood_history(self, max_days: int) -> List[MoodEntry]:
        data = await self._request("GET", "/mood/history", params={"days": max_days})
        return [self._parse(MoodEntry, item) for item in self._items(data, "entries")]

    async def load_streak(self) -> StreakState:
        data = await self._request("GET", "/mood/streak")
        return self._parse(StreakState, data)

    async def load_assessment_history(self) -> List[AssessmentResult]:
        data = await self._request("GET", "/assessments/history")
        return [
            self._verified(item)
            for item in self._items(data, "assessments")
        ]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        token = self._token_provider() if self._token_provider else None
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._client.request(
                method, path, headers=self._headers(), **kwargs
            )
        except httpx.HTTPError as e:
            logger.debug(f"[REMOTE] {method} {path} failed: {e!r}")
            raise NetworkError(f"{method} {path} failed: {e}") from e

        if not response.is_success:
            logger.debug(f"[REMOTE] {method} {path} returned {response.status_code}")
            raise NetworkError(
                f"{method} {path} returned status {response.status_code}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise NetworkError(f"{method} {path} returned a non-JSON body") from e

    @staticmethod
    def _items(data: Any, key: str) -> list:
        if not isinstance(data, dict) or not isinstance(data.get(key), list):
            raise NetworkError(f"Malformed response: expected a '{key}' list")
        return data[key]

    def _verified(self, data: Any) -> AssessmentResult:
        try:
            return verify_result(self._parse(AssessmentResult, data))
        except InvalidAnswerSet as e:
            raise NetworkError(f"Malformed assessment in response: {e}") from e

    @staticmethod
    def _parse(model, data: Any):
        try:
            return model.model_validate(data)
        except SchemaError as e:
            raise NetworkError(f"Malformed {model.__name__} in response: {e}") from e
