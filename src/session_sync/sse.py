"""Event channel transport over Server-Sent Events.

Opens ``GET <events_url>`` as an httpx stream with the bearer credential and
the ``Last-Event-ID`` of the last delivered event, and parses the
``id:``/``event:``/``data:`` frames into :class:`ChannelEvent` objects.
"""
import json
import logging
import uuid
from contextlib import AsyncExitStack
from typing import AsyncIterator, List, Optional, Sequence, Set

import httpx

from assessment_engine.errors import ChannelAuthError, ChannelError

from .channel import ChannelEvent, ChannelIdentity
from .config import get_settings

log = logging.getLogger(__name__)


class SSEConnection:
    """One open SSE stream."""

    def __init__(self, stack: AsyncExitStack, response: httpx.Response):
        self._stack = stack
        self._response = response
        self._event_names: Set[str] = set()
        self._closed = False

    def subscribe(self, event_names: Sequence[str]) -> None:
        """Restrict delivery to ``event_names``."""
        self._event_names = set(event_names)

    async def events(self) -> AsyncIterator[ChannelEvent]:
        event_id: Optional[str] = None
        event_name = "message"
        data_lines: List[str] = []

        try:
            async for line in self._response.aiter_lines():
                line = line.rstrip("\r")

                if line == "":
                    if data_lines:
                        event = self._build_event(event_id, event_name, data_lines)
                        if event is not None and event.name in self._event_names:
                            yield event
                    event_id = None
                    event_name = "message"
                    data_lines = []
                    continue

                if line.startswith(":"):
                    # keep-alive comment
                    continue

                field, _, value = line.partition(":")
                if value.startswith(" "):
                    value = value[1:]

                if field == "id":
                    event_id = value
                elif field == "event":
                    event_name = value
                elif field == "data":
                    data_lines.append(value)
        except (httpx.HTTPError, httpx.StreamError) as e:
            if self._closed:
                return
            raise ChannelError(f"Event stream interrupted: {e}") from e

    @staticmethod
    def _build_event(
        event_id: Optional[str], event_name: str, data_lines: List[str]
    ) -> Optional[ChannelEvent]:
        data = "\n".join(data_lines)
        try:
            payload = json.loads(data)
        except json.JSONDecodeError as e:
            log.warning(f"[SSE] Dropping {event_name} event with malformed data: {e}")
            return None
        return ChannelEvent(id=event_id or uuid.uuid4().hex, name=event_name, payload=payload)

    async def close(self) -> None:
        self._closed = True
        await self._stack.aclose()


class SSETransport:
    """Opens SSE connections to the MindTrack event stream."""

    def __init__(
        self,
        url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        connect_timeout: Optional[float] = None,
    ):
        settings = get_settings()
        self.url = url or settings.events_url
        self._owns_client = client is None
        # read timeout disabled: the stream stays open between events
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(connect_timeout or settings.request_timeout, read=None)
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def open(
        self, identity: ChannelIdentity, last_event_id: Optional[str] = None
    ) -> SSEConnection:
        headers = {
            "Accept": "text/event-stream",
            "Cache-Control": "no-cache",
            "Authorization": f"Bearer {identity.token}",
        }
        if last_event_id:
            headers["Last-Event-ID"] = last_event_id

        stack = AsyncExitStack()
        try:
            response = await stack.enter_async_context(
                self._client.stream("GET", self.url, headers=headers)
            )
        except httpx.HTTPError as e:
            await stack.aclose()
            raise ChannelError(f"Could not reach event stream at {self.url}: {e}") from e

        if response.status_code in (401, 403):
            await stack.aclose()
            raise ChannelAuthError(f"Event stream rejected credential ({response.status_code})")
        if response.status_code != 200:
            await stack.aclose()
            raise ChannelError(f"Event stream returned status {response.status_code}")

        log.info(f"[SSE] Stream open at {self.url}")
        return SSEConnection(stack, response)
