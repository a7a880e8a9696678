"""
Event Channel.

A long-lived connection to the remote service that pushes remote-originated
changes (another session submitting a mood, a streak recomputed server-side)
into the sync manager.

Lifecycle::

    DISCONNECTED -> CONNECTING -> CONNECTED -> DISCONNECTED -> CONNECTING ...

Handlers live in the channel's own registry, not in the connection, so a
handler registered once keeps receiving events across any number of
reconnects. Every new connection is re-subscribed to all registered event
names. Event ids already delivered are remembered, so an event replayed by the
server after a reconnect reaches each handler once.

A channel without a credential, or whose credential is rejected, stops in the
DISCONNECTED state until ``refresh_credentials()`` is called.
"""

import asyncio
import inspect
import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Deque,
    Dict,
    List,
    Optional,
    Protocol,
    Sequence,
    Set,
    Tuple,
    Union,
)

from assessment_engine.errors import ChannelAuthError, ChannelError

from .config import get_settings

logger = logging.getLogger(__name__)


class ChannelState(str, Enum):
    """Connection state of the event channel."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass(frozen=True)
class ChannelIdentity:
    """Credential the channel authenticates with (issued by the auth layer)."""

    token: Optional[str] = None

    @property
    def has_credential(self) -> bool:
        return bool(self.token and self.token.strip())


@dataclass(frozen=True)
class ChannelEvent:
    """A push event delivered by the remote service."""

    id: str
    name: str
    payload: Any = field(default=None, compare=False)


Handler = Callable[[ChannelEvent], Union[None, Awaitable[None]]]
StateCallback = Callable[[ChannelState], None]


class ChannelConnection(Protocol):
    """One open connection produced by a transport."""

    def subscribe(self, event_names: Sequence[str]) -> None: ...

    def events(self) -> AsyncIterator[ChannelEvent]: ...

    async def close(self) -> None: ...


class ChannelTransport(Protocol):
    """Opens connections to the remote event source."""

    async def open(
        self, identity: ChannelIdentity, last_event_id: Optional[str] = None
    ) -> ChannelConnection:
        """Open a connection.

        Raises:
            ChannelAuthError: the credential was rejected
            ChannelError: the service could not be reached
        """
        ...


class EventChannel:
    """Reconnecting push channel with a persistent handler registry."""

    def __init__(
        self,
        transport: ChannelTransport,
        reconnect_initial_delay: Optional[float] = None,
        reconnect_max_delay: Optional[float] = None,
        seen_event_buffer: Optional[int] = None,
    ):
        """
        Initialize the event channel.

        Args:
            transport: Produces connections to the remote event source
            reconnect_initial_delay: Seconds before the first reconnect attempt
            reconnect_max_delay: Upper bound for the doubling reconnect delay
            seen_event_buffer: Number of delivered event ids remembered
        """
        settings = get_settings()
        self._transport = transport
        self.reconnect_initial_delay = (
            reconnect_initial_delay
            if reconnect_initial_delay is not None
            else settings.reconnect_initial_delay
        )
        self.reconnect_max_delay = (
            reconnect_max_delay if reconnect_max_delay is not None else settings.reconnect_max_delay
        )

        self._handlers: Dict[str, List[Handler]] = {}
        self._state = ChannelState.DISCONNECTED
        self._auth_failed = False
        self._identity: Optional[ChannelIdentity] = None
        self._connection: Optional[ChannelConnection] = None
        self._task: Optional[asyncio.Task] = None
        self._last_event_id: Optional[str] = None

        buffer_size = seen_event_buffer or settings.seen_event_buffer
        self._seen_order: Deque[str] = deque(maxlen=buffer_size)
        self._seen: Set[str] = set()

        self._state_callbacks: List[StateCallback] = []
        self._waiters: List[Tuple[ChannelState, asyncio.Future]] = []
        self.connect_count = 0

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def is_terminal(self) -> bool:
        """True after an authentication failure, until credentials are refreshed."""
        return self._auth_failed

    @property
    def event_names(self) -> List[str]:
        return sorted(name for name, handlers in self._handlers.items() if handlers)

    def add_state_listener(self, callback: StateCallback) -> None:
        self._state_callbacks.append(callback)

    async def wait_for_state(self, state: ChannelState, timeout: Optional[float] = None) -> None:
        """Wait until the channel enters ``state`` (returns at once if already there)."""
        if self._state == state:
            return
        future = asyncio.get_running_loop().create_future()
        self._waiters.append((state, future))
        await asyncio.wait_for(future, timeout)

    def _set_state(self, state: ChannelState) -> None:
        if state == self._state:
            return
        logger.debug(f"[CHANNEL] {self._state.value} -> {state.value}")
        self._state = state

        waiting = []
        for wanted, future in self._waiters:
            if future.done():
                continue
            if wanted == state:
                future.set_result(state)
            else:
                waiting.append((wanted, future))
        self._waiters = waiting

        for callback in list(self._state_callbacks):
            try:
                callback(state)
            except Exception as e:
                logger.error(f"[CHANNEL] State listener failed: {e}")

    # ------------------------------------------------------------------
    # Handler registry
    # ------------------------------------------------------------------

    def subscribe(self, event_name: str, handler: Handler) -> None:
        """Register ``handler`` for ``event_name``; registering it twice is a no-op."""
        handlers = self._handlers.setdefault(event_name, [])
        if handler in handlers:
            return
        handlers.append(handler)
        if self._connection is not None and len(handlers) == 1:
            self._connection.subscribe(self.event_names)

    def unsubscribe(self, event_name: str, handler: Optional[Handler] = None) -> None:
        """Remove one handler, or every handler for ``event_name``."""
        if handler is None:
            self._handlers.pop(event_name, None)
        else:
            handlers = self._handlers.get(event_name, [])
            if handler in handlers:
                handlers.remove(handler)
            if not handlers:
                self._handlers.pop(event_name, None)

    def handlers(self, event_name: str) -> List[Handler]:
        return list(self._handlers.get(event_name, []))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self, identity: ChannelIdentity) -> None:
        """
        Start the connection loop for ``identity``.

        Returns once the loop is started; use ``wait_for_state`` to wait for
        CONNECTED. Without a credential the channel stays DISCONNECTED and is
        marked terminal.
        """
        if self._task is not None and not self._task.done():
            if identity == self._identity:
                return
            await self.disconnect()

        self._identity = identity
        if not identity.has_credential:
            self._fail_auth("no credential supplied")
            return

        self._auth_failed = False
        self._task = asyncio.create_task(self._run(), name="mindtrack-event-channel")

    async def disconnect(self) -> None:
        """Stop the connection loop and close the current connection."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self._close_connection()
        self._set_state(ChannelState.DISCONNECTED)

    async def refresh_credentials(self, identity: ChannelIdentity) -> None:
        """Reconnect with a new credential, leaving any terminal state."""
        await self.disconnect()
        await self.connect(identity)

    async def force_reconnect(self) -> None:
        """Drop the current connection; the loop reconnects on its own."""
        await self._close_connection()

    def _fail_auth(self, reason: str) -> None:
        logger.warning(f"[CHANNEL] Authentication failed, not reconnecting: {reason}")
        self._auth_failed = True
        self._set_state(ChannelState.DISCONNECTED)

    async def _close_connection(self) -> None:
        connection, self._connection = self._connection, None
        if connection is not None:
            try:
                await connection.close()
            except Exception as e:
                logger.debug(f"[CHANNEL] Error while closing connection: {e}")

    async def _run(self) -> None:
        delay = self.reconnect_initial_delay
        while True:
            self._set_state(ChannelState.CONNECTING)
            try:
                connection = await self._transport.open(self._identity, self._last_event_id)
            except ChannelAuthError as e:
                self._fail_auth(str(e))
                return
            except ChannelError as e:
                logger.warning(f"[CHANNEL] Connect failed: {e}")
            except Exception as e:
                logger.error(f"[CHANNEL] Unexpected error while connecting: {e}")
            else:
                self._connection = connection
                connection.subscribe(self.event_names)
                self.connect_count += 1
                self._set_state(ChannelState.CONNECTED)
                logger.info(
                    f"[CHANNEL] Connected (#{self.connect_count}), "
                    f"subscribed to {self.event_names}"
                )
                delay = self.reconnect_initial_delay
                try:
                    async for event in connection.events():
                        await self._dispatch(event)
                except ChannelAuthError as e:
                    await self._close_connection()
                    self._fail_auth(str(e))
                    return
                except ChannelError as e:
                    logger.warning(f"[CHANNEL] Connection lost: {e}")
                except Exception as e:
                    logger.error(f"[CHANNEL] Connection failed unexpectedly: {e}")
                finally:
                    if self._connection is connection:
                        await self._close_connection()

            self._set_state(ChannelState.DISCONNECTED)
            logger.info(f"[CHANNEL] Reconnecting in {delay:.1f}s")
            await asyncio.sleep(delay)
            delay = min(delay * 2, self.reconnect_max_delay)

    async def _dispatch(self, event: ChannelEvent) -> None:
        if event.id in self._seen:
            logger.debug(f"[CHANNEL] Suppressing duplicate event {event.id}")
            return
        self._remember(event.id)
        self._last_event_id = event.id

        for handler in self.handlers(event.name):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"[CHANNEL] Handler for {event.name} failed: {e}")

    def _remember(self, event_id: str) -> None:
        if len(self._seen_order) == self._seen_order.maxlen:
            self._seen.discard(self._seen_order[0])
        self._seen_order.append(event_id)
        self._seen.add(event_id)
