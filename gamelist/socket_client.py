"""Persistent websocket client for the OGS realtime API.

`OGSSocket` owns the single connection: it dials, keeps the link alive with
`net/ping`, reconnects with exponential backoff when the link drops, and
correlates `gamelist/query` requests with their replies. Every request holds
the read side of a reader/writer lock; reconnecting holds the write side, so
no call ever runs against a half torn down connection.
"""

import asyncio
import itertools
import logging
import time
from contextlib import suppress
from enum import Enum
from typing import Any, Awaitable, Callable, Iterator, Optional

import aiohttp

from gamelist import codec
from gamelist.errors import (
    ConnectError,
    DecodeError,
    GameListError,
    ReconnectAborted,
    RequestError,
    RequestTimeout,
)
from gamelist.models import ClockState, GameListQuery, GameListResponse, PingRequest
from gamelist.rwlock import ReadWriteLock

logger = logging.getLogger(__name__)

WS_URL = "wss://online-go.com/socket"
PING_INTERVAL = 25.0            # Seconds between net/ping heartbeats
RECONNECT_INITIAL_DELAY = 1.0
RECONNECT_FACTOR = 1.5
RECONNECT_MAX_DELAY = 30.0
DEFAULT_REQUEST_TIMEOUT = 10.0

CONNECT_EVENT = "connect"
DISCONNECT_EVENT = "disconnect"
ERROR_EVENT = "error"

_TRANSPORT_ERRORS = (aiohttp.ClientError, OSError, asyncio.TimeoutError)


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERRORED = "errored"
    RECONNECTING = "reconnecting"
    CLOSED = "closed"


## ---------------------------- Helper functions ---------------------------- ##
def now_ms() -> int:
    return int(time.time() * 1000)


def backoff_delays(
    initial: float = RECONNECT_INITIAL_DELAY,
    factor: float = RECONNECT_FACTOR,
    maximum: float = RECONNECT_MAX_DELAY,
) -> Iterator[float]:
    '''
    Yields reconnect delays in seconds: initial, then multiplied by factor
    each step and clamped at maximum.
    '''
    delay = initial
    while True:
        yield min(delay, maximum)
        delay = min(delay * factor, maximum)


## ---------------------------- Transport ---------------------------- ##
class WebSocketChannel:
    """Text channel over an aiohttp websocket and the session that owns it."""

    def __init__(self, session: aiohttp.ClientSession, ws: aiohttp.ClientWebSocketResponse):
        self._session = session
        self._ws = ws

    @property
    def closed(self) -> bool:
        return self._ws.closed

    async def send(self, text: str) -> None:
        await self._ws.send_str(text)

    async def receive(self) -> Optional[str]:
        '''
        Returns the next data frame, or None once the socket has closed.
        '''
        while True:
            message = await self._ws.receive()
            if message.type == aiohttp.WSMsgType.TEXT:
                return message.data
            if message.type == aiohttp.WSMsgType.BINARY:
                return message.data.decode("utf-8", errors="replace")
            if message.type == aiohttp.WSMsgType.ERROR:
                raise ConnectError(f"websocket error: {self._ws.exception()}")
            if message.type in (
                aiohttp.WSMsgType.CLOSE,
                aiohttp.WSMsgType.CLOSING,
                aiohttp.WSMsgType.CLOSED,
            ):
                return None

    async def close(self) -> None:
        try:
            await self._ws.close()
        finally:
            await self._session.close()


async def dial_websocket(url: str = WS_URL) -> WebSocketChannel:
    session = aiohttp.ClientSession()
    try:
        ws = await session.ws_connect(url, autoping=True)
    except BaseException:
        await session.close()
        raise
    return WebSocketChannel(session, ws)


## ---------------------------- Keepalive ---------------------------- ##
class Keepalive:
    """Periodic `net/ping` sender and `net/pong` clock-sync handler."""

    def __init__(
        self,
        socket: "OGSSocket",
        interval: float = PING_INTERVAL,
        clock: Callable[[], int] = now_ms,
    ):
        self.socket = socket
        self.interval = interval
        self.clock_state = ClockState()
        self._clock = clock

    def build_ping(self) -> PingRequest:
        return PingRequest(
            client=self._clock(),
            drift=self.clock_state.drift,
            latency=self.clock_state.latency,
        )

    async def ping(self) -> None:
        """Send one heartbeat. Failures are logged, never raised."""
        message = self.build_ping()
        try:
            await self.socket.emit(codec.PING_EVENT, message.to_payload())
        except GameListError as exc:
            logger.error("could not send %s: %s", codec.PING_EVENT, exc)

    def handle_pong(self, payload: Any, now: Optional[int] = None) -> ClockState:
        pong = codec.decode_pong(payload)
        now = self._clock() if now is None else now
        latency_ms = now - pong.client
        drift_ms = (now - int(latency_ms / 2)) - pong.server
        self.clock_state.latency = latency_ms / 1000
        self.clock_state.drift = drift_ms / 1000
        logger.debug(
            "clock sync: latency=%.3fs drift=%.3fs",
            self.clock_state.latency,
            self.clock_state.drift,
        )
        return self.clock_state

    async def run(self) -> None:
        '''
        Sends a ping right away, then one every `interval` seconds until
        shutdown is signalled.
        '''
        while not self.socket.shutting_down:
            await self.ping()
            if await self.socket.wait_for_shutdown(self.interval):
                break


## ---------------------------- Connection manager ---------------------------- ##
class OGSSocket:
    def __init__(
        self,
        url: str = WS_URL,
        dial: Callable[[str], Awaitable[Any]] = dial_websocket,
        shutdown: Optional[asyncio.Event] = None,
        ping_interval: float = PING_INTERVAL,
        reconnect_initial_delay: float = RECONNECT_INITIAL_DELAY,
        reconnect_factor: float = RECONNECT_FACTOR,
        reconnect_max_delay: float = RECONNECT_MAX_DELAY,
        clock: Callable[[], int] = now_ms,
    ):
        self.url = url
        self.state = ConnectionState.DISCONNECTED
        self.keepalive = Keepalive(self, interval=ping_interval, clock=clock)
        self.reconnect_initial_delay = reconnect_initial_delay
        self.reconnect_factor = reconnect_factor
        self.reconnect_max_delay = reconnect_max_delay

        self._dial = dial
        self._shutdown = shutdown if shutdown is not None else asyncio.Event()
        self._lock = ReadWriteLock()
        self._channel = None
        self._handlers: dict[str, Callable[[Any], None]] = {}
        self._pending: dict[int, asyncio.Future] = {}
        self._request_ids = itertools.count(1)
        self._receive_task: Optional[asyncio.Task] = None
        self._reconnect_task: Optional[asyncio.Task] = None
        self._keepalive_task: Optional[asyncio.Task] = None
        self._aborted = False

    @property
    def clock_state(self) -> ClockState:
        return self.keepalive.clock_state

    @property
    def connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED and self._channel is not None

    @property
    def shutting_down(self) -> bool:
        return self._shutdown.is_set()

    async def wait_for_shutdown(self, timeout: float) -> bool:
        '''
        Waits up to `timeout` seconds for the shutdown signal.
        Returns True if shutdown was signalled.
        '''
        if self._shutdown.is_set():
            return True
        try:
            await asyncio.wait_for(self._shutdown.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    ## ---------------------------- Lifecycle ---------------------------- ##
    async def open(self, keepalive: bool = True) -> None:
        '''
        Dials once. Raises ConnectError on failure; there is no retry here.
        '''
        if self.state is ConnectionState.CLOSED:
            raise ConnectError("websocket is closed")
        self.state = ConnectionState.CONNECTING
        try:
            channel = await self._dial(self.url)
        except (ConnectError, *_TRANSPORT_ERRORS) as exc:
            self.state = ConnectionState.DISCONNECTED
            raise ConnectError(f"could not connect websocket: {exc}") from exc
        self._attach(channel)
        if keepalive and self._keepalive_task is None:
            self._keepalive_task = asyncio.create_task(self.keepalive.run())

    async def reconnect(self) -> None:
        '''
        Reconnects with exponential backoff while holding the write lock, so
        requests wait until the connection is back or the retry is aborted.
        Raises ReconnectAborted when shutdown is signalled mid-retry.
        '''
        async with self._lock.write():
            if self._shutdown.is_set():
                self._abort()
                raise ReconnectAborted("websocket connection retry aborted")
            self.state = ConnectionState.RECONNECTING
            old_channel, self._channel = self._channel, None
            if old_channel is not None:
                await self._close_channel(old_channel)

            delays = backoff_delays(
                self.reconnect_initial_delay,
                self.reconnect_factor,
                self.reconnect_max_delay,
            )
            for delay in delays:
                try:
                    channel = await self._dial_unless_shutdown()
                except (ConnectError, *_TRANSPORT_ERRORS) as exc:
                    logger.error("could not connect to websocket, retrying in %.2fs: %s", delay, exc)
                else:
                    self._attach(channel)
                    logger.info("websocket reconnected")
                    return

                if await self.wait_for_shutdown(delay):
                    self._abort()
                    raise ReconnectAborted("websocket connection retry aborted")

    async def _dial_unless_shutdown(self):
        '''
        Dials once, cancelling the attempt if shutdown is signalled first.
        Raises ReconnectAborted in that case.
        '''
        dial = asyncio.ensure_future(self._dial(self.url))
        shutdown_wait = asyncio.ensure_future(self._shutdown.wait())
        try:
            await asyncio.wait({dial, shutdown_wait}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            dial.cancel()
            raise
        finally:
            shutdown_wait.cancel()

        if not dial.done():
            dial.cancel()
            await asyncio.wait({dial})
            self._abort()
            raise ReconnectAborted("websocket connection retry aborted")
        return dial.result()

    async def close(self) -> None:
        """Signal shutdown, abort any reconnect and drop the connection."""
        if self.state is ConnectionState.CLOSED and self._channel is None and self._receive_task is None:
            self._shutdown.set()
            return
        self._shutdown.set()
        self._fail_pending(ConnectError("websocket closed"))

        if self._reconnect_task is not None:
            with suppress(asyncio.CancelledError):
                await self._reconnect_task
            self._reconnect_task = None

        self.state = ConnectionState.CLOSED
        for task in (self._receive_task, self._keepalive_task):
            if task is not None and not task.done():
                task.cancel()
                with suppress(asyncio.CancelledError):
                    await task
        self._receive_task = None
        self._keepalive_task = None

        channel, self._channel = self._channel, None
        if channel is not None:
            await self._close_channel(channel)
        logger.debug("websocket closed")

    def _abort(self) -> None:
        self._aborted = True
        self.state = ConnectionState.CLOSED

    def _attach(self, channel) -> None:
        self._channel = channel
        self.state = ConnectionState.CONNECTED
        self._register_handlers()
        self._receive_task = asyncio.create_task(self._receive_loop(channel))
        self._dispatch(CONNECT_EVENT, None)

    async def _close_channel(self, channel) -> None:
        try:
            await channel.close()
        except _TRANSPORT_ERRORS as exc:
            logger.debug("error while closing websocket: %s", exc)

    ## ---------------------------- Event dispatch ---------------------------- ##
    def _register_handlers(self) -> None:
        self._handlers = {
            CONNECT_EVENT: self._handle_connect,
            DISCONNECT_EVENT: self._handle_disconnect,
            ERROR_EVENT: self._handle_error,
            codec.PONG_EVENT: self.keepalive.handle_pong,
        }

    def _dispatch(self, event: str, payload: Any) -> None:
        handler = self._handlers.get(event)
        if handler is None:
            logger.debug("ignoring unhandled event %s", event)
            return
        try:
            handler(payload)
        except GameListError as exc:
            logger.warning("handler for %s failed: %s", event, exc)

    def _handle_connect(self, payload: Any) -> None:
        logger.debug("websocket connected: %s", self.url)

    def _handle_disconnect(self, payload: Any) -> None:
        logger.debug("websocket disconnected")
        self._connection_lost(ConnectionState.DISCONNECTED, "disconnected")

    def _handle_error(self, payload: Any) -> None:
        logger.debug("websocket error: %s", payload)
        self._connection_lost(ConnectionState.ERRORED, f"error: {payload}")

    def _connection_lost(self, state: ConnectionState, reason: str) -> None:
        if self.state is ConnectionState.CLOSED:
            return
        self.state = state
        self._fail_pending(ConnectError(f"connection lost ({reason})"))
        if self._shutdown.is_set():
            return
        if self._reconnect_task is None or self._reconnect_task.done():
            self._reconnect_task = asyncio.create_task(self._reconnect_in_background())

    async def _reconnect_in_background(self) -> None:
        try:
            await self.reconnect()
        except ReconnectAborted as exc:
            logger.info("%s", exc)

    async def _receive_loop(self, channel) -> None:
        try:
            while True:
                text = await channel.receive()
                if text is None:
                    break
                try:
                    frame = codec.decode_frame(text)
                except DecodeError as exc:
                    logger.warning("dropping undecodable frame: %s", exc)
                    continue
                if isinstance(frame, codec.ReplyFrame):
                    self._resolve(frame, len(text))
                else:
                    self._dispatch(frame.event, frame.payload)
        except (ConnectError, *_TRANSPORT_ERRORS) as exc:
            if channel is self._channel:
                self._dispatch(ERROR_EVENT, exc)
            return
        if channel is self._channel:
            self._dispatch(DISCONNECT_EVENT, None)

    def _resolve(self, frame: "codec.ReplyFrame", size: int) -> None:
        future = self._pending.pop(frame.request_id, None)
        if future is None:
            logger.debug("reply for unknown request id %s", frame.request_id)
            return
        if not future.done():
            future.set_result((frame, size))

    def _fail_pending(self, exc: Exception) -> None:
        pending, self._pending = self._pending, {}
        for future in pending.values():
            if not future.done():
                future.set_exception(exc)

    ## ---------------------------- Requests ---------------------------- ##
    def _require_channel(self):
        if self.state is ConnectionState.CLOSED:
            if self._aborted:
                raise ReconnectAborted("websocket connection retry aborted")
            raise ConnectError("websocket is closed")
        if not self.connected:
            raise ConnectError(f"websocket is not connected ({self.state.value})")
        return self._channel

    async def _wait_for_reconnect(self) -> None:
        '''
        Waits for a scheduled or running reconnect to finish. The reconnect
        task is created as soon as the connection is lost, before it takes the
        write lock.
        '''
        task = self._reconnect_task
        if task is not None and not task.done():
            await asyncio.shield(task)

    async def _wait_for_reply(self, event: str, future: asyncio.Future, timeout: float):
        shutdown_wait = asyncio.ensure_future(self._shutdown.wait())
        try:
            await asyncio.wait({future, shutdown_wait}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
        finally:
            shutdown_wait.cancel()

        if future.done():
            return future.result()
        if self._shutdown.is_set():
            raise ConnectError(f"{event} abandoned, websocket is shutting down")
        raise RequestTimeout(event, timeout)

    async def emit(self, event: str, payload: Any) -> None:
        '''
        Sends an event without waiting for any reply.
        '''
        await self._wait_for_reconnect()
        async with self._lock.read():
            channel = self._require_channel()
            logger.debug("sending %s: %s", event, payload)
            try:
                await channel.send(codec.encode_event(event, payload))
            except _TRANSPORT_ERRORS as exc:
                raise ConnectError(f"could not send {event}: {exc}") from exc

    async def request(
        self,
        event: str,
        payload: Any,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        decode: Optional[Callable[[Any, int], Any]] = None,
    ) -> Any:
        '''
        Sends a request and waits for its correlated reply.

        :param event: Request name, e.g. "gamelist/query".
        :param payload: JSON-serialisable request body.
        :param timeout: Seconds to wait for the reply.
        :param decode: Optional callable(payload, size) applied to the reply;
            it should raise DecodeError on malformed replies.
        :raises RequestTimeout: No reply within `timeout`.
        :raises RequestError: The server replied with an error.
        :raises ConnectError: Not connected, or the connection dropped.
        :raises ReconnectAborted: Shutdown aborted the reconnect this call waited on.
        '''
        await self._wait_for_reconnect()
        async with self._lock.read():
            channel = self._require_channel()
            request_id = next(self._request_ids)
            future = asyncio.get_running_loop().create_future()
            self._pending[request_id] = future
            logger.debug("sending %s (id=%s): %s", event, request_id, payload)
            try:
                try:
                    await channel.send(codec.encode_request(event, payload, request_id))
                except _TRANSPORT_ERRORS as exc:
                    raise ConnectError(f"could not send {event}: {exc}") from exc
                frame, size = await self._wait_for_reply(event, future, timeout)
            finally:
                self._pending.pop(request_id, None)

        if frame.error is not None:
            raise RequestError(event, frame.error.get("code"), str(frame.error.get("message", "")))
        if decode is None:
            return frame.payload
        return decode(frame.payload, size)

    async def query_game_list(
        self,
        query: GameListQuery,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ) -> GameListResponse:
        response = await self.request(
            codec.GAMELIST_QUERY_EVENT,
            query.to_payload(),
            timeout=timeout,
            decode=codec.decode_game_list,
        )
        logger.debug(
            "received %s: size=%s from=%s limit=%s count=%s",
            codec.GAMELIST_QUERY_EVENT,
            response.size,
            response.start,
            response.limit,
            len(response.results),
        )
        return response
