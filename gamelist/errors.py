"""Error taxonomy shared by the socket client and the match book."""


class GameListError(Exception):
    """Base class for errors raised by the gamelist package."""


class ConnectError(GameListError):
    """Dialing the websocket failed, or the live connection was lost."""


class ReconnectAborted(GameListError):
    """Shutdown was signalled while a reconnect was backing off."""


class RequestTimeout(GameListError):
    """No correlated reply arrived before the caller's deadline."""

    def __init__(self, event: str, timeout: float):
        super().__init__(f"{event} got no reply within {timeout:g}s")
        self.event = event
        self.timeout = timeout


class DecodeError(GameListError):
    """A reply or event payload could not be decoded.

    `size` is the length of the raw payload, kept for diagnostics.
    """

    def __init__(self, message: str, size: int):
        super().__init__(f"{message} (payload size: {size})")
        self.size = size


class RequestError(GameListError):
    """The server answered a request with an error object."""

    def __init__(self, event: str, code, message: str):
        super().__init__(f"{event} failed: {code} {message}")
        self.event = event
        self.code = code
        self.message = message


class StoreTransactionError(GameListError):
    """A snapshot replace could not be committed; the old snapshot is kept."""
