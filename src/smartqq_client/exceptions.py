"""Custom exceptions for SmartQQ Client library."""

from typing import Optional


class SmartQQClientError(Exception):
    """Base exception for all client errors."""

    pass


class PreconditionError(SmartQQClientError):
    """API called before login completed."""

    pass


class ConnectionError(SmartQQClientError):
    """Network connection error."""

    pass


class TransportError(SmartQQClientError):
    """HTTP response carried a status other than 200."""

    def __init__(self, status: int, message: Optional[str] = None) -> None:
        super().__init__(message or f"Unexpected HTTP status {status}")
        self.status = status


class InvalidResponseError(SmartQQClientError):
    """Response body did not have the expected JSON shape."""

    pass


class ProtocolError(SmartQQClientError):
    """API envelope carried a non-zero retcode."""

    def __init__(self, retcode: Optional[int], message: Optional[str] = None) -> None:
        super().__init__(message or f"API returned retcode {retcode}")
        self.retcode = retcode


class SessionDesyncError(ProtocolError):
    """Retcode 103: the server-side session is out of sync and needs a new login."""

    def __init__(self) -> None:
        super().__init__(
            103,
            "API returned retcode 103 (session desynchronized). Log in at "
            "http://w.qq.com, check that messages are received, then use "
            "Settings -> Log out and log in again.",
        )


class SendFailedError(SmartQQClientError):
    """Message send was rejected by the server."""

    def __init__(self, err_code: int, retcode: Optional[int] = None) -> None:
        super().__init__(f"Send failed with errCode {err_code} (retcode {retcode})")
        self.err_code = err_code
        self.retcode = retcode


class AbortedError(SmartQQClientError):
    """Request aborted by the caller."""

    pass
