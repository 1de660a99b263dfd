"""
SmartQQ Client Library

A Python library for the SmartQQ (WebQQ) chat web API: QR-code login,
long-polling for inbound messages and sending to friends, groups and
discussions. Enables developers to build bots and automation tools.
"""

from .client import SmartQQClient
from .config import ClientConfig
from .hashing import sign
from .models import (
    Font,
    TextElement,
    FaceElement,
    Message,
    GroupMessage,
    DiscussMessage,
    UserStatus,
)
from .polling import ExceptionOrigin, PollState
from .exceptions import (
    SmartQQClientError,
    PreconditionError,
    ConnectionError,
    TransportError,
    InvalidResponseError,
    ProtocolError,
    SessionDesyncError,
    SendFailedError,
    AbortedError,
)

__version__ = "0.1.0"
__all__ = [
    "SmartQQClient",
    "ClientConfig",
    "sign",
    "Font",
    "TextElement",
    "FaceElement",
    "Message",
    "GroupMessage",
    "DiscussMessage",
    "UserStatus",
    "ExceptionOrigin",
    "PollState",
    "SmartQQClientError",
    "PreconditionError",
    "ConnectionError",
    "TransportError",
    "InvalidResponseError",
    "ProtocolError",
    "SessionDesyncError",
    "SendFailedError",
    "AbortedError",
]
