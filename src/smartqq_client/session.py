"""Session credentials and per-session counters."""

import itertools
import logging
from dataclasses import dataclass
from typing import Optional

from .exceptions import PreconditionError
from .models import UserStatus

logger = logging.getLogger(__name__)

# Fixed client id the web client sends with every session call
CLIENT_ID = 53999199

# First msg_id used for outbound messages
INITIAL_MESSAGE_ID = 43690001


@dataclass(frozen=True)
class Credentials:
    """Session token set produced by a completed login."""

    pt_token: str
    vf_token: str
    uin: int
    session_id: str


class SessionState:
    """
    Credentials plus the little state that changes after login.

    Credentials are swapped as a whole frozen snapshot, so readers on the poll
    task and on caller tasks never see a half-written token set. ``status`` is
    the only field that changes once logged in.
    """

    def __init__(self) -> None:
        self._credentials: Optional[Credentials] = None
        self._status: Optional[UserStatus] = None
        self._message_ids = itertools.count(INITIAL_MESSAGE_ID)

    @property
    def credentials(self) -> Optional[Credentials]:
        return self._credentials

    @property
    def is_logged_in(self) -> bool:
        return self._credentials is not None

    @property
    def status(self) -> Optional[UserStatus]:
        return self._status

    @status.setter
    def status(self, value: UserStatus) -> None:
        self._status = UserStatus(value)

    def establish(self, credentials: Credentials, status: UserStatus) -> None:
        """Install the token set from a finished login."""
        self._credentials = credentials
        self._status = UserStatus(status)
        logger.debug(f"Session established for uin {credentials.uin}")

    def require_credentials(self) -> Credentials:
        """
        Get the current credentials.

        Raises:
            PreconditionError: If login has not completed
        """
        credentials = self._credentials
        if credentials is None:
            raise PreconditionError("Not logged in")
        return credentials

    def next_message_id(self) -> int:
        """Next outbound ``msg_id``; strictly increasing, never reused."""
        return next(self._message_ids)

    def clear(self) -> None:
        """Forget credentials. The message id counter keeps counting."""
        self._credentials = None
        self._status = None
