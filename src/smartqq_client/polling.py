"""Long-poll loop delivering inbound messages."""

import asyncio
import inspect
import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .config import ClientConfig
from .exceptions import (
    AbortedError,
    ConnectionError as ClientConnectionError,
    TransportError,
)
from .logging import handle_exception
from .models import DiscussMessage, GroupMessage, Message
from .protocol import check_status, get_array_result
from .session import CLIENT_ID, Credentials
from .transport.rest import HttpResponse, RestClient
from .transport.urls import ApiURL

logger = logging.getLogger(__name__)


class PollState(Enum):
    """Poll loop states."""
    IDLE = "idle"
    POLLING = "polling"
    DISPATCHING = "dispatching"
    STOPPED = "stopped"


class ExceptionOrigin(str, Enum):
    """Where in the poll loop an error reported to exception handlers came from."""

    POLL_LOOP = "poll_loop"  # the loop itself
    POLL_IO = "poll_io"  # the poll request failed
    POLL_DISPATCH = "poll_dispatch"  # validating, parsing or handling the events


async def _call(handler: Callable, *args: Any) -> None:
    result = handler(*args)
    if inspect.isawaitable(result):
        await result


class EventHandlers:
    """Registered callbacks, invoked on the poll task."""

    def __init__(self) -> None:
        self.message_handlers: List[Callable] = []
        self.group_message_handlers: List[Callable] = []
        self.discuss_message_handlers: List[Callable] = []
        self.exception_handlers: List[Callable] = []

    async def report(self, error: BaseException, origin: ExceptionOrigin) -> None:
        """Log ``error`` and hand it to every exception handler."""
        handle_exception(error, context=origin.value)
        for handler in self.exception_handlers:
            try:
                await _call(handler, error, origin)
            except Exception as e:
                logger.error(f"Exception handler error: {e}")

    async def dispatch(self, item: Dict[str, Any]) -> None:
        """
        Route one poll result item by its ``poll_type``.

        Args:
            item: ``{"poll_type": ..., "value": {...}}``
        """
        poll_type = item.get("poll_type")
        value = item.get("value") or {}

        if poll_type == "message":
            event, handlers = Message.from_poll(value), self.message_handlers
        elif poll_type == "group_message":
            event, handlers = GroupMessage.from_poll(value), self.group_message_handlers
        elif poll_type == "discu_message":
            event, handlers = DiscussMessage.from_poll(value), self.discuss_message_handlers
        else:
            logger.debug(f"Unknown poll type: {poll_type}")
            return

        for handler in handlers:
            try:
                await _call(handler, event)
            except Exception as e:
                await self.report(e, ExceptionOrigin.POLL_DISPATCH)


class PollLoop:
    """
    Background task that long-polls ``poll2`` until stopped.

    One request is outstanding at a time. Its events are dispatched in server
    order before the next request goes out, so handlers never run concurrently.
    A failed round is reported and polling carries on.
    """

    def __init__(
        self,
        rest: RestClient,
        credentials: Credentials,
        handlers: EventHandlers,
        config: ClientConfig,
    ) -> None:
        """
        Initialize PollLoop.

        Args:
            rest: Transport for the poll request
            credentials: Token set snapshot taken when polling starts
            handlers: Callbacks to dispatch to
            config: Client configuration
        """
        self._rest = rest
        self._credentials = credentials
        self._handlers = handlers
        self._config = config

        self._state = PollState.IDLE
        self._keep_polling = True
        self._abort_requested = False
        self._task: Optional[asyncio.Task] = None
        self._request_task: Optional[asyncio.Task] = None

    @property
    def state(self) -> PollState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def add_done_callback(self, callback: Callable[[asyncio.Task], None]) -> None:
        """Run ``callback`` once the poll task has exited."""
        if self._task is None:
            raise RuntimeError("Poll loop not started")
        self._task.add_done_callback(callback)

    def start(self) -> asyncio.Task:
        """Start the poll task; must be called from a running event loop."""
        if self._task is not None:
            raise RuntimeError("Poll loop already started")
        self._task = asyncio.create_task(self._run(), name="smartqq-poll")
        logger.debug("Poll loop started")
        return self._task

    async def stop(self) -> None:
        """
        Stop after the outstanding round has been dispatched.

        Waits for the poll task to exit unless called from the poll task itself
        (from an event handler).
        """
        self._keep_polling = False
        await self._join()

    async def stop_now(self) -> None:
        """Abort the outstanding poll request and wait for the poll task to exit."""
        self._keep_polling = False
        self._abort_requested = True
        request_task = self._request_task
        if request_task is not None and not request_task.done():
            request_task.cancel()
        await self._join()

    async def _join(self) -> None:
        task = self._task
        if task is None or task is asyncio.current_task():
            return
        await asyncio.wait({task})

    def _build_request(self) -> tuple[str, Dict[str, Any]]:
        api = ApiURL.POLL_MESSAGE
        url = api.https_url() if self._config.https_chat_message else api.build_url()
        r = {
            "ptwebqq": self._credentials.pt_token,
            "clientid": CLIENT_ID,
            "psessionid": self._credentials.session_id,
            "key": "",
        }
        return url, r

    async def _poll_once(self) -> HttpResponse:
        """
        Issue one long-poll request.

        Raises:
            AbortedError: If ``stop_now`` cancelled the request
        """
        url, r = self._build_request()
        api = ApiURL.POLL_MESSAGE
        self._request_task = asyncio.create_task(
            self._rest.post_form(
                url,
                r,
                referer=api.referer,
                origin=api.origin,
                timeout=self._config.poll_timeout_seconds,
            )
        )
        try:
            response = await self._request_task
        except asyncio.CancelledError:
            if self._abort_requested:
                raise AbortedError("Poll request aborted by caller") from None
            raise
        finally:
            self._request_task = None

        check_status(response)
        return response

    async def _dispatch(self, response: HttpResponse) -> None:
        for item in get_array_result(response):
            await self._handlers.dispatch(item)

    async def _run(self) -> None:
        try:
            while self._keep_polling:
                self._state = PollState.POLLING
                logger.debug("Polling for messages")
                try:
                    response = await self._poll_once()
                except AbortedError:
                    logger.debug("Poll request aborted, stopping")
                    break
                except (ClientConnectionError, TransportError) as e:
                    await self._handlers.report(e, ExceptionOrigin.POLL_IO)
                    await self._after_error()
                    continue
                except Exception as e:
                    await self._handlers.report(e, ExceptionOrigin.POLL_LOOP)
                    await self._after_error()
                    continue

                self._state = PollState.DISPATCHING
                try:
                    await self._dispatch(response)
                except Exception as e:
                    await self._handlers.report(e, ExceptionOrigin.POLL_DISPATCH)
                self._state = PollState.IDLE
        finally:
            self._state = PollState.STOPPED
            logger.debug("Poll loop stopped")

    async def _after_error(self) -> None:
        self._state = PollState.IDLE
        if self._config.poll_error_delay_seconds > 0 and self._keep_polling:
            await asyncio.sleep(self._config.poll_error_delay_seconds)
