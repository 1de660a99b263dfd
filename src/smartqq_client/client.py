"""Main SmartQQ Client class."""

import asyncio
import logging
import random
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from .auth import LoginSequencer
from .config import ClientConfig, get_config
from .exceptions import InvalidResponseError, SmartQQClientError
from .hashing import sign
from .logging import configure_logging, get_error_handler, handle_exception
from .models import (
    Category,
    Discuss,
    DiscussInfo,
    DiscussUser,
    Font,
    Friend,
    FriendStatus,
    Group,
    GroupInfo,
    GroupUser,
    MessageContentElement,
    Recent,
    UserInfo,
    UserStatus,
    to_content_json,
)
from .polling import EventHandlers, PollLoop
from .protocol import (
    check_send_result,
    check_status,
    get_array_result,
    get_object_result,
    get_response_json,
)
from .session import CLIENT_ID, SessionState
from .transport import ApiURL, HttpResponse, RequestRetrier, RestClient

logger = logging.getLogger(__name__)

# Decorative face id the web client attaches to every message
MESSAGE_FACE = 573

MessageContent = Union[str, Sequence[Union[MessageContentElement, str]]]


class SmartQQClient:
    """
    Client for the SmartQQ web chat API.

    Example:
        >>> async with SmartQQClient() as client:
        ...     @client.on_message
        ...     async def handle(msg):
        ...         await client.send_message_to_friend(msg.user_id, "Echo: " + msg.content)
        ...
        ...     open("qr.png", "wb").write(await client.get_qr_code())
        ...     if await client.login():
        ...         print("QR code expired")
    """

    def __init__(self, config: Optional[ClientConfig] = None) -> None:
        """
        Initialize SmartQQ Client.

        Args:
            config: Client configuration (default: the global configuration)
        """
        self.config = config or get_config()
        configure_logging(self.config.log_level, self.config.log_file)

        self._rest = RestClient(
            user_agent=self.config.user_agent,
            timeout=self.config.request_timeout_seconds,
        )
        self._session = SessionState()
        self._login = LoginSequencer(self._rest, self.config)
        self._retrier = RequestRetrier(
            self._rest,
            max_attempts=self.config.send_retry_times,
            backoff_seconds=self.config.send_retry_backoff_seconds,
        )
        self._handlers = EventHandlers()
        self._poll_loop: Optional[PollLoop] = None
        self._face_domain_random = random.Random()
        self._shutdown_scheduled = False
        self._shutdown_task: Optional[asyncio.Future] = None
        self._closed = False

    @property
    def session(self) -> SessionState:
        return self._session

    @property
    def is_logged_in(self) -> bool:
        """Check if login completed."""
        return self._session.is_logged_in

    @property
    def is_polling(self) -> bool:
        """Check if the poll loop is running."""
        return self._poll_loop is not None and self._poll_loop.is_running

    @property
    def self_user_id(self) -> Optional[int]:
        """uin of the logged-in account."""
        credentials = self._session.credentials
        return credentials.uin if credentials else None

    @property
    def self_status(self) -> Optional[UserStatus]:
        """Last known presence status of the logged-in account."""
        return self._session.status

    def get_error_history(self, count: int = 10, context: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Recently reported poll and send errors, oldest first.

        Args:
            count: Maximum number of entries (0 for all)
            context: An ``ExceptionOrigin`` value or ``"send"``
        """
        return get_error_handler().get_error_history(count, context=context)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def on_message(self, handler: Callable) -> Callable:
        """
        Register handler for private messages.

        Handlers may be plain functions or coroutine functions and run on the
        poll task, one event at a time.

        Example:
            @client.on_message
            async def handle_message(msg):
                print(f"{msg.user_id}: {msg.content}")
        """
        self._handlers.message_handlers.append(handler)
        return handler

    def on_group_message(self, handler: Callable) -> Callable:
        """Register handler for group messages."""
        self._handlers.group_message_handlers.append(handler)
        return handler

    def on_discuss_message(self, handler: Callable) -> Callable:
        """Register handler for discussion messages."""
        self._handlers.discuss_message_handlers.append(handler)
        return handler

    def on_exception(self, handler: Callable) -> Callable:
        """
        Register handler for errors raised while polling.

        Called as ``handler(error, origin)`` where ``origin`` is an
        ``ExceptionOrigin``.
        """
        self._handlers.exception_handlers.append(handler)
        return handler

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Load the web client page so the server sets its initial cookies."""
        await self._rest.get(
            ApiURL.SMART_QQ.build_url(), headers={"Upgrade-Insecure-Requests": "1"}
        )

    async def get_qr_code(self) -> bytes:
        """
        Download the login QR code image.

        Returns:
            PNG image bytes
        """
        return await self._login.get_qr_code()

    async def login(self) -> bool:
        """
        Block until the QR code is scanned and confirmed, then start polling.

        Returns:
            True if the QR code expired (login did not happen), False on success

        Raises:
            SmartQQClientError: If a handshake stage fails
        """
        if self._closed:
            raise SmartQQClientError("Client is closed")

        # A session has at most one poll task; the old one uses stale credentials
        if self._poll_loop is not None and self._poll_loop.is_running:
            logger.info("Stopping previous poll loop before logging in again")
            await self._poll_loop.stop_now()

        expired = await self._login.login(self._session)
        if expired:
            return True

        await self.get_friend_status()
        self._start_polling()
        return False

    def _start_polling(self) -> None:
        self._poll_loop = PollLoop(
            self._rest,
            self._session.require_credentials(),
            self._handlers,
            self.config,
        )
        self._poll_loop.start()

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    def _chat_url(self, api: ApiURL) -> str:
        return api.https_url() if self.config.https_chat_message else api.build_url()

    async def _send(
        self,
        api: ApiURL,
        target_key: str,
        target_id: int,
        content: MessageContent,
        font: Optional[Font],
    ) -> None:
        credentials = self._session.require_credentials()
        if isinstance(content, str):
            content = [content]

        r = {
            target_key: target_id,
            "content": to_content_json(content, font),
            "face": MESSAGE_FACE,
            "clientid": CLIENT_ID,
            "msg_id": self._session.next_message_id(),
            "psessionid": credentials.session_id,
        }
        response = await self._retrier.post_with_retry(
            self._chat_url(api), r, referer=api.referer, origin=api.origin
        )
        try:
            check_send_result(response)
        except SmartQQClientError as e:
            handle_exception(e, context="send")
            raise

    async def send_message_to_friend(
        self, friend_id: int, content: MessageContent, font: Optional[Font] = None
    ) -> None:
        """
        Send a private message.

        Args:
            friend_id: Friend uin
            content: Text, or a list of text/face elements
            font: Message font (default: Font.default())

        Raises:
            PreconditionError: If not logged in
            TransportError: If every attempt got a non-200 status
            SendFailedError: If the server rejected the message
        """
        logger.debug("Sending message to friend")
        await self._send(ApiURL.SEND_MESSAGE_TO_FRIEND, "to", friend_id, content, font)

    async def send_message_to_group(
        self, group_id: int, content: MessageContent, font: Optional[Font] = None
    ) -> None:
        """Send a message to a group (``group_id`` is the group's gid)."""
        logger.debug("Sending message to group")
        await self._send(ApiURL.SEND_MESSAGE_TO_GROUP, "group_uin", group_id, content, font)

    async def send_message_to_discuss(
        self, discuss_id: int, content: MessageContent, font: Optional[Font] = None
    ) -> None:
        """Send a message to a discussion."""
        logger.debug("Sending message to discussion")
        await self._send(ApiURL.SEND_MESSAGE_TO_DISCUSS, "did", discuss_id, content, font)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def _get(self, api: ApiURL, *params: Any) -> HttpResponse:
        return await self._rest.get(api.build_url(*params), referer=api.referer)

    async def _post(self, api: ApiURL, r: Dict[str, Any]) -> HttpResponse:
        return await self._rest.post_form(
            api.build_url(), r, referer=api.referer, origin=api.origin
        )

    def _signed_request(self) -> Dict[str, Any]:
        credentials = self._session.require_credentials()
        return {
            "vfwebqq": credentials.vf_token,
            "hash": sign(credentials.uin, credentials.pt_token),
        }

    async def get_group_list(self) -> List[Group]:
        """Get the groups the account belongs to."""
        logger.debug("Fetching group list")
        result = get_object_result(await self._post(ApiURL.GET_GROUP_LIST, self._signed_request()))
        return [Group(**item) for item in result.get("gnamelist") or []]

    async def get_friend_list(self) -> List[Friend]:
        """Get all friends."""
        logger.debug("Fetching friend list")
        result = get_object_result(await self._post(ApiURL.GET_FRIEND_LIST, self._signed_request()))
        return list(_parse_friend_map(result).values())

    async def get_friend_list_with_category(self) -> List[Category]:
        """Get friends grouped by category; category 0 is the default one."""
        logger.debug("Fetching friend list with categories")
        result = get_object_result(await self._post(ApiURL.GET_FRIEND_LIST, self._signed_request()))
        friend_map = _parse_friend_map(result)

        categories: Dict[int, Category] = {0: Category.default_category()}
        for item in result.get("categories") or []:
            category = Category(**item)
            categories[category.index] = category

        for item in result.get("friends") or []:
            friend = friend_map.get(item["uin"])
            category = categories.get(item.get("categories", 0))
            if friend is not None and category is not None:
                category.friends.append(friend)
        return list(categories.values())

    async def get_discuss_list(self) -> List[Discuss]:
        """Get the discussions the account takes part in."""
        logger.debug("Fetching discussion list")
        credentials = self._session.require_credentials()
        result = get_object_result(
            await self._get(ApiURL.GET_DISCUSS_LIST, credentials.session_id, credentials.vf_token)
        )
        return [Discuss(**item) for item in result.get("dnamelist") or []]

    async def get_account_info(self) -> UserInfo:
        """Get the profile of the logged-in account."""
        logger.debug("Fetching account info")
        self._session.require_credentials()
        return UserInfo(**get_object_result(await self._get(ApiURL.GET_ACCOUNT_INFO)))

    async def get_friend_info(self, friend_id: int) -> UserInfo:
        """Get a friend's profile."""
        logger.debug("Fetching friend info")
        credentials = self._session.require_credentials()
        response = await self._get(
            ApiURL.GET_FRIEND_INFO, friend_id, credentials.vf_token, credentials.session_id
        )
        return UserInfo(**get_object_result(response))

    async def get_recent_list(self) -> List[Recent]:
        """Get recent conversations."""
        logger.debug("Fetching recent list")
        credentials = self._session.require_credentials()
        r = {"vfwebqq": credentials.vf_token, "clientid": CLIENT_ID, "psessionid": ""}
        return [Recent(**item) for item in get_array_result(await self._post(ApiURL.GET_RECENT_LIST, r))]

    async def get_qq_by_id(self, user_id: int) -> int:
        """Resolve a user id into the account's QQ number."""
        logger.debug("Fetching QQ number")
        credentials = self._session.require_credentials()
        result = get_object_result(await self._get(ApiURL.GET_QQ_BY_ID, user_id, credentials.vf_token))
        try:
            return int(result["account"])
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidResponseError(f"Malformed get_friend_uin2 result: {e}") from e

    async def get_friend_status(self) -> List[FriendStatus]:
        """Get the online status of friends who are not offline."""
        logger.debug("Fetching friend status")
        credentials = self._session.require_credentials()
        response = await self._get(
            ApiURL.GET_FRIEND_STATUS, credentials.vf_token, credentials.session_id
        )
        return [FriendStatus(**item) for item in get_array_result(response)]

    async def get_group_info(self, group_code: int) -> GroupInfo:
        """Get group details and members by group code."""
        logger.debug("Fetching group info")
        credentials = self._session.require_credentials()
        result = get_object_result(
            await self._get(ApiURL.GET_GROUP_INFO, group_code, credentials.vf_token)
        )
        group_info = GroupInfo(**(result.get("ginfo") or {}))

        users: Dict[int, GroupUser] = {}
        for item in result.get("minfo") or []:
            user = GroupUser(**item)
            users[user.uin] = user
            group_info.users.append(user)
        for item in result.get("stats") or []:
            user = users.get(item["uin"])
            if user is not None:
                user.client_type = item.get("client_type", 0)
                user.status = item.get("stat", 0)
        for item in result.get("cards") or []:
            user = users.get(item["muin"])
            if user is not None:
                user.card = item.get("card")
        for item in result.get("vipinfo") or []:
            user = users.get(item["u"])
            if user is not None:
                user.vip = item.get("is_vip") == 1
                user.vip_level = item.get("vip_level", 0)
        return group_info

    async def get_discuss_info(self, discuss_id: int) -> DiscussInfo:
        """Get discussion details and members."""
        logger.debug("Fetching discussion info")
        credentials = self._session.require_credentials()
        result = get_object_result(
            await self._get(
                ApiURL.GET_DISCUSS_INFO, discuss_id, credentials.vf_token, credentials.session_id
            )
        )
        discuss_info = DiscussInfo(**(result.get("info") or {}))

        users: Dict[int, DiscussUser] = {}
        for item in result.get("mem_info") or []:
            user = DiscussUser(**item)
            users[user.uin] = user
            discuss_info.users.append(user)
        for item in result.get("mem_status") or []:
            user = users.get(item["uin"])
            if user is not None:
                user.client_type = item.get("client_type", 0)
                user.status = str(item.get("status", ""))
        return discuss_info

    async def change_status(self, status: UserStatus) -> None:
        """
        Change the account's presence status.

        The local status only changes once the server accepted it.
        """
        logger.debug(f"Changing status to {status}")
        status = UserStatus(status)
        credentials = self._session.require_credentials()
        get_response_json(
            await self._get(ApiURL.CHANGE_STATUS, status.value, credentials.session_id)
        )
        self._session.status = status

    async def get_user_face(self, user_id: int) -> bytes:
        """
        Download a user's avatar.

        Returns:
            Image bytes
        """
        credentials = self._session.require_credentials()
        api = ApiURL.GET_USER_FACE
        response = await self._rest.get(
            api.build_url(self._face_domain_random.randint(0, 9), user_id, credentials.vf_token),
            referer=api.referer,
        )
        check_status(response)
        return response.body

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """
        Stop polling gracefully and release the HTTP session.

        The outstanding poll round is still dispatched before the poll task exits.
        """
        if self._poll_loop is not None:
            await self._poll_loop.stop()
        await self._shutdown()

    async def close_now(self) -> None:
        """Abort the outstanding poll request, stop polling and release the HTTP session."""
        if self._poll_loop is not None:
            await self._poll_loop.stop_now()
        await self._shutdown()

    async def _shutdown(self) -> None:
        if self._closed:
            return
        if self._poll_loop is not None and self._poll_loop.is_running:
            # Called from a handler: finish once the poll task has exited
            if not self._shutdown_scheduled:
                self._shutdown_scheduled = True
                self._poll_loop.add_done_callback(self._finish_shutdown)
            return

        logger.info("Closing SmartQQClient")
        await self._rest.close()
        self._closed = True
        logger.info("SmartQQClient closed")

    def _finish_shutdown(self, _task: asyncio.Task) -> None:
        self._shutdown_task = asyncio.ensure_future(self._shutdown())

    async def __aenter__(self) -> "SmartQQClient":
        """Enter async context manager."""
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore
        """Exit async context manager and cleanup."""
        await self.close()


def _parse_friend_map(result: Dict[str, Any]) -> Dict[int, Friend]:
    friends: Dict[int, Friend] = {}
    for item in result.get("info") or []:
        friend = Friend(user_id=item["uin"], nickname=item.get("nick", ""))
        friends[friend.user_id] = friend
    for item in result.get("marknames") or []:
        friend = friends.get(item["uin"])
        if friend is not None:
            friend.markname = item.get("markname")
    for item in result.get("vipinfo") or []:
        friend = friends.get(item["u"])
        if friend is not None:
            friend.vip = item.get("is_vip") == 1
            friend.vip_level = item.get("vip_level", 0)
    return friends
