"""QR-code login handshake."""

import asyncio
import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..config import ClientConfig
from ..exceptions import InvalidResponseError
from ..models import UserStatus
from ..protocol import check_status, get_object_result, get_response_json
from ..session import CLIENT_ID, Credentials, SessionState
from ..transport.rest import RestClient
from ..transport.urls import ApiURL

logger = logging.getLogger(__name__)

# Markers in the ptqrlogin JSONP body
QR_SUCCESS_MARKER = "成功"
QR_EXPIRED_MARKER = "已失效"

PT_TOKEN_COOKIE = "ptwebqq"
TRACKING_COOKIE_DOMAIN = "qq.com"


class QRStatus(str, Enum):
    """Outcome of one QR verification check."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    EXPIRED = "expired"


@dataclass
class QRVerification:
    status: QRStatus
    redirect_url: Optional[str] = None


@dataclass
class LoginAttempt:
    """Values gathered while a login is in progress."""

    qr: Optional[QRVerification] = None
    pt_token: Optional[str] = None
    vf_token: Optional[str] = None


def parse_qr_status(body: str) -> QRVerification:
    """
    Interpret a ptqrlogin response such as
    ``ptuiCB('0','0','http://...','0','登录成功！', 'nick');``.
    """
    if QR_SUCCESS_MARKER in body:
        for part in body.split("','"):
            if part.startswith("http"):
                return QRVerification(QRStatus.CONFIRMED, part)
        # Success without a URL yet; keep waiting
        return QRVerification(QRStatus.PENDING)
    if QR_EXPIRED_MARKER in body:
        return QRVerification(QRStatus.EXPIRED)
    return QRVerification(QRStatus.PENDING)


def random_digits(length: int) -> str:
    return "".join(random.choice("0123456789") for _ in range(length))


def _parse_status(value: object) -> UserStatus:
    try:
        return UserStatus(value)
    except ValueError:
        logger.warning(f"Unknown status from server: {value!r}, assuming online")
        return UserStatus.ONLINE


class LoginSequencer:
    """
    Drives the six login stages in order.

    Each stage consumes what the previous one produced. Any exception aborts the
    whole sequence and nothing is written into the session.
    """

    def __init__(self, rest: RestClient, config: ClientConfig) -> None:
        """
        Initialize LoginSequencer.

        Args:
            rest: Transport whose cookie jar carries the login cookies
            config: Client configuration
        """
        self._rest = rest
        self._config = config

    async def get_qr_code(self) -> bytes:
        """Stage 1: download the QR code image to be scanned with the mobile app."""
        logger.debug("Fetching QR code")
        response = await self._rest.get(
            ApiURL.GET_QR_CODE.build_url(),
            timeout=self._config.qr_code_timeout_seconds,
        )
        check_status(response)
        logger.debug("QR code fetched")
        return response.body

    async def check_qr_code(self) -> QRVerification:
        """Ask once whether the QR code has been scanned and confirmed."""
        response = await self._rest.get(
            ApiURL.VERIFY_QR_CODE.build_url(), referer=ApiURL.VERIFY_QR_CODE.referer
        )
        check_status(response)
        return parse_qr_status(response.text)

    async def wait_for_confirmation(self) -> QRVerification:
        """
        Stage 2: poll the verification endpoint until confirmed or expired.

        No timeout; the server eventually reports expiry.
        """
        logger.debug("Waiting for QR code scan")
        while True:
            await asyncio.sleep(self._config.qr_check_interval_seconds)
            verification = await self.check_qr_code()
            if verification.status == QRStatus.CONFIRMED:
                logger.info("QR code confirmed, logging in")
                return verification
            if verification.status == QRStatus.EXPIRED:
                logger.info("QR code expired")
                return verification

    async def fetch_pt_token(self, redirect_url: str) -> str:
        """Stage 3: follow the redirect and read the ptwebqq cookie."""
        logger.debug("Fetching ptwebqq")
        response = await self._rest.get(ApiURL.GET_PTWEBQQ.build_url(redirect_url))
        pt_token = self._rest.get_cookie(PT_TOKEN_COOKIE, response.url)
        if pt_token is None:
            logger.warning("ptwebqq cookie missing, continuing with an empty token")
            return ""
        return pt_token

    async def fetch_vf_token(self, pt_token: str) -> str:
        """Stage 4: exchange ptwebqq for vfwebqq."""
        logger.debug("Fetching vfwebqq")
        response = await self._rest.get(
            ApiURL.GET_VFWEBQQ.build_url(pt_token), referer=ApiURL.GET_VFWEBQQ.referer
        )
        result = get_object_result(response)
        vf_token = result.get("vfwebqq")
        if not isinstance(vf_token, str):
            raise InvalidResponseError("vfwebqq missing from response")
        return vf_token

    async def _warm_up(self) -> None:
        """Seed the tracking cookies and load the pages a browser would load."""
        self._rest.set_cookie("pgv_info", "ssid=s" + random_digits(10), TRACKING_COOKIE_DOMAIN)
        self._rest.set_cookie("pgv_pvid", random_digits(10), TRACKING_COOKIE_DOMAIN)

        headers = {"Upgrade-Insecure-Requests": "1"}
        for page in (ApiURL.LOGIN_PAGE, ApiURL.PROXY_PAGE):
            await self._rest.get(page.build_url(), referer=page.referer, headers=headers)

    async def fetch_session(self, pt_token: str) -> tuple[str, int, UserStatus]:
        """
        Stage 5: open the chat session.

        Returns:
            (psessionid, uin, status)
        """
        logger.debug("Fetching uin and psessionid")
        await self._warm_up()

        r = {
            "ptwebqq": pt_token,
            "clientid": CLIENT_ID,
            "psessionid": "",
            "status": UserStatus.ONLINE.value,
        }
        url = ApiURL.GET_UIN_AND_PSESSIONID
        response = await self._rest.post_form(
            url.build_url(), r, referer=url.referer, origin=url.origin
        )
        result = get_object_result(response)
        try:
            session_id = str(result["psessionid"])
            uin = int(result["uin"])
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidResponseError(f"Malformed login2 result: {e}") from e
        return session_id, uin, _parse_status(result.get("status"))

    async def avoid_retcode_103(self, credentials: Credentials) -> None:
        """Stage 6: prime server-side polling state so later calls do not get 103."""
        logger.debug("Sending request to avoid retcode 103")
        url = ApiURL.AVOID_RETCODE_103
        response = await self._rest.get(
            url.build_url(credentials.vf_token, CLIENT_ID, credentials.session_id),
            referer=url.referer,
        )
        get_response_json(response)

    async def login(self, session: SessionState) -> bool:
        """
        Run stages 2 to 6 and fill ``session``.

        Stage 1 (``get_qr_code``) is called by the user beforehand to display the code.

        Returns:
            True if the QR code expired, False if login succeeded
        """
        attempt = LoginAttempt()
        attempt.qr = await self.wait_for_confirmation()
        if attempt.qr.status == QRStatus.EXPIRED:
            return True

        attempt.pt_token = await self.fetch_pt_token(attempt.qr.redirect_url)
        attempt.vf_token = await self.fetch_vf_token(attempt.pt_token)
        session_id, uin, status = await self.fetch_session(attempt.pt_token)

        credentials = Credentials(
            pt_token=attempt.pt_token,
            vf_token=attempt.vf_token,
            uin=uin,
            session_id=session_id,
        )
        await self.avoid_retcode_103(credentials)

        session.establish(credentials, status)
        logger.info(f"Logged in as {uin}")
        return False
