"""HTTP client for the SmartQQ web endpoints."""

import asyncio
import json
import logging
from dataclasses import dataclass
from http.cookies import Morsel
from typing import Any, Dict, Optional

import aiohttp
from yarl import URL

from ..exceptions import ConnectionError as ClientConnectionError

logger = logging.getLogger(__name__)


@dataclass
class HttpResponse:
    """Buffered HTTP response."""

    status: int
    url: str
    body: bytes = b""

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        return json.loads(self.text)


class RestClient:
    """
    Async HTTP client that behaves like the browser web client.

    One ``aiohttp`` session is shared by every call so the cookie jar carries
    the login cookies from one handshake stage to the next.
    """

    def __init__(self, user_agent: str, timeout: float = 30) -> None:
        """
        Initialize REST client.

        Args:
            user_agent: User-Agent header sent with every request
            timeout: Default total timeout per request in seconds
        """
        self.user_agent = user_agent
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None
        self._cookie_jar: Optional[aiohttp.CookieJar] = None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure aiohttp session is created."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                cookie_jar=self.cookie_jar,
                headers={"User-Agent": self.user_agent},
            )
        return self._session

    @property
    def cookie_jar(self) -> aiohttp.CookieJar:
        """Cookie jar shared by every request; needs a running event loop."""
        if self._cookie_jar is None:
            self._cookie_jar = aiohttp.CookieJar()
        return self._cookie_jar

    def get_cookie(self, name: str, url: str) -> Optional[str]:
        """
        Look up a cookie the jar would send to ``url``.

        Args:
            name: Cookie name
            url: URL the cookie must be scoped to

        Returns:
            Cookie value, or None if absent
        """
        morsel = self.cookie_jar.filter_cookies(URL(url)).get(name)
        return morsel.value if morsel is not None else None

    def set_cookie(self, name: str, value: str, domain: str) -> None:
        """
        Store a cookie for ``domain`` and its subdomains.

        The value is stored raw, without cookie quoting.
        """
        morsel: Morsel = Morsel()
        morsel.set(name, value, value)
        morsel["domain"] = domain
        morsel["path"] = "/"
        self.cookie_jar.update_cookies({name: morsel}, response_url=URL(f"http://{domain}/"))

    def _get_headers(
        self, referer: Optional[str] = None, origin: Optional[str] = None
    ) -> Dict[str, str]:
        """Get headers for requests."""
        headers = {}
        if referer:
            headers["Referer"] = referer
        if origin:
            headers["Origin"] = origin
        return headers

    async def _request(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        data: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> HttpResponse:
        logger.debug(f"{method} {url}")

        try:
            session = await self._ensure_session()
            async with session.request(
                method,
                url,
                data=data,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=timeout or self.timeout),
                allow_redirects=True,
            ) as response:
                body = await response.read()
                logger.debug(f"Response status: {response.status}")
                return HttpResponse(status=response.status, url=str(response.url), body=body)

        except asyncio.TimeoutError as e:
            logger.error(f"{method} request timed out: {url}")
            raise ClientConnectionError(f"Request timed out: {url}") from e
        except aiohttp.ClientError as e:
            logger.error(f"{method} request failed: {e}")
            raise ClientConnectionError(f"Request failed: {e}") from e

    async def get(
        self,
        url: str,
        referer: Optional[str] = None,
        timeout: Optional[float] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> HttpResponse:
        """
        Send GET request.

        Args:
            url: Absolute URL
            referer: Referer header, if the endpoint checks it
            timeout: Override of the default timeout
            headers: Extra headers

        Returns:
            Buffered response

        Raises:
            ConnectionError: If request fails
        """
        request_headers = self._get_headers(referer)
        if headers:
            request_headers.update(headers)
        return await self._request("GET", url, request_headers, timeout=timeout)

    async def post_form(
        self,
        url: str,
        r: Dict[str, Any],
        referer: Optional[str] = None,
        origin: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> HttpResponse:
        """
        Send form POST with the JSON payload in the single field ``r``.

        Args:
            url: Absolute URL
            r: Payload serialized to JSON
            referer: Referer header
            origin: Origin header
            timeout: Override of the default timeout

        Returns:
            Buffered response

        Raises:
            ConnectionError: If request fails
        """
        data = {"r": json.dumps(r, ensure_ascii=False)}
        return await self._request(
            "POST", url, self._get_headers(referer, origin), data=data, timeout=timeout
        )

    async def close(self) -> None:
        """Close HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
            logger.debug("REST client session closed")
