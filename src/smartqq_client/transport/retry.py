"""Bounded retry for message sends."""

import asyncio
import logging
from typing import Any, Dict, Optional

from .rest import HttpResponse, RestClient

logger = logging.getLogger(__name__)


class RequestRetrier:
    """
    Re-issues an identical form POST until it gets HTTP 200.

    Only the HTTP status is looked at; the final response, whatever its status,
    is handed back for envelope validation.
    """

    def __init__(
        self,
        rest: RestClient,
        max_attempts: int = 5,
        backoff_seconds: float = 0.0,
    ) -> None:
        """
        Args:
            rest: Transport used for every attempt
            max_attempts: Total attempts including the first one
            backoff_seconds: Delay before retry N is N * backoff_seconds; 0 retries immediately
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._rest = rest
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds

    async def post_with_retry(
        self,
        url: str,
        r: Dict[str, Any],
        referer: Optional[str] = None,
        origin: Optional[str] = None,
    ) -> HttpResponse:
        """
        POST ``r`` to ``url``, retrying on non-200 statuses.

        Returns:
            The first 200 response, or the last response after all attempts
        """
        attempt = 0
        while True:
            response = await self._rest.post_form(url, r, referer=referer, origin=origin)
            attempt += 1
            if response.status == 200 or attempt >= self.max_attempts:
                return response

            logger.warning(
                f"POST {url} returned {response.status} "
                f"(attempt {attempt}/{self.max_attempts}), retrying"
            )
            if self.backoff_seconds > 0:
                await asyncio.sleep(self.backoff_seconds * attempt)
