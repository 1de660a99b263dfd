"""Pytest configuration and fixtures for smartqq_client tests."""

import json
from typing import Any, Callable, Optional

import pytest

from smartqq_client.config import ClientConfig
from smartqq_client.session import Credentials
from smartqq_client.transport.rest import HttpResponse


def create_response(
    data: Any = None,
    status: int = 200,
    url: str = "http://d1.web2.qq.com/",
    body: Optional[bytes] = None,
) -> HttpResponse:
    """Create a buffered response; ``data`` is JSON-encoded unless ``body`` is given."""
    if body is None:
        body = b"" if data is None else json.dumps(data, ensure_ascii=False).encode("utf-8")
    return HttpResponse(status=status, url=url, body=body)


@pytest.fixture
def make_response() -> Callable[..., HttpResponse]:
    """Factory for buffered HTTP responses."""
    return create_response


@pytest.fixture
def config() -> ClientConfig:
    """Config that does not wait between QR checks."""
    return ClientConfig(qr_check_interval_seconds=0)


@pytest.fixture
def credentials() -> Credentials:
    """Token set of a logged-in session."""
    return Credentials(
        pt_token="pt_token_value",
        vf_token="vf_token_value",
        uin=2872917123,
        session_id="session_id_value",
    )
