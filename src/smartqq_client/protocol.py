"""Response envelope validation.

Every JSON endpoint answers ``{"retcode": int, "result": ...}``; the send
endpoints answer ``{"errCode": int, "retcode": int, ...}``.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from .exceptions import (
    InvalidResponseError,
    ProtocolError,
    SendFailedError,
    SessionDesyncError,
    TransportError,
)
from .transport.rest import HttpResponse

logger = logging.getLogger(__name__)

RETCODE_SESSION_DESYNC = 103


def check_status(response: HttpResponse) -> None:
    """
    Raise if the HTTP status is not 200.

    Raises:
        TransportError: Carrying the status
    """
    if response.status != 200:
        raise TransportError(response.status)


def _parse_body(response: HttpResponse) -> Dict[str, Any]:
    try:
        data = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidResponseError(f"Response is not JSON: {e}") from e
    if not isinstance(data, dict):
        raise InvalidResponseError(f"Response is not a JSON object: {type(data).__name__}")
    return data


def _check_retcode(retcode: Optional[int]) -> None:
    if retcode == 0:
        return
    if retcode == RETCODE_SESSION_DESYNC:
        logger.error("API returned retcode 103, the session needs a new login")
        raise SessionDesyncError()
    raise ProtocolError(retcode)


def get_response_json(response: HttpResponse) -> Dict[str, Any]:
    """
    Validate status and envelope, returning the whole envelope.

    Raises:
        TransportError: Non-200 status
        InvalidResponseError: Body is not a JSON object
        SessionDesyncError: retcode 103
        ProtocolError: Any other non-zero or missing retcode
    """
    check_status(response)
    envelope = _parse_body(response)
    _check_retcode(envelope.get("retcode"))
    return envelope


def get_result(response: HttpResponse) -> Any:
    """Validate the envelope and return its ``result`` field as is."""
    return get_response_json(response).get("result")


def get_object_result(response: HttpResponse) -> Dict[str, Any]:
    """Validate the envelope and return ``result``, which must be an object."""
    result = get_result(response)
    if not isinstance(result, dict):
        raise InvalidResponseError(f"Expected object result, got {type(result).__name__}")
    return result


def get_array_result(response: HttpResponse) -> List[Any]:
    """Validate the envelope and return ``result`` as a list (empty if absent)."""
    result = get_result(response)
    if result is None:
        return []
    if not isinstance(result, list):
        raise InvalidResponseError(f"Expected array result, got {type(result).__name__}")
    return result


def check_send_result(response: HttpResponse) -> None:
    """
    Validate the answer of a send endpoint.

    ``errCode`` decides when present; otherwise the ``retcode`` rules apply.

    Raises:
        TransportError: Non-200 status
        SendFailedError: errCode present and non-zero
        ProtocolError: errCode absent and retcode non-zero
    """
    if response.status != 200:
        raise TransportError(response.status)

    body = _parse_body(response)
    err_code = body.get("errCode")
    if err_code is None:
        _check_retcode(body.get("retcode"))
    elif err_code != 0:
        raise SendFailedError(err_code, body.get("retcode"))
    logger.debug("Message sent")
