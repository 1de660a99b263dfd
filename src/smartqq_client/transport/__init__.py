"""Transport layer for network communication."""

from .rest import RestClient, HttpResponse
from .retry import RequestRetrier
from .urls import ApiURL

__all__ = ["RestClient", "HttpResponse", "RequestRetrier", "ApiURL"]
