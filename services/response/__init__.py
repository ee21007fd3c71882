"""Public API del sotto-package response."""

from .asgi import AsgiResponse  # noqa: F401
from .contract import HttpResponse, OutputStream, TextWriter  # noqa: F401
from .tee import ExchangeState, TeeOutputStream, TeeResponse, TeeWriter  # noqa: F401

__all__ = [
    "AsgiResponse",
    "HttpResponse",
    "OutputStream",
    "TextWriter",
    "ExchangeState",
    "TeeOutputStream",
    "TeeResponse",
    "TeeWriter",
]
