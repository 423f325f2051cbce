"""tinypat is a small WSGI request router with a pat-like API."""

from .core import (Handler, HandlerFn, HttpError, FuncHandler, Request,
                   RequestContext, Response, WSGIHandler, not_found)
from .router import Router, register_vars
from .table import Route, RouteMatch, RouteTable
from .util import clean_path

__all__ = [
    "FuncHandler", "Handler", "HandlerFn", "HttpError", "Request",
    "RequestContext", "Response", "Route", "RouteMatch", "RouteTable",
    "Router", "WSGIHandler", "clean_path", "not_found", "register_vars",
]


def new() -> Router:
    """Return a new, empty router."""
    return Router()
