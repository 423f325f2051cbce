import wsgiref.simple_server
import wsgiref.types
import socketserver
import logging
import html
import urllib.parse

from . import util
from .core import (VAR_PREFIX, AnyHandler, Handler, HttpError, Request,
                   Response, make_handler, not_found)
from .table import Route, RouteTable

import typing as t
_O = t.Optional
_T = t.TypeVar("_T")
_Wrapper = t.Callable[[_T], _T]

logger = logging.getLogger(__name__)
server_logger = logging.getLogger("tinypat.server")


def _quote(s: str) -> str:
    # WSGI paths are request bytes decoded as latin-1; put the bytes back
    try:
        raw = s.encode("latin-1")
    except UnicodeEncodeError:
        raw = s.encode("utf-8")
    return urllib.parse.quote_plus(raw)


def register_vars(request: Request, vars: t.Mapping[str, str]) -> None:
    """Add the matched route variables to the request's query string.

    Each variable becomes ``:name=value`` (both sides query-escaped) and is
    appended after any existing query. The order of the added pairs follows
    the mapping and is not something callers should rely on.
    """
    if not vars:
        return
    q = "&".join(_quote(VAR_PREFIX + k) + "=" + _quote(v)
                 for k, v in vars.items())
    if request.query_string:
        q = f"{request.query_string}&{q}"
    request.set_query_string(q)


class Router:
    """A request router with a pat-like API.

    Routes are prefix matched and tried in the order they were added::

        router = Router()
        router.get("/items/:id", show_item)
        router.post("/items", add_item)
        router.serve_forever()

    Handlers read path variables from the query, e.g.
    ``request.query_vars[":id"]`` or ``request.route_vars["id"]``.
    """

    def __init__(self, *, keep_context: bool = False,
                 not_found_handler: _O[AnyHandler] = None):
        self.table = RouteTable()
        self.keep_context = keep_context
        self._not_found_handler: Handler | None = None
        self.not_found_handler = not_found_handler

    @property
    def routes(self) -> list[Route]:
        return self.table.routes

    # Fallback ------------------------------------------------------------

    @property
    def not_found_handler(self) -> Handler | None:
        return self._not_found_handler

    @not_found_handler.setter
    def not_found_handler(self, handler: _O[AnyHandler]):
        self._not_found_handler = make_handler(handler) if handler is not None else None

    def _fallback(self) -> Handler:
        if self._not_found_handler is None:
            self._not_found_handler = make_handler(not_found)
        return self._not_found_handler

    # Setup ---------------------------------------------------------------

    def add(self, method: str, path: str, handler: AnyHandler) -> Route:
        """Register a pattern with a handler for the given request method."""
        return self.table.register(method.upper(), path, make_handler(handler))

    def options(self, path: str, handler: AnyHandler) -> Route:
        return self.add("OPTIONS", path, handler)

    def delete(self, path: str, handler: AnyHandler) -> Route:
        return self.add("DELETE", path, handler)

    def head(self, path: str, handler: AnyHandler) -> Route:
        return self.add("HEAD", path, handler)

    def get(self, path: str, handler: AnyHandler) -> Route:
        return self.add("GET", path, handler)

    def post(self, path: str, handler: AnyHandler) -> Route:
        return self.add("POST", path, handler)

    def put(self, path: str, handler: AnyHandler) -> Route:
        return self.add("PUT", path, handler)

    def patch(self, path: str, handler: AnyHandler) -> Route:
        return self.add("PATCH", path, handler)

    def route(self, path: str, methods: _O[list[str]] = None) -> _Wrapper[AnyHandler]:
        """Decorator form of add(); no methods means any method."""
        def decorator(handlerfn: AnyHandler):
            if methods:
                for method in methods:
                    self.add(method, path, handlerfn)
            else:
                self.table.register(None, path, make_handler(handlerfn))
            return handlerfn
        return decorator

    # Request Handling ----------------------------------------------------

    def serve_http(self, request: Request, response: Response) -> None:
        """Dispatch the request to the handler of the matched route."""
        if (p := util.clean_path(request.path)) != request.path:
            logger.debug("redirecting %r to canonical %r", request.path, p)
            response.redirect(p)
            return

        handler = None
        if match := self.table.match(request):
            handler = match.handler
            register_vars(request, match.vars)
            logger.debug("%s %s matched %s", request.method, request.path,
                         match.route.path)
        if handler is None:
            logger.debug("%s %s matched no route", request.method, request.path)
            handler = self._fallback()
        try:
            handler.serve_http(request, response)
        finally:
            if not self.keep_context:
                request.context.clear()

    # Server Running ----------------------------------------------------

    def make_server(self, port=8080, host='', threaded=True):
        svr = wsgiref.simple_server.WSGIServer
        if threaded:  # Add threading mix-in
            svr = type('ThreadedServer', (socketserver.ThreadingMixIn, svr),
                       {'daemon_threads': True})
        return wsgiref.simple_server.make_server(host, port, self, server_class=svr)

    def serve_forever(self, port=8080, host='', threaded=True):
        print("Serving on %s:%s -- ctrl+c to quit." % (host, port))
        try:
            self.make_server(port, host, threaded).serve_forever()
        except KeyboardInterrupt:
            pass

    def __call__(self, environ: wsgiref.types.WSGIEnvironment,
                 start_response: wsgiref.types.StartResponse):
        """WSGI entrypoint."""
        request = Request.from_wsgi(environ)
        response, exc_info = self._wsgi_get_response(request)
        status, headers = response._wsgi_start_response_args()
        start_response(status, list(headers), exc_info)
        return response._wsgi_response()

    def _wsgi_get_response(self, request: Request):
        """Dispatch with 100% error handling."""
        response = Response()
        try:
            with HttpError.wrap_exceptions():
                self.serve_http(request, response)
        except HttpError as http_error:
            exc_info = http_error.exc_info() if http_error.has_cause() else None
            return self._error_response(request, http_error), exc_info
        return response, None

    def _error_response(self, request: Request, err: HttpError) -> Response:
        if err.code >= 500:
            server_logger.error("%d %s %s", err.code, request.method, request.path,
                                exc_info=err.exc_info())
        else:
            server_logger.debug("%d %s %s", err.code, request.method, request.path)
        resp = Response(code=err.code)
        resp.set_headers(err.headers)
        resp.write(f"<h2>HTTP {resp.code} - {resp._http_status()}</h2>\n")
        if err.short:
            resp.write(f"<h3>{html.escape(err.short)}</h3>\n")
        if err.desc:
            resp.write(f"<div>{html.escape(err.desc)}</div>\n")
        return resp
