import wsgiref.types
import contextlib
from dataclasses import dataclass, field
import wsgiref.headers
import json
import http
import urllib.parse

from . import util

import typing as t
Headers = wsgiref.headers.Headers

# Route variables travel in the query string under this prefix.
VAR_PREFIX = ":"


@t.runtime_checkable
class Handler(t.Protocol):
    def serve_http(self, request: "Request", response: "Response") -> None: ...


class HandlerFn(t.Protocol):
    def __call__(self, request: "Request", response: "Response",
                 /) -> t.Any: ...


AnyHandler = Handler | HandlerFn


@dataclass(kw_only=True)
class HttpError(Exception):
    """Throwable HTTP Error."""
    code: int = field(kw_only=False, default=500)
    short: str | None = field(kw_only=False, default=None)
    desc: str | None = None
    headers: dict[str, str] = field(default_factory=dict)  # type:ignore

    def has_cause(self): return self.__cause__ is not None

    def exc_info(self):
        """Get the exception info tuple if this error was raised from an exception."""
        if self.has_cause():
            return (type(self.__cause__), self.__cause__, self.__traceback__)
        return (type(self), self, self.__traceback__)

    def causes(self):
        cause = self.__cause__
        seen = []  # circular reference prevention
        while cause:
            if cause in seen:
                break
            yield cause
            seen.append(cause)
            cause = cause.__cause__

    @classmethod
    @contextlib.contextmanager
    def wrap_exceptions(cls, *args, **kwargs):
        try:
            yield
        except HttpError as ex:
            raise ex
        except Exception as ex:
            raise cls(*args, **kwargs) from ex


class RequestContext(dict[str, t.Any]):
    """Key/value storage scoped to a single request.

    Middleware-ish handlers stash values here for the handlers they
    delegate to. The router empties it once dispatch returns unless the
    router was built with ``keep_context=True``.
    """


@dataclass
class Request:
    environ: wsgiref.types.WSGIEnvironment
    path: str
    method: str
    headers: Headers
    query_string: str = ""
    context: RequestContext = field(default_factory=RequestContext)

    @classmethod
    def from_wsgi(cls, environ: wsgiref.types.WSGIEnvironment):
        hlist = [(k[5:].replace("_", "-").title(), v)
                 for k, v in environ.items() if k.startswith("HTTP_")]
        return cls(environ, environ.get('PATH_INFO', ''),
                   environ['REQUEST_METHOD'].upper(), Headers(hlist),
                   environ.get('QUERY_STRING', ''))

    def set_query_string(self, query: str) -> None:
        """Replace the raw query, keeping the WSGI environ in step."""
        self.query_string = query
        self.environ['QUERY_STRING'] = query

    @property
    def query_vars(self) -> dict[str, str]:
        return dict(urllib.parse.parse_qsl(self.query_string, keep_blank_values=True))

    @property
    def route_vars(self) -> dict[str, str]:
        """Variables the matched route pulled out of the path."""
        n = len(VAR_PREFIX)
        return {k[n:]: v for k, v in self.query_vars.items()
                if k.startswith(VAR_PREFIX)}

    @property
    def content_type(self) -> tuple[str, dict[str,str]]:
        return util.parse_header_options(self.environ.get('CONTENT_TYPE', ''))

    def _body_fp(self) -> t.Iterable[bytes]:
        return self.environ.get('wsgi.input') or (b"",)

    def body_bytes(self) -> bytes:
        length = self.environ.get('CONTENT_LENGTH')
        fp = self._body_fp()
        if length and hasattr(fp, 'read'):
            return fp.read(int(length))
        return b''.join(fp)


@dataclass(kw_only=True)
class Response:
    """Response collects status, headers and body chunks written by a handler."""
    code: int = 200
    content_type: str | None = 'text/html'
    charset: str = 'utf-8'
    headers: Headers = field(default_factory=lambda: Headers([]))

    def __post_init__(self):
        self._chunks: list[bytes] = []

    def write(self, content: str | bytes):
        if isinstance(content, str):
            content = content.encode(self.charset)
        self._chunks.append(content)

    def set_content(self, content: t.Any) -> None:
        """Called when the request handler returns a non-null result."""
        match content:
            case str() | bytes():
                self.write(content)
            case dict() | list():
                self.content_type = 'application/json'
                self._chunks = [json.dumps(content).encode(self.charset)]
            case _:
                raise ValueError(
                    f'request handler returned unsupported content: {type(content).__name__}')

    def redirect(self, location: str, code: int = 301):
        self.code = code
        self.content_type = None
        self.headers['Location'] = location
        self._chunks = []

    def set_headers(self, headers: dict[str, str]):
        """Set each header, replacing any existing value."""
        for k, v in headers.items():
            self.headers[k] = v

    @property
    def body(self) -> bytes:
        return b''.join(self._chunks)

    def _http_status(self) -> str:
        """Get the HTTP status text for the current response code."""
        try:
            return http.HTTPStatus(self.code).phrase
        except ValueError:
            return "StatusPhraseUnknown"

    def _apply_default_headers(self):
        """Set headers that cannonically apply to this response type."""
        if self.content_type:
            cs = f";charset={self.charset}" if self.charset else ""
            self.headers.setdefault('Content-Type', f"{self.content_type}{cs}")

    def _wsgi_start_response_args(self):
        """Get the status line and headers that go to WSGI's start_response()."""
        self._apply_default_headers()
        return (f"{self.code} {self._http_status()}", self.headers.items())

    def _wsgi_response(self) -> t.Iterable[bytes]:
        return tuple(self._chunks)


@dataclass
class FuncHandler:
    """Adapts a plain ``fn(request, response)`` to the Handler protocol."""
    handlerfn: HandlerFn

    def serve_http(self, request: Request, response: Response) -> None:
        content = self.handlerfn(request, response)
        if content is not None:
            response.set_content(content)


@dataclass
class WSGIHandler:
    """Runs a WSGI application as a route handler.

    The application sees the request environ, including the route variables
    appended to QUERY_STRING.
    """
    app: wsgiref.types.WSGIApplication

    def serve_http(self, request: Request, response: Response) -> None:
        def start_response(status: str, headers: list[tuple[str, str]], exc_info=None):
            if exc_info:
                raise exc_info[1].with_traceback(exc_info[2])
            response.code = int(status.split(" ", 1)[0])
            response.content_type = None
            for k, v in headers:
                response.headers.add_header(k, v)
            return response.write

        out = self.app(request.environ, start_response)
        try:
            for chunk in out:
                response.write(chunk)
        finally:
            if close := getattr(out, 'close', None):
                close()


def make_handler(handler: AnyHandler) -> Handler:
    if isinstance(handler, Handler):
        return handler
    return FuncHandler(handler)


def not_found(request: Request, response: Response):
    """Replies with an HTTP 404 not found error."""
    del request  # unused param
    response.code = 404
    response.content_type = 'text/plain'
    response.headers['X-Content-Type-Options'] = 'nosniff'
    return "404 page not found\n"
