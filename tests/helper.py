from tests.util import wsgi
from tests import _config

import typing as t
import tinypat
from dataclasses import dataclass
from _pytest.assertion import util as _pytest_util


@dataclass(slots=True)
class _Fault:
    key: str
    want: t.Any
    got: t.Any

    def __str__(self):
        return f"{self.key}: expected={self.want!r}, got={self.got!r}"


def basic_handler(content: t.Any):
    def handler(request: tinypat.Request, response: tinypat.Response):
        return content
    return handler


def vars_handler(request: tinypat.Request, response: tinypat.Response):
    """Echo the request's query (route variables included) as JSON."""
    return request.query_vars


class Recorder:
    """Handler that remembers every request it was called with."""

    def __init__(self, content="ok"):
        self.content = content
        self.calls: list[tinypat.Request] = []

    def serve_http(self, request: tinypat.Request, response: tinypat.Response):
        self.calls.append(request)
        response.write(self.content)


def assert_response(resp: wsgi.Response,
                    code: int,
                    content: None | str | bytes | dict | list = None,
                    headers: None | dict[str, str] = None):
    __tracebackhide__ = True
    faults = []

    if code != resp.code:
        faults.append(_Fault("Response.code", code, resp.code))

    if content is not None:
        match content:
            case bytes():
                resp_content = resp.output_bytes()
            case str():
                resp_content = resp.output_str()
            case dict() | list():
                resp_content = resp.output_json()
            case _:
                raise ValueError(f"content is unknown type: ({type(content)})")
        if content != resp_content:
            faults.append(_Fault("Response.content", content, resp_content))

    for k, want in (headers or {}).items():
        got = resp.headers_normalized.get(k.lower())
        if want != got:
            faults.append(_Fault(f"Response.header[{k}]", want, got))

    if faults:
        if len(faults) == 1 and not _config.verbose:
            msg = str(faults[0])
        else:
            details = [repr(resp), *[f">> {f}" for f in faults]]
            if _config.verbose:
                details.append(">-----RESPONSE DUMP-----")
                details.extend(
                    f">|{line}" for line in resp.dump().splitlines())
            msg = "\n".join(details)
        raise AssertionError(_pytest_util.format_explanation(msg))


def assert_produces_response(
        app: wsgi.WSGIApplication,
        url: str,
        code: int,
        content: str | bytes | dict | list | None = None,
        headers: None | dict[str, str] = None,
        **argv) -> wsgi.Response:
    __tracebackhide__ = True
    got = wsgi.Request(url, **argv).get_response(app)
    assert_response(got, code, content, headers)
    return got

