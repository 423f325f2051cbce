from tests import helper
from tests.util import wsgi
import tinypat
import pytest


expect_response = helper.assert_produces_response


def make_request(query: str = "") -> tinypat.Request:
    return tinypat.Request.from_wsgi(wsgi.Request(f"/?{query}").env.copy())


def test_route_vars_in_query():
    app = tinypat.Router()
    app.get("/items/:id", helper.vars_handler)

    expect_response(app, "/items/42", 200, {":id": "42"})
    expect_response(app, "/items/42/parts", 200, {":id": "42"})
    expect_response(app, "/items/42?sort=asc", 200, {"sort": "asc", ":id": "42"})


def test_route_vars_accessor():
    seen = {}
    app = tinypat.Router()

    @app.route(r"/api/<ver:v\d+>/get/<kind>/:id")
    def _(req: tinypat.Request, resp):
        seen.update(req.route_vars)

    expect_response(app, "/api/v2/get/fish/37?id=other", 200)
    assert seen == dict(ver="v2", kind="fish", id="37")
    expect_response(app, "/api/v/get/fish/37", 404)


def test_regex_groups_are_vars():
    app = tinypat.Router()
    app.get(r"^/(?P<year>\d{4})(?:/(?P<month>\d\d))?", helper.vars_handler)

    expect_response(app, "/2024/05", 200, {":year": "2024", ":month": "05"})
    # unmatched optional groups are not injected
    expect_response(app, "/2024", 200, {":year": "2024"})


def test_register_vars_escapes():
    request = make_request("sort=asc")
    tinypat.register_vars(request, {"name": "a b"})
    assert request.query_string == "sort=asc&%3Aname=a+b"
    assert request.environ["QUERY_STRING"] == request.query_string
    assert request.query_vars == {"sort": "asc", ":name": "a b"}


def test_register_vars_empty_query():
    request = make_request()
    tinypat.register_vars(request, {"id": "a&b=c"})
    assert request.query_string == "%3Aid=a%26b%3Dc"
    assert request.route_vars == {"id": "a&b=c"}


def test_register_vars_no_vars():
    request = make_request("a=1")
    tinypat.register_vars(request, {})
    assert request.query_string == "a=1"


def test_register_vars_order_not_assumed():
    request = make_request("q=1")
    tinypat.register_vars(request, {"a": "1", "b": "2/3", "c": ""})
    first, *added = request.query_string.split("&")
    assert first == "q=1"
    assert sorted(added) == ["%3Aa=1", "%3Ab=2%2F3", "%3Ac="]


@pytest.mark.parametrize("url", ["/u/alice", "/u/alice?x=1&y=2"])
def test_existing_query_preserved(url):
    app = tinypat.Router()
    app.get("/u/:user", helper.vars_handler)
    got = wsgi.Request(url).get_response(app)
    assert got.output_json()[":user"] == "alice"
    if "?" in url:
        assert {"x": "1", "y": "2"}.items() <= got.output_json().items()


def test_non_ascii_route_var():
    seen = {}
    app = tinypat.Router()

    @app.route("/items/:id")
    def _(req: tinypat.Request, resp):
        seen.update(req.query_vars)

    expect_response(app, "/items/%C3%A9?name=%C3%A9", 200)
    assert seen == {":id": "é", "name": "é"}


def test_non_ascii_route_var_escaped_as_utf8():
    app = tinypat.Router()
    app.get("/items/:id", helper.vars_handler)
    got = wsgi.Request("/items/%E2%82%AC").get_response(app)
    assert got.request.last_environ["QUERY_STRING"] == "%3Aid=%E2%82%AC"
    assert got.output_json() == {":id": "€"}


def test_register_vars_text_value():
    # values outside latin-1 cannot come from a WSGI path; they go out as utf-8
    request = make_request()
    tinypat.register_vars(request, {"sym": "€"})
    assert request.query_string == "%3Asym=%E2%82%AC"
    assert request.route_vars == {"sym": "€"}
