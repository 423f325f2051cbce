"""Route table: pattern registration and request matching.

Routes are kept in registration order and the first route whose pattern is a
prefix of the request path, and whose methods include the request method,
wins. Nothing is ever replaced; registering an overlapping pattern simply
adds a later candidate.
"""
from dataclasses import dataclass, field
import logging
import re

from . import util
from .core import Handler, Request

import typing as t

logger = logging.getLogger(__name__)


@dataclass
class Route:
    """A registered pattern, the methods it serves and its handler.

    Registration helpers hand the route back so it can be configured
    further, e.g. ``router.get("/x", h).named("x").add_methods("HEAD")``.
    """
    path: str
    handler: Handler
    methods: tuple[str, ...] = tuple()
    name: str | None = None
    pattern: re.Pattern[str] = field(init=False, repr=False)

    def __post_init__(self):
        self.methods = tuple(m.upper() for m in self.methods)
        self.pattern = util.path_to_pattern(self.path)

    def named(self, name: str) -> t.Self:
        self.name = name
        return self

    def add_methods(self, *methods: str) -> t.Self:
        self.methods = self.methods + tuple(
            m.upper() for m in methods if m.upper() not in self.methods)
        return self

    def match(self, request: Request) -> "RouteMatch | None":
        if self.methods and request.method not in self.methods:
            return None
        if m := self.pattern.match(request.path):
            groups = {k: v for k, v in m.groupdict().items() if v is not None}
            return RouteMatch(self, groups)
        return None


@dataclass
class RouteMatch:
    route: Route
    vars: dict[str, str] = field(default_factory=dict)

    @property
    def handler(self) -> Handler:
        return self.route.handler


class RouteTable:

    def __init__(self):
        self.routes: list[Route] = []

    def register(self, method: str | None, path: str, handler: Handler) -> Route:
        """Add a route; a method of None serves every method."""
        route = Route(path, handler, (method,) if method else tuple())
        self.routes.append(route)
        logger.debug("registered %s %s -> %r",
                     method or "*", path, handler)
        return route

    def match(self, request: Request) -> RouteMatch | None:
        for route in self.routes:
            if match := route.match(request):
                return match
        return None

    def get_named(self, name: str) -> Route | None:
        for route in self.routes:
            if route.name == name:
                return route
        return None
