"""Router — a module whose state is the current route.

router(routes) builds a Module. Dispatching its "navigate" action with a
URL parses it, matches the path against routes (first match wins) and
mutates the module with the new context:

    {"path", "host", "query", "route", "protocol", "params"}

Route patterns: literal segments, ":name" parameters, ":name?" optional
parameters, and a trailing "*" wildcard captured under the "*" param.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Sequence
from urllib.parse import unquote, urlsplit

from modstore.module import Module

logger = logging.getLogger("modstore.extensions.router")

_PARAM = re.compile(r"^:(?P<name>[A-Za-z_]\w*)(?P<optional>\?)?$")
_WILDCARD_GROUP = "wildcard__"


def compile_route(pattern: str) -> re.Pattern:
    """Translate a route pattern into an anchored regex over URL paths."""
    segments = [s for s in pattern.split("/") if s]
    parts = []
    for index, segment in enumerate(segments):
        if segment == "*":
            if index != len(segments) - 1:
                raise ValueError(f"Invalid route {pattern!r}: '*' must be the last segment.")
            parts.append(rf"(?:/(?P<{_WILDCARD_GROUP}>.*?))?")
            continue
        match = _PARAM.match(segment)
        if match is None:
            parts.append("/" + re.escape(segment))
        elif match["optional"]:
            parts.append(rf"(?:/(?P<{match['name']}>[^/]+))?")
        else:
            parts.append(rf"/(?P<{match['name']}>[^/]+)")
    try:
        return re.compile("^" + "".join(parts) + "/?$")
    except re.error as exc:
        raise ValueError(f"Invalid route {pattern!r}: {exc}") from exc


def _params(match: re.Match) -> dict[str, str]:
    params = {}
    for name, value in match.groupdict().items():
        if value is None:
            continue
        params["*" if name == _WILDCARD_GROUP else name] = unquote(value)
    return params


def router(routes: Sequence[str]) -> Module:
    """Build a routing module serving routes.

    Usage:
        store.register("router", router(["/", "/users/:id"]))
        store.dispatch("router", "navigate", "https://example.com/users/42?tab=1")
        # state: route="/users/:id", params={"id": "42"}, query="tab=1"
    """
    compiled = [(route, compile_route(route)) for route in routes]

    def navigate(api, url: str) -> None:
        parts = urlsplit(url)
        path = parts.path or "/"
        context: dict[str, Any] = {
            "path": path,
            "host": parts.netloc,
            "query": parts.query,
            "route": None,
            "protocol": f"{parts.scheme}:" if parts.scheme else "",
            "params": {},
        }
        for route, regex in compiled:
            match = regex.match(path)
            if match is not None:
                context["route"] = route
                context["params"] = _params(match)
                break
        else:
            logger.debug("No route matches path %r", path)
        api.mutate(api.hash, "NAVIGATE", context)

    return Module(
        state={
            "path": "",
            "host": "",
            "query": "",
            "route": None,
            "protocol": "",
            "params": {},
        },
        mutations={"NAVIGATE": lambda api, context: context},
        actions={"navigate": navigate},
    )
