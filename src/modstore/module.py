"""Module — the unit of state handed to Store.register()."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

Mutation = Callable[..., Any]
Action = Callable[..., Any]


@dataclass
class Module:
    """A named unit of state with its mutation and action tables.

    Mutations are pure functions ``(api, data?) -> new_state``. Actions are
    ``(api, data?) -> None`` and may return an awaitable to run asynchronously.

    Usage:
        counter = Module(
            state={"count": 0},
            mutations={
                "increment": lambda api: {"count": api.state["count"] + 1},
                "add": lambda api, n: {"count": api.state["count"] + n},
            },
        )
    """

    state: Any
    mutations: Mapping[str, Mutation] = field(default_factory=dict)
    actions: Mapping[str, Action] | None = None
