"""Registry records — plain structures holding everything a Store knows.

Each Store owns one Registry; nothing here is module-level, so stores never
share modules, combiners or id counters.
"""

from __future__ import annotations

import copy
import itertools
from typing import Any, Callable, Mapping

from modstore.module import Module


def identity(state: Any) -> Any:
    return state


class RegisteredModule:
    """Store-owned copy of a Module plus the combiners that read it."""

    __slots__ = ("state", "mutations", "actions", "combiners")

    def __init__(self, module: Module) -> None:
        self.state = copy.deepcopy(module.state)
        self.mutations: dict[str, Callable] = dict(module.mutations)
        self.actions: dict[str, Callable] = dict(module.actions or {})
        # Combiner hashes in creation order; the first one is the default.
        self.combiners: list[str] = []

    def __repr__(self) -> str:
        return f"RegisteredModule({self.state!r}, combiners={self.combiners!r})"


class Combiner:
    """Reducer over an ordered list of modules, with its subscriptions."""

    __slots__ = ("modules_hashes", "reducer", "subscriptions")

    def __init__(self, modules_hashes: list[str], reducer: Callable[..., Any]) -> None:
        self.modules_hashes = modules_hashes
        self.reducer = reducer
        self.subscriptions: dict[str, Callable[[Any], None]] = {}

    def reduce(self, modules: Mapping[str, RegisteredModule]) -> Any:
        return self.reducer(*(modules[h].state for h in self.modules_hashes))

    def __repr__(self) -> str:
        return f"Combiner({self.modules_hashes!r}, {len(self.subscriptions)} subscriptions)"


class Registry:
    __slots__ = ("modules", "combiners", "_ids")

    def __init__(self) -> None:
        self.modules: dict[str, RegisteredModule] = {}
        # Insertion order is combiner creation order, which is notification order.
        self.combiners: dict[str, Combiner] = {}
        self._ids = itertools.count(1)

    def has_hash(self, hash: str) -> bool:
        return hash in self.modules or hash in self.combiners

    def new_subscription_id(self) -> str:
        return str(next(self._ids))
