"""Capability bundles handed to mutations, actions and middlewares.

A mutation only ever sees MutationApi (hash, state, mutate): it cannot
reshape the registry. An action sees the whole structural surface through
ActionApi. Both hold bound Store methods, so calls made through them go
through the public contract with its own checks and notifications.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable


@dataclass(frozen=True)
class MutationApi:
    hash: str
    state: Any
    mutate: Callable[..., None]


@dataclass(frozen=True)
class ActionApi:
    hash: str
    mutate: Callable[..., None]
    dispatch: Callable[..., None]
    register: Callable[..., str]
    unregister: Callable[[str], None]
    combine: Callable[..., str]
    uncombine: Callable[[str], None]


@dataclass(frozen=True)
class StateChange:
    """Payload delivered to middlewares after each mutation."""

    hash: str
    state: Any
