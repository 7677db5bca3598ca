"""modstore: framework-agnostic global state container for Python."""

from importlib.metadata import version as _version

__version__ = _version("modstore")

from modstore.module import Module
from modstore.api import ActionApi, MutationApi, StateChange
from modstore.store import Store
from modstore.worker import background, WorkerHandle
from modstore.errors import (
    StoreError,
    DuplicateHashError,
    NotFoundError,
    DependentCombinerError,
    DefaultCombinerError,
    HasSubscriptionsError,
    UnknownMutationError,
    UnknownActionError,
    CircularMutationError,
)
# textual NOT auto-imported — opt-in only

__all__ = [
    "Store",
    "Module",
    "MutationApi",
    "ActionApi",
    "StateChange",
    "background",
    "WorkerHandle",
    "StoreError",
    "DuplicateHashError",
    "NotFoundError",
    "DependentCombinerError",
    "DefaultCombinerError",
    "HasSubscriptionsError",
    "UnknownMutationError",
    "UnknownActionError",
    "CircularMutationError",
]
