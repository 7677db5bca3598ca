"""Store errors — programmer-contract violations raised synchronously.

Every error is raised before the registry is touched, so a failed call
leaves the store exactly as it was.
"""

from __future__ import annotations


class StoreError(Exception):
    """Base exception for all modstore errors."""

    def __init__(self, message: str, *, hash: str = "") -> None:
        self.hash = hash
        super().__init__(message)


class DuplicateHashError(StoreError):
    """A module or combiner with this hash already exists."""


class NotFoundError(StoreError, KeyError):
    """No module, combiner or subscription behind the given identifier."""

    def __init__(
        self,
        message: str,
        *,
        hash: str = "",
        subscription_id: str | None = None,
    ) -> None:
        self.subscription_id = subscription_id
        super().__init__(message, hash=hash)

    # KeyError.__str__ would repr() the message.
    __str__ = Exception.__str__


class DependentCombinerError(StoreError):
    """Module is still referenced by user-defined combiners."""

    def __init__(self, message: str, *, hash: str = "", combiners: list[str]) -> None:
        self.combiners = combiners
        super().__init__(message, hash=hash)


class DefaultCombinerError(StoreError):
    """Default combiners live and die with their module."""


class HasSubscriptionsError(StoreError):
    """Combiner still has active subscriptions."""


class UnknownMutationError(StoreError):
    """Module defines no mutation with this name."""

    def __init__(self, message: str, *, hash: str = "", name: str = "") -> None:
        self.name = name
        super().__init__(message, hash=hash)


class UnknownActionError(StoreError):
    """Module defines no action with this name."""

    def __init__(self, message: str, *, hash: str = "", name: str = "") -> None:
        self.name = name
        super().__init__(message, hash=hash)


class CircularMutationError(StoreError):
    """A mutation re-entered its own module within one synchronous cascade."""

    def __init__(self, message: str, *, hash: str = "", stack: list[str]) -> None:
        self.stack = stack
        super().__init__(message, hash=hash)
