"""Mutation tracking — the re-entrancy guard and the notification batch.

Every mutate() pushes its module hash on the in-flight stack. Nested
mutations (cascades) push on top of it. Completed mutations accumulate in a
pending batch; when the outermost mutation pops, the batch is flushed once,
so subscribers never see the intermediate states of a cascade.
"""

from __future__ import annotations

from typing import Callable


class MutationTracker:
    __slots__ = ("_stack", "_pending")

    def __init__(self) -> None:
        self._stack: list[str] = []
        # Modules mutated during the current cascade, in first-completion order.
        self._pending: dict[str, None] = {}

    @property
    def stack(self) -> list[str]:
        return list(self._stack)

    def is_in_flight(self, hash: str) -> bool:
        return hash in self._stack

    def begin(self, hash: str) -> None:
        """Enter a mutation scope for hash. Nested scopes are supported."""
        self._stack.append(hash)

    def completed(self, hash: str) -> None:
        """Record that hash's new state is in place."""
        self._pending.setdefault(hash, None)

    def end(self, flush: Callable[[list[str]], None]) -> None:
        """Exit a mutation scope. The outermost exit hands the batch to flush."""
        self._stack.pop()
        if not self._stack and self._pending:
            # Snapshot and clear: flush may start new top-level mutations.
            batch = list(self._pending)
            self._pending.clear()
            flush(batch)
