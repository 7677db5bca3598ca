"""background() — hand an action's blocking work to a managed daemon thread.

Pair it with Store.set_scheduler(): the worker calls store.mutate() when its
result is ready and the call is marshaled back to the owner thread. Returns
a WorkerHandle for cooperative cancellation via .dispose().
"""

from __future__ import annotations

from threading import Thread
from typing import Any, Callable


class WorkerHandle:
    """Disposable handle for a managed daemon thread."""

    __slots__ = ("_disposed", "_thread")

    def __init__(self) -> None:
        self._disposed = False
        self._thread: Thread | None = None

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        """Signal the worker to stop. Check .disposed before mutating."""
        self._disposed = True

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()


def background(fn: Callable[..., Any], *args: Any) -> WorkerHandle:
    """Run fn(handle, *args) in a daemon thread. Returns the handle.

    The worker receives its own handle first, so it can check .disposed
    without racing the caller's assignment.

    Usage:
        def fetch_user(api, user_id):
            def work(handle):
                user = http_get(f"/users/{user_id}")
                if not handle.disposed:
                    api.mutate(api.hash, "loaded", user)

            background(work)
    """
    handle = WorkerHandle()
    handle._thread = Thread(target=fn, args=(handle, *args), daemon=True)
    handle._thread.start()
    return handle
