"""Store — registry of state modules and combiners, with mutation/action dispatch.

A Store holds independently registered modules. Each module gets a default
combiner under its own hash; user combiners reduce several modules into one
value. Subscribers listen on combiners, middlewares observe every change.

Mutations are synchronous and may cascade into other modules. Subscribers
are notified once the outermost mutation returns, one notification per
affected module, in the order the mutations completed.

Thread safety: call set_scheduler() once from the owner thread. After that,
mutate() and dispatch() from any other thread are marshaled through the
scheduler. Owner-thread calls remain synchronous.
"""

from __future__ import annotations

import asyncio
import copy
import inspect
import logging
import threading
from typing import Any, Callable, Sequence

from modstore._registry import Combiner, RegisteredModule, Registry, identity
from modstore._tracking import MutationTracker
from modstore.api import ActionApi, MutationApi, StateChange
from modstore.errors import (
    CircularMutationError,
    DefaultCombinerError,
    DependentCombinerError,
    DuplicateHashError,
    HasSubscriptionsError,
    NotFoundError,
    UnknownActionError,
    UnknownMutationError,
)
from modstore.module import Module

logger = logging.getLogger("modstore.store")

_OMITTED = object()

Handler = Callable[[Any], None]
Middleware = Callable[[StateChange], None]


def _invoke(fn: Callable, api: Any, data: Any) -> Any:
    """Call a mutation or action, passing data only when the caller gave some."""
    if data is _OMITTED:
        return fn(api)
    return fn(api, data)


class Store:
    """Global state container: modules, combiners, subscriptions, middlewares."""

    def __init__(self) -> None:
        self._registry = Registry()
        self._tracker = MutationTracker()
        self._middlewares: list[Middleware] = []
        self._tasks: set[asyncio.Future] = set()
        self._scheduler: Callable[[Callable[[], None]], Any] | None = None
        self._scheduler_thread: threading.Thread | None = None

    # ─── Threading ───────────────────────────────────────────────────────────

    def set_scheduler(self, scheduler: Callable[[Callable[[], None]], Any]) -> None:
        """Marshal cross-thread mutate()/dispatch() calls through scheduler.

        Call once from the owner thread:
            store.set_scheduler(app.call_from_thread)
        """
        self._scheduler = scheduler
        self._scheduler_thread = threading.current_thread()

    def _off_owner_thread(self) -> bool:
        return (
            self._scheduler is not None
            and threading.current_thread() is not self._scheduler_thread
        )

    # ─── Registry ────────────────────────────────────────────────────────────

    def register(self, hash: str, module: Module) -> str:
        """Register module under hash and create its default combiner.

        The initial state is deep-copied, so later changes to the caller's
        object never leak into the store.
        """
        registry = self._registry
        if registry.has_hash(hash):
            raise DuplicateHashError(
                f"Could not register module with hash {hash!r}: hash already exists.",
                hash=hash,
            )
        registered = RegisteredModule(module)
        registry.modules[hash] = registered
        registry.combiners[hash] = Combiner([hash], identity)
        registered.combiners.append(hash)
        logger.debug("Registered module %r", hash)
        return hash

    def unregister(self, hash: str) -> None:
        """Remove a module, its default combiner and that combiner's subscriptions."""
        registry = self._registry
        module = registry.modules.get(hash)
        if module is None:
            raise NotFoundError(
                f"Could not unregister module with hash {hash!r}: module does not exist.",
                hash=hash,
            )
        dependents = [c for c in module.combiners if c != hash]
        if dependents:
            raise DependentCombinerError(
                f"Could not unregister module with hash {hash!r}: "
                f"combiners {dependents!r} still depend on it.",
                hash=hash,
                combiners=dependents,
            )
        dropped = len(registry.combiners[hash].subscriptions)
        del registry.combiners[hash]
        del registry.modules[hash]
        logger.debug("Unregistered module %r (%d subscriptions dropped)", hash, dropped)

    def combine(
        self,
        hash: str,
        modules_hashes: Sequence[str],
        reducer: Callable[..., Any],
    ) -> str:
        """Create a combiner reducing the states of modules_hashes, in order.

        Usage:
            store.combine("/AB", ["A", "B"], lambda a, b: {**a, **b})
        """
        registry = self._registry
        if registry.has_hash(hash):
            raise DuplicateHashError(
                f"Could not create combiner with hash {hash!r}: hash already exists.",
                hash=hash,
            )
        modules_hashes = list(modules_hashes)
        for module_hash in modules_hashes:
            if module_hash not in registry.modules:
                raise NotFoundError(
                    f"Could not create combiner with hash {hash!r}: "
                    f"module with hash {module_hash!r} does not exist.",
                    hash=module_hash,
                )
        registry.combiners[hash] = Combiner(modules_hashes, reducer)
        for module_hash in dict.fromkeys(modules_hashes):
            registry.modules[module_hash].combiners.append(hash)
        logger.debug("Created combiner %r over %r", hash, modules_hashes)
        return hash

    def uncombine(self, hash: str) -> None:
        """Remove a user-defined combiner that has no subscriptions left."""
        registry = self._registry
        combiner = registry.combiners.get(hash)
        if combiner is None:
            raise NotFoundError(
                f"Could not uncombine combiner with hash {hash!r}: combiner does not exist.",
                hash=hash,
            )
        if hash in registry.modules:
            raise DefaultCombinerError(
                f"Could not uncombine combiner with hash {hash!r}: "
                "default combiners cannot be removed while their module is registered.",
                hash=hash,
            )
        if combiner.subscriptions:
            raise HasSubscriptionsError(
                f"Could not uncombine combiner with hash {hash!r}: "
                f"{len(combiner.subscriptions)} subscriptions are still active.",
                hash=hash,
            )
        del registry.combiners[hash]
        for module_hash in dict.fromkeys(combiner.modules_hashes):
            registry.modules[module_hash].combiners.remove(hash)
        logger.debug("Removed combiner %r", hash)

    # ─── Subscriptions ───────────────────────────────────────────────────────

    def subscribe(self, hash: str, handler: Handler) -> str:
        """Subscribe handler to a combiner. Returns the subscription id.

        handler is called right away with the combiner's current value, then
        after every mutation of a module the combiner reads.
        """
        registry = self._registry
        combiner = registry.combiners.get(hash)
        if combiner is None:
            raise NotFoundError(
                f"Could not subscribe to combiner with hash {hash!r}: combiner does not exist.",
                hash=hash,
            )
        subscription_id = registry.new_subscription_id()
        combiner.subscriptions[subscription_id] = handler
        logger.debug("Subscription %s added to combiner %r", subscription_id, hash)
        try:
            handler(combiner.reduce(registry.modules))
        except BaseException:
            # The caller never sees the id, so it could never unsubscribe.
            combiner.subscriptions.pop(subscription_id, None)
            raise
        return subscription_id

    def unsubscribe(self, hash: str, subscription_id: str) -> None:
        combiner = self._registry.combiners.get(hash)
        if combiner is None:
            raise NotFoundError(
                f"Could not unsubscribe from combiner with hash {hash!r}: "
                "combiner does not exist.",
                hash=hash,
                subscription_id=subscription_id,
            )
        if subscription_id not in combiner.subscriptions:
            raise NotFoundError(
                f"Could not unsubscribe from combiner with hash {hash!r}: "
                f"subscription {subscription_id!r} does not exist.",
                hash=hash,
                subscription_id=subscription_id,
            )
        del combiner.subscriptions[subscription_id]
        logger.debug("Subscription %s removed from combiner %r", subscription_id, hash)

    # ─── Mutations ───────────────────────────────────────────────────────────

    def mutate(self, hash: str, name: str, data: Any = _OMITTED) -> None:
        """Run mutation name on module hash and replace its state with the result.

        The mutation receives MutationApi(hash, state, mutate); it may mutate
        other modules through api.mutate, but never its own module again
        within the same cascade.
        """
        if self._off_owner_thread():
            self._scheduler(lambda h=hash, n=name, d=data: self.mutate(h, n, d))
            return

        module = self._registry.modules.get(hash)
        if module is None:
            raise NotFoundError(
                f"Could not perform mutation on module with hash {hash!r}: "
                "module does not exist.",
                hash=hash,
            )
        mutation = module.mutations.get(name)
        if mutation is None:
            raise UnknownMutationError(
                f"Could not perform mutation on module with hash {hash!r}: "
                f"mutation {name!r} does not exist.",
                hash=hash,
                name=name,
            )
        tracker = self._tracker
        if tracker.is_in_flight(hash):
            stack = tracker.stack + [hash]
            raise CircularMutationError(
                f"Could not perform mutation on module with hash {hash!r}: "
                f"circular mutation {' -> '.join(map(repr, stack))}.",
                hash=hash,
                stack=stack,
            )

        tracker.begin(hash)
        try:
            # Mutations work on a private copy: in-place edits never reach
            # the stored snapshot or values subscribers already hold.
            api = MutationApi(hash, copy.deepcopy(module.state), self.mutate)
            new_state = _invoke(mutation, api, data)
            module.state = new_state
            tracker.completed(hash)
        finally:
            tracker.end(self._notify)

    def _notify(self, hashes: list[str]) -> None:
        """Fan out the new states of hashes to combiners, then to middlewares."""
        registry = self._registry
        for hash in hashes:
            module = registry.modules.get(hash)
            if module is None:
                continue
            for combiner_hash in list(module.combiners):
                combiner = registry.combiners.get(combiner_hash)
                if combiner is None:
                    continue
                value = combiner.reduce(registry.modules)
                for handler in list(combiner.subscriptions.values()):
                    handler(value)
            change = StateChange(hash, module.state)
            for middleware in list(self._middlewares):
                middleware(change)

    # ─── Actions ─────────────────────────────────────────────────────────────

    def dispatch(self, hash: str, name: str, data: Any = _OMITTED) -> None:
        """Run action name of module hash. Fire-and-forget.

        The action receives ActionApi with the whole structural surface. If it
        returns an awaitable, it is scheduled on the running event loop and
        dispatch() returns without waiting for it.
        """
        if self._off_owner_thread():
            self._scheduler(lambda h=hash, n=name, d=data: self.dispatch(h, n, d))
            return

        module = self._registry.modules.get(hash)
        if module is None:
            raise NotFoundError(
                f"Could not dispatch action on module with hash {hash!r}: "
                "module does not exist.",
                hash=hash,
            )
        action = module.actions.get(name)
        if action is None:
            raise UnknownActionError(
                f"Could not dispatch action on module with hash {hash!r}: "
                f"action {name!r} does not exist.",
                hash=hash,
                name=name,
            )
        api = ActionApi(
            hash=hash,
            mutate=self.mutate,
            dispatch=self.dispatch,
            register=self.register,
            unregister=self.unregister,
            combine=self.combine,
            uncombine=self.uncombine,
        )
        result = _invoke(action, api, data)
        if inspect.isawaitable(result):
            self._schedule(hash, name, result)

    def _schedule(self, hash: str, name: str, awaitable: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            raise RuntimeError(
                f"Action {name!r} of module {hash!r} returned an awaitable "
                "but no event loop is running."
            ) from None
        task = asyncio.ensure_future(awaitable, loop=loop)
        # The loop only keeps weak references to tasks.
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.debug("Scheduled action %r of module %r", name, hash)

    # ─── Middlewares ─────────────────────────────────────────────────────────

    def use(self, middleware: Middleware) -> None:
        """Install a middleware. It sees every StateChange, forever."""
        self._middlewares.append(middleware)
        logger.debug("Installed middleware %r", middleware)

    def __repr__(self) -> str:
        registry = self._registry
        return f"Store({len(registry.modules)} modules, {len(registry.combiners)} combiners)"
