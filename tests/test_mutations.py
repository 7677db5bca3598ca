"""Tests for mutate() — state transitions, cascades and the re-entrancy guard."""

import pytest

from modstore import (
    CircularMutationError,
    Module,
    MutationApi,
    NotFoundError,
    Store,
    UnknownMutationError,
)


def _counter(count=0):
    return Module(
        state={"count": count},
        mutations={
            "increment": lambda api: {"count": api.state["count"] + 1},
            "add": lambda api, n: {"count": api.state["count"] + n},
        },
    )


def _state(store, hash):
    log = []
    sid = store.subscribe(hash, log.append)
    store.unsubscribe(hash, sid)
    return log[0]


class TestMutate:
    def test_increment_twice(self):
        s = Store()
        s.register("A", _counter())
        s.mutate("A", "increment")
        s.mutate("A", "increment")
        assert _state(s, "A") == {"count": 2}

    def test_with_data(self):
        s = Store()
        s.register("A", _counter())
        s.mutate("A", "add", 5)
        assert _state(s, "A") == {"count": 5}

    def test_explicit_none_is_passed(self):
        seen = []
        s = Store()
        s.register("A", Module(state=0, mutations={"set": lambda api, data: seen.append(data) or 1}))
        s.mutate("A", "set", None)
        assert seen == [None]

    def test_unknown_module(self):
        s = Store()
        with pytest.raises(NotFoundError):
            s.mutate("nope", "increment")

    def test_unknown_mutation(self):
        s = Store()
        s.register("A", _counter())
        with pytest.raises(UnknownMutationError) as exc:
            s.mutate("A", "nope")
        assert exc.value.name == "nope"
        assert exc.value.hash == "A"

    def test_api_shape(self):
        seen = []

        def record(api):
            seen.append(api)
            return api.state

        s = Store()
        s.register("A", Module(state="x", mutations={"record": record}))
        s.mutate("A", "record")
        api = seen[0]
        assert isinstance(api, MutationApi)
        assert api.hash == "A"
        assert api.state == "x"
        assert api.mutate == s.mutate
        assert not hasattr(api, "register")
        assert not hasattr(api, "combine")

    def test_state_replaced_wholesale(self):
        s = Store()
        s.register("A", Module(state={"a": 1, "b": 2}, mutations={"only_a": lambda api: {"a": 3}}))
        s.mutate("A", "only_a")
        assert _state(s, "A") == {"a": 3}

    def test_in_place_edit_then_failure_keeps_state(self):
        def bump_then_fail(api):
            api.state["count"] += 1
            raise ValueError("after editing")

        s = Store()
        s.register("A", Module(state={"count": 0}, mutations={"bump_then_fail": bump_then_fail}))
        log = []
        s.subscribe("A", log.append)
        with pytest.raises(ValueError):
            s.mutate("A", "bump_then_fail")
        assert log == [{"count": 0}]
        assert _state(s, "A") == {"count": 0}

    def test_in_place_edit_does_not_rewrite_delivered_values(self):
        def bump_in_place(api):
            api.state["count"] += 1
            return api.state

        s = Store()
        s.register("A", Module(state={"count": 0}, mutations={"bump": bump_in_place}))
        log = []
        s.subscribe("A", log.append)
        s.mutate("A", "bump")
        s.mutate("A", "bump")
        assert log == [{"count": 0}, {"count": 1}, {"count": 2}]
        assert log[0] is not log[1]

    def test_failed_mutation_keeps_state(self):
        def broken(api):
            raise RuntimeError("nope")

        s = Store()
        s.register("A", Module(state=1, mutations={"broken": broken}))
        log = []
        s.subscribe("A", log.append)
        with pytest.raises(RuntimeError):
            s.mutate("A", "broken")
        assert log == [1]
        assert _state(s, "A") == 1


class TestCascade:
    def _store(self):
        s = Store()

        def increment_and_follow(api):
            api.mutate("B", "increment")
            return {"count": api.state["count"] + 1}

        s.register(
            "A",
            Module(state={"count": 0}, mutations={"increment": increment_and_follow}),
        )
        s.register("B", _counter())
        return s

    def test_nested_mutation_applies(self):
        s = self._store()
        s.mutate("A", "increment")
        assert _state(s, "A") == {"count": 1}
        assert _state(s, "B") == {"count": 1}

    def test_notifications_after_top_level(self):
        s = self._store()
        log = []
        s.subscribe("A", lambda v: log.append(("A", v["count"])))
        s.subscribe("B", lambda v: log.append(("B", v["count"])))
        log.clear()
        s.mutate("A", "increment")
        # B completed first, so it is notified first.
        assert log == [("B", 1), ("A", 1)]

    def test_combiner_sees_final_states(self):
        s = self._store()
        s.combine("/AB", ["A", "B"], lambda a, b: (a["count"], b["count"]))
        log = []
        s.subscribe("/AB", log.append)
        s.mutate("A", "increment")
        # One notification per affected module, both with the final values.
        assert log == [(0, 0), (1, 1), (1, 1)]

    def test_module_mutated_twice_notified_once(self):
        s = Store()

        def double(api):
            api.mutate("B", "increment")
            api.mutate("B", "increment")
            return api.state

        s.register("A", Module(state=None, mutations={"double": double}))
        s.register("B", _counter())
        log = []
        s.subscribe("B", log.append)
        s.mutate("A", "double")
        assert log == [{"count": 0}, {"count": 2}]

    def test_nested_failure_still_notifies_completed(self):
        s = Store()

        def half_done(api):
            api.mutate("B", "increment")
            raise ValueError("late failure")

        s.register("A", Module(state=0, mutations={"half_done": half_done}))
        s.register("B", _counter())
        log = []
        s.subscribe("B", log.append)
        with pytest.raises(ValueError, match="late failure"):
            s.mutate("A", "half_done")
        assert log == [{"count": 0}, {"count": 1}]
        assert _state(s, "A") == 0


class TestCircularMutation:
    def test_self_reentry(self):
        s = Store()

        def loop(api):
            api.mutate("A", "loop")
            return api.state

        s.register("A", Module(state=0, mutations={"loop": loop}))
        with pytest.raises(CircularMutationError) as exc:
            s.mutate("A", "loop")
        assert exc.value.stack == ["A", "A"]

    def test_transitive_reentry(self):
        s = Store()
        s.register("A", Module(state=0, mutations={"go": lambda api: api.mutate("B", "go")}))
        s.register("B", Module(state=0, mutations={"go": lambda api: api.mutate("A", "go")}))
        with pytest.raises(CircularMutationError) as exc:
            s.mutate("A", "go")
        assert exc.value.stack == ["A", "B", "A"]

    def test_guard_released_after_error(self):
        s = Store()

        def loop(api):
            api.mutate("A", "loop")

        s.register("A", Module(state=0, mutations={"loop": loop, "set": lambda api, v: v}))
        with pytest.raises(CircularMutationError):
            s.mutate("A", "loop")
        s.mutate("A", "set", 7)
        assert _state(s, "A") == 7

    def test_sequential_mutations_are_not_circular(self):
        s = Store()
        s.register("A", _counter())
        for _ in range(3):
            s.mutate("A", "increment")
        assert _state(s, "A") == {"count": 3}
