# tests/unit/test_transitions.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from unittest.mock import MagicMock

import pytest

from hsmkit import create_machine
from hsmkit.core.errors import ActionError
from hsmkit.core.events import Event
from hsmkit.core.transitions import TransitionDescriptor, resolve


def test_transition_init(dummy_guard, dummy_action):
    t = TransitionDescriptor("a", "b", "GO", guards=(dummy_guard,), actions=(dummy_action,))
    assert t.source == "a"
    assert t.target == "b"
    assert t.event == "GO"
    assert t.guards == (dummy_guard,)
    assert t.actions == (dummy_action,)
    assert not t.is_internal


def test_transition_is_immutable():
    t = TransitionDescriptor("a", "b", "GO")
    with pytest.raises(AttributeError):
        t.target = "c"


@pytest.mark.parametrize(
    "target,reenter,internal",
    [(None, False, True), ("a", False, True), ("a", True, False), ("b", False, False), ("b", True, False)],
)
def test_transition_is_internal(target, reenter, internal):
    assert TransitionDescriptor("a", target, "GO", reenter=reenter).is_internal is internal


def test_transition_evaluate_guards(dummy_event):
    def true_guard(ctx, e):
        return True

    def false_guard(ctx, e):
        return False

    t = TransitionDescriptor("a", "a", "GO", guards=(true_guard, false_guard))
    assert t.evaluate_guards({}, dummy_event) is False
    t = TransitionDescriptor("a", "a", "GO", guards=(true_guard,))
    assert t.evaluate_guards({}, dummy_event) is True


def test_no_guards_is_unconditional(dummy_event):
    assert TransitionDescriptor("a", "b", "GO").evaluate_guards({}, dummy_event) is True


def test_guards_short_circuit(dummy_event):
    later = MagicMock(return_value=True)
    t = TransitionDescriptor("a", "b", "GO", guards=(lambda c, e: False, later))
    assert t.evaluate_guards({}, dummy_event) is False
    later.assert_not_called()


def test_guards_receive_context_and_event(dummy_event):
    guard = MagicMock(return_value=True)
    ctx = {"x": 1}
    TransitionDescriptor("a", "b", "GO", guards=(guard,)).evaluate_guards(ctx, dummy_event)
    guard.assert_called_once_with(ctx, dummy_event)


def test_guard_exception_becomes_action_error(dummy_event):
    def broken(ctx, e):
        raise ValueError("bad guard")

    t = TransitionDescriptor("a", "b", "GO", guards=(broken,))
    with pytest.raises(ActionError) as info:
        t.evaluate_guards({}, dummy_event)
    assert info.value.phase == "guard"
    assert info.value.state == "a"
    assert isinstance(info.value.__cause__, ValueError)


def test_async_guard_rejected(dummy_event):
    async def slow_guard(ctx, e):
        return True

    t = TransitionDescriptor("a", "b", "GO", guards=(slow_guard,))
    with pytest.raises(ActionError, match="synchronous"):
        t.evaluate_guards({}, dummy_event)


@pytest.fixture
def ordered_definition():
    m = create_machine("ordered")
    idle = m.state("idle")
    m.state("first")
    m.state("second")
    m.state("third")
    idle.on("GO", "first").if_(lambda ctx, e: ctx["pick"] == 1)
    idle.on("GO", "second").if_(lambda ctx, e: ctx["pick"] >= 1)
    idle.on("GO", "third")
    m.initial(idle)
    return m.build()


@pytest.mark.parametrize("pick,expected", [(1, "first"), (2, "second"), (0, "third")])
def test_resolve_first_match_wins(ordered_definition, pick, expected):
    t = resolve(ordered_definition, "idle", {"pick": pick}, Event("GO"))
    assert t.target == expected


def test_resolve_unknown_event(ordered_definition):
    assert resolve(ordered_definition, "idle", {"pick": 1}, Event("NOPE")) is None


def test_resolve_all_guards_fail():
    m = create_machine("closed")
    m.state("idle").on("OPEN", "idle").if_(lambda ctx, e: False)
    m.initial("idle")
    assert resolve(m.build(), "idle", {}, Event("OPEN")) is None


def test_resolve_later_candidates_not_evaluated():
    later = MagicMock(return_value=True)
    m = create_machine("lazy")
    idle = m.state("idle")
    idle.on("GO", "idle")
    idle.on("GO", "idle").if_(later)
    m.initial(idle)
    resolve(m.build(), "idle", {}, Event("GO"))
    later.assert_not_called()


@pytest.fixture
def nested_definition():
    m = create_machine("connection")
    online = m.state("online")
    connected = online.state("connected")
    online.state("reconnecting")
    m.state("offline")
    connected.on("DROP", "reconnecting")
    connected.on("PING").if_(lambda ctx, e: ctx.get("child_handles", True))
    online.on("PING", "offline")
    online.on("DROP", "offline")
    m.on("PING", "online")
    m.on("SHUTDOWN", "offline")
    m.initial(online)
    return m.build()


def test_resolve_prefers_innermost_state(nested_definition):
    t = resolve(nested_definition, "connected", {}, Event("DROP"))
    assert (t.source, t.target) == ("connected", "reconnecting")


def test_resolve_bubbles_to_parent(nested_definition):
    t = resolve(nested_definition, "reconnecting", {}, Event("DROP"))
    assert (t.source, t.target) == ("online", "offline")


def test_resolve_bubbles_when_child_guards_fail(nested_definition):
    t = resolve(nested_definition, "connected", {"child_handles": False}, Event("PING"))
    assert (t.source, t.target) == ("online", "offline")


def test_resolve_falls_back_to_machine_level(nested_definition):
    t = resolve(nested_definition, "offline", {}, Event("PING"))
    assert (t.source, t.target) == (None, "online")
    assert resolve(nested_definition, "connected", {}, Event("SHUTDOWN")).target == "offline"


def test_global_guard_failure_names_machine():
    def broken(ctx, e):
        raise RuntimeError("nope")

    m = create_machine("m")
    m.state("a")
    m.on("GO", "a").if_(broken)
    m.initial("a")
    with pytest.raises(ActionError) as info:
        resolve(m.build(), "a", {}, Event("GO"))
    assert info.value.phase == "guard"
    assert info.value.state is None
