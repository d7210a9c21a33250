# tests/conftest.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import pytest

from hsmkit import create_machine
from hsmkit.core.events import Event


def pytest_configure(config):
    """Register custom marks."""
    config.addinivalue_line("markers", "stress: mark test as a stress test")
    config.addinivalue_line("markers", "property: mark test as a property-based test")


class TraceHook:
    """
    A hook that appends trace records whenever a state is entered or exited,
    a transition is taken or an error is encountered.
    """

    def __init__(self, trace_list):
        self.trace = trace_list

    def on_enter(self, state, context):
        self.trace.append(f"ENTER:{state}")

    def on_exit(self, state, context):
        self.trace.append(f"EXIT:{state}")

    def on_transition(self, source, target, event):
        self.trace.append(f"TRANSITION:{source}->{target}")

    def on_error(self, error):
        self.trace.append(f"ERROR:{type(error).__name__}")


@pytest.fixture
def trace():
    """A list collecting trace records."""
    return []


@pytest.fixture
def trace_hook(trace):
    return TraceHook(trace)


@pytest.fixture
def switch_definition():
    """idle <-> running, toggled by START and STOP."""
    m = create_machine("switch")
    idle = m.state("idle")
    running = m.state("running")
    idle.on("START", running)
    running.on("STOP", idle)
    m.initial(idle)
    return m.build()


@pytest.fixture
def access_definition():
    """idle -> allowed | denied depending on the user's role."""
    m = create_machine("access")
    idle = m.state("idle")
    m.state("allowed").on("RESET", idle)
    m.state("denied").on("RESET", idle)
    idle.on("ACCESS", "allowed").if_(lambda ctx, e: ctx.get("user", {}).get("role") == "admin")
    idle.on("ACCESS", "denied").if_(lambda ctx, e: ctx.get("user", {}).get("role") != "admin")
    m.initial(idle)
    return m.build()


@pytest.fixture
def counter_definition():
    """A single state whose INC internal transition increments ctx['count']."""

    def increment(ctx, e):
        ctx["count"] = ctx.get("count", 0) + 1
        return ctx["count"]

    m = create_machine("counter")
    m.state("active").on("INC").do(increment)
    m.initial("active")
    return m.build()


@pytest.fixture
def dummy_event():
    """A generic Event for testing."""
    return Event("TestEvent")


@pytest.fixture
def dummy_guard():
    """A guard function that always returns True."""
    return lambda ctx, event: True


@pytest.fixture
def dummy_action():
    """A simple action function (no-op)."""
    return lambda ctx, event: None
