# tests/unit/test_hooks.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import logging
from unittest.mock import MagicMock

import pytest

from hsmkit import create_machine
from hsmkit.core.errors import ActionError
from hsmkit.core.hooks import HookManager


def test_bound_calls_skip_missing_methods():
    class EnterOnly:
        def on_enter(self, state, context):
            pass

    manager = HookManager([EnterOnly(), object()])
    assert len(manager.bound_calls("on_enter", "a", {})) == 1
    assert manager.bound_calls("on_exit", "a", {}) == []


def test_register_hook():
    manager = HookManager()
    hook = MagicMock()
    manager.register_hook(hook)
    assert manager.hooks == [hook]


@pytest.mark.asyncio
async def test_hook_added_after_start(switch_definition, trace, trace_hook):
    instance = switch_definition.start()
    instance.add_hook(trace_hook)
    await instance.send("START")
    assert trace == ["EXIT:idle", "TRANSITION:idle->running", "ENTER:running"]


@pytest.mark.asyncio
async def test_hooks_trace_lifecycle(switch_definition, trace, trace_hook):
    instance = switch_definition.start(hooks=[trace_hook])
    assert trace == ["ENTER:idle"]
    await instance.send("START")
    assert trace == ["ENTER:idle", "EXIT:idle", "TRANSITION:idle->running", "ENTER:running"]


@pytest.mark.asyncio
async def test_async_hooks_are_awaited(switch_definition):
    trace = []

    class AsyncHook:
        async def on_transition(self, source, target, event):
            trace.append((source, target, event.type))

    instance = switch_definition.start(hooks=[AsyncHook()])
    await instance.send("START")
    assert trace == [("idle", "running", "START")]


@pytest.mark.asyncio
async def test_on_error_receives_action_error(trace, trace_hook):
    m = create_machine("m")
    m.state("a").on("GO", "a").do(lambda ctx, e: 1 / 0)
    m.initial("a")
    instance = m.start(hooks=[trace_hook])
    with pytest.raises(ActionError):
        await instance.send("GO")
    assert trace[-1] == "ERROR:ActionError"


@pytest.mark.asyncio
async def test_failing_hook_fails_dispatch(switch_definition):
    class Broken:
        def on_exit(self, state, context):
            raise RuntimeError("hook")

    instance = switch_definition.start(hooks=[Broken()])
    with pytest.raises(ActionError) as info:
        await instance.send("START")
    assert info.value.phase == "hook"
    assert instance.current == "idle"


@pytest.mark.asyncio
async def test_failing_on_error_is_logged(caplog):
    class BrokenErrorHook:
        def on_error(self, error):
            raise RuntimeError("observer")

    m = create_machine("m")
    m.state("a").on("GO").do(lambda ctx, e: 1 / 0)
    m.initial("a")
    instance = m.start(hooks=[BrokenErrorHook()])
    with caplog.at_level(logging.ERROR, logger="hsmkit.core.hooks"):
        with pytest.raises(ActionError) as info:
            await instance.send("GO")
    assert isinstance(info.value.__cause__, ZeroDivisionError)
    assert "on_error hook failed" in caplog.text
