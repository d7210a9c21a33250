# hsmkit/runtime/executor.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import asyncio
import inspect
import logging
from functools import partial
from typing import TYPE_CHECKING, Any, Awaitable, Callable, List, NamedTuple, Optional, Sequence

from hsmkit.core.errors import ActionError, UsageError
from hsmkit.core.events import Event
from hsmkit.core.hooks import HookManager
from hsmkit.core.transitions import TransitionDescriptor

if TYPE_CHECKING:
    from hsmkit.core.state_machine import Instance

logger = logging.getLogger(__name__)


class _Step(NamedTuple):
    phase: str
    state: Optional[str]
    call: Callable[[], Any]


class TransitionExecutor:
    """
    Runs the lifecycle of a taken transition against an instance: exit
    actions of every state left (innermost first), the transition's own
    actions, the state change, then entry actions of every state entered
    (outermost first).

    Steps run strictly one after another against the same context object.
    A step returning an awaitable is awaited before the next one starts.
    """

    def __init__(self, hooks: HookManager) -> None:
        self._hooks = hooks

    async def run(self, instance: "Instance", transition: TransitionDescriptor, event: Event) -> Any:
        """
        Execute a transition.

        :param instance: The instance whose context and state are updated.
        :param transition: The transition selected by the resolver.
        :param event: The triggering event.
        :return: The settled result of the last transition action, or None.
        :raises ActionError: If an action body or hook fails. Mutations made
            before the failing step are kept.
        """
        steps = self._plan(instance, transition, event)
        return await self._drive(steps, event)

    def enter_initial(self, instance: "Instance") -> Optional[Awaitable[None]]:
        """
        Run the entry actions of the initial configuration with no event,
        outermost state first.

        Synchronous bodies complete before this returns. If a body returns an
        awaitable, the rest of the entry work is returned as a coroutine for
        the caller to schedule; otherwise None is returned.
        """
        steps: List[_Step] = []
        for name in instance.definition.initial_configuration():
            steps.extend(self._entry_steps(instance, name, None))
        for index, step in enumerate(steps):
            value = self._call(step, None)
            if inspect.isawaitable(value):
                try:
                    asyncio.get_running_loop()
                except RuntimeError:
                    if inspect.iscoroutine(value):
                        value.close()
                    raise UsageError(
                        f"Initial entry of state '{step.state}' suspended but no event loop is running."
                    ) from None
                logger.debug("Initial entry of '%s' suspended; finishing asynchronously", step.state)
                return self._resume(step, value, steps[index + 1 :])
        return None

    async def _resume(self, step: _Step, pending: Awaitable[Any], rest: Sequence[_Step]) -> None:
        await self._await(step, pending, None)
        await self._drive(rest, None)

    def _plan(self, instance: "Instance", transition: TransitionDescriptor, event: Event) -> List[_Step]:
        definition = instance.definition
        current = instance.current
        owner = transition.source or current

        if transition.is_internal:
            steps = self._actions("transition", owner, transition.actions, instance, event)
            steps.extend(
                _Step("hook", owner, call) for call in self._hooks.bound_calls("on_transition", current, current, event)
            )
            return steps

        exited, entered = definition.exit_and_entry(current, transition.target)
        steps = []
        for name in exited:
            steps.extend(self._actions("exit", name, definition.get_state(name).exit_actions, instance, event))
            steps.extend(
                _Step("hook", name, call) for call in self._hooks.bound_calls("on_exit", name, instance.context)
            )

        steps.extend(self._actions("transition", owner, transition.actions, instance, event))

        leaf = entered[-1]
        steps.append(_Step("state", leaf, partial(instance._set_current, leaf)))
        steps.extend(
            _Step("hook", owner, call) for call in self._hooks.bound_calls("on_transition", current, leaf, event)
        )

        for name in entered:
            steps.extend(self._entry_steps(instance, name, event))
        return steps

    def _entry_steps(self, instance: "Instance", state: str, event: Optional[Event]) -> List[_Step]:
        actions = instance.definition.get_state(state).entry_actions
        steps = self._actions("entry", state, actions, instance, event)
        steps.extend(_Step("hook", state, call) for call in self._hooks.bound_calls("on_enter", state, instance.context))
        return steps

    @staticmethod
    def _actions(
        phase: str, state: str, actions: Sequence[Callable[..., Any]], instance: "Instance", event: Optional[Event]
    ) -> List[_Step]:
        return [_Step(phase, state, partial(_invoke, action, instance, event)) for action in actions]

    async def _drive(self, steps: Sequence[_Step], event: Optional[Event]) -> Any:
        result = None
        for step in steps:
            value = self._call(step, event)
            if inspect.isawaitable(value):
                value = await self._await(step, value, event)
            if step.phase == "transition":
                result = value
        return result

    @staticmethod
    def _call(step: _Step, event: Optional[Event]) -> Any:
        try:
            return step.call()
        except Exception as e:
            raise _failure(step, event, e) from e

    @staticmethod
    async def _await(step: _Step, pending: Awaitable[Any], event: Optional[Event]) -> Any:
        try:
            return await pending
        except asyncio.CancelledError as e:
            # Cancelling this task propagates; a cancelled awaitable is a failure.
            if asyncio.current_task().cancelling():
                raise
            raise _failure(step, event, e) from e
        except Exception as e:
            raise _failure(step, event, e) from e


def _invoke(action: Callable[..., Any], instance: "Instance", event: Optional[Event]) -> Any:
    return action(instance.context, event)


def _failure(step: _Step, event: Optional[Event], error: BaseException) -> ActionError:
    what = "Hook" if step.phase == "hook" else f"{step.phase.capitalize()} action"
    return ActionError(f"{what} of state '{step.state}' failed: {error}", phase=step.phase, state=step.state, event=event)
