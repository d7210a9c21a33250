# hsmkit/core/transitions.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional, Tuple

from hsmkit.core.errors import ActionError
from hsmkit.core.events import Event
from hsmkit.interfaces.types import Action, EventType, Guard, StateName

if TYPE_CHECKING:
    from hsmkit.core.definition import MachineDefinition


@dataclass(frozen=True, eq=False)
class TransitionDescriptor:
    """
    Defines a possible path from one state to another, gated by guard
    conditions and performing actions. ``target`` is ``None`` for an internal
    transition that runs its actions without leaving the source state.
    ``source`` is ``None`` for a machine-level transition.
    """

    source: Optional[StateName]
    target: Optional[StateName]
    event: EventType
    guards: Tuple[Guard, ...] = ()
    actions: Tuple[Action, ...] = ()
    reenter: bool = False

    @property
    def is_internal(self) -> bool:
        """
        True when taking this transition runs neither exit nor entry actions:
        targetless transitions, and self-transitions not declared ``reenter``.
        """
        if self.target is None:
            return True
        return self.target == self.source and not self.reenter

    def evaluate_guards(self, context: Any, event: Optional[Event]) -> bool:
        """
        Evaluate the attached guards to determine if the transition can occur.

        :param context: The instance context.
        :param event: The triggering event.
        :return: True if all guards pass, otherwise False.
        :raises ActionError: If a guard raises or returns an awaitable.
        """
        return _GuardEvaluator().evaluate(self, context, event)

    def __repr__(self) -> str:
        return f"TransitionDescriptor({self.source!r} --{self.event}--> {self.target!r})"


class _GuardEvaluator:
    """
    Internal helper to evaluate a transition's guard conjunction left to
    right, stopping at the first false guard.
    """

    def evaluate(self, transition: TransitionDescriptor, context: Any, event: Optional[Event]) -> bool:
        for guard in transition.guards:
            try:
                passed = guard(context, event)
            except Exception as e:
                raise ActionError(
                    f"Guard for '{transition.event}' in state '{transition.source or '*'}' failed: {e}",
                    phase="guard",
                    state=transition.source,
                    event=event,
                ) from e
            if inspect.isawaitable(passed):
                if inspect.iscoroutine(passed):
                    passed.close()
                raise ActionError(
                    f"Guard for '{transition.event}' in state '{transition.source or '*'}' returned an awaitable; "
                    "guards must be synchronous.",
                    phase="guard",
                    state=transition.source,
                    event=event,
                )
            if not passed:
                return False
        return True


def resolve(
    definition: "MachineDefinition", current: str, context: Any, event: Event
) -> Optional[TransitionDescriptor]:
    """
    Select the transition an event triggers from the current state.

    The current state is searched first, then each ancestor outwards, then
    the machine-level transitions. Within each, candidates registered for the
    event type are tried in declaration order; the first whose guards all
    pass wins and later ones are never evaluated.

    :param definition: The machine definition.
    :param current: Name of the instance's current (leaf) state.
    :param context: The instance context handed to guards.
    :param event: The event being dispatched.
    :return: The selected transition, or None when nothing is keyed to the
        event or every candidate's guards fail.
    """
    for name in reversed(definition.ancestry(current)):
        for transition in definition.get_state(name).get_transitions(event.type):
            if transition.evaluate_guards(context, event):
                return transition
    for transition in definition.get_global_transitions(event.type):
        if transition.evaluate_guards(context, event):
            return transition
    return None
