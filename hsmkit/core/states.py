# hsmkit/core/states.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Mapping, Optional, Tuple

from hsmkit.interfaces.types import Action, StateName

if TYPE_CHECKING:
    from hsmkit.core.transitions import TransitionDescriptor


@dataclass(frozen=True, eq=False)
class StateDescriptor:
    """
    Represents a named state of a machine definition: its outgoing transitions
    keyed by event type, and the entry/exit actions run when an instance
    arrives at or leaves it.

    A state may nest child states. Such a compound state is never current on
    its own; entering it also enters its ``initial`` child, recursively.

    Descriptors are immutable and shared by every instance started from the
    same definition.
    """

    name: StateName
    transitions: Mapping[str, Tuple["TransitionDescriptor", ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    entry_actions: Tuple[Action, ...] = ()
    exit_actions: Tuple[Action, ...] = ()
    parent: Optional[StateName] = None
    children: Tuple[StateName, ...] = ()
    initial: Optional[StateName] = None

    def get_transitions(self, event_type: str) -> Tuple["TransitionDescriptor", ...]:
        """
        Return the candidates registered for an event type, in declaration
        order, or an empty tuple.
        """
        return self.transitions.get(event_type, ())

    @property
    def events(self) -> Tuple[str, ...]:
        """Event types this state reacts to."""
        return tuple(self.transitions)

    @property
    def is_compound(self) -> bool:
        return bool(self.children)
