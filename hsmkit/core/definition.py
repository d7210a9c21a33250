# hsmkit/core/definition.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Iterable, List, Mapping, Optional, Tuple

from hsmkit.core.errors import DefinitionError
from hsmkit.core.states import StateDescriptor
from hsmkit.core.validations import Validator

if TYPE_CHECKING:
    from hsmkit.core.state_machine import Instance
    from hsmkit.core.transitions import TransitionDescriptor


class MachineDefinition:
    """
    Immutable description of a state graph: the named states, the initial
    state and, through each state, the outgoing transitions. Built once and
    shared read-only by every instance started from it.

    State names are unique across the whole definition, nested states
    included. Machine-level (global) transitions are consulted after the
    current state and all of its ancestors.
    """

    __slots__ = ("_id", "_states", "_initial", "_global")

    def __init__(
        self,
        id: str,
        states: Iterable[StateDescriptor],
        initial: str,
        validator: Optional[Validator] = None,
        global_transitions: Optional[Mapping[str, Tuple["TransitionDescriptor", ...]]] = None,
    ) -> None:
        """
        :param id: Informational machine name.
        :param states: State descriptors, in declaration order.
        :param initial: Name of the initial state.
        :param validator: Optional validator; the default rules are used otherwise.
        :param global_transitions: Machine-level transitions keyed by event type.
        :raises DefinitionError: On duplicate names, unknown targets or a
            missing initial state.
        """
        table = {}
        for state in states:
            if state.name in table:
                raise DefinitionError(f"State '{state.name}' already exists in machine '{id}'.")
            table[state.name] = state
        object.__setattr__(self, "_id", id)
        object.__setattr__(self, "_states", MappingProxyType(table))
        object.__setattr__(self, "_initial", table.get(initial) if initial else None)
        object.__setattr__(self, "_global", MappingProxyType(dict(global_transitions or {})))
        if initial and initial not in table:
            raise DefinitionError(f"Initial state '{initial}' not found in machine '{id}'.")
        (validator or Validator()).validate_definition(self)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f"{self.__class__.__name__} is immutable")

    @property
    def id(self) -> str:
        return self._id

    @property
    def states(self) -> Mapping[str, StateDescriptor]:
        """Read-only mapping of state name to descriptor."""
        return self._states

    @property
    def initial(self) -> StateDescriptor:
        return self._initial

    @property
    def state_names(self) -> Tuple[str, ...]:
        return tuple(self._states)

    @property
    def global_transitions(self) -> Mapping[str, Tuple["TransitionDescriptor", ...]]:
        return self._global

    def get_state(self, name: str) -> StateDescriptor:
        """
        Look up a state by name.

        :raises DefinitionError: If no such state exists.
        """
        try:
            return self._states[name]
        except KeyError:
            raise DefinitionError(f"State '{name}' not found in machine '{self._id}'.") from None

    def get_global_transitions(self, event_type: str) -> Tuple["TransitionDescriptor", ...]:
        return self._global.get(event_type, ())

    def ancestry(self, name: str) -> Tuple[str, ...]:
        """
        Names from the outermost ancestor down to ``name`` itself.

        :raises DefinitionError: If ``name`` is not a state of this definition.
        """
        chain = []
        state: Optional[StateDescriptor] = self.get_state(name)
        while state is not None:
            chain.append(state.name)
            state = self._states.get(state.parent) if state.parent is not None else None
        return tuple(reversed(chain))

    def path_of(self, name: str) -> str:
        """Dotted path of a state, e.g. ``"settings.profile.basic"``."""
        return ".".join(self.ancestry(name))

    def initial_descendants(self, name: str) -> Tuple[str, ...]:
        """Initial children entered below ``name``, outermost first."""
        chain: List[str] = []
        state = self.get_state(name)
        while state.initial is not None:
            chain.append(state.initial)
            state = self.get_state(state.initial)
        return tuple(chain)

    def initial_configuration(self) -> Tuple[str, ...]:
        """States entered when an instance starts, outermost first."""
        return self.ancestry(self._initial.name) + self.initial_descendants(self._initial.name)

    def exit_and_entry(self, current: str, target: str) -> Tuple[Tuple[str, ...], Tuple[str, ...]]:
        """
        States left and entered when moving from the ``current`` leaf to
        ``target``.

        Everything below the deepest common ancestor is exited innermost
        first and entered outermost first, followed by the initial
        descendants of ``target``. A target that is ``current`` or one of its
        ancestors is itself exited and re-entered.
        """
        source_chain = self.ancestry(current)
        target_chain = self.ancestry(target)
        common = 0
        for a, b in zip(source_chain, target_chain):
            if a != b:
                break
            common += 1
        if common == len(target_chain):
            common -= 1
        exited = tuple(reversed(source_chain[common:]))
        entered = target_chain[common:] + self.initial_descendants(target)
        return exited, entered

    def start(self, seed: Any = None, hooks: Optional[List[Any]] = None) -> "Instance":
        """
        Create a live instance bound to this definition.

        The seed is deep-copied so the instance owns its context exclusively;
        the initial state's entry actions run with no event before this
        returns.

        :param seed: Initial context value, ``{}`` when omitted.
        :param hooks: Optional hook objects observing the instance.
        """
        from hsmkit.core.state_machine import Instance

        return Instance(self, seed, hooks=hooks)

    def __repr__(self) -> str:
        return f"MachineDefinition({self._id!r}, states={list(self._states)!r}, initial={self._initial.name!r})"
