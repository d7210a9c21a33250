# hsmkit/core/builder.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Optional, Union

from hsmkit.core.definition import MachineDefinition
from hsmkit.core.errors import DefinitionError, UsageError
from hsmkit.core.states import StateDescriptor
from hsmkit.core.transitions import TransitionDescriptor
from hsmkit.core.validations import Validator
from hsmkit.interfaces.types import Action, Guard

if TYPE_CHECKING:
    from hsmkit.core.state_machine import Instance


def _require_callable(fn: Any, what: str) -> None:
    if not callable(fn):
        raise UsageError(f"{what} must be callable, got {fn.__class__.__name__}.")


def _require_name(name: Any, what: str) -> None:
    if not isinstance(name, str) or not name:
        raise UsageError(f"{what} is required.")


class TransitionBuilder:
    """
    Collects the guards and actions of one transition. Returned by
    ``StateBuilder.on`` and ``MachineBuilder.on`` and chainable.
    """

    def __init__(
        self, source: Optional["StateBuilder"], event: str, target: Optional[str], reenter: bool
    ) -> None:
        self._source = source
        self._event = event
        self._target = target
        self._reenter = reenter
        self._guards: List[Guard] = []
        self._actions: List[Action] = []

    @property
    def event(self) -> str:
        return self._event

    @property
    def target(self) -> Optional[str]:
        return self._target

    def if_(self, guard: Guard) -> "TransitionBuilder":
        """
        Add a guard ``(context, event) -> bool``. All guards must pass for the
        transition to be taken.
        """
        _require_callable(guard, "Guard")
        self._guards.append(guard)
        return self

    def do(self, action: Action) -> "TransitionBuilder":
        """Add an action ``(context, event)`` run when the transition is taken."""
        _require_callable(action, "Action")
        self._actions.append(action)
        return self

    def _build(self) -> TransitionDescriptor:
        return TransitionDescriptor(
            source=self._source.name if self._source is not None else None,
            target=self._target,
            event=self._event,
            guards=tuple(self._guards),
            actions=tuple(self._actions),
            reenter=self._reenter,
        )


def _declare(
    machine: "MachineBuilder",
    table: Dict[str, List[TransitionBuilder]],
    source: Optional["StateBuilder"],
    event: str,
    target: Union["StateBuilder", str, None],
    reenter: bool,
) -> TransitionBuilder:
    _require_name(event, "Event name")
    if isinstance(target, StateBuilder):
        if target._machine is not machine:
            raise DefinitionError(f"State '{target.name}' belongs to a different machine.")
        target_name: Optional[str] = target.name
    elif target is None:
        target_name = None
    elif isinstance(target, str):
        _require_name(target, "Transition target")
        target_name = target
    else:
        raise UsageError(f"Transition target must be a state or a state name, got {target.__class__.__name__}.")

    transition = TransitionBuilder(source, event, target_name, bool(reenter))
    table.setdefault(event, []).append(transition)
    return transition


def _build_table(table: Dict[str, List[TransitionBuilder]]) -> Mapping[str, tuple]:
    return MappingProxyType({event: tuple(t._build() for t in candidates) for event, candidates in table.items()})


class StateBuilder:
    """
    Collects the transitions, entry/exit actions and child states of one
    state. Returned by ``MachineBuilder.state`` and ``StateBuilder.state``.
    """

    def __init__(self, machine: "MachineBuilder", name: str, parent: Optional["StateBuilder"] = None) -> None:
        self._machine = machine
        self._name = name
        self._parent = parent
        self._children: List[str] = []
        self._initial: Optional[str] = None
        self._transitions: Dict[str, List[TransitionBuilder]] = {}
        self._entry: List[Action] = []
        self._exit: List[Action] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def parent(self) -> Optional["StateBuilder"]:
        return self._parent

    def state(self, name: str) -> "StateBuilder":
        """
        Register a child state. Names are unique across the whole machine.

        :raises UsageError: If the name is missing.
        :raises DefinitionError: If a state with this name already exists.
        """
        child = self._machine._register(name, parent=self)
        self._children.append(name)
        return child

    def initial(self, child: Union["StateBuilder", str]) -> "StateBuilder":
        """
        Set the child entered when this state is entered. Defaults to the
        first child declared.

        :raises DefinitionError: If ``child`` is not a child of this state.
        """
        if not child:
            raise UsageError("Initial child is required.")
        name = child.name if isinstance(child, StateBuilder) else child
        if name not in self._children or (
            isinstance(child, StateBuilder) and self._machine._states[name] is not child
        ):
            raise DefinitionError(f"State '{name}' is not a child of '{self._name}'.")
        self._initial = name
        return self

    def on(
        self, event: str, target: Union["StateBuilder", str, None] = None, reenter: bool = False
    ) -> TransitionBuilder:
        """
        Declare a transition taken when ``event`` arrives in this state or in
        any of its descendants that does not handle it.

        Several transitions may share an event; they are tried in the order
        declared and the first whose guards pass wins.

        :param event: Event type.
        :param target: Target state or its name; None declares an internal
            transition that only runs its actions.
        :param reenter: For a self-transition, run exit and entry actions.
        :raises UsageError: If ``event`` or a string ``target`` is empty, or
            ``target`` has an unsupported type.
        :raises DefinitionError: If ``target`` belongs to another machine.
        """
        return _declare(self._machine, self._transitions, self, event, target, reenter)

    def enter(self, action: Action) -> "StateBuilder":
        """Add an entry action ``(context, event)``."""
        _require_callable(action, "Entry action")
        self._entry.append(action)
        return self

    def exit(self, action: Action) -> "StateBuilder":
        """Add an exit action ``(context, event)``."""
        _require_callable(action, "Exit action")
        self._exit.append(action)
        return self

    def _build(self) -> StateDescriptor:
        initial = self._initial
        if initial is None and self._children:
            initial = self._children[0]
        return StateDescriptor(
            name=self._name,
            transitions=_build_table(self._transitions),
            entry_actions=tuple(self._entry),
            exit_actions=tuple(self._exit),
            parent=self._parent.name if self._parent is not None else None,
            children=tuple(self._children),
            initial=initial,
        )


class MachineBuilder:
    """
    Imperative authoring surface. Register states, their transitions and the
    initial state, then ``build()`` an immutable MachineDefinition.
    """

    def __init__(self, name: str) -> None:
        _require_name(name, "Machine name")
        self._name = name
        self._states: Dict[str, StateBuilder] = {}
        self._global: Dict[str, List[TransitionBuilder]] = {}
        self._initial: Optional[str] = None

    @property
    def name(self) -> str:
        return self._name

    def state(self, name: str) -> StateBuilder:
        """
        Register a new top-level state.

        :raises UsageError: If the name is missing.
        :raises DefinitionError: If a state with this name already exists.
        """
        return self._register(name)

    def _register(self, name: str, parent: Optional[StateBuilder] = None) -> StateBuilder:
        _require_name(name, "State name")
        if name in self._states:
            raise DefinitionError(f"State '{name}' already exists.")
        builder = StateBuilder(self, name, parent)
        self._states[name] = builder
        return builder

    def on(
        self, event: str, target: Union[StateBuilder, str, None] = None, reenter: bool = False
    ) -> TransitionBuilder:
        """
        Declare a machine-level transition, taken when neither the current
        state nor any of its ancestors handles ``event``.
        """
        return _declare(self, self._global, None, event, target, reenter)

    def initial(self, state: Union[StateBuilder, str]) -> "MachineBuilder":
        """
        Set the initial state. A nested state may be named; its ancestors are
        entered first.

        :raises UsageError: If no state is given.
        :raises DefinitionError: If the state is not registered on this machine.
        """
        if not state:
            raise UsageError("Initial state is required.")
        name = state.name if isinstance(state, StateBuilder) else state
        if self._states.get(name) is None or (isinstance(state, StateBuilder) and self._states[name] is not state):
            raise DefinitionError(f"State '{name}' not found in machine '{self._name}'.")
        self._initial = name
        return self

    def build(self, validator: Optional[Validator] = None) -> MachineDefinition:
        """
        Produce the immutable definition.

        :raises DefinitionError: If no initial state was set or a transition
            targets an unknown state.
        """
        if self._initial is None:
            raise DefinitionError(f"Machine '{self._name}' has no initial state.")
        return MachineDefinition(
            self._name,
            [state._build() for state in self._states.values()],
            self._initial,
            validator=validator,
            global_transitions=_build_table(self._global),
        )

    def start(self, seed: Any = None, hooks: Optional[List[Any]] = None) -> "Instance":
        """Build the definition and start an instance of it."""
        return self.build().start(seed, hooks=hooks)


def create_machine(
    name_or_config: Union[str, Mapping[str, Any]],
    actions: Optional[Mapping[str, Action]] = None,
    guards: Optional[Mapping[str, Guard]] = None,
    hooks: Optional[List[Any]] = None,
) -> Union[MachineBuilder, "Instance"]:
    """
    Entry point of both authoring styles.

    ``create_machine("name")`` returns a MachineBuilder. ``create_machine({...})``
    builds a definition from a declarative config and returns a started
    instance seeded with ``config["context"]``::

        {
            "id": "player",
            "initial": "stopped",
            "context": {"count": 0},
            "on": {"RESET": "stopped"},
            "states": {
                "stopped": {"on": {"PLAY": "active"}},
                "active": {
                    "initial": "playing",
                    "entry": ["count"],
                    "on": {"STOP": {"target": "stopped", "guards": ["enabled"]}},
                    "states": {
                        "playing": {"on": {"PAUSE": "paused"}},
                        "paused": {"on": {"PLAY": "playing"}},
                    },
                },
            },
        }

    Actions and guards may be given as callables or as names looked up in the
    ``actions`` / ``guards`` registries. A transition mapping without a
    ``target`` is internal. The top-level ``on`` declares machine-level
    transitions.
    """
    if isinstance(name_or_config, Mapping):
        return definition_from_config(name_or_config, actions=actions, guards=guards).start(
            name_or_config.get("context"), hooks=hooks
        )
    if actions is not None or guards is not None or hooks is not None:
        raise UsageError("actions, guards and hooks only apply to the declarative form.")
    return MachineBuilder(name_or_config)


def definition_from_config(
    config: Mapping[str, Any],
    actions: Optional[Mapping[str, Action]] = None,
    guards: Optional[Mapping[str, Guard]] = None,
) -> MachineDefinition:
    """
    Build a MachineDefinition from a declarative config.

    :raises DefinitionError: If the config is malformed or references an
        unknown action, guard or state.
    """
    if not isinstance(config, Mapping):
        raise DefinitionError("Machine config must be a mapping.")
    for key in ("id", "initial", "states"):
        if not config.get(key):
            raise DefinitionError(f"Machine config must have '{key}'.")
    if not isinstance(config["id"], str):
        raise DefinitionError("Machine config 'id' must be a string.")

    loader = _ConfigLoader(MachineBuilder(config["id"]), actions or {}, guards or {})
    loader.add_states(config["states"], None)
    loader.add_transitions(config.get("on"), None, "machine")
    if config["initial"] not in loader.builder._states:
        raise DefinitionError(f"Initial state '{config['initial']}' not found in machine '{config['id']}'.")
    loader.builder.initial(config["initial"])
    return loader.builder.build()


class _ConfigLoader:
    """
    Internal helper walking a declarative config into a MachineBuilder,
    resolving registry names as it goes.
    """

    def __init__(self, builder: MachineBuilder, actions: Mapping[str, Action], guards: Mapping[str, Guard]) -> None:
        self.builder = builder
        self._actions = actions
        self._guards = guards

    def add_states(self, states: Any, parent: Optional[StateBuilder]) -> None:
        if not isinstance(states, Mapping):
            where = f"state '{parent.name}'" if parent is not None else "machine"
            raise DefinitionError(f"'states' of {where} must be a mapping.")
        for name, state_config in states.items():
            state_config = state_config or {}
            if not isinstance(state_config, Mapping):
                raise DefinitionError(f"Config of state '{name}' must be a mapping.")
            state = parent.state(name) if parent is not None else self.builder.state(name)
            for ref in _as_list(state_config.get("entry")):
                state.enter(_lookup(ref, self._actions, "Action"))
            for ref in _as_list(state_config.get("exit")):
                state.exit(_lookup(ref, self._actions, "Action"))
            if state_config.get("states"):
                self.add_states(state_config["states"], state)
                if state_config.get("initial"):
                    state.initial(state_config["initial"])
            self.add_transitions(state_config.get("on"), state, f"state '{name}'")

    def add_transitions(self, table: Any, state: Optional[StateBuilder], where: str) -> None:
        if not table:
            return
        if not isinstance(table, Mapping):
            raise DefinitionError(f"'on' of {where} must be a mapping.")
        declare = state.on if state is not None else self.builder.on
        for event, candidates in table.items():
            for candidate in _as_list(candidates):
                if isinstance(candidate, str):
                    declare(event, candidate)
                elif isinstance(candidate, Mapping):
                    transition = declare(event, candidate.get("target"), reenter=candidate.get("reenter", False))
                    for ref in _as_list(candidate.get("guards", candidate.get("cond"))):
                        transition.if_(_lookup(ref, self._guards, "Guard"))
                    for ref in _as_list(candidate.get("actions")):
                        transition.do(_lookup(ref, self._actions, "Action"))
                else:
                    raise DefinitionError(f"Invalid transition for '{event}' in {where}.")


def _as_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _lookup(ref: Union[str, Callable[..., Any]], registry: Mapping[str, Any], kind: str) -> Callable[..., Any]:
    if callable(ref):
        return ref
    if isinstance(ref, str):
        if ref not in registry:
            raise DefinitionError(f"{kind} '{ref}' not found in registry.")
        found = registry[ref]
        if not callable(found):
            raise DefinitionError(f"{kind} '{ref}' in registry is not callable.")
        return found
    raise DefinitionError(f"{kind} must be a callable or a registered name, got {ref.__class__.__name__}.")
