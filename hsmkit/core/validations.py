# hsmkit/core/validations.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

from typing import TYPE_CHECKING

from hsmkit.core.errors import DefinitionError

if TYPE_CHECKING:
    from hsmkit.core.definition import MachineDefinition
    from hsmkit.core.states import StateDescriptor
    from hsmkit.core.transitions import TransitionDescriptor


class Validator:
    """
    Performs construction-time validation of machine definitions, ensuring
    states and transitions conform to defined rules before any instance
    exists.
    """

    def __init__(self) -> None:
        self._rules_engine = _ValidationRulesEngine()

    def validate_definition(self, definition: "MachineDefinition") -> None:
        """
        Check the definition's states and transitions for consistency.

        :param definition: The machine definition to validate.
        :raises DefinitionError: If validation fails.
        """
        self._rules_engine.validate_definition(definition)

    def validate_transition(self, definition: "MachineDefinition", transition: "TransitionDescriptor") -> None:
        """
        Check that a given transition is well-formed within its definition.

        :raises DefinitionError: If validation fails.
        """
        self._rules_engine.validate_transition(definition, transition)


class _ValidationRulesEngine:
    """
    Internal engine applying the rule set to a definition and each of its
    transitions.
    """

    def __init__(self) -> None:
        self._default_rules = _DefaultValidationRules

    def validate_definition(self, definition: "MachineDefinition") -> None:
        self._default_rules.validate_definition(definition)
        for state in definition.states.values():
            for candidates in state.transitions.values():
                for transition in candidates:
                    self.validate_transition(definition, transition)
        for candidates in definition.global_transitions.values():
            for transition in candidates:
                self.validate_transition(definition, transition)

    def validate_transition(self, definition: "MachineDefinition", transition: "TransitionDescriptor") -> None:
        self._default_rules.validate_transition(definition, transition)


class _DefaultValidationRules:
    """
    Built-in rules: a named definition, a non-empty state set, an initial
    state that is a member, consistent parent/child links, targets inside the
    definition, callable bodies.
    """

    @staticmethod
    def validate_definition(definition: "MachineDefinition") -> None:
        if not isinstance(definition.id, str) or not definition.id:
            raise DefinitionError("Machine definition must have a non-empty id.")
        if not definition.states:
            raise DefinitionError(f"Machine '{definition.id}' must define at least one state.")
        if definition.initial is None:
            raise DefinitionError(f"Machine '{definition.id}' must have an initial state.")
        if definition.states.get(definition.initial.name) is not definition.initial:
            raise DefinitionError(
                f"Initial state '{definition.initial.name}' is not a state of machine '{definition.id}'."
            )
        for name, state in definition.states.items():
            if state.name != name:
                raise DefinitionError(f"State registered as '{name}' is named '{state.name}'.")
            for action in state.entry_actions + state.exit_actions:
                if not callable(action):
                    raise DefinitionError(f"Entry and exit actions of state '{name}' must be callable.")
            _DefaultValidationRules._validate_nesting(definition, state)

    @staticmethod
    def _validate_nesting(definition: "MachineDefinition", state: "StateDescriptor") -> None:
        states = definition.states
        if state.parent is not None:
            parent = states.get(state.parent)
            if parent is None or state.name not in parent.children:
                raise DefinitionError(f"State '{state.name}' is not a child of '{state.parent}'.")
        for child in state.children:
            if child not in states or states[child].parent != state.name:
                raise DefinitionError(f"State '{child}' is not a child of '{state.name}'.")
        if state.children and state.initial not in state.children:
            raise DefinitionError(f"Initial child of compound state '{state.name}' must be one of its children.")
        if not state.children and state.initial is not None:
            raise DefinitionError(f"State '{state.name}' has an initial child but no children.")

    @staticmethod
    def validate_transition(definition: "MachineDefinition", transition: "TransitionDescriptor") -> None:
        if transition.source is not None and transition.source not in definition.states:
            raise DefinitionError(
                f"Transition on '{transition.event}' has source '{transition.source}' "
                f"which is not in machine '{definition.id}'."
            )
        if transition.target is not None and transition.target not in definition.states:
            raise DefinitionError(
                f"Transition on '{transition.event}' from '{transition.source}' targets "
                f"'{transition.target}' which is not in machine '{definition.id}'."
            )
        for g in transition.guards:
            if not callable(g):
                raise DefinitionError("Transition guards must be callable.")
        for a in transition.actions:
            if not callable(a):
                raise DefinitionError("Transition actions must be callable.")
