# hsmkit/core/errors.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from typing import Any, Optional


class HSMError(Exception):
    """
    Base exception class for errors within the state machine library.
    """


class DefinitionError(HSMError):
    """
    Raised when a machine definition is malformed: duplicate state names,
    transition targets outside the definition, or a missing initial state.
    Always raised at build time, before any instance exists.
    """


class UsageError(HSMError):
    """
    Raised when an authoring or runtime helper is called with malformed
    arguments (missing name, non-callable body, bad event).
    """


class ContextCloneError(UsageError):
    """
    Raised when the seed handed to ``start`` cannot be deep-copied.
    """


class ActionError(HSMError):
    """
    Raised when a guard, an action body or a lifecycle hook fails during a
    dispatch. The original exception is available as ``__cause__``.
    """

    def __init__(self, message: str, phase: str, state: Optional[str] = None, event: Any = None) -> None:
        """
        :param message: Human readable description.
        :param phase: One of ``guard``, ``exit``, ``transition``, ``entry`` or ``hook``.
        :param state: Name of the state whose phase failed.
        :param event: The event being dispatched, ``None`` for initial entry.
        """
        super().__init__(message)
        self.phase = phase
        self.state = state
        self.event = event


class QueueClearedError(HSMError):
    """
    Raised into a queued dispatch that was discarded by ``clear_queue`` before
    it started.
    """

    def __init__(self, message: str = "Event was cancelled due to queue being cleared") -> None:
        super().__init__(message)
