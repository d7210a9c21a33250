# hsmkit/core/hooks.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import inspect
import logging
from functools import partial
from typing import Any, Callable, List, Optional

logger = logging.getLogger(__name__)


class HookManager:
    """
    Manages the hooks attached to an instance. Users can attach logging,
    monitoring, or custom side effects without altering core logic.

    Hooks may implement any subset of these methods, as plain functions or
    coroutines:

    - ``on_enter(state, context)`` after a state's entry actions ran
    - ``on_exit(state, context)`` after a state's exit actions ran
    - ``on_transition(source, target, event)`` once a transition was taken
    - ``on_error(error)`` when a dispatch failed
    """

    def __init__(self, hooks: Optional[List[Any]] = None) -> None:
        self._hooks: List[Any] = list(hooks or [])

    @property
    def hooks(self) -> List[Any]:
        return list(self._hooks)

    def register_hook(self, hook: Any) -> None:
        """
        Add a new hook to the manager's list of hooks.
        """
        self._hooks.append(hook)

    def bound_calls(self, method: str, *args: Any) -> List[Callable[[], Any]]:
        """
        Return zero-argument callables invoking ``method`` on every hook that
        defines it, in registration order. Each call may return an awaitable.
        """
        calls = []
        for hook in self._hooks:
            fn = getattr(hook, method, None)
            if callable(fn):
                calls.append(partial(fn, *args))
        return calls

    async def execute_on_error(self, error: Exception) -> None:
        """
        Run all hooks' on_error logic. A failing hook is logged and does not
        replace the error being reported.
        """
        for call in self.bound_calls("on_error", error):
            try:
                result = call()
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("on_error hook failed while handling %r", error)
