# hsmkit/core/state_machine.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import asyncio
import inspect
import logging
from functools import partial
from typing import TYPE_CHECKING, Any, Callable, List, Mapping, NamedTuple, Optional, Union

from hsmkit.core.errors import ActionError
from hsmkit.core.events import Event
from hsmkit.core.hooks import HookManager
from hsmkit.core.transitions import resolve
from hsmkit.runtime.context import clone_context
from hsmkit.runtime.event_queue import DispatchQueue
from hsmkit.runtime.executor import TransitionExecutor

if TYPE_CHECKING:
    from hsmkit.core.definition import MachineDefinition

logger = logging.getLogger(__name__)


class StateChange(NamedTuple):
    """Notification handed to ``subscribe`` listeners after a state change."""

    source: str
    target: str
    event: Event


class Instance:
    """
    A live execution of a machine definition. Holds the current state name
    and exclusively owns its context; all dispatches to one instance are
    serialized through its own queue.

    Instances are created with ``MachineDefinition.start``.
    """

    def __init__(
        self,
        definition: "MachineDefinition",
        seed: Any = None,
        hooks: Optional[List[Any]] = None,
    ) -> None:
        """
        :param definition: Shared, read-only machine definition.
        :param seed: Initial context; deep-copied, ``{}`` when omitted.
        :param hooks: Optional hook objects (see HookManager).
        :raises ContextCloneError: If the seed cannot be copied.
        :raises ActionError: If a synchronous initial entry action fails.
        :raises UsageError: If an initial entry action suspends and no event
            loop is running.
        """
        self._definition = definition
        self._context = clone_context(seed)
        self._current = definition.initial_configuration()[-1]
        self._hooks = HookManager(hooks)
        self._executor = TransitionExecutor(self._hooks)
        self._queue = DispatchQueue()
        self._startup: Optional[asyncio.Future] = None
        self._listeners: List[Callable[[StateChange], Any]] = []

        pending = self._executor.enter_initial(self)
        if pending is not None:
            self._startup = self._queue.submit(partial(self._finish_start, pending), label="<start>")
            self._startup.add_done_callback(self._report_startup)
        logger.debug("Started instance of '%s' in state '%s'", definition.id, self._current)

    @property
    def definition(self) -> "MachineDefinition":
        return self._definition

    @property
    def current(self) -> str:
        """Name of the current (innermost) state."""
        return self._current

    @property
    def state(self) -> str:
        """Alias of ``current``."""
        return self._current

    @property
    def context(self) -> Any:
        """
        The context owned by this instance. It may be read or mutated between
        dispatches; mutating it while a dispatch is in flight is unsupported.
        """
        return self._context

    @property
    def pending(self) -> int:
        """Number of dispatches queued behind the one in flight."""
        return self._queue.pending

    @property
    def is_transitioning(self) -> bool:
        """True while a dispatch is executing."""
        return self._queue.busy

    @property
    def startup(self) -> Optional[asyncio.Future]:
        """
        Future of the initial entry work when an entry action suspended,
        otherwise None.
        """
        return self._startup

    @property
    def path(self) -> str:
        """Dotted path of the current state, e.g. ``"settings.profile.basic"``."""
        return self._definition.path_of(self._current)

    def matches(self, state: str) -> bool:
        """
        True if ``state`` is the current state, one of its ancestors, or the
        dotted path of the current state.
        """
        return state in self._definition.ancestry(self._current) or state == self.path

    def add_hook(self, hook: Any) -> None:
        """Attach a hook object to this instance (see HookManager)."""
        self._hooks.register_hook(hook)

    def subscribe(self, listener: Callable[[StateChange], Any]) -> Callable[[], None]:
        """
        Register a listener called with a StateChange after every dispatch
        that moved the instance to another state configuration. Listeners may
        be coroutines. A failing listener is logged and does not fail the
        dispatch.

        :return: A function removing the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def send(
        self, event: Union[Event, str, Mapping[str, Any]], payload: Optional[Mapping[str, Any]] = None
    ) -> asyncio.Future:
        """
        Queue an event for this instance.

        The event's position in the queue is fixed by this call; it is
        processed after every earlier dispatch has fully settled.

        :param event: An Event, an event type, or a mapping with a ``type`` key.
        :param payload: Optional payload when ``event`` is a type name.
        :return: A future resolved with the result of the last transition
            action (None when no transition was taken), or failed with
            ActionError. A failure nobody awaits is still reported to the
            on_error hooks.
        :raises UsageError: On a malformed event or when no event loop runs.
        """
        evt = Event.normalize(event, payload)
        return self._queue.submit(partial(self._dispatch, evt), label=evt.type)

    def send_priority(
        self, event: Union[Event, str, Mapping[str, Any]], payload: Optional[Mapping[str, Any]] = None
    ) -> asyncio.Future:
        """
        Discard every queued dispatch, then send ``event``. The dispatch in
        flight, if any, still completes first.
        """
        evt = Event.normalize(event, payload)
        self.clear_queue()
        return self._queue.submit(partial(self._dispatch, evt), label=evt.type)

    def clear_queue(self) -> int:
        """
        Reject every queued, not yet started dispatch with QueueClearedError.

        :return: Number of dispatches rejected.
        """
        return self._queue.clear()

    async def wait_idle(self) -> None:
        """Wait until no dispatch is in flight or queued."""
        await self._queue.join()

    def _set_current(self, name: str) -> None:
        logger.debug("'%s': %s -> %s", self._definition.id, self._current, name)
        self._current = name

    async def _dispatch(self, event: Event) -> Any:
        try:
            transition = resolve(self._definition, self._current, self._context, event)
            if transition is None:
                logger.debug("'%s': no transition for %r in state '%s'", self._definition.id, event.type, self._current)
                return None
            source = self._current
            result = await self._executor.run(self, transition, event)
        except ActionError as e:
            await self._hooks.execute_on_error(e)
            raise
        if not transition.is_internal:
            await self._notify(StateChange(source, self._current, event))
        return result

    async def _notify(self, change: StateChange) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(change)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("State listener failed for %r", change)

    async def _finish_start(self, pending: Any) -> None:
        try:
            await pending
        except ActionError as e:
            await self._hooks.execute_on_error(e)
            raise

    def _report_startup(self, future: asyncio.Future) -> None:
        if not future.cancelled() and future.exception() is not None:
            logger.error("Initial entry of '%s' failed: %s", self._definition.id, future.exception())

    def __repr__(self) -> str:
        return f"<Instance of {self._definition.id!r} in {self._current!r}>"
