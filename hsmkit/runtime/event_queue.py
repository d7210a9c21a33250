# hsmkit/runtime/event_queue.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Optional

from hsmkit.core.errors import QueueClearedError, UsageError

logger = logging.getLogger(__name__)


class _Dispatch:
    """
    Internal record for one queued unit of work and the future its caller
    awaits.
    """

    __slots__ = ("job", "future", "label")

    def __init__(self, job: Callable[[], Awaitable[Any]], future: asyncio.Future, label: str) -> None:
        self.job = job
        self.future = future
        self.label = label


class DispatchQueue:
    """
    Per-instance serializer: one in-flight slot plus a FIFO backlog, drained
    by a single consumer task.

    A job's place in line is fixed when it is submitted. A job only starts
    once the previous one has fully settled, including every suspension
    inside it, so no two jobs of the same queue ever overlap.

    A job that ends in CancelledError while the consumer itself was not
    cancelled only cancels its own future; the queue keeps draining.
    """

    def __init__(self) -> None:
        self._backlog: Deque[_Dispatch] = deque()
        self._in_flight: Optional[_Dispatch] = None
        self._consumer: Optional[asyncio.Task] = None

    @property
    def pending(self) -> int:
        """Number of submitted jobs that have not started yet."""
        return sum(1 for d in self._backlog if not d.future.done())

    @property
    def busy(self) -> bool:
        """True while a job is executing."""
        return self._in_flight is not None

    @property
    def in_flight(self) -> Optional[str]:
        """Label of the executing job, if any."""
        return self._in_flight.label if self._in_flight is not None else None

    def submit(self, job: Callable[[], Awaitable[Any]], label: str = "") -> asyncio.Future:
        """
        Queue a job and return the future settled with its outcome.

        :param job: Zero-argument callable returning an awaitable, invoked
            when the job reaches the front of the queue.
        :param label: Name used in log messages.
        :raises UsageError: If no event loop is running.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            raise UsageError("Dispatching requires a running asyncio event loop.") from None

        future = loop.create_future()
        future.add_done_callback(_mark_retrieved)
        self._backlog.append(_Dispatch(job, future, label))
        logger.debug("Queued dispatch %r (%d waiting)", label, len(self._backlog))
        if self._consumer is None or self._consumer.done():
            self._consumer = loop.create_task(self._consume())
        return future

    def clear(self) -> int:
        """
        Reject every job that has not started with QueueClearedError.

        The in-flight job is not affected.

        :return: Number of jobs rejected.
        """
        cleared = 0
        while self._backlog:
            dispatch = self._backlog.popleft()
            if not dispatch.future.done():
                dispatch.future.set_exception(QueueClearedError())
                cleared += 1
        if cleared:
            logger.warning("Cleared %d queued dispatch(es)", cleared)
        return cleared

    async def join(self) -> None:
        """
        Wait until the in-flight slot and the backlog are both empty.

        Cancelling the waiter does not cancel the queued work.
        """
        while self._consumer is not None and not self._consumer.done():
            await asyncio.shield(self._consumer)

    async def _consume(self) -> None:
        try:
            while self._backlog:
                dispatch = self._backlog.popleft()
                if dispatch.future.done():
                    # Cancelled by its caller before it started.
                    continue
                self._in_flight = dispatch
                try:
                    result = await dispatch.job()
                except asyncio.CancelledError:
                    dispatch.future.cancel()
                    if asyncio.current_task().cancelling():
                        raise
                    logger.debug("Dispatch %r ended in a cancellation of its own", dispatch.label)
                except Exception as e:
                    logger.debug("Dispatch %r failed: %s", dispatch.label, e)
                    if not dispatch.future.done():
                        dispatch.future.set_exception(e)
                else:
                    if not dispatch.future.done():
                        dispatch.future.set_result(result)
                finally:
                    self._in_flight = None
        except asyncio.CancelledError:
            self._abandon()
            raise
        finally:
            self._consumer = None

    def _abandon(self) -> None:
        while self._backlog:
            self._backlog.popleft().future.cancel()


def _mark_retrieved(future: asyncio.Future) -> None:
    # Marks the outcome as seen for futures nobody awaits.
    if not future.cancelled():
        future.exception()
