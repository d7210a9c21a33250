# hsmkit/core/actions.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import inspect
from functools import partial
from typing import Any, Awaitable, Mapping, MutableMapping, Optional, Union

from hsmkit.core.errors import UsageError
from hsmkit.interfaces.types import Action, Updater


def assign(updater: Union[Updater, Mapping[str, Any]]) -> Action:
    """
    Build an action body that merges fields into the context instead of
    requiring the action to mutate it directly.

    ``updater`` is either a callable ``(context, event) -> mapping`` (which may
    return an awaitable resolving to the mapping) or a mapping of field names
    to values. Mapping values that are callables are invoked with
    ``(context, event)`` and their result is assigned.

    The merge is shallow and happens in place: mapping contexts are
    ``update``-d, any other context gets one ``setattr`` per field.

    Example:
        state.on("INC", "counting").do(assign(lambda ctx, e: {"count": ctx["count"] + 1}))

    :raises UsageError: If ``updater`` is neither callable nor a mapping.
    """
    if isinstance(updater, Mapping):
        compute = partial(_evaluate_fields, dict(updater))
    elif callable(updater):
        compute = updater
    else:
        raise UsageError(f"assign() expects a callable or a mapping, got {updater.__class__.__name__}.")

    def assign_action(context: Any, event: Any) -> Optional[Awaitable[None]]:
        update = compute(context, event)
        if inspect.isawaitable(update):
            return _merge_when_ready(context, update)
        _merge(context, update)
        return None

    return assign_action


def _evaluate_fields(fields: Mapping[str, Any], context: Any, event: Any) -> dict:
    return {key: value(context, event) if callable(value) else value for key, value in fields.items()}


async def _merge_when_ready(context: Any, pending: Awaitable[Any]) -> None:
    _merge(context, await pending)


def _merge(context: Any, update: Optional[Mapping[str, Any]]) -> None:
    if update is None:
        return
    if not isinstance(update, Mapping):
        raise TypeError(f"assign updater must produce a mapping, got {update.__class__.__name__}")
    if isinstance(context, MutableMapping):
        context.update(update)
        return
    for key, value in update.items():
        setattr(context, key, value)
