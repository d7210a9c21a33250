# hsmkit/core/events.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

from hsmkit.core.errors import UsageError


class Event:
    """
    Represents a signal sent to an instance. Events carry a type, used to look
    up transitions, and an optional read-only payload handed to guards and
    actions for the duration of one dispatch.
    """

    __slots__ = ("_type", "_payload")

    def __init__(self, type: str, payload: Optional[Mapping[str, Any]] = None) -> None:
        """
        Create an event identified by its type.

        :param type: Non-empty string used as the transition key.
        :param payload: Optional mapping of additional event data.
        """
        if not isinstance(type, str) or not type:
            raise UsageError("Event type must be a non-empty string.")
        if payload is not None and not isinstance(payload, Mapping):
            raise UsageError(f"Event payload must be a mapping, got {payload.__class__.__name__}.")
        self._type = type
        self._payload = MappingProxyType(dict(payload or {}))

    @property
    def type(self) -> str:
        """The event type."""
        return self._type

    @property
    def payload(self) -> Mapping[str, Any]:
        """Read-only view of the event data."""
        return self._payload

    def get(self, key: str, default: Any = None) -> Any:
        return self._payload.get(key, default)

    def __getitem__(self, key: str) -> Any:
        return self._payload[key]

    def __contains__(self, key: object) -> bool:
        return key in self._payload

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Event):
            return NotImplemented
        return self._type == other._type and dict(self._payload) == dict(other._payload)

    def __hash__(self) -> int:
        return hash(self._type)

    def __repr__(self) -> str:
        if self._payload:
            return f"Event({self._type!r}, {dict(self._payload)!r})"
        return f"Event({self._type!r})"

    @classmethod
    def normalize(
        cls, event: Union["Event", str, Mapping[str, Any]], payload: Optional[Mapping[str, Any]] = None
    ) -> "Event":
        """
        Turn the arguments of ``send`` into an Event.

        Accepts an Event, a bare type name with an optional payload, or a
        mapping carrying a ``"type"`` key whose other keys become the payload.

        :raises UsageError: If the arguments cannot describe an event.
        """
        if isinstance(event, Event):
            if payload is not None:
                raise UsageError("A payload cannot be combined with an Event instance.")
            return event
        if isinstance(event, str):
            return cls(event, payload)
        if isinstance(event, Mapping):
            if "type" not in event:
                raise UsageError("Event mapping must have a 'type' key.")
            data = {k: v for k, v in event.items() if k != "type"}
            if payload is not None:
                if not isinstance(payload, Mapping):
                    raise UsageError("Event payload must be a mapping.")
                data.update(payload)
            return cls(event["type"], data)
        raise UsageError(f"Cannot build an event from {event.__class__.__name__}.")
