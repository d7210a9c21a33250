"""hsmkit: a state-machine runtime with serialized, asynchronous dispatch

This package drives independent instances of a shared machine definition
through transitions in response to events, mutating a context owned by each
instance.

Responsibilities:
    - Machine definition and validation, with nested states
    - Transition resolution with ordered guard evaluation, bubbling to
      ancestors and machine-level transitions
    - Exit, transition and entry action execution, sync or async
    - Per-instance FIFO dispatch serialization
    - Context isolation between instances

Cross-cutting Concerns:
    Concurrency:
        - Single-threaded, asyncio based
        - At most one dispatch in flight per instance
        - Instances never share context

    Error Handling:
        - DefinitionError at build time
        - ActionError rejects the failing dispatch only
        - UsageError at the offending call

    Logging:
        - Standard library logging, one logger per module
        - No handlers installed by the library
"""

from hsmkit.core.actions import assign
from hsmkit.core.builder import MachineBuilder, create_machine
from hsmkit.core.definition import MachineDefinition
from hsmkit.core.errors import (
    ActionError,
    ContextCloneError,
    DefinitionError,
    HSMError,
    QueueClearedError,
    UsageError,
)
from hsmkit.core.events import Event
from hsmkit.core.state_machine import Instance, StateChange

__version__ = "0.1.0"

__all__ = [
    "create_machine",
    "assign",
    "MachineBuilder",
    "MachineDefinition",
    "Instance",
    "StateChange",
    "Event",
    "HSMError",
    "DefinitionError",
    "ActionError",
    "UsageError",
    "ContextCloneError",
    "QueueClearedError",
]
