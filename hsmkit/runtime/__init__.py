"""
Runtime package: context cloning, the execution pipeline and the
per-instance dispatch queue.
"""

from .context import clone_context
from .event_queue import DispatchQueue
from .executor import TransitionExecutor

__all__ = ["clone_context", "DispatchQueue", "TransitionExecutor"]
