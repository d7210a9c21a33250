# hsmkit/runtime/context.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""
Context ownership for instances.

Every instance owns exactly one context. The seed handed to ``start`` is
copied with :func:`copy.deepcopy`, which gives these semantics:

- scalars and strings are shared (they are immutable)
- lists, dicts, sets, tuples and class instances are copied recursively
- cycles and repeated references inside the seed are preserved in the copy
- functions, classes and modules are shared by reference
- objects that refuse to be copied (locks, sockets, open files) are rejected
  with :class:`ContextCloneError`

Classes can customise their copy with ``__deepcopy__`` as usual.
"""

import copy
import logging
from typing import Any

from hsmkit.core.errors import ContextCloneError

logger = logging.getLogger(__name__)


def clone_context(seed: Any = None) -> Any:
    """
    Produce a structurally independent copy of ``seed``.

    :param seed: The caller-supplied initial context; ``None`` yields ``{}``.
    :return: A value sharing no mutable structure with ``seed``.
    :raises ContextCloneError: If the seed contains a value that cannot be copied.
    """
    if seed is None:
        return {}
    try:
        return copy.deepcopy(seed)
    except (TypeError, copy.Error) as e:
        logger.debug("Context seed of type %s could not be copied: %s", type(seed).__name__, e)
        raise ContextCloneError(f"Context seed of type {type(seed).__name__} cannot be deep-copied: {e}") from e
