# hsmkit/interfaces/types.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details
from typing import Any, Awaitable, Callable, Union

StateName = str
EventType = str

# Callback Types
Guard = Callable[[Any, Any], bool]
Action = Callable[[Any, Any], Union[Any, Awaitable[Any]]]
Updater = Callable[[Any, Any], Any]
