# tests/unit/test_errors.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import pytest

from hsmkit.core.errors import (
    ActionError,
    ContextCloneError,
    DefinitionError,
    HSMError,
    QueueClearedError,
    UsageError,
)


@pytest.mark.parametrize("error_class", [DefinitionError, UsageError, ActionError, QueueClearedError])
def test_errors_share_base(error_class):
    assert issubclass(error_class, HSMError)


def test_context_clone_error_is_usage_error():
    assert issubclass(ContextCloneError, UsageError)


def test_action_error_attributes():
    e = ActionError("boom", phase="entry", state="idle", event="evt")
    assert str(e) == "boom"
    assert e.phase == "entry"
    assert e.state == "idle"
    assert e.event == "evt"


def test_queue_cleared_default_message():
    assert "queue being cleared" in str(QueueClearedError())
