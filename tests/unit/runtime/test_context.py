# tests/unit/runtime/test_context.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import threading
from dataclasses import dataclass, field

import pytest

from hsmkit.core.errors import ContextCloneError
from hsmkit.runtime.context import clone_context


@dataclass
class Profile:
    name: str
    tags: list = field(default_factory=list)


def test_none_becomes_empty_dict():
    assert clone_context() == {}
    assert clone_context(None) == {}


@pytest.mark.parametrize("value", [0, 1.5, "text", True, (1, 2)])
def test_scalars_copied_by_value(value):
    assert clone_context(value) == value


def test_nested_structures_are_independent():
    seed = {"user": {"roles": ["a"]}, "items": [{"n": 1}]}
    ctx = clone_context(seed)
    ctx["user"]["roles"].append("b")
    ctx["items"][0]["n"] = 2
    assert seed == {"user": {"roles": ["a"]}, "items": [{"n": 1}]}


def test_seed_mutation_does_not_leak():
    seed = {"user": {"role": "user"}}
    ctx = clone_context(seed)
    seed["user"]["role"] = "admin"
    assert ctx["user"]["role"] == "user"


def test_two_clones_share_nothing():
    seed = {"nested": {"list": [1]}}
    a = clone_context(seed)
    b = clone_context(seed)
    assert a["nested"] is not b["nested"]
    assert a["nested"]["list"] is not b["nested"]["list"]


def test_class_instances_are_copied():
    seed = {"profile": Profile("ann", ["x"])}
    ctx = clone_context(seed)
    assert ctx["profile"] == seed["profile"]
    assert ctx["profile"] is not seed["profile"]
    assert ctx["profile"].tags is not seed["profile"].tags


def test_cycles_are_preserved():
    seed = {"name": "root"}
    seed["self"] = seed
    ctx = clone_context(seed)
    assert ctx["self"] is ctx
    assert ctx is not seed


def test_functions_are_shared():
    def handler():
        return 1

    ctx = clone_context({"handler": handler})
    assert ctx["handler"] is handler


def test_uncopyable_value():
    with pytest.raises(ContextCloneError, match="cannot be deep-copied"):
        clone_context({"lock": threading.Lock()})
