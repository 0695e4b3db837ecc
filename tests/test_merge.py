from types import MappingProxyType

import pytest

from igor_automation.merge import merge
from igor_automation.types import Context


def test_merge_is_deep_and_overlay_wins() -> None:
    base = {"a": 1, "nested": {"x": 1, "y": 1}, "list": [1]}
    overlay = {"a": 2, "nested": {"y": 2, "z": 3}, "list": [2], "new": True}

    merged = merge(base, overlay)

    assert merged == {
        "a": 2,
        "nested": {"x": 1, "y": 2, "z": 3},
        "list": [1, 2],
        "new": True,
    }
    assert base == {"a": 1, "nested": {"x": 1, "y": 1}, "list": [1]}


def test_merge_replaces_mismatched_shapes() -> None:
    assert merge({"a": {"b": 1}}, {"a": "flat"}) == {"a": "flat"}
    assert merge({"a": [1]}, {"a": {"b": 1}}) == {"a": {"b": 1}}


def test_merge_accepts_read_only_mappings() -> None:
    assert merge(MappingProxyType({"a": {"b": 1}}), {"a": {"c": 2}}) == {"a": {"b": 1, "c": 2}}


def test_context_automatic_only_changes_through_merge() -> None:
    ctx = Context(facts={"os": "linux"}, automatic={"a": 1})

    with pytest.raises(TypeError):
        ctx.automatic["a"] = 2  # type: ignore[index]
    with pytest.raises(AttributeError):
        ctx.automatic = {}  # type: ignore[misc]
    with pytest.raises(TypeError):
        ctx.facts["os"] = "bsd"  # type: ignore[index]

    ctx.merge_automatic({"a": 3, "b": 4})

    assert dict(ctx.automatic) == {"a": 3, "b": 4}
    assert ctx.facts["os"] == "linux"


def test_context_does_not_share_nested_values_with_caller() -> None:
    facts = {"servers": ["a.example"], "dns": {"search": "example.com"}}
    collections = {"hosts": ["10.0.0.1 a"]}
    ctx = Context(facts=facts, collections=collections, automatic={"cpu": {"cores": 2}})

    facts["servers"].append("b.example")
    facts["dns"]["search"] = "evil.example"
    collections["hosts"].clear()

    assert ctx.facts["servers"] == ["a.example"]
    assert ctx.facts["dns"] == {"search": "example.com"}
    assert ctx.collections["hosts"] == ["10.0.0.1 a"]

    merged = ctx.merge_automatic({"cpu": {"arch": "arm64"}})

    assert dict(merged) == {"cpu": {"cores": 2, "arch": "arm64"}}
