import json
from pathlib import Path

import pytest

from igor_automation.errors import UnknownCollection
from igor_automation.operations.collection import (
    EmitCollectionOperation,
    join_fragments,
    json_fragments,
)
from igor_automation.sinks import FileSink
from igor_automation.types import BackendType, Context


def build_context() -> Context:
    return Context(
        collections={
            "bashrc": {"20-aliases": "alias ll='ls -l'\n", "10-path": "export PATH=$HOME/bin:$PATH"},
            "settings": {"b": {"editor": {"tabs": 4}}, "a": {"editor": {"font": "mono"}}},
        }
    )


def test_collection_prepare_rejects_unknown_name(recording_sink) -> None:
    op = EmitCollectionOperation({"collection": "missing", "sink": recording_sink()})

    with pytest.raises(UnknownCollection) as excinfo:
        op.prepare(build_context())

    assert "missing" in str(excinfo.value)


def test_collection_apply_writes_joined_fragments(tmp_path: Path) -> None:
    target = tmp_path / ".bashrc"
    op = EmitCollectionOperation({"collection": "bashrc", "sink": FileSink(target)})
    ctx = build_context()

    op.prepare(ctx)
    changed, _ = op.apply(ctx)

    assert changed is True
    assert target.read_text() == "export PATH=$HOME/bin:$PATH\nalias ll='ls -l'\n"


def test_collection_check_and_diff_are_idempotent(recording_sink) -> None:
    sink = recording_sink()
    op = EmitCollectionOperation({"collection": "bashrc", "sink": sink})
    ctx = build_context()
    op.prepare(ctx)

    first_check = op.check(ctx)
    second_check = op.check(ctx)
    first_diff = op.diff(ctx)
    second_diff = op.diff(ctx)

    assert first_check == second_check
    assert first_diff == second_diff
    assert sink.calls[0] == sink.calls[1]
    assert sink.calls[2][:4] == ("diff", BackendType.TEXT, op.data, "Collection bashrc")


def test_collection_recomputes_merge_on_every_call(recording_sink) -> None:
    calls: list[str] = []

    def merger(fragments, name):
        calls.append(name)
        return ",".join(sorted(fragments))

    sink = recording_sink()
    op = EmitCollectionOperation({"collection": "bashrc", "merger": merger, "sink": sink})
    ctx = build_context()
    op.prepare(ctx)

    op.check(ctx)
    op.apply(ctx)
    op.diff(ctx)

    assert calls == ["bashrc", "bashrc", "bashrc"]
    assert sink.calls[1] == ("emit", BackendType.TEXT, "10-path,20-aliases")


def test_json_merger_combines_mapping_fragments() -> None:
    ctx = build_context()

    rendered = json_fragments(ctx.collections["settings"], "settings")

    assert json.loads(rendered) == {"editor": {"font": "mono", "tabs": 4}}


def test_join_fragments_accepts_sequences() -> None:
    assert join_fragments(["one", "two\n"], "list") == "one\ntwo\n"
    assert join_fragments([], "empty") == ""


def test_collection_rejects_unknown_merger(recording_sink) -> None:
    with pytest.raises(ValueError):
        EmitCollectionOperation({"collection": "x", "merger": "yaml", "sink": recording_sink()})
