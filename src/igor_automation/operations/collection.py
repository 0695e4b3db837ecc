from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Mapping, Optional

from .base import Operation
from ..errors import UnknownCollection
from ..merge import merge
from ..sinks import Sink
from ..types import BackendType, Context

logger = logging.getLogger(__name__)

Merger = Callable[[Any, str], str]


def _ordered_fragments(fragments: Any) -> list[Any]:
    if isinstance(fragments, Mapping):
        return [fragments[key] for key in sorted(fragments)]
    if isinstance(fragments, (str, bytes)):
        return [fragments]
    return list(fragments)


def join_fragments(fragments: Any, name: str) -> str:
    """Concatenate text fragments, one per line.

    Mapping fragments are joined in key order so the output does not depend
    on the order configuration units were loaded in.
    """

    parts = [str(part).rstrip("\n") for part in _ordered_fragments(fragments)]
    if not parts:
        return ""
    return "\n".join(parts) + "\n"


def json_fragments(fragments: Any, name: str) -> str:
    merged: dict[str, Any] = {}
    for part in _ordered_fragments(fragments):
        if not isinstance(part, Mapping):
            raise ValueError(f"collection '{name}' contains a non-mapping fragment")
        merged = merge(merged, part)
    return json.dumps(merged, indent=2, sort_keys=True) + "\n"


MERGERS: dict[str, Merger] = {
    "join": join_fragments,
    "json": json_fragments,
}


class EmitCollectionOperation(Operation):
    """Merge the fragments of a named collection and emit them as one text."""

    kind = "collection"

    def __init__(self, spec: dict[str, Any]):
        super().__init__(spec)
        raw_name = spec.get("collection")
        if not raw_name:
            raise ValueError("collection operation requires a collection name")
        self.collection = str(raw_name)
        self.sink: Sink = spec.get("sink")  # type: ignore[assignment]
        if self.sink is None:
            raise ValueError("collection operation requires a sink")
        self.merger = self._resolve_merger(spec.get("merger", "join"))
        self.data: Optional[str] = None

    @property
    def resource(self) -> Optional[str]:
        return self.collection

    def prepare(self, ctx: Context) -> bool:
        if self.collection not in ctx.collections:
            raise UnknownCollection(self.collection)
        self._mark_prepared()
        return True

    # The merge is recomputed on every call; collections are static within a
    # run, so check, apply and diff agree even when called in isolation.
    def check(self, ctx: Context) -> bool:
        self._merge(ctx, "checking")
        return self.sink.check(BackendType.TEXT, self.data, ctx)

    def apply(self, ctx: Context) -> tuple[bool, str]:
        self._merge(ctx, "applying")
        logger.debug("Emitting collection '%s': %s", self.sink.path(), self.data)
        result = self.sink.emit(BackendType.TEXT, self.data, ctx)
        self._mark_applied()
        return result

    def diff(self, ctx: Context) -> str:
        self._merge(ctx, "diffing")
        return self.sink.diff(
            BackendType.TEXT,
            self.data,
            ctx,
            filename_a=f"Collection {self.collection}",
            mtime_a=time.time(),
        )

    def log(self) -> None:
        logger.info("Emitting  collection '%s'", self.sink.stringify())

    def _merge(self, ctx: Context, action: str) -> str:
        self._ensure_prepared(ctx, action)
        fragments = ctx.collections[self.collection]
        self.data = self.merger(fragments, self.collection)
        logger.debug("Merged collection '%s': %s", self.collection, self.data)
        return self.data

    @staticmethod
    def _resolve_merger(value: Any) -> Merger:
        if callable(value):
            return value
        merger = MERGERS.get(str(value))
        if merger is None:
            raise ValueError(f"unknown collection merger '{value}'")
        return merger
