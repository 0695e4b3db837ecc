from __future__ import annotations

import copy
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional, Sequence

from .merge import merge


class BackendType(Enum):
    """Transfer modes an operation and a sink can agree on."""

    FILE = "file"
    TEXT = "text"


# TEXT content round-trips arbitrary bytes; undecodable bytes survive as
# lone surrogates and are written back unchanged.
TEXT_ENCODING = "utf-8"
TEXT_ERRORS = "surrogateescape"


class Stage(Enum):
    PENDING = "pending"
    PREPARED = "prepared"
    APPLIED = "applied"


class Context:
    """Run-scoped state threaded through every operation in order.

    ``facts``, ``packages`` and ``collections`` are copied and frozen at
    construction. ``automatic`` grows during the run, but only via
    :meth:`merge_automatic`.

    The freeze is shallow: top-level keys are read-only, nested lists and
    dicts are private copies that Python code could still mutate. Templates
    only ever see them through the immutable Jinja sandbox.
    """

    def __init__(
        self,
        *,
        facts: Optional[Mapping[str, Any]] = None,
        packages: Optional[Sequence[str]] = None,
        automatic: Optional[Mapping[str, Any]] = None,
        collections: Optional[Mapping[str, Any]] = None,
    ):
        self._facts = MappingProxyType(copy.deepcopy(dict(facts or {})))
        self._packages = tuple(packages or ())
        self._automatic: dict[str, Any] = copy.deepcopy(dict(automatic or {}))
        self._collections = MappingProxyType(copy.deepcopy(dict(collections or {})))

    @property
    def facts(self) -> Mapping[str, Any]:
        return self._facts

    @property
    def packages(self) -> tuple[str, ...]:
        return self._packages

    @property
    def collections(self) -> Mapping[str, Any]:
        return self._collections

    @property
    def automatic(self) -> Mapping[str, Any]:
        return MappingProxyType(self._automatic)

    def merge_automatic(self, facts: Mapping[str, Any]) -> Mapping[str, Any]:
        """Deep-merge ``facts`` into the automatic facts; new values win."""
        self._automatic = merge(self._automatic, facts)
        return self.automatic


@dataclass
class OperationResult:
    kind: str
    mode: str
    changed: bool
    details: str
    failed: bool = False
    resource: Optional[str] = None
    package: Optional[str] = None
