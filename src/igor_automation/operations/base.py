from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional, Union

from ..errors import InternalError, InvalidSource, NoMatchingBackend
from ..sinks import Sink
from ..types import TEXT_ENCODING, TEXT_ERRORS, BackendType, Context, Stage

logger = logging.getLogger(__name__)


class Operation(ABC):
    """Shared lifecycle for operations executed against a run context.

    ``prepare`` runs once before ``apply``, ``check`` or ``diff`` and caches
    whatever those need. Calling an action on an operation that was never
    prepared is tolerated: a warning is logged and ``prepare`` runs inline.
    """

    kind = "operation"
    backends: tuple[BackendType, ...] = ()

    def __init__(self, spec: dict[str, Any]):
        self.spec = spec
        self.order = spec.get("order", 0)
        raw_package = spec.get("package")
        self.package = str(raw_package) if raw_package is not None else None
        self.stage = Stage.PENDING

    @property
    def prepared(self) -> bool:
        return self.stage is not Stage.PENDING

    @property
    def resource(self) -> Optional[str]:
        return None

    @abstractmethod
    def prepare(self, ctx: Context) -> Any:
        """Resolve and cache everything the action methods need."""

    @abstractmethod
    def check(self, ctx: Context) -> bool:
        """Return whether the operation could be applied."""

    @abstractmethod
    def apply(self, ctx: Context) -> tuple[bool, str]:
        """Perform the operation and return ``(changed, detail)``."""

    @abstractmethod
    def diff(self, ctx: Context) -> str:
        """Describe what ``apply`` would change."""

    @abstractmethod
    def log(self) -> None:
        """Emit the audit line for this operation."""

    def select_backend(self, sink: Sink) -> BackendType:
        for backend in sink.requires():
            if backend in self.backends:
                return backend
        raise NoMatchingBackend(type(self).__name__, type(sink).__name__)

    def prepare_file_for_backend(self, file: Union[str, Path], backend: BackendType) -> Union[Path, str]:
        path = Path(file)
        if backend is BackendType.FILE:
            return path.absolute()
        if backend is BackendType.TEXT:
            if not path.is_file():
                raise InvalidSource(path)
            with path.open(newline="", encoding=TEXT_ENCODING, errors=TEXT_ERRORS) as handle:
                return handle.read()
        raise InternalError(f"Unknown backend: {backend!r}")

    def _ensure_prepared(self, ctx: Context, action: str) -> None:
        if self.prepared:
            return
        logger.warning(
            "%s: prepare not called for %s when %s", type(self).__name__, self.resource, action
        )
        self.prepare(ctx)

    def _mark_prepared(self) -> None:
        if self.stage is Stage.PENDING:
            self.stage = Stage.PREPARED

    def _mark_applied(self) -> None:
        self.stage = Stage.APPLIED

    def __repr__(self) -> str:
        return f"<{type(self).__name__} order={self.order!r} resource={self.resource!r}>"
