from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional, Union

from .base import Operation
from ..errors import MissingSource
from ..sinks import Sink
from ..types import BackendType, Context

logger = logging.getLogger(__name__)


class FileTransferOperation(Operation):
    """Place a source file at a sink, by link when the sink allows it."""

    kind = "file"
    backends = (BackendType.FILE, BackendType.TEXT)

    def __init__(self, spec: dict[str, Any]):
        super().__init__(spec)
        raw_source = spec.get("source")
        if not raw_source:
            raise ValueError("file operation requires a source")
        self.source = Path(str(raw_source)).expanduser()
        self.sink: Sink = spec.get("sink")  # type: ignore[assignment]
        if self.sink is None:
            raise ValueError("file operation requires a sink")
        self.backend: Optional[BackendType] = None
        self.data: Optional[Union[Path, str]] = None

    @property
    def resource(self) -> Optional[str]:
        return str(self.source)

    def prepare(self, ctx: Context) -> Union[Path, str]:
        if not self.source.exists():
            raise MissingSource(self.source)
        self.backend = self.select_backend(self.sink)
        self.data = self.prepare_file_for_backend(self.source, self.backend)
        logger.debug("file %s -> %s via %s", self.source, self.sink, self.backend.value)
        self._mark_prepared()
        return self.data

    def apply(self, ctx: Context) -> tuple[bool, str]:
        self._ensure_prepared(ctx, "applying")
        assert self.backend is not None
        result = self.sink.emit(self.backend, self.data, ctx)
        self._mark_applied()
        return result

    def check(self, ctx: Context) -> bool:
        self._ensure_prepared(ctx, "checking")
        assert self.backend is not None
        return self.sink.check(self.backend, self.data, ctx)

    def diff(self, ctx: Context) -> str:
        self._ensure_prepared(ctx, "diffing")
        assert self.backend is not None
        return self.sink.diff(
            self.backend,
            self.data,
            ctx,
            filename_a=str(self.source),
            mtime_a=self.source.stat().st_mtime,
        )

    def log(self) -> None:
        logger.info("Linking   '%s' to '%s'", self.source, self.sink.stringify())
