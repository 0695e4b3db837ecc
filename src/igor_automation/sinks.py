from __future__ import annotations

import difflib
import logging
import os
import shutil
import stat
import time
from pathlib import Path
from typing import Any, Optional, Sequence, Union

from .errors import InternalError
from .types import TEXT_ENCODING, TEXT_ERRORS, BackendType

logger = logging.getLogger(__name__)


class Sink:
    """Base sink abstraction used by operations."""

    def requires(self) -> Sequence[BackendType]:
        """Backends accepted by this sink, most preferred first."""
        raise NotImplementedError

    def emit(self, backend: BackendType, data: Any, ctx) -> tuple[bool, str]:
        raise NotImplementedError

    def check(self, backend: BackendType, data: Any, ctx) -> bool:
        raise NotImplementedError

    def diff(
        self,
        backend: BackendType,
        data: Any,
        ctx,
        *,
        filename_a: Optional[str] = None,
        mtime_a: Optional[float] = None,
    ) -> str:
        raise NotImplementedError

    def stringify(self) -> str:
        raise NotImplementedError

    def path(self) -> Path:
        raise NotImplementedError

    def __str__(self) -> str:
        return self.stringify()


class FileSink(Sink):
    """Sink that materializes data at a local path, either linked or copied."""

    def __init__(
        self,
        path: Union[str, Path],
        *,
        mode: Optional[int] = None,
        link: bool = True,
        dry_run: bool = False,
    ):
        self._path = Path(path).expanduser()
        self.mode = mode
        self.link = link
        self.dry_run = dry_run

    def requires(self) -> list[BackendType]:
        if self.link:
            return [BackendType.FILE, BackendType.TEXT]
        return [BackendType.TEXT]

    def path(self) -> Path:
        return self._path

    def stringify(self) -> str:
        return str(self._path)

    def emit(self, backend: BackendType, data: Any, ctx) -> tuple[bool, str]:
        if backend is BackendType.FILE:
            return self._ensure_symlink(Path(data))
        if backend is BackendType.TEXT:
            return self._write_content(str(data))
        raise InternalError(f"Unknown backend: {backend!r}")

    def check(self, backend: BackendType, data: Any, ctx) -> bool:
        if self._path.is_dir() and not self._path.is_symlink():
            logger.debug("%s is a directory", self._path)
            return False
        if backend is BackendType.FILE and not Path(data).exists():
            logger.debug("link target %s does not exist", data)
            return False
        if self._path.exists() and not self._path.is_symlink():
            return os.access(self._path, os.W_OK)
        parent = self._path.parent
        while not parent.exists() and parent != parent.parent:
            parent = parent.parent
        return os.access(parent, os.W_OK)

    def diff(
        self,
        backend: BackendType,
        data: Any,
        ctx,
        *,
        filename_a: Optional[str] = None,
        mtime_a: Optional[float] = None,
    ) -> str:
        if backend is BackendType.FILE:
            source = Path(data)
            if self._path.is_symlink() and os.readlink(self._path) == str(source):
                return ""
            new = _read_text(source) if source.is_file() else ""
        elif backend is BackendType.TEXT:
            new = str(data)
        else:
            raise InternalError(f"Unknown backend: {backend!r}")

        current = self._read()
        lines = difflib.unified_diff(
            new.splitlines(keepends=True),
            (current or "").splitlines(keepends=True),
            fromfile=filename_a or "new",
            tofile=str(self._path),
            fromfiledate=_format_mtime(mtime_a),
            tofiledate=_format_mtime(self._mtime()),
        )
        return "".join(lines)

    # File primitives -----------------------------------------------------
    def _read(self) -> Optional[str]:
        try:
            return _read_text(self._path)
        except (FileNotFoundError, IsADirectoryError):
            return None

    def _ensure_symlink(self, target: Path) -> tuple[bool, str]:
        current_target = None
        try:
            if self._path.is_symlink():
                current_target = os.readlink(self._path)
        except OSError:
            current_target = None

        if current_target == str(target):
            return False, "noop"

        if not self.dry_run:
            self._remove()
            self._path.parent.mkdir(parents=True, exist_ok=True)
            os.symlink(target, self._path)
        return True, f"link->{target}"

    def _write_content(self, content: str) -> tuple[bool, str]:
        changed = False
        reasons: list[str] = []

        if self._path.is_symlink():
            changed = True
            reasons.append("unlinked")
            if not self.dry_run:
                self._remove()

        if self._read() != content:
            changed = True
            reasons.append("content")
            if not self.dry_run:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                with self._path.open(
                    "w", newline="", encoding=TEXT_ENCODING, errors=TEXT_ERRORS
                ) as handle:
                    handle.write(content)

        if self.mode is not None:
            existing_mode = self._file_mode()
            if existing_mode != self.mode:
                changed = True
                reasons.append(f"mode->{self.mode:04o}")
                if not self.dry_run:
                    # ``chmod`` fails if the file is absent, so guard it.
                    if self._path.exists():
                        os.chmod(self._path, self.mode)
        detail = ", ".join(reasons) if reasons else "noop"
        return changed, detail

    def _remove(self) -> bool:
        if not self._path.exists() and not self._path.is_symlink():
            return False
        if self._path.is_dir() and not self._path.is_symlink():
            shutil.rmtree(self._path)
        else:
            self._path.unlink()
        return True

    def _file_mode(self) -> Optional[int]:
        try:
            return stat.S_IMODE(self._path.stat().st_mode)
        except FileNotFoundError:
            return None

    def _mtime(self) -> Optional[float]:
        try:
            return self._path.lstat().st_mtime
        except FileNotFoundError:
            return None


def _format_mtime(mtime: Optional[float]) -> str:
    if mtime is None:
        return ""
    return time.ctime(mtime)


def _read_text(path: Path) -> str:
    with path.open(newline="", encoding=TEXT_ENCODING, errors=TEXT_ERRORS) as handle:
        return handle.read()
