from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional, Sequence, Union

from .base import Operation
from ..errors import CommandFailed
from ..types import Context

logger = logging.getLogger(__name__)

COMMAND_NOT_RUN = 127


@contextmanager
def pushd(path: Union[str, Path]) -> Iterator[Path]:
    """Change the working directory for the duration of the block."""
    previous = os.getcwd()
    os.chdir(path)
    try:
        yield Path(path)
    finally:
        os.chdir(previous)


class RunCommandOperation(Operation):
    """Run a command from the package directory.

    A list command is executed directly; a string is handed to the shell and
    is therefore logged as unsafe.
    """

    kind = "command"

    def __init__(self, spec: dict[str, Any]):
        super().__init__(spec)
        raw_command = spec.get("command") or spec.get("cmd")
        if raw_command is None:
            raise ValueError("command operation requires a command")
        if isinstance(raw_command, str):
            self.command: Union[str, list[str]] = raw_command
        elif isinstance(raw_command, Sequence) and raw_command:
            self.command = [str(part) for part in raw_command]
        else:
            raise ValueError("command must be a string or a non-empty list")
        raw_basedir = spec.get("basedir")
        self.basedir = Path(str(raw_basedir)) if raw_basedir else None

    @property
    def shell(self) -> bool:
        return isinstance(self.command, str)

    @property
    def resource(self) -> Optional[str]:
        return self._format_command(self.command)

    def prepare(self, ctx: Context) -> bool:
        self._mark_prepared()
        return True

    def check(self, ctx: Context) -> bool:
        if self.shell:
            logger.debug("Cannot check shell expression %s", self.command)
            return True
        binary = self._resolve_binary(self.command[0])
        logger.debug("Resolved %s to %s", self.command[0], binary)
        return binary is not None

    def apply(self, ctx: Context) -> tuple[bool, str]:
        basedir = self.basedir or Path(os.getcwd())
        try:
            with pushd(basedir):
                proc = subprocess.run(
                    self.command,
                    shell=self.shell,
                    capture_output=True,
                    text=True,
                    errors="replace",
                    check=False,
                )
        except OSError as exc:
            # The command never started; report it like a shell would.
            raise CommandFailed(
                self._format_command(self.command), basedir, COMMAND_NOT_RUN, str(exc)
            ) from exc
        if proc.returncode != 0:
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(
                    "command failed rc=%s cmd=%s stdout=%r stderr=%r",
                    proc.returncode,
                    self.resource,
                    proc.stdout,
                    proc.stderr,
                )
            raise CommandFailed(
                self._format_command(self.command),
                basedir,
                proc.returncode,
                self._summarize_output(proc.stdout, proc.stderr),
            )
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "command ran cmd=%s stdout=%r stderr=%r", self.resource, proc.stdout, proc.stderr
            )
        self._mark_applied()
        return True, f"ran (rc={proc.returncode})"

    def diff(self, ctx: Context) -> str:
        return ""

    def log(self) -> None:
        if self.shell:
            logger.info("Executing (unsafe) system('%s')", self.command)
        else:
            logger.info("Executing (safe)   system('%s')", self._format_command(self.command))

    def _resolve_binary(self, name: str) -> Optional[str]:
        if self._is_executable(Path(name)):
            return name
        base = self.basedir or Path(os.getcwd())
        candidate = base / name
        if self._is_executable(candidate):
            return str(candidate)
        return shutil.which(name)

    @staticmethod
    def _is_executable(path: Path) -> bool:
        return path.is_file() and os.access(path, os.X_OK)

    @staticmethod
    def _format_command(command: Union[str, Sequence[str]]) -> str:
        if isinstance(command, str):
            return command
        return shlex.join(command)

    @staticmethod
    def _summarize_output(*streams: Optional[str]) -> Optional[str]:
        for text in reversed(streams):
            if not text:
                continue
            stripped = text.strip()
            if not stripped:
                continue
            line = stripped.splitlines()[0]
            return (line[:157] + "...") if len(line) > 160 else line
        return None
