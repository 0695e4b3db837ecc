from __future__ import annotations

import importlib.machinery
import importlib.util
import logging
import signal
import subprocess
from pathlib import Path
from typing import Any, Mapping, Optional

try:
    import tomllib  # type: ignore[attr-defined]
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # type: ignore[no-redef]

from .base import Operation
from ..errors import FactorExecError, FactorParseError, UnknownFactorType
from ..types import Context

logger = logging.getLogger(__name__)

FACTOR_TYPES = ("python", "script")


class RunFactorOperation(Operation):
    """Gather facts at run time and merge them into ``ctx.automatic``.

    ``python`` factors are loaded as a module exposing a ``factor()`` callable
    (or a ``FACTS`` mapping). ``script`` factors are executed and must print
    TOML on stdout, encoded as UTF-8.

    Only these two types are supported; anything else, including the
    ``perl`` factors some older manifests declare, raises
    :class:`UnknownFactorType` at prepare time.
    """

    kind = "factor"

    def __init__(self, spec: dict[str, Any]):
        super().__init__(spec)
        raw_path = spec.get("path")
        if not raw_path:
            raise ValueError("factor operation requires a path")
        self.path = Path(str(raw_path)).expanduser()
        self.type = str(spec.get("type", "python"))
        self.facts: Optional[Mapping[str, Any]] = None

    @property
    def resource(self) -> Optional[str]:
        return str(self.path)

    def prepare(self, ctx: Context) -> Mapping[str, Any]:
        if self.type == "python":
            logger.debug("Executing file '%s' as python factor", self.path)
            facts = self._run_python()
        elif self.type == "script":
            logger.debug("Executing file '%s' as script factor", self.path)
            facts = self._run_script()
        else:
            raise UnknownFactorType(self.type, FACTOR_TYPES)

        self.facts = facts
        ctx.merge_automatic(facts)
        self._mark_prepared()
        return facts

    def check(self, ctx: Context) -> bool:
        return True

    def apply(self, ctx: Context) -> tuple[bool, str]:
        self._mark_applied()
        return False, "noop"

    def diff(self, ctx: Context) -> str:
        return ""

    def log(self) -> None:
        logger.info("Already executed factor '%s' of type %s", self.path, self.type)

    def _run_python(self) -> Mapping[str, Any]:
        module_name = f"igor_factor_{self.path.stem.replace('-', '_')}"
        loader = importlib.machinery.SourceFileLoader(module_name, str(self.path))
        spec = importlib.util.spec_from_loader(module_name, loader)
        if spec is None:
            raise FactorExecError(self.path, "cannot be loaded as a python module")
        module = importlib.util.module_from_spec(spec)
        try:
            loader.exec_module(module)
            factor = getattr(module, "factor", None)
            if callable(factor):
                facts = factor()
            else:
                facts = getattr(module, "FACTS", None)
        except Exception as exc:  # noqa: BLE001
            raise FactorExecError(self.path, f"{type(exc).__name__}: {exc}") from exc
        if not isinstance(facts, Mapping):
            raise FactorExecError(
                self.path, f"expected a mapping of facts, got {type(facts).__name__}"
            )
        return facts

    def _run_script(self) -> Mapping[str, Any]:
        try:
            proc = subprocess.run(
                [str(self.path)],
                capture_output=True,
                check=False,
            )
        except OSError as exc:
            raise FactorExecError(self.path, f"failed to execute: {exc}") from exc

        if proc.returncode < 0:
            signum = -proc.returncode
            raise FactorExecError(
                self.path, f"died with signal {signum} ({_signal_name(signum)})", signal=signum
            )
        if proc.returncode != 0:
            raise FactorExecError(
                self.path,
                f"factor exited with {proc.returncode}",
                returncode=proc.returncode,
            )

        try:
            output = proc.stdout.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise FactorParseError(
                self.path,
                proc.stdout.decode("utf-8", errors="replace"),
                f"output is not UTF-8: {exc}",
            ) from exc
        try:
            return tomllib.loads(output)
        except tomllib.TOMLDecodeError as exc:
            raise FactorParseError(self.path, output, str(exc)) from exc


def _signal_name(signum: int) -> str:
    try:
        return signal.Signals(signum).name
    except ValueError:
        return "unknown"
