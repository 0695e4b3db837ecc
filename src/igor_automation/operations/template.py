from __future__ import annotations

import logging
import os
import traceback
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Optional

import jinja2
from jinja2.sandbox import ImmutableSandboxedEnvironment

from .base import Operation
from ..errors import MissingSource, TemplateRenderError, UnsupportedDataShape
from ..sinks import Sink
from ..types import BackendType, Context

logger = logging.getLogger(__name__)

_TEMPLATE_FILENAME = "<template>"


def declare_bindings(data: Mapping[str, Any]) -> dict[str, str]:
    """Classify every top-level value of ``data`` by the binding it needs.

    Returns a mapping of key to one of ``none``, ``scalar``, ``sequence``,
    ``mapping`` or ``reference``. Values of any other type cannot be exposed
    to the sandbox and raise :class:`UnsupportedDataShape`.
    """

    bindings = {key: _binding_shape(key, data[key]) for key in sorted(data)}
    logger.debug("template bindings: %s", bindings)
    return bindings


def _binding_shape(key: str, value: Any) -> str:
    if value is None:
        return "none"
    if isinstance(value, (str, bytes, int, float, bool)):
        return "scalar"
    if isinstance(value, Mapping):
        return "mapping"
    if isinstance(value, (list, tuple, set, frozenset)):
        return "sequence"
    if isinstance(value, (os.PathLike, Enum)):
        return "reference"
    raise UnsupportedDataShape(key, type(value).__name__)


def _bind(value: Any, shape: str) -> Any:
    if shape != "reference":
        return value
    if isinstance(value, Enum):
        return value.value
    return os.fspath(value)


class TemplateOperation(Operation):
    """Render a template from the run context and hand the text to a sink."""

    kind = "template"
    backends = (BackendType.TEXT,)

    def __init__(self, spec: dict[str, Any]):
        super().__init__(spec)
        raw_template = spec.get("template")
        if not raw_template:
            raise ValueError("template operation requires a template")
        self.template = Path(str(raw_template)).expanduser()
        self.sink: Sink = spec.get("sink")  # type: ignore[assignment]
        if self.sink is None:
            raise ValueError("template operation requires a sink")
        self.delimiters = self._parse_delimiters(spec.get("delimiters"))
        self.content: Optional[str] = None

    @property
    def resource(self) -> Optional[str]:
        return str(self.template)

    def prepare(self, ctx: Context) -> str:
        if not self.template.is_file():
            raise MissingSource(self.template, kind="template")

        logger.debug("Preparing template: %s", self.template)
        data = {
            "facts": ctx.facts,
            "packages": ctx.packages,
            "automatic": ctx.automatic,
        }
        bindings = declare_bindings(data)
        variables = {
            key: _bind(data[key], shape) for key, shape in bindings.items() if shape != "none"
        }
        self.content = self._render(self.template.read_text(), variables)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Rendered %s:\n%s", self.template, self.content)
        self._mark_prepared()
        return self.content

    def apply(self, ctx: Context) -> tuple[bool, str]:
        self._ensure_prepared(ctx, "applying")
        result = self.sink.emit(BackendType.TEXT, self.content, ctx)
        self._mark_applied()
        return result

    def check(self, ctx: Context) -> bool:
        self._ensure_prepared(ctx, "checking")
        return self.sink.check(BackendType.TEXT, self.content, ctx)

    def diff(self, ctx: Context) -> str:
        self._ensure_prepared(ctx, "diffing")
        return self.sink.diff(
            BackendType.TEXT,
            self.content,
            ctx,
            filename_a=str(self.template),
            mtime_a=self.template.stat().st_mtime,
        )

    def log(self) -> None:
        logger.info("Applying  %s to '%s'", self.template, self.sink.stringify())

    def _render(self, source: str, variables: dict[str, Any]) -> str:
        # A fresh environment per render keeps templates from sharing state.
        options: dict[str, Any] = {}
        if self.delimiters is not None:
            options["variable_start_string"], options["variable_end_string"] = self.delimiters
        env = ImmutableSandboxedEnvironment(
            undefined=jinja2.Undefined,
            autoescape=False,
            keep_trailing_newline=True,
            **options,
        )
        try:
            return env.from_string(source).render(**variables)
        except jinja2.TemplateSyntaxError as exc:
            raise TemplateRenderError(self.template, exc.message or str(exc), exc.lineno) from exc
        except Exception as exc:  # noqa: BLE001
            message = str(exc) if isinstance(exc, jinja2.TemplateError) else f"{type(exc).__name__}: {exc}"
            raise TemplateRenderError(self.template, message, _template_lineno(exc)) from exc

    @staticmethod
    def _parse_delimiters(value: Any) -> Optional[tuple[str, str]]:
        if value is None:
            return None
        if isinstance(value, Mapping):
            opening, closing = value.get("open"), value.get("close")
        elif isinstance(value, (list, tuple)) and len(value) == 2:
            opening, closing = value
        else:
            raise ValueError("template delimiters must be a mapping with open/close or a pair")
        if not opening or not closing:
            raise ValueError("template delimiters require both open and close")
        return str(opening), str(closing)


def _template_lineno(exc: BaseException) -> Optional[int]:
    lineno = None
    for frame, frame_lineno in traceback.walk_tb(exc.__traceback__):
        if frame.f_code.co_filename == _TEMPLATE_FILENAME:
            lineno = frame_lineno
    return lineno
