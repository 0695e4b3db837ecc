from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

try:
    import tomllib  # type: ignore[attr-defined]
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # type: ignore[no-redef]


DEFAULT_CONFIG = Path("/etc/igor/main.toml")
RUN_MODES = ("apply", "check", "diff")


@dataclass
class IgorConfig:
    mode: str = "apply"
    continue_on_error: bool = False
    log_level: str = "INFO"
    factor_type: str = "python"
    template_delimiters: Optional[tuple[str, str]] = None


def load_config(path: Path) -> IgorConfig:
    if not path.exists():
        return IgorConfig()
    try:
        data = tomllib.loads(path.read_text())
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"{path}: {exc}") from None
    defaults = data.get("defaults", {})
    mode = str(defaults.get("mode", "apply"))
    if mode not in RUN_MODES:
        raise ValueError(f"{path}: mode must be one of {', '.join(RUN_MODES)}")
    delimiters = defaults.get("template_delimiters")
    if delimiters is not None:
        if not isinstance(delimiters, list) or len(delimiters) != 2:
            raise ValueError(f"{path}: template_delimiters must be a pair of strings")
        delimiters = (str(delimiters[0]), str(delimiters[1]))
    return IgorConfig(
        mode=mode,
        continue_on_error=bool(defaults.get("continue_on_error", False)),
        log_level=str(defaults.get("log_level", "INFO")),
        factor_type=str(defaults.get("factor_type", "python")),
        template_delimiters=delimiters,
    )


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(levelname)s %(name)s - %(message)s",
    )
