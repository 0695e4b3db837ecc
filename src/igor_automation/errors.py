from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence, Union


class IgorError(RuntimeError):
    """Base class for failures raised while running operations."""


class InternalError(IgorError):
    """A contract between components was violated; always a bug."""


class NoMatchingBackend(IgorError):
    def __init__(self, operation: str, sink: str):
        super().__init__(f"No matching backend between {operation} and sink {sink}")
        self.operation = operation
        self.sink = sink


class InvalidSource(IgorError):
    def __init__(self, path: Union[str, Path]):
        super().__init__(
            f"{path}: is no regular file; only file backends (symlinks) can transfer "
            "directories or special files"
        )
        self.path = Path(path)


class MissingSource(IgorError):
    def __init__(self, path: Union[str, Path], kind: str = "source"):
        super().__init__(f"{kind.capitalize()} {path} is not a regular file")
        self.path = Path(path)
        self.kind = kind


class UnsupportedDataShape(IgorError):
    def __init__(self, key: str, shape: str):
        super().__init__(f"Unexpected value of type '{shape}' passed to template as '{key}'")
        self.key = key
        self.shape = shape


class TemplateRenderError(IgorError):
    def __init__(self, path: Union[str, Path], message: str, lineno: Optional[int] = None):
        location = f"{path}:{lineno}" if lineno is not None else str(path)
        super().__init__(f"Error encountered for {location}: {message}")
        self.path = Path(path)
        self.lineno = lineno


class UnknownCollection(IgorError):
    def __init__(self, name: str):
        super().__init__(f"Unknown collection '{name}'")
        self.name = name


class CommandFailed(IgorError):
    def __init__(
        self,
        command: str,
        cwd: Union[str, Path],
        returncode: int,
        output: Optional[str] = None,
    ):
        if returncode < 0:
            status = f"was killed by signal {-returncode}"
        else:
            status = f"failed with exit status {returncode}"
        message = f"command '{command}' in {cwd} {status}"
        if output:
            message = f"{message}: {output}"
        super().__init__(message)
        self.command = command
        self.cwd = Path(cwd)
        self.returncode = returncode
        self.output = output


class FactorError(IgorError):
    """Base class for fact-gathering failures."""


class FactorExecError(FactorError):
    def __init__(
        self,
        path: Union[str, Path],
        message: str,
        *,
        returncode: Optional[int] = None,
        signal: Optional[int] = None,
    ):
        super().__init__(f"Factor '{path}' failed: {message}")
        self.path = Path(path)
        self.returncode = returncode
        self.signal = signal


class FactorParseError(FactorError):
    def __init__(self, path: Union[str, Path], output: str, reason: str):
        super().__init__(f"Factor '{path}' failed: invalid TOML ({reason}) produced:\n{output}")
        self.path = Path(path)
        self.output = output
        self.reason = reason


class UnknownFactorType(FactorError):
    def __init__(self, factor_type: str, supported: Sequence[str] = ()):
        message = f"Unknown factor type: {factor_type}"
        if supported:
            message += f" (supported: {', '.join(supported)})"
        super().__init__(message)
        self.factor_type = factor_type
        self.supported = tuple(supported)
