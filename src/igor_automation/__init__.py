"""Igor configuration management execution core."""

from .runner import OperationRunner
from .types import BackendType, Context

__all__ = ["OperationRunner", "BackendType", "Context"]
