from __future__ import annotations

from typing import Any

from .base import Operation
from .collection import EmitCollectionOperation
from .exec import RunCommandOperation
from .factor import RunFactorOperation
from .file import FileTransferOperation
from .template import TemplateOperation

OPERATION_REGISTRY: dict[str, type[Operation]] = {
    "template": TemplateOperation,
    "file": FileTransferOperation,
    "collection": EmitCollectionOperation,
    "command": RunCommandOperation,
    "factor": RunFactorOperation,
}


def build_operation(kind: str, spec: dict[str, Any], config=None) -> Operation:
    """Instantiate the operation registered as ``kind``.

    When ``config`` is given its defaults fill in fields the spec leaves out.
    """

    operation_cls = OPERATION_REGISTRY.get(kind)
    if operation_cls is None:
        raise ValueError(f"unknown operation '{kind}'")
    data = dict(spec)
    if config is not None:
        if kind == "factor":
            data.setdefault("type", config.factor_type)
        elif kind == "template" and config.template_delimiters is not None:
            data.setdefault("delimiters", config.template_delimiters)
    return operation_cls(data)


__all__ = [
    "Operation",
    "TemplateOperation",
    "FileTransferOperation",
    "EmitCollectionOperation",
    "RunCommandOperation",
    "RunFactorOperation",
    "OPERATION_REGISTRY",
    "build_operation",
]
