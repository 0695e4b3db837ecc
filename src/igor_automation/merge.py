from __future__ import annotations

from typing import Any, Mapping


def merge(base: Mapping[str, Any], overlay: Mapping[str, Any]) -> dict[str, Any]:
    """Return a deep merge of ``overlay`` onto ``base``.

    Nested mappings are merged recursively, two lists are concatenated with
    the ``base`` items first, and any other conflict is won by ``overlay``.
    Neither argument is modified.
    """

    merged: dict[str, Any] = {k: _copy(v) for k, v in base.items()}
    for key, value in overlay.items():
        if key not in merged:
            merged[key] = _copy(value)
            continue
        current = merged[key]
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = merge(current, value)
        elif isinstance(current, list) and isinstance(value, (list, tuple)):
            merged[key] = current + [_copy(v) for v in value]
        else:
            merged[key] = _copy(value)
    return merged


def _copy(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _copy(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_copy(v) for v in value]
    return value
