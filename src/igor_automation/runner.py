from __future__ import annotations

import logging
from typing import Any, Iterable

from .config import RUN_MODES, IgorConfig
from .operations import Operation
from .types import Context, OperationResult

logger = logging.getLogger(__name__)


class OperationRunner:
    """Drives operations through prepare, the requested action and log.

    Operations run strictly one after another in ascending ``order``;
    factors gathered by earlier operations are visible to later ones.
    """

    def __init__(
        self,
        operations: Iterable[Operation],
        context: Context,
        *,
        mode: str = "apply",
        continue_on_error: bool = False,
    ):
        if mode not in RUN_MODES:
            raise ValueError(f"Unknown run mode '{mode}'")
        self.operations = list(operations)
        self.context = context
        self.mode = mode
        self.continue_on_error = continue_on_error

    @classmethod
    def from_config(
        cls, operations: Iterable[Operation], context: Context, config: IgorConfig
    ) -> "OperationRunner":
        return cls(
            operations,
            context,
            mode=config.mode,
            continue_on_error=config.continue_on_error,
        )

    def run(self) -> list[OperationResult]:
        results: list[OperationResult] = []
        for operation in self._order_operations(self.operations):
            results.append(self._run_operation(operation))
        return results

    def _run_operation(self, operation: Operation) -> OperationResult:
        logger.debug("mode=%s operation=%r", self.mode, operation)
        try:
            operation.prepare(self.context)
        except Exception as exc:  # noqa: BLE001
            return self._fatal(operation, "prepare", exc)

        if self.mode == "check":
            result = self._check(operation)
        elif self.mode == "diff":
            try:
                text = operation.diff(self.context)
            except Exception as exc:  # noqa: BLE001
                return self._fatal(operation, "diff", exc)
            result = self._result(operation, changed=bool(text), details=text or "noop")
        else:
            try:
                outcome = operation.apply(self.context)
            except Exception as exc:  # noqa: BLE001
                return self._fatal(operation, "apply", exc)
            changed, details = self._interpret(outcome)
            result = self._result(operation, changed=changed, details=details)

        operation.log()
        logger.debug(
            "operation=%s resource=%s changed=%s failed=%s",
            operation.kind,
            operation.resource,
            result.changed,
            result.failed,
        )
        return result

    def _check(self, operation: Operation) -> OperationResult:
        # Check failures are advisory and never abort the run.
        try:
            ok = operation.check(self.context)
        except Exception as exc:  # noqa: BLE001
            logger.warning("check of %s %s failed: %s", operation.kind, operation.resource, exc)
            return self._result(operation, changed=False, details=str(exc), failed=True)
        if not ok:
            logger.warning("check of %s %s failed", operation.kind, operation.resource)
            return self._result(operation, changed=False, details="check failed", failed=True)
        return self._result(operation, changed=False, details="ok")

    def _fatal(self, operation: Operation, phase: str, exc: Exception) -> OperationResult:
        logger.error(
            "%s of %s %s (package=%s) failed: %s",
            phase,
            operation.kind,
            operation.resource,
            operation.package,
            exc,
            exc_info=logger.isEnabledFor(logging.DEBUG),
        )
        if not self.continue_on_error:
            raise exc
        return self._result(operation, changed=False, details=str(exc), failed=True)

    def _result(
        self, operation: Operation, *, changed: bool, details: str, failed: bool = False
    ) -> OperationResult:
        return OperationResult(
            kind=operation.kind,
            mode=self.mode,
            changed=changed,
            details=details,
            failed=failed,
            resource=operation.resource,
            package=operation.package,
        )

    @staticmethod
    def _interpret(outcome: Any) -> tuple[bool, str]:
        if isinstance(outcome, tuple) and len(outcome) == 2:
            changed, details = outcome
            return bool(changed), str(details)
        return bool(outcome), "ok" if outcome else "noop"

    @staticmethod
    def _order_operations(operations: list[Operation]) -> list[Operation]:
        # ``sorted`` is stable, so equal orders keep their declared sequence.
        return sorted(operations, key=lambda operation: operation.order)
