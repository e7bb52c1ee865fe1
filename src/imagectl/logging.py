"""Structured JSON-lines logging of CLI operations.

Each CLI command runs inside :meth:`StructuredLogger.operation`; the scope
records the command name, its arguments, the outcome and the elapsed time as
one JSON object per line in ``operations.jsonl``. Logging must never break a
command, so a directory or write failure disables the logger instead of
raising.
"""
from __future__ import annotations

import json
import logging
import time
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path

LOGGER = logging.getLogger(__name__)

OPERATIONS_LOG_NAME = "operations.jsonl"


def _sanitize(value: object) -> object:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, Mapping):
        return {str(key): _sanitize(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_sanitize(item) for item in value]
    return str(value)


class OperationScope:
    """Collects the result of one logged operation."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.result: dict[str, object] | None = None

    def success(self, message: str, *, context: Mapping[str, object] | None = None) -> None:
        """Record a successful outcome."""
        self._set("success", message, warnings=(), errors=(), context=context)

    def warning(
        self,
        message: str,
        *,
        warnings: Iterable[str] = (),
        errors: Iterable[str] = (),
        context: Mapping[str, object] | None = None,
    ) -> None:
        """Record an outcome that succeeded with warnings."""
        self._set("warning", message, warnings=warnings, errors=errors, context=context)

    def error(
        self,
        message: str,
        *,
        errors: Iterable[str] | None = None,
        warnings: Iterable[str] = (),
        rc: int | None = None,
        context: Mapping[str, object] | None = None,
    ) -> None:
        """Record a failed outcome; *errors* defaults to ``[message]``."""
        error_list = [message] if errors is None else errors
        self._set("error", message, warnings=warnings, errors=error_list, context=context)
        if rc is not None and self.result is not None:
            self.result["rc"] = rc

    def _set(
        self,
        status: str,
        message: str,
        *,
        warnings: Iterable[str],
        errors: Iterable[str],
        context: Mapping[str, object] | None,
    ) -> None:
        self.result = {
            "status": status,
            "message": message,
            "warnings": [str(item) for item in warnings],
            "errors": [str(item) for item in errors],
            "context": _sanitize(context or {}),
        }


class StructuredLogger:
    """Append operation records to ``<log_dir>/operations.jsonl``."""

    def __init__(self, log_dir: Path | None) -> None:
        self._log_dir = log_dir
        self._enabled = log_dir is not None
        self._operations_log_path = (
            log_dir / OPERATIONS_LOG_NAME if log_dir is not None else Path(OPERATIONS_LOG_NAME)
        )
        if log_dir is not None:
            try:
                log_dir.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                LOGGER.debug("disabling operations log in %s: %s", log_dir, exc)
                self._enabled = False

    @property
    def enabled(self) -> bool:
        """Return ``True`` while records are being written."""
        return self._enabled

    @contextmanager
    def operation(
        self,
        name: str,
        *,
        args: Mapping[str, object] | None = None,
        target: Mapping[str, object] | None = None,
    ) -> Iterator[OperationScope]:
        """Log the operation *name* executed inside the ``with`` block."""
        scope = OperationScope(name)
        started = time.monotonic()
        try:
            yield scope
        except Exception as exc:
            if scope.result is None:
                scope.error(f"{type(exc).__name__}: {exc}")
            raise
        finally:
            if scope.result is None:
                scope.success("")
            self._write(
                {
                    "timestamp": datetime.now(UTC).isoformat(),
                    "operation": name,
                    "args": _sanitize(args or {}),
                    "target": _sanitize(target or {}),
                    "result": scope.result,
                    "duration_ms": int((time.monotonic() - started) * 1000),
                }
            )

    def _write(self, record: Mapping[str, object]) -> None:
        if not self._enabled:
            return
        try:
            with self._operations_log_path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(record, sort_keys=True) + "\n")
        except OSError as exc:
            LOGGER.debug("disabling operations log after write failure: %s", exc)
            self._enabled = False


__all__ = ["OperationScope", "StructuredLogger"]
