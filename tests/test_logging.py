"""Failure-mode tests for the structured logging subsystem."""
from __future__ import annotations

import json
from pathlib import Path

import pytest

from imagectl.logging import StructuredLogger


def _records(logger: StructuredLogger) -> list[dict[str, object]]:
    path = logger._operations_log_path  # type: ignore[attr-defined]
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


def test_structured_logger_disabled_without_directory() -> None:
    """No directory means nothing is written."""
    logger = StructuredLogger(None)

    assert logger.enabled is False
    with logger.operation("validate") as op:
        op.success("done")


def test_structured_logger_disables_when_directory_unavailable(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Logger gracefully disables itself when log directory cannot be created."""
    log_dir = tmp_path / "logs"

    original_mkdir = Path.mkdir

    def fail_mkdir(self: Path, *args: object, **kwargs: object) -> None:
        if self == log_dir:
            raise PermissionError("no access")
        original_mkdir(self, *args, **kwargs)

    monkeypatch.setattr(Path, "mkdir", fail_mkdir)

    logger = StructuredLogger(log_dir)
    assert logger._enabled is False  # type: ignore[attr-defined]

    with logger.operation("validate", args={"json": False}) as op:
        op.success("done")


def test_structured_logger_disables_after_write_failure(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Write failures mark the logger disabled so subsequent writes are skipped."""
    logger = StructuredLogger(tmp_path / "logs")
    operations_path = logger._operations_log_path  # type: ignore[attr-defined]

    original_open = Path.open

    def fail_open(self: Path, *args: object, **kwargs: object) -> object:
        if self == operations_path:
            raise OSError("disk full")
        return original_open(self, *args, **kwargs)

    monkeypatch.setattr(Path, "open", fail_open)

    with logger.operation("validate") as op:
        op.success("done")

    assert logger._enabled is False  # type: ignore[attr-defined]

    with logger.operation("show") as op:
        op.success("done")


def test_operation_scope_warning_sanitises_context(tmp_path: Path) -> None:
    """Warnings should be recorded with JSON-safe context values."""
    logger = StructuredLogger(tmp_path / "logs")

    class Custom:
        def __str__(self) -> str:
            return "<custom>"

    with logger.operation("validate", target={"path": Path("build.yml")}) as op:
        op.warning(
            "warned",
            warnings=("note",),
            errors=("err",),
            context={"path": Path("/var/lib"), "obj": Custom()},
        )

    (record,) = _records(logger)
    assert record["operation"] == "validate"
    assert record["target"] == {"path": "build.yml"}
    result = record["result"]
    assert result["status"] == "warning"
    assert result["warnings"] == ["note"]
    assert result["errors"] == ["err"]
    assert result["context"] == {"path": "/var/lib", "obj": "<custom>"}


def test_operation_scope_error_defaults_error_list(tmp_path: Path) -> None:
    """Errors should default to the message when not provided."""
    logger = StructuredLogger(tmp_path / "logs")

    with logger.operation("validate") as op:
        op.error("boom", rc=2, context={"value": {1, 2}})

    (record,) = _records(logger)
    result = record["result"]
    assert result["status"] == "error"
    assert result["errors"] == ["boom"]
    assert result["rc"] == 2
    assert result["context"] == {"value": "{1, 2}"}


def test_operation_records_unhandled_exception(tmp_path: Path) -> None:
    """Exceptions escaping the scope are logged and re-raised."""
    logger = StructuredLogger(tmp_path / "logs")

    with pytest.raises(ValueError, match="bad"):
        with logger.operation("show"):
            raise ValueError("bad")

    (record,) = _records(logger)
    assert record["result"]["status"] == "error"
    assert record["result"]["errors"] == ["ValueError: bad"]


def test_operation_without_result_counts_as_success(tmp_path: Path) -> None:
    logger = StructuredLogger(tmp_path / "logs")

    with logger.operation("show"):
        pass
    with logger.operation("validate"):
        pass

    records = _records(logger)
    assert [record["operation"] for record in records] == ["show", "validate"]
    assert all(record["result"]["status"] == "success" for record in records)
