"""Convert an untyped build mapping into typed, explicitly-set fields.

The normalizer never stops at the first problem. Every unknown key, bad type,
failed template expansion and unreadable ``metadata_from_file`` entry is
recorded, and the remaining keys are still processed so one run reports all of
them.

Only keys present in the input appear in :attr:`NormalizedFields.values`;
the defaulting stage relies on that to tell "unset" from an explicit empty
string. Empty duration strings are the exception: they are dropped so
the default applies.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from .interpolate import TemplateContext, TemplateExpansionError, render
from .models import ConfigError

LOGGER = logging.getLogger(__name__)

STRING_FIELDS = frozenset(
    {
        "endpoint",
        "token",
        "service_account_key_file",
        "folder_id",
        "zone",
        "platform_id",
        "instance_name",
        "disk_name",
        "disk_type",
        "subnet_id",
        "source_image_id",
        "source_image_family",
        "source_image_folder_id",
        "image_name",
        "image_description",
        "image_family",
        "target_image_folder_id",
        "serial_log_file",
        "communicator",
        "ssh_host",
        "ssh_username",
        "ssh_password",
        "ssh_private_key_file",
    }
)
DURATION_FIELDS = frozenset({"state_timeout", "ssh_timeout"})
INTEGER_FIELDS = frozenset(
    {
        "instance_cores",
        "instance_mem_gb",
        "instance_gpus",
        "disk_size_gb",
        "image_min_disk_size_gb",
        "ssh_port",
        "ssh_handshake_attempts",
    }
)
BOOLEAN_FIELDS = frozenset(
    {"use_ipv4_nat", "use_ipv6", "use_internal_ip", "ssh_pty", "ssh_agent_auth"}
)
MAPPING_FIELDS = frozenset({"labels", "image_labels", "metadata", "metadata_from_file"})
LIST_FIELDS = frozenset({"image_product_ids"})

ALLOWED_KEYS = (
    STRING_FIELDS
    | DURATION_FIELDS
    | INTEGER_FIELDS
    | BOOLEAN_FIELDS
    | MAPPING_FIELDS
    | LIST_FIELDS
)

_TRUE_STRINGS = {"true", "yes", "on", "1"}
_FALSE_STRINGS = {"false", "no", "off", "0"}


@dataclass(slots=True)
class NormalizedFields:
    """Typed values for the keys the caller set, plus collected problems."""

    values: dict[str, object] = field(default_factory=dict)
    metadata: dict[str, str] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def is_set(self, key: str) -> bool:
        """Return ``True`` when *key* was present in the input."""
        return key in self.values


def normalize(raw: Mapping[str, object], *, context: TemplateContext) -> NormalizedFields:
    """Normalize *raw* into typed fields using *context* for templates."""
    result = NormalizedFields()

    for key, value in raw.items():
        if not isinstance(key, str):
            result.errors.append(f"Configuration keys must be strings. Got {key!r}.")
            continue
        if key not in ALLOWED_KEYS:
            result.errors.append(f"Unknown configuration key '{key}'.")
            continue
        try:
            coerced = _coerce_field(key, value, context)
        except ConfigError as exc:
            result.errors.append(str(exc))
            continue
        # An empty duration means "use the default".
        if key in DURATION_FIELDS and coerced == "":
            continue
        result.values[key] = coerced

    _resolve_metadata(result)
    LOGGER.debug(
        "normalized %d field(s) with %d error(s)", len(result.values), len(result.errors)
    )
    return result


def _coerce_field(key: str, value: object, context: TemplateContext) -> object:
    if key in STRING_FIELDS:
        return _expand(_expect_str(value, key), key, context)
    if key in DURATION_FIELDS:
        if not isinstance(value, str):
            raise ConfigError(
                f"{key} must be a duration string such as '5m'. Got {value!r}."
            )
        return _expand(value.strip(), key, context)
    if key in INTEGER_FIELDS:
        return _expect_int(value, key)
    if key in BOOLEAN_FIELDS:
        return _expect_bool(value, key)
    if key in MAPPING_FIELDS:
        mapping = _expect_str_mapping(value, key)
        return {
            item_key: _expand(item_value, f"{key}.{item_key}", context)
            for item_key, item_value in mapping.items()
        }
    if key in LIST_FIELDS:
        items = _expect_str_list(value, key)
        return tuple(
            _expand(item, f"{key}[{index}]", context) for index, item in enumerate(items)
        )
    raise ConfigError(f"Unknown configuration key '{key}'.")  # pragma: no cover


def _resolve_metadata(result: NormalizedFields) -> None:
    inline = result.values.get("metadata")
    from_file = result.values.get("metadata_from_file")
    metadata: dict[str, str] = dict(inline) if isinstance(inline, Mapping) else {}

    if isinstance(from_file, Mapping):
        for key, path_value in from_file.items():
            path = Path(str(path_value)).expanduser()
            try:
                content = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                reason = getattr(exc, "strerror", None) or str(exc)
                result.errors.append(
                    f"cannot access file '{path_value}' with content for value of "
                    f"metadata key '{key}': {reason}"
                )
                continue
            if key in metadata:
                result.warnings.append(
                    f"metadata key '{key}' is set in both metadata and "
                    f"metadata_from_file; using the content of '{path_value}'."
                )
            metadata[key] = content

    result.metadata = metadata


def _expand(value: str, label: str, context: TemplateContext) -> str:
    try:
        return render(value, context)
    except TemplateExpansionError as exc:
        raise ConfigError(f"Failed to expand template in {label}: {exc}") from exc


def _expect_str(value: object, label: str) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool) or value is None:
        raise ConfigError(f"Expected {label} to be a string. Got {value!r}.")
    if isinstance(value, (int, float)):
        return str(value)
    raise ConfigError(f"Expected {label} to be a string. Got {type(value).__name__}.")


def _expect_int(value: object, label: str) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"Expected {label} to be an integer. Got boolean {value!r}.")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text, 10)
        except ValueError:
            pass
        try:
            return int(text, 0)
        except ValueError as exc:
            raise ConfigError(f"Invalid integer for {label}: {value!r}.") from exc
    raise ConfigError(f"Expected {label} to be an integer. Got {type(value).__name__}.")


def _expect_bool(value: object, label: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
        raise ConfigError(f"Invalid boolean for {label}: {value!r}.")
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    raise ConfigError(f"Expected {label} to be a boolean. Got {value!r}.")


def _expect_str_mapping(value: object, label: str) -> dict[str, str]:
    if not isinstance(value, Mapping):
        raise ConfigError(f"Expected {label} to be a mapping. Got {type(value).__name__}.")
    result: dict[str, str] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            raise ConfigError(f"Mapping {label} must use string keys. Got {key!r}.")
        if isinstance(item, bool):
            result[key] = "true" if item else "false"
        elif isinstance(item, (str, int, float)):
            result[key] = str(item)
        else:
            raise ConfigError(
                f"Expected {label}.{key} to be a string. Got {type(item).__name__}."
            )
    return result


def _expect_str_list(value: object, label: str) -> list[str]:
    if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
        raise ConfigError(f"Expected {label} to be a sequence. Got {type(value).__name__}.")
    items: list[str] = []
    for index, item in enumerate(value):
        items.append(_expect_str(item, f"{label}[{index}]"))
    return items


__all__ = ["ALLOWED_KEYS", "NormalizedFields", "normalize"]
