"""Build configuration loader for imagectl.

A build configuration is assembled from these sources:

1. The build file (YAML, or JSON since YAML parses it).
2. Explicit overrides supplied programmatically or via ``--set key=value``;
   these replace values from the file.
3. Environment fallbacks (``YC_TOKEN``, ``YC_SERVICE_ACCOUNT_KEY_FILE``,
   ``YC_FOLDER_ID``) for credentials and ``folder_id`` left unset above.

Build files may be plain builder mappings or Packer-style templates with a
``variables`` block and a ``builders`` list; the ``yandex`` builder entry is
selected and the variables become available to ``{{ user("name") }}``.

The merged mapping then runs through three stages, each adding to one shared
list of problems:

normalize
    unknown keys, type coercion, template expansion, ``metadata_from_file``.
apply_defaults
    static, environment and derived defaults; builds :class:`BuildConfig`.
validate
    every rule against the defaulted snapshot.

Values given as overrides are coerced with PyYAML's ``safe_load`` so that
booleans and numbers are parsed naturally.
"""
from __future__ import annotations

import os
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from pathlib import Path

try:  # PyYAML is a runtime dependency (declared in pyproject.toml).
    import yaml
except ImportError as exc:  # pragma: no cover
    raise RuntimeError(
        "PyYAML is required to load imagectl build files. Install with "
        "`pip install imagectl` or ensure PyYAML>=6.0 is available."
    ) from exc

from .defaults import apply_defaults
from .interpolate import TemplateContext
from .models import BuildConfig, CommunicatorConfig, ConfigError, ConfigErrors
from .normalize import normalize
from .validate import validate

BUILDER_TYPE = "yandex"


@dataclass(frozen=True)
class BuildFile:
    """Builder settings and template variables read from a build file."""

    path: Path
    settings: dict[str, object]
    variables: dict[str, str]
    build_name: str = ""


@dataclass(frozen=True)
class PrepareResult:
    """Outcome of resolving one build configuration."""

    config: BuildConfig
    warnings: tuple[str, ...]
    error: ConfigErrors | None

    @property
    def ok(self) -> bool:
        """Return ``True`` when no errors were found."""
        return self.error is None

    @property
    def errors(self) -> tuple[str, ...]:
        """Return the individual error messages, empty when valid."""
        return self.error.errors if self.error is not None else ()

    def raise_for_errors(self) -> BuildConfig:
        """Return the config, or raise the aggregated :class:`ConfigErrors`."""
        if self.error is not None:
            raise self.error
        return self.config

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "valid": self.ok,
            "warnings": list(self.warnings),
            "errors": list(self.errors),
            "config": self.config.to_dict(),
        }


def prepare_config(
    raw: Mapping[str, object],
    *,
    env: Mapping[str, str] | None = None,
    context: TemplateContext | None = None,
) -> PrepareResult:
    """Normalize, default and validate *raw* in one pass."""
    resolved_env = dict(os.environ if env is None else env)
    template_context = context if context is not None else TemplateContext()

    fields = normalize(raw, context=template_context)
    config = apply_defaults(fields, context=template_context, env=resolved_env)
    warnings, error = validate(
        config,
        carried_errors=fields.errors,
        carried_warnings=fields.warnings,
    )
    return PrepareResult(config=config, warnings=tuple(warnings), error=error)


def load_build_config(
    build_file: str | os.PathLike[str],
    *,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, object] | None = None,
    context: TemplateContext | None = None,
) -> PrepareResult:
    """Read *build_file*, apply *overrides* and resolve the result."""
    loaded = load_build_file(build_file)
    merged = dict(loaded.settings)
    if overrides:
        merged.update(overrides)

    base_context = context if context is not None else TemplateContext()
    template_context = replace(
        base_context,
        build_name=loaded.build_name or base_context.build_name,
        user_variables={**loaded.variables, **base_context.user_variables},
    )
    return prepare_config(merged, env=env, context=template_context)


def load_build_file(path: str | os.PathLike[str]) -> BuildFile:
    """Parse *path* and return the builder settings it holds."""
    build_path = Path(path).expanduser()
    data = _load_yaml_file(build_path)

    if "builders" not in data:
        settings = dict(data)
        _strip_builder_type(settings, f"file:{build_path}")
        return BuildFile(path=build_path, settings=settings, variables={})

    variables = _as_dict(data.get("variables"), "variables")
    builders = _as_sequence(data.get("builders"), "builders")
    matches = [
        _as_dict(entry, f"builders[{index}]")
        for index, entry in enumerate(builders)
        if isinstance(entry, Mapping) and entry.get("type") == BUILDER_TYPE
    ]
    if not matches:
        raise ConfigError(f"Build file {build_path} has no '{BUILDER_TYPE}' builder.")
    if len(matches) > 1:
        raise ConfigError(
            f"Build file {build_path} defines {len(matches)} '{BUILDER_TYPE}' builders; "
            "only one is supported."
        )

    settings = dict(matches[0])
    settings.pop("type", None)
    build_name = str(settings.pop("name", "") or "")
    return BuildFile(
        path=build_path,
        settings=settings,
        variables={
            key: "" if value is None else str(value) for key, value in variables.items()
        },
        build_name=build_name,
    )


def parse_override(text: str) -> tuple[str, object]:
    """Split a ``key=value`` override and coerce its value."""
    key, separator, value = text.partition("=")
    key = key.strip()
    if not separator or not key:
        raise ConfigError(f"Override {text!r} must use the form key=value.")
    return key, _coerce_value(value)


def _load_yaml_file(path: Path) -> dict[str, object]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read build file {path}: {exc.strerror or exc}") from exc
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - PyYAML owns detailed error
        raise ConfigError(f"Failed to parse build file {path}: {exc}") from exc
    if not isinstance(data, Mapping):
        raise ConfigError(f"Build file {path} must contain a mapping at the top level.")
    return _as_dict(data, f"file:{path}")


def _strip_builder_type(settings: dict[str, object], label: str) -> None:
    builder_type = settings.get("type")
    if builder_type is None:
        return
    if builder_type != BUILDER_TYPE:
        raise ConfigError(
            f"Unsupported builder type '{builder_type}' in {label}. "
            f"Expected '{BUILDER_TYPE}'."
        )
    del settings["type"]


def _coerce_value(raw: str) -> object:
    raw = raw.strip()
    try:
        parsed = yaml.safe_load(raw)
    except yaml.YAMLError:  # pragma: no cover - treat as string if parsing fails
        return raw
    return "" if parsed is None else parsed


def _as_sequence(value: object, label: str) -> Sequence[object]:
    if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
        raise ConfigError(f"Expected {label} to be a sequence. Got {type(value).__name__}.")
    return value


def _as_dict(value: object | None, label: str) -> dict[str, object]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"Expected {label} to be a mapping. Got {type(value).__name__}.")
    result: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            raise ConfigError(f"Mapping {label} must use string keys. Got {key!r}.")
        result[key] = item
    return result


__all__ = [
    "BuildConfig",
    "BuildFile",
    "CommunicatorConfig",
    "ConfigError",
    "ConfigErrors",
    "PrepareResult",
    "load_build_config",
    "load_build_file",
    "parse_override",
    "prepare_config",
]
