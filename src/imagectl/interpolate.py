"""Template expansion for build file string values.

Strings such as ``image_name: "packer-{{ timestamp }}"`` are rendered with a
strict, sandboxed Jinja environment: referencing an unknown variable or
function is an error rather than an empty string, and templates cannot reach
Python internals. Any failure while rendering becomes a
:class:`TemplateExpansionError`. Rendering is a pure function of the
template and a :class:`TemplateContext`, so tests can pin the clock.

Available names:

``timestamp``
    Unix seconds of the context's ``init_time``.
``uuid``
    A fresh UUID (new value for each rendered string).
``isotime(fmt=None)``
    ``init_time`` as ISO-8601, or formatted with ``strftime`` when *fmt* is given.
``build_name``
    Name of the build, empty when not supplied.
``user(name)``
    Value of a template variable declared in the build file.
"""
from __future__ import annotations

import uuid as uuid_module
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime

from jinja2 import StrictUndefined, TemplateError
from jinja2.sandbox import SandboxedEnvironment

TEMPLATE_MARKERS = ("{{", "}}", "{%", "%}")

_ENVIRONMENT = SandboxedEnvironment(
    undefined=StrictUndefined,
    autoescape=False,
    keep_trailing_newline=True,
)


class TemplateExpansionError(RuntimeError):
    """Raised when a templated value cannot be rendered."""


def _new_uuid() -> str:
    return str(uuid_module.uuid4())


@dataclass(frozen=True)
class TemplateContext:
    """Values available to templates during one resolution pass."""

    init_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    build_name: str = ""
    user_variables: Mapping[str, str] = field(default_factory=dict)
    uuid_factory: Callable[[], str] = _new_uuid

    @property
    def timestamp(self) -> str:
        """Return ``init_time`` as whole unix seconds."""
        return str(int(self.init_time.timestamp()))

    def isotime(self, fmt: str | None = None) -> str:
        """Return ``init_time`` rendered as ISO-8601 or with *fmt*."""
        if fmt is None:
            return self.init_time.isoformat()
        return self.init_time.strftime(fmt)

    def user(self, name: str) -> str:
        """Return the template variable *name*."""
        try:
            return self.user_variables[name]
        except KeyError:
            raise TemplateExpansionError(f"unknown template variable '{name}'") from None

    def variables(self) -> dict[str, object]:
        """Return the names exposed to a single render call."""
        return {
            "timestamp": self.timestamp,
            "uuid": self.uuid_factory(),
            "isotime": self.isotime,
            "build_name": self.build_name,
            "user": self.user,
        }


def has_template_markers(value: str) -> bool:
    """Return ``True`` when *value* still contains template syntax."""
    return any(marker in value for marker in TEMPLATE_MARKERS)


def render(template: str, context: TemplateContext) -> str:
    """Render *template* with *context*.

    Plain strings are returned untouched so values that merely contain braces
    elsewhere are not reinterpreted.
    """
    if "{{" not in template and "{%" not in template:
        return template
    try:
        compiled = _ENVIRONMENT.from_string(template)
        return compiled.render(context.variables())
    except TemplateExpansionError:
        raise
    except TemplateError as exc:
        raise TemplateExpansionError(str(exc) or type(exc).__name__) from exc
    except Exception as exc:
        raise TemplateExpansionError(f"{type(exc).__name__}: {exc}") from exc


__all__ = [
    "TEMPLATE_MARKERS",
    "TemplateContext",
    "TemplateExpansionError",
    "has_template_markers",
    "render",
]
