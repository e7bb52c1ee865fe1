"""Fill unset build fields and assemble the frozen :class:`BuildConfig`.

Defaults are applied in dependency order:

1. environment fallbacks for credentials and ``folder_id``;
2. static defaults from :data:`imagectl.models.DEFAULTS`;
3. derived defaults that read an already-resolved field
   (``platform_id`` from ``instance_gpus``, ``image_min_disk_size_gb`` from
   ``disk_size_gb``, ``disk_name`` from ``instance_name``);
4. the generated ``image_name``.

A key the caller set is never replaced, even when its value is empty.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path

from .interpolate import TemplateContext, TemplateExpansionError, has_template_markers, render
from .models import (
    DEFAULT_GPU_PLATFORM_ID,
    DEFAULT_IMAGE_NAME_TEMPLATE,
    DEFAULT_PLATFORM_ID,
    DEFAULTS,
    FOLDER_ID_ENV_VAR,
    IMAGE_NAME_PREFIX,
    SERVICE_ACCOUNT_KEY_FILE_ENV_VAR,
    TOKEN_ENV_VAR,
    BuildConfig,
    CommunicatorConfig,
)
from .normalize import NormalizedFields

LOGGER = logging.getLogger(__name__)

ENV_FALLBACKS = {
    "token": TOKEN_ENV_VAR,
    "service_account_key_file": SERVICE_ACCOUNT_KEY_FILE_ENV_VAR,
    "folder_id": FOLDER_ID_ENV_VAR,
}


def apply_defaults(
    fields: NormalizedFields,
    *,
    context: TemplateContext,
    env: Mapping[str, str],
) -> BuildConfig:
    """Return a :class:`BuildConfig` built from *fields* plus defaults.

    Problems found while generating defaults are appended to
    ``fields.errors`` so they join the same aggregate as normalization errors.
    """
    values = dict(fields.values)

    for key, env_var in ENV_FALLBACKS.items():
        if key not in values and env.get(env_var):
            values[key] = env[env_var]
            LOGGER.debug("using %s from environment variable %s", key, env_var)

    for key, default in DEFAULTS.items():
        values.setdefault(key, default)

    if "platform_id" not in values:
        gpus = _int(values, "instance_gpus")
        values["platform_id"] = DEFAULT_GPU_PLATFORM_ID if gpus > 0 else DEFAULT_PLATFORM_ID

    if "image_min_disk_size_gb" not in values:
        values["image_min_disk_size_gb"] = _int(values, "disk_size_gb")

    if "disk_name" not in values:
        instance_name = _str(values, "instance_name")
        values["disk_name"] = f"{instance_name}-disk" if instance_name else ""

    if "image_name" not in values:
        values["image_name"] = _default_image_name(context, fields.errors)

    communicator = CommunicatorConfig(
        type=_str(values, "communicator"),
        ssh_host=_str(values, "ssh_host"),
        ssh_port=_int(values, "ssh_port"),
        ssh_username=_str(values, "ssh_username"),
        ssh_password=_str(values, "ssh_password"),
        ssh_private_key_file=_str(values, "ssh_private_key_file"),
        ssh_timeout=_str(values, "ssh_timeout"),
        ssh_handshake_attempts=_int(values, "ssh_handshake_attempts"),
        ssh_pty=bool(values.get("ssh_pty", False)),
        ssh_agent_auth=bool(values.get("ssh_agent_auth", False)),
    )

    image_family = values.get("image_family")
    metadata_from_file = values.get("metadata_from_file")

    return BuildConfig(
        endpoint=_str(values, "endpoint"),
        token=_str(values, "token"),
        service_account_key_file=_str(values, "service_account_key_file"),
        folder_id=_str(values, "folder_id"),
        zone=_str(values, "zone"),
        platform_id=_str(values, "platform_id"),
        instance_cores=_int(values, "instance_cores"),
        instance_mem_gb=_int(values, "instance_mem_gb"),
        instance_gpus=_int(values, "instance_gpus"),
        instance_name=_str(values, "instance_name"),
        disk_name=_str(values, "disk_name"),
        disk_size_gb=_int(values, "disk_size_gb"),
        disk_type=_str(values, "disk_type"),
        subnet_id=_str(values, "subnet_id"),
        use_ipv4_nat=bool(values.get("use_ipv4_nat", False)),
        use_ipv6=bool(values.get("use_ipv6", False)),
        use_internal_ip=bool(values.get("use_internal_ip", False)),
        source_image_id=_str(values, "source_image_id"),
        source_image_family=_str(values, "source_image_family"),
        source_image_folder_id=_str(values, "source_image_folder_id"),
        image_name=_str(values, "image_name"),
        image_description=_str(values, "image_description"),
        image_family=image_family if isinstance(image_family, str) else None,
        image_min_disk_size_gb=_int(values, "image_min_disk_size_gb"),
        target_image_folder_id=_str(values, "target_image_folder_id"),
        serial_log_file=_str(values, "serial_log_file"),
        state_timeout=_str(values, "state_timeout"),
        communicator=communicator,
        labels=_mapping(values, "labels"),
        image_labels=_mapping(values, "image_labels"),
        image_product_ids=tuple(values.get("image_product_ids", ())),  # type: ignore[arg-type]
        metadata=dict(fields.metadata),
        metadata_from_file={
            key: Path(str(path))
            for key, path in (
                metadata_from_file.items() if isinstance(metadata_from_file, Mapping) else ()
            )
        },
    )


def _default_image_name(context: TemplateContext, errors: list[str]) -> str:
    try:
        name = render(DEFAULT_IMAGE_NAME_TEMPLATE, context)
    except TemplateExpansionError as exc:
        errors.append(f"Unable to render default image name: {exc}")
        return f"{IMAGE_NAME_PREFIX}{context.timestamp}"
    if has_template_markers(name):  # pragma: no cover - render always expands
        return f"{IMAGE_NAME_PREFIX}{context.timestamp}"
    return name


def _str(values: Mapping[str, object], key: str) -> str:
    value = values.get(key, "")
    return value if isinstance(value, str) else ""


def _int(values: Mapping[str, object], key: str) -> int:
    value = values.get(key, 0)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return 0


def _mapping(values: Mapping[str, object], key: str) -> dict[str, str]:
    value = values.get(key)
    if isinstance(value, Mapping):
        return {str(k): str(v) for k, v in value.items()}
    return {}


__all__ = ["ENV_FALLBACKS", "apply_defaults"]
