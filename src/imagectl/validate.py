"""Rule checks for a fully-defaulted :class:`BuildConfig`.

Every rule runs on every call; a failing rule appends a message and the
remaining rules still execute, so the returned aggregate lists every problem
in the configuration at once.
"""
from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from pathlib import Path

from .credentials import CredentialError, read_service_account_key
from .durations import DurationError, parse_duration
from .interpolate import has_template_markers
from .models import (
    ALLOWED_COMMUNICATORS,
    IMAGE_NAME_PREFIX,
    BuildConfig,
    ConfigErrors,
)
from .ssh import SSHSetupError, load_signing_key

LOGGER = logging.getLogger(__name__)

IMAGE_FAMILY_PATTERN = re.compile(r"[a-z0-9-]*")


def validate(
    config: BuildConfig,
    *,
    carried_errors: Iterable[str] = (),
    carried_warnings: Iterable[str] = (),
) -> tuple[list[str], ConfigErrors | None]:
    """Check *config* and return ``(warnings, error)``.

    ``carried_errors`` and ``carried_warnings`` come from earlier stages
    (normalization and defaulting) and are reported ahead of rule failures.
    """
    warnings = list(carried_warnings)
    errors = list(carried_errors)

    _check_credentials(config, errors)
    _check_folder(config, errors)
    _check_source_image(config, errors)
    _check_image_family(config, errors)
    _check_disk_sizes(config, errors)
    _check_image_name(config, errors)
    _check_duration("ssh_timeout", config.communicator.ssh_timeout, errors)
    _check_duration("state_timeout", config.state_timeout, errors)
    _check_communicator(config, errors)
    _check_instance_resources(config, errors)
    _check_serial_log(config, errors)

    LOGGER.debug("validation finished with %d error(s)", len(errors))
    if errors:
        return warnings, ConfigErrors(errors)
    return warnings, None


def _check_credentials(config: BuildConfig, errors: list[str]) -> None:
    token = config.token
    key_file = config.service_account_key_file
    if token and key_file:
        errors.append(
            "one of token or service_account_key_file must be specified, not both"
        )
    elif not token and not key_file:
        errors.append(
            "no usable credentials: checked token and service_account_key_file; "
            "one of them must be specified"
        )

    if key_file:
        try:
            read_service_account_key(key_file)
        except CredentialError as exc:
            errors.append(f"service_account_key_file: {exc}")


def _check_folder(config: BuildConfig, errors: list[str]) -> None:
    if not config.folder_id:
        errors.append("a folder_id must be specified")


def _check_source_image(config: BuildConfig, errors: list[str]) -> None:
    if not config.source_image_id and not config.source_image_family:
        errors.append("a source_image_id or source_image_family must be specified")


def _check_image_family(config: BuildConfig, errors: list[str]) -> None:
    family = config.image_family
    if family and IMAGE_FAMILY_PATTERN.fullmatch(family) is None:
        errors.append(
            f"Invalid image_family '{family}': only lowercase letters, digits "
            "and dashes are allowed"
        )


def _check_disk_sizes(config: BuildConfig, errors: list[str]) -> None:
    if config.image_min_disk_size_gb < config.disk_size_gb:
        errors.append(
            f"Invalid image_min_disk_size_gb value ({config.image_min_disk_size_gb}): "
            f"Must be equal or greater than disk_size_gb ({config.disk_size_gb})"
        )


def _check_image_name(config: BuildConfig, errors: list[str]) -> None:
    name = config.image_name
    if not name.startswith(IMAGE_NAME_PREFIX):
        errors.append(f"Invalid image_name '{name}': must start with '{IMAGE_NAME_PREFIX}'")
    if has_template_markers(name):
        errors.append(f"Invalid image_name '{name}': contains unexpanded template markers")


def _check_duration(label: str, raw: str, errors: list[str]) -> None:
    try:
        value = parse_duration(raw)
    except DurationError as exc:
        errors.append(f"Invalid {label} '{raw}': {exc}")
        return
    if value.total_seconds() < 0:
        errors.append(f"Invalid {label} '{raw}': must not be negative")


def _check_communicator(config: BuildConfig, errors: list[str]) -> None:
    communicator = config.communicator
    if communicator.type not in ALLOWED_COMMUNICATORS:
        allowed = ", ".join(sorted(ALLOWED_COMMUNICATORS))
        errors.append(f"Unsupported communicator '{communicator.type}'. Allowed: {allowed}.")
        return
    if communicator.type == "none":
        return

    if not 1 <= communicator.ssh_port <= 65535:
        errors.append(f"ssh_port must be between 1 and 65535. Got {communicator.ssh_port}.")
    if communicator.ssh_handshake_attempts < 1:
        errors.append(
            "ssh_handshake_attempts must be greater than zero. "
            f"Got {communicator.ssh_handshake_attempts}."
        )

    key_file = communicator.ssh_private_key_file
    if key_file:
        path = Path(key_file).expanduser()
        try:
            data = path.read_bytes()
        except OSError as exc:
            reason = exc.strerror or str(exc)
            errors.append(f"ssh_private_key_file: cannot read '{key_file}': {reason}")
            return
        try:
            load_signing_key(data)
        except SSHSetupError as exc:
            errors.append(f"ssh_private_key_file: invalid key in '{key_file}': {exc}")


def _check_instance_resources(config: BuildConfig, errors: list[str]) -> None:
    for label, value in (
        ("instance_cores", config.instance_cores),
        ("instance_mem_gb", config.instance_mem_gb),
        ("disk_size_gb", config.disk_size_gb),
    ):
        if value <= 0:
            errors.append(f"{label} must be greater than zero. Got {value}.")
    if config.instance_gpus < 0:
        errors.append(f"instance_gpus must not be negative. Got {config.instance_gpus}.")


def _check_serial_log(config: BuildConfig, errors: list[str]) -> None:
    if config.serial_log_file and Path(config.serial_log_file).expanduser().exists():
        errors.append(f"Serial log file {config.serial_log_file} already exists")


__all__ = ["IMAGE_FAMILY_PATTERN", "validate"]
