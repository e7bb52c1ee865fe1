"""Resolved build configuration types and their static defaults."""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path

from .durations import parse_duration

IMAGE_NAME_PREFIX = "packer-"
DEFAULT_IMAGE_NAME_TEMPLATE = IMAGE_NAME_PREFIX + "{{ timestamp }}"
DEFAULT_PLATFORM_ID = "standard-v1"
DEFAULT_GPU_PLATFORM_ID = "gpu-standard-v1"
STANDARD_IMAGES_FOLDER_ID = "standard-images"
ALLOWED_COMMUNICATORS = {"ssh", "none"}

TOKEN_ENV_VAR = "YC_TOKEN"
SERVICE_ACCOUNT_KEY_FILE_ENV_VAR = "YC_SERVICE_ACCOUNT_KEY_FILE"
FOLDER_ID_ENV_VAR = "YC_FOLDER_ID"

# Static defaults keyed by build file key. Derived defaults (platform_id,
# image_min_disk_size_gb, disk_name, image_name) live in ``defaults.py``.
DEFAULTS: dict[str, object] = {
    "endpoint": "api.cloud.yandex.net:443",
    "zone": "ru-central1-a",
    "instance_cores": 2,
    "instance_mem_gb": 4,
    "instance_gpus": 0,
    "disk_size_gb": 10,
    "disk_type": "network-hdd",
    "image_description": "Created by Packer",
    "source_image_folder_id": STANDARD_IMAGES_FOLDER_ID,
    "target_image_folder_id": "hashicorp",
    "state_timeout": "5m",
    "use_ipv4_nat": False,
    "use_ipv6": False,
    "use_internal_ip": False,
    "communicator": "ssh",
    "ssh_port": 22,
    "ssh_timeout": "5m",
    "ssh_handshake_attempts": 10,
    "ssh_pty": False,
    "ssh_agent_auth": False,
}


class ConfigError(RuntimeError):
    """Raised when a build configuration cannot be loaded or resolved."""


class ConfigErrors(ConfigError):
    """Aggregate of every problem found while resolving one build file."""

    def __init__(self, errors: Iterable[str]) -> None:
        self.errors: tuple[str, ...] = tuple(errors)
        super().__init__(self._format())

    def _format(self) -> str:
        lines = [f"{len(self.errors)} error(s) occurred:", ""]
        lines.extend(f"* {message}" for message in self.errors)
        return "\n".join(lines)


@dataclass(frozen=True)
class CommunicatorConfig:
    """Remote-login settings handed to the SSH setup."""

    type: str = "ssh"
    ssh_host: str = ""
    ssh_port: int = 22
    ssh_username: str = ""
    ssh_password: str = ""
    ssh_private_key_file: str = ""
    ssh_timeout: str = "5m"
    ssh_handshake_attempts: int = 10
    ssh_pty: bool = False
    ssh_agent_auth: bool = False

    @property
    def timeout(self) -> timedelta:
        """Return ``ssh_timeout`` as a :class:`~datetime.timedelta`."""
        return parse_duration(self.ssh_timeout)

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "type": self.type,
            "ssh_host": self.ssh_host,
            "ssh_port": self.ssh_port,
            "ssh_username": self.ssh_username,
            "ssh_password": "<sensitive>" if self.ssh_password else "",
            "ssh_private_key_file": self.ssh_private_key_file,
            "ssh_timeout": self.ssh_timeout,
            "ssh_handshake_attempts": self.ssh_handshake_attempts,
            "ssh_pty": self.ssh_pty,
            "ssh_agent_auth": self.ssh_agent_auth,
        }


@dataclass(frozen=True)
class BuildConfig:
    """Fully resolved configuration for one image build."""

    endpoint: str
    token: str
    service_account_key_file: str
    folder_id: str
    zone: str
    platform_id: str
    instance_cores: int
    instance_mem_gb: int
    instance_gpus: int
    instance_name: str
    disk_name: str
    disk_size_gb: int
    disk_type: str
    subnet_id: str
    use_ipv4_nat: bool
    use_ipv6: bool
    use_internal_ip: bool
    source_image_id: str
    source_image_family: str
    source_image_folder_id: str
    image_name: str
    image_description: str
    image_family: str | None
    image_min_disk_size_gb: int
    target_image_folder_id: str
    serial_log_file: str
    state_timeout: str
    communicator: CommunicatorConfig
    labels: Mapping[str, str] = field(default_factory=dict)
    image_labels: Mapping[str, str] = field(default_factory=dict)
    image_product_ids: tuple[str, ...] = ()
    metadata: Mapping[str, str] = field(default_factory=dict)
    metadata_from_file: Mapping[str, Path] = field(default_factory=dict)

    @property
    def state_timeout_delta(self) -> timedelta:
        """Return ``state_timeout`` as a :class:`~datetime.timedelta`."""
        return parse_duration(self.state_timeout)

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serialisable representation with secrets masked."""
        return {
            "endpoint": self.endpoint,
            "token": "<sensitive>" if self.token else "",
            "service_account_key_file": self.service_account_key_file,
            "folder_id": self.folder_id,
            "zone": self.zone,
            "platform_id": self.platform_id,
            "instance_cores": self.instance_cores,
            "instance_mem_gb": self.instance_mem_gb,
            "instance_gpus": self.instance_gpus,
            "instance_name": self.instance_name,
            "labels": dict(self.labels),
            "disk_name": self.disk_name,
            "disk_size_gb": self.disk_size_gb,
            "disk_type": self.disk_type,
            "subnet_id": self.subnet_id,
            "use_ipv4_nat": self.use_ipv4_nat,
            "use_ipv6": self.use_ipv6,
            "use_internal_ip": self.use_internal_ip,
            "source_image_id": self.source_image_id,
            "source_image_family": self.source_image_family,
            "source_image_folder_id": self.source_image_folder_id,
            "image_name": self.image_name,
            "image_description": self.image_description,
            "image_family": self.image_family,
            "image_labels": dict(self.image_labels),
            "image_min_disk_size_gb": self.image_min_disk_size_gb,
            "image_product_ids": list(self.image_product_ids),
            "target_image_folder_id": self.target_image_folder_id,
            "metadata": dict(self.metadata),
            "metadata_from_file": {
                key: str(path) for key, path in self.metadata_from_file.items()
            },
            "serial_log_file": self.serial_log_file,
            "state_timeout": self.state_timeout,
            "communicator": self.communicator.to_dict(),
        }


__all__ = [
    "ALLOWED_COMMUNICATORS",
    "BuildConfig",
    "CommunicatorConfig",
    "ConfigError",
    "ConfigErrors",
    "DEFAULTS",
    "DEFAULT_GPU_PLATFORM_ID",
    "DEFAULT_IMAGE_NAME_TEMPLATE",
    "DEFAULT_PLATFORM_ID",
    "IMAGE_NAME_PREFIX",
    "STANDARD_IMAGES_FOLDER_ID",
]
