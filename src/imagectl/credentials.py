"""Credential material for the Yandex Cloud provider driver."""
from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization

from .models import BuildConfig

REQUIRED_KEY_FIELDS = ("id", "service_account_id", "private_key")
_PEM_BEGIN = "-----BEGIN"


class CredentialError(RuntimeError):
    """Raised when credential material cannot be loaded."""


@dataclass(frozen=True)
class ServiceAccountKey:
    """Authorized key issued for a service account."""

    id: str
    service_account_id: str
    private_key: str
    key_algorithm: str = ""
    public_key: str = ""
    created_at: str = ""

    def to_sdk_dict(self) -> dict[str, str]:
        """Return the mapping accepted by the SDK's ``service_account_key`` argument."""
        return {
            "id": self.id,
            "service_account_id": self.service_account_id,
            "private_key": self.private_key,
        }


def read_service_account_key(path: str | Path) -> ServiceAccountKey:
    """Load and check the service account key stored at *path*."""
    key_path = Path(path).expanduser()
    try:
        text = key_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        reason = getattr(exc, "strerror", None) or str(exc)
        raise CredentialError(f"cannot read service account key file '{path}': {reason}") from exc
    if not text.strip():
        raise CredentialError(f"service account key file '{path}' is empty")

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise CredentialError(
            f"service account key file '{path}' is not valid JSON: {exc}"
        ) from exc
    if not isinstance(payload, Mapping):
        raise CredentialError(f"service account key file '{path}' must contain a JSON object")

    missing = [
        name
        for name in REQUIRED_KEY_FIELDS
        if not isinstance(payload.get(name), str) or not payload.get(name)
    ]
    if missing:
        joined = ", ".join(missing)
        raise CredentialError(f"service account key file '{path}' is missing fields: {joined}")

    private_key = str(payload["private_key"])
    try:
        _load_private_key(private_key)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise CredentialError(
            f"service account key file '{path}' holds an invalid private key: {exc}"
        ) from exc

    return ServiceAccountKey(
        id=str(payload["id"]),
        service_account_id=str(payload["service_account_id"]),
        private_key=private_key,
        key_algorithm=str(payload.get("key_algorithm", "")),
        public_key=str(payload.get("public_key", "")),
        created_at=str(payload.get("created_at", "")),
    )


def sdk_credentials(config: BuildConfig) -> dict[str, object]:
    """Return keyword arguments that authenticate the provider SDK."""
    if config.token:
        return {"token": config.token}
    if config.service_account_key_file:
        key = read_service_account_key(config.service_account_key_file)
        return {"service_account_key": key.to_sdk_dict()}
    raise CredentialError("neither token nor service_account_key_file is configured")


def _load_private_key(text: str) -> object:
    # Keys issued by the console may carry a banner line before the PEM block.
    start = text.find(_PEM_BEGIN)
    if start < 0:
        raise ValueError("no PEM block found")
    return serialization.load_pem_private_key(text[start:].encode("utf-8"), password=None)


__all__ = [
    "CredentialError",
    "ServiceAccountKey",
    "read_service_account_key",
    "sdk_credentials",
]
