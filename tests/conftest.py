"""Pytest configuration helpers for the test suite."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519, rsa

from imagectl.interpolate import TemplateContext

FIXED_TIME = datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC)


@pytest.fixture(autouse=True)
def _isolate_credentials_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep credentials from the developer's shell out of every test."""
    for name in ("YC_TOKEN", "YC_SERVICE_ACCOUNT_KEY_FILE", "YC_FOLDER_ID", "IMAGECTL_LOG_DIR"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def raw_config() -> dict[str, object]:
    """Return a minimal build mapping that resolves without problems."""
    return {
        "token": "test_token",
        "folder_id": "hashicorp",
        "source_image_id": "foo",
        "ssh_username": "root",
        "image_family": "bar",
        "image_product_ids": ["test-license"],
        "zone": "ru-central1-a",
    }


@pytest.fixture
def fixed_context() -> TemplateContext:
    """Template context with a pinned clock and predictable UUIDs."""
    return TemplateContext(init_time=FIXED_TIME, uuid_factory=lambda: "0000-uuid")


@pytest.fixture(scope="session")
def rsa_private_pem() -> str:
    """PKCS#8 PEM encoded RSA private key."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")


@pytest.fixture(scope="session")
def openssh_private_key() -> bytes:
    """OpenSSH encoded Ed25519 private key."""
    key = ed25519.Ed25519PrivateKey.generate()
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.OpenSSH,
        encryption_algorithm=serialization.NoEncryption(),
    )


@pytest.fixture
def service_account_key_file(tmp_path: Path, rsa_private_pem: str) -> Path:
    """Write a service account key in the console's JSON layout."""
    path = tmp_path / "sa-key.json"
    path.write_text(
        json.dumps(
            {
                "id": "ajefake0000000000000",
                "service_account_id": "ajesa00000000000000",
                "created_at": "2024-01-02T03:04:05Z",
                "key_algorithm": "RSA_2048",
                "public_key": "-----BEGIN PUBLIC KEY-----\n-----END PUBLIC KEY-----\n",
                "private_key": rsa_private_pem,
            }
        ),
        encoding="utf-8",
    )
    return path
