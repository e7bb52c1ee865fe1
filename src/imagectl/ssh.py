"""Connection parameters for reaching a provisioned instance over SSH.

Only the address and credential pair are prepared here; the handshake itself
belongs to the communicator that consumes :class:`SSHClientConfig`.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization

from .durations import DurationError
from .models import BuildConfig


class SSHSetupError(RuntimeError):
    """Raised when SSH connection parameters cannot be prepared."""


@dataclass(frozen=True)
class SSHClientConfig:
    """User, authentication material and limits for one SSH connection."""

    username: str
    signer: object | None
    password: str
    timeout: timedelta
    handshake_attempts: int
    pty: bool = False
    agent_auth: bool = False


def ssh_address(host: str, config: BuildConfig) -> tuple[str, int]:
    """Return the ``(host, port)`` pair for the instance reachable at *host*.

    ``ssh_host`` from the build file takes precedence over the runtime address.
    """
    target = config.communicator.ssh_host or host
    if not target:
        raise SSHSetupError("Error setting up SSH config: instance address is unknown")
    return target, config.communicator.ssh_port


def ssh_client_config(
    config: BuildConfig,
    private_key: str | bytes | None = None,
) -> SSHClientConfig:
    """Build the client settings for *config*.

    *private_key* is the key material generated for this build; when omitted
    the ``ssh_private_key_file`` from the build file is read instead.
    """
    communicator = config.communicator
    if not communicator.ssh_username:
        raise SSHSetupError("Error setting up SSH config: ssh_username is not set")

    if private_key is None and communicator.ssh_private_key_file:
        path = Path(communicator.ssh_private_key_file).expanduser()
        try:
            private_key = path.read_bytes()
        except OSError as exc:
            raise SSHSetupError(
                f"Error setting up SSH config: cannot read '{path}': {exc.strerror or exc}"
            ) from exc

    signer: object | None = None
    if private_key is not None:
        data = private_key.encode("utf-8") if isinstance(private_key, str) else private_key
        try:
            signer = load_signing_key(data)
        except SSHSetupError as exc:
            raise SSHSetupError(f"Error setting up SSH config: {exc}") from exc
    elif not communicator.ssh_password and not communicator.ssh_agent_auth:
        raise SSHSetupError(
            "Error setting up SSH config: no private key, password or agent auth configured"
        )

    try:
        timeout = communicator.timeout
    except DurationError as exc:
        raise SSHSetupError(f"Error setting up SSH config: {exc}") from exc

    return SSHClientConfig(
        username=communicator.ssh_username,
        signer=signer,
        password=communicator.ssh_password,
        timeout=timeout,
        handshake_attempts=communicator.ssh_handshake_attempts,
        pty=communicator.ssh_pty,
        agent_auth=communicator.ssh_agent_auth,
    )


def load_signing_key(data: bytes) -> object:
    """Parse *data* as an OpenSSH or PEM private key."""
    if not data.strip():
        raise SSHSetupError("private key is empty")
    try:
        return serialization.load_ssh_private_key(data, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm):
        pass
    try:
        return serialization.load_pem_private_key(data, password=None)
    except TypeError as exc:
        raise SSHSetupError("private key is encrypted; passphrases are not supported") from exc
    except (ValueError, UnsupportedAlgorithm) as exc:
        raise SSHSetupError(f"failed to parse private key: {exc}") from exc


__all__ = ["SSHClientConfig", "SSHSetupError", "load_signing_key", "ssh_address", "ssh_client_config"]
