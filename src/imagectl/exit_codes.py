"""Exit codes returned by the imagectl CLI."""
from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    """Well-known exit codes shared by every command."""

    OK = 0
    VALIDATION = 2
    ENVIRONMENT = 3
