"""imagectl package bootstrap.

Resolution and validation of Yandex Cloud image build configurations.
"""
from __future__ import annotations

__all__ = ["__version__"]

# NOTE: The version is duplicated in ``pyproject.toml``.
__version__ = "0.1.0"
