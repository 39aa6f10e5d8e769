"""Core testbed functionality."""

from __future__ import annotations

from testbed.core.interfaces import (
    Authenticator,
    MachineProvider,
    NodeCredentials,
    NodeMetadata,
)

__all__ = [
    "Authenticator",
    "MachineProvider",
    "NodeCredentials",
    "NodeMetadata",
]
