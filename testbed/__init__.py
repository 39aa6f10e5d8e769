"""Testbed - ephemeral remote machines for automated test runs."""

from testbed.core.interfaces import (
    Authenticator,
    MachineProvider,
    NodeCredentials,
    NodeMetadata,
)
from testbed.exceptions import (
    MachineClosedError,
    MachineError,
    MachineSetupError,
    PortPoolExhaustedError,
    RemoteCommandError,
    SSHTransportError,
)
from testbed.machine import Machine
from testbed.ports import PortAllocator, inbound_port_range
from testbed.services.ssh import (
    CommandResult,
    KeyFileAuthenticator,
    PasswordAuthenticator,
    SSHSession,
)

__version__ = "0.1.0"

__all__ = [
    "Authenticator",
    "CommandResult",
    "KeyFileAuthenticator",
    "Machine",
    "MachineClosedError",
    "MachineError",
    "MachineProvider",
    "MachineSetupError",
    "NodeCredentials",
    "NodeMetadata",
    "PasswordAuthenticator",
    "PortAllocator",
    "PortPoolExhaustedError",
    "RemoteCommandError",
    "SSHSession",
    "SSHTransportError",
    "inbound_port_range",
]
