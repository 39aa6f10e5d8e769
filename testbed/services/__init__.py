"""Remote services used by testbed machines."""

from testbed.services.ssh import (
    CommandResult,
    KeyFileAuthenticator,
    PasswordAuthenticator,
    SSHSession,
)

__all__ = [
    "CommandResult",
    "KeyFileAuthenticator",
    "PasswordAuthenticator",
    "SSHSession",
]
