"""Exception hierarchy for machine lifecycle operations."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from testbed.services.ssh import CommandResult


class MachineError(Exception):
    """Base class for all machine lifecycle errors."""


class MachineSetupError(MachineError):
    """A session could not be opened or the working directory not created."""


class PortPoolExhaustedError(MachineError, LookupError):
    """No more free inbound ports remain on a machine.

    Signals that the test topology asked for more ports than the provider
    granted, not a transient condition.
    """


class MachineClosedError(MachineError, RuntimeError):
    """Operation attempted on a machine whose node was already destroyed."""


class SSHTransportError(MachineError, ConnectionError):
    """SSH connection, handshake or authentication failed."""


class RemoteCommandError(MachineError):
    """Remote command ran but finished with a non-zero exit status.

    Parameters
    ----------
    result : CommandResult
        Result of the failed command

    Attributes
    ----------
    result : CommandResult
        Result of the failed command
    """

    def __init__(self, result: CommandResult) -> None:
        self.result = result
        message = (
            f"Remote command {result.command!r} failed with exit code "
            f"{result.exit_code}"
        )
        stderr = result.stderr.strip()
        if stderr:
            message = f"{message}: {stderr}"
        super().__init__(message)
