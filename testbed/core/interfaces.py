"""Collaborator interfaces consumed by the machine lifecycle.

A ``Machine`` never talks to a cloud SDK directly. It relies on a provider
for node destruction, the granted inbound ports and an authenticator, and on
read-only node metadata the provider produced when it created the node.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class NodeCredentials:
    """Login identity for a node.

    Attributes
    ----------
    user : str
        Remote account name
    private_key_file : str | None
        Path to the private key matching the node's authorized key
    password : str | None
        Password, for providers that hand out password logins
    """

    user: str
    private_key_file: str | None = None
    password: str | None = field(default=None, repr=False)


@dataclass(frozen=True)
class NodeMetadata:
    """Provider-assigned description of a cloud node.

    Attributes
    ----------
    id : str
        Provider node identifier (e.g. an EC2 instance ID)
    public_addresses : tuple[str, ...]
        Public network addresses, most preferred first
    credentials : NodeCredentials | None
        Login credentials, or None if the provider supplies none
    status : str
        Provider lifecycle status (e.g. "running")
    tags : dict[str, str]
        Provider tags attached to the node
    """

    id: str
    public_addresses: tuple[str, ...]
    credentials: NodeCredentials | None = None
    status: str = "running"
    tags: dict[str, str] = field(default_factory=dict, compare=False)


@runtime_checkable
class Authenticator(Protocol):
    """Capability that applies authentication to an open SSH transport."""

    def authenticate(self, transport: Any, username: str) -> None:
        """Authenticate ``transport`` as ``username``.

        Raises
        ------
        paramiko.AuthenticationException
            If the server rejects the credentials
        """
        ...


@runtime_checkable
class MachineProvider(Protocol):
    """Cloud-side collaborator backing a ``Machine``."""

    def available_inbound_ports(self) -> list[int]:
        """Return the inbound ports the cloud provider opened for nodes."""
        ...

    def authenticator(self) -> Authenticator:
        """Return the authenticator for SSH sessions to this provider's nodes."""
        ...

    def destroy(self, node_id: str) -> None:
        """Destroy the node identified by ``node_id``."""
        ...
