"""Fake SSHSession backed by a scripted remote host."""

from __future__ import annotations

from typing import Any

from testbed.exceptions import SSHTransportError
from testbed.services.ssh import CommandResult


class FakeRemoteHost:
    """Scripted remote host shared by every session opened against it.

    Attributes
    ----------
    commands : list[str]
        Every command executed, across sessions, in order
    sessions : list[FakeSSHSession]
        Sessions created through ``session_factory``
    exit_codes : dict[str, int]
        Exit code for commands starting with the given prefix (default 0)
    stderr : dict[str, str]
        Standard error for commands starting with the given prefix
    drop_connection_on : set[str]
        Command prefixes that fail with a transport error
    refuse_connections : bool
        Make ``open`` fail
    reject_auth : bool
        Make ``authenticate`` fail
    """

    def __init__(self) -> None:
        self.commands: list[str] = []
        self.sessions: list[FakeSSHSession] = []
        self.exit_codes: dict[str, int] = {}
        self.stderr: dict[str, str] = {}
        self.drop_connection_on: set[str] = set()
        self.refuse_connections = False
        self.reject_auth = False

    def session_factory(
        self,
        host: str,
        username: str,
        port: int = 22,
        timeout: float | None = None,
    ) -> FakeSSHSession:
        session = FakeSSHSession(self, host, username, port, timeout)
        self.sessions.append(session)
        return session

    def _lookup(self, table: dict[str, Any], command: str, default: Any) -> Any:
        for prefix, value in table.items():
            if command.startswith(prefix):
                return value
        return default


class FakeSSHSession:
    """Stand-in for ``SSHSession`` that never touches the network."""

    def __init__(
        self,
        remote: FakeRemoteHost,
        host: str,
        username: str,
        port: int = 22,
        timeout: float | None = None,
    ) -> None:
        self.remote = remote
        self.host = host
        self.username = username
        self.port = port
        self.timeout = timeout
        self.opened = False
        self.closed = False
        self.authenticator: Any = None

    def open(self) -> FakeSSHSession:
        if self.remote.refuse_connections:
            raise SSHTransportError(f"Failed to connect to {self.host}:{self.port}")
        self.opened = True
        return self

    def authenticate(self, authenticator: Any) -> FakeSSHSession:
        if self.remote.reject_auth:
            raise SSHTransportError(f"SSH authentication as {self.username} failed")
        authenticator.authenticate(self, self.username)
        self.authenticator = authenticator
        return self

    def execute_remote_command(self, command: str) -> CommandResult:
        if not self.opened or self.closed:
            raise RuntimeError("SSH transport not open")

        self.remote.commands.append(command)

        if any(command.startswith(prefix) for prefix in self.remote.drop_connection_on):
            raise SSHTransportError(f"Connection to {self.host} lost")

        return CommandResult(
            command=command,
            exit_code=self.remote._lookup(self.remote.exit_codes, command, 0),
            stderr=self.remote._lookup(self.remote.stderr, command, ""),
        )

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> FakeSSHSession:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
