"""SSH session management and remote command execution."""

from __future__ import annotations

import logging
import os
import socket
import time
from dataclasses import dataclass
from types import TracebackType

import paramiko

from testbed.constants import (
    CHANNEL_POLL_INTERVAL_SECONDS,
    CHANNEL_READ_SIZE,
    DEFAULT_SSH_PORT,
    DEFAULT_SSH_TIMEOUT_SECONDS,
    MAX_COMMAND_LENGTH,
)
from testbed.core.interfaces import Authenticator
from testbed.exceptions import RemoteCommandError, SSHTransportError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a command that ran on a remote host.

    Attributes
    ----------
    command : str
        Command as sent to the host
    exit_code : int
        Remote exit status (0 = success)
    stdout : str
        Captured standard output
    stderr : str
        Captured standard error
    """

    command: str
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        """Whether the command exited with status 0."""
        return self.exit_code == 0

    def check(self) -> CommandResult:
        """Return self, or raise if the command failed.

        Raises
        ------
        RemoteCommandError
            If the exit status is non-zero
        """
        if not self.ok:
            raise RemoteCommandError(self)
        return self


class KeyFileAuthenticator:
    """Public-key authentication from a private key file.

    Parameters
    ----------
    key_file : str
        Path to the private key file
    passphrase : str | None
        Passphrase protecting the key, if any
    """

    def __init__(self, key_file: str, passphrase: str | None = None) -> None:
        self.key_file = key_file
        self.passphrase = passphrase

    def authenticate(self, transport: paramiko.Transport, username: str) -> None:
        key = paramiko.PKey.from_path(self.key_file, self.passphrase)
        transport.auth_publickey(username, key)

    def __repr__(self) -> str:
        return f"KeyFileAuthenticator(key_file={self.key_file!r})"


class PasswordAuthenticator:
    """Password authentication."""

    def __init__(self, password: str) -> None:
        self._password = password

    def authenticate(self, transport: paramiko.Transport, username: str) -> None:
        transport.auth_password(username, self._password)


class SSHSession:
    """Authenticated command channel to a single remote host.

    A session is meant to serve one logical operation: open it, authenticate
    it, run commands, close it. Nothing is pooled or reused across sessions.

    Parameters
    ----------
    host : str
        Remote host IP address or hostname
    username : str
        Remote account to log in as
    port : int
        SSH port (default: 22)
    timeout : float | None
        Connect and handshake timeout in seconds. Defaults to
        ``TESTBED_SSH_TIMEOUT`` or 30 seconds.

    Attributes
    ----------
    host : str
        Remote host IP address or hostname
    username : str
        Remote account
    port : int
        SSH port
    timeout : float
        Connect and handshake timeout in seconds
    transport : paramiko.Transport | None
        Underlying transport (None when not open)
    """

    def __init__(
        self,
        host: str,
        username: str,
        port: int = DEFAULT_SSH_PORT,
        timeout: float | None = None,
    ) -> None:
        self.host = host
        self.username = username
        self.port = port
        if timeout is None:
            timeout = float(
                os.environ.get("TESTBED_SSH_TIMEOUT", str(DEFAULT_SSH_TIMEOUT_SECONDS))
            )
        self.timeout = timeout
        self.transport: paramiko.Transport | None = None

    def open(self) -> SSHSession:
        """Connect to the host and complete the SSH handshake.

        Returns
        -------
        SSHSession
            This session, for chaining

        Raises
        ------
        SSHTransportError
            If the host is unreachable or the handshake fails
        """
        logger.debug("Opening SSH transport to %s@%s:%s", self.username, self.host, self.port)

        try:
            sock = socket.create_connection((self.host, self.port), timeout=self.timeout)
        except OSError as e:
            raise SSHTransportError(
                f"Failed to connect to {self.host}:{self.port}: {e}"
            ) from e

        try:
            transport = paramiko.Transport(sock)
            transport.start_client(timeout=self.timeout)
        except (paramiko.SSHException, OSError) as e:
            sock.close()
            raise SSHTransportError(
                f"SSH handshake with {self.host}:{self.port} failed: {e}"
            ) from e

        self.transport = transport
        return self

    def authenticate(self, authenticator: Authenticator) -> SSHSession:
        """Apply ``authenticator`` to the open transport.

        Parameters
        ----------
        authenticator : Authenticator
            Capability that knows how to log in

        Returns
        -------
        SSHSession
            This session, for chaining

        Raises
        ------
        RuntimeError
            If the session is not open
        SSHTransportError
            If authentication is rejected or the key cannot be loaded
        """
        if self.transport is None:
            raise RuntimeError("SSH transport not open")

        try:
            authenticator.authenticate(self.transport, self.username)
        except (
            paramiko.SSHException,
            paramiko.pkey.UnknownKeyType,
            OSError,
            ValueError,
        ) as e:
            raise SSHTransportError(
                f"SSH authentication as {self.username}@{self.host} failed: {e}"
            ) from e

        if not self.transport.is_authenticated():
            raise SSHTransportError(
                f"SSH authentication as {self.username}@{self.host} was not accepted"
            )

        return self

    def execute_remote_command(self, command: str) -> CommandResult:
        """Run ``command`` on the host and wait for it to finish.

        A non-zero exit status is reported in the result, not raised.

        Parameters
        ----------
        command : str
            Shell command to execute

        Returns
        -------
        CommandResult
            Exit status and captured output

        Raises
        ------
        ValueError
            If command is empty or exceeds maximum length
        RuntimeError
            If the session is not open
        SSHTransportError
            If the connection fails while running the command
        """
        if not command or not command.strip():
            raise ValueError("Command cannot be empty")

        if len(command) > MAX_COMMAND_LENGTH:
            raise ValueError(
                f"Command length ({len(command)}) exceeds maximum of {MAX_COMMAND_LENGTH} characters"
            )

        if self.transport is None:
            raise RuntimeError("SSH transport not open")

        logger.debug("Executing on %s: %s", self.host, command)

        channel = None
        try:
            channel = self.transport.open_session(timeout=self.timeout)
            channel.exec_command(command)
            stdout, stderr = self._drain(channel)
            exit_code = channel.recv_exit_status()
            if exit_code < 0:
                raise EOFError("channel closed without an exit status")
        except (paramiko.SSHException, OSError, EOFError) as e:
            raise SSHTransportError(
                f"Connection to {self.host} failed while running {command!r}: {e}"
            ) from e
        finally:
            if channel is not None:
                channel.close()

        self._log_output(stdout, "stdout")
        self._log_output(stderr, "stderr")

        return CommandResult(
            command=command, exit_code=exit_code, stdout=stdout, stderr=stderr
        )

    @staticmethod
    def _drain(channel: paramiko.Channel) -> tuple[str, str]:
        """Read stdout and stderr together until the command has exited.

        Both streams share the channel window, so neither may be left unread
        while waiting on the other.
        """
        stdout_chunks: list[bytes] = []
        stderr_chunks: list[bytes] = []

        while True:
            received = False

            if channel.recv_ready():
                stdout_chunks.append(channel.recv(CHANNEL_READ_SIZE))
                received = True

            if channel.recv_stderr_ready():
                stderr_chunks.append(channel.recv_stderr(CHANNEL_READ_SIZE))
                received = True

            if received:
                continue

            if channel.exit_status_ready():
                break

            time.sleep(CHANNEL_POLL_INTERVAL_SECONDS)

        return (
            b"".join(stdout_chunks).decode("utf-8", errors="replace"),
            b"".join(stderr_chunks).decode("utf-8", errors="replace"),
        )

    def _log_output(self, output: str, stream_type: str) -> None:
        for line in output.splitlines():
            logger.debug("%s", line, extra={"stream": stream_type})

    @property
    def is_open(self) -> bool:
        """Whether the underlying transport is connected."""
        return self.transport is not None and self.transport.is_active()

    def close(self) -> None:
        """Close the transport and release the socket."""
        if self.transport is not None:
            self.transport.close()
            self.transport = None

    def __enter__(self) -> SSHSession:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
