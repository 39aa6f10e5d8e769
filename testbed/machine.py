"""Remote machine lifecycle: connect, allocate ports, reset and destroy."""

from __future__ import annotations

import logging
import secrets
import shlex
import threading
from types import TracebackType

from testbed.constants import (
    DEFAULT_PROCESS_NAME,
    DEFAULT_SSH_PORT,
    DEFAULT_SSH_USERNAME,
    DIR_SUFFIX_BITS,
    MACHINE_ARTIFACT_PATTERN,
    MACHINE_HOME_PREFIX,
    MachineState,
)
from testbed.core.interfaces import MachineProvider, NodeMetadata
from testbed.exceptions import MachineClosedError, MachineSetupError
from testbed.ports import PortAllocator
from testbed.services.ssh import SSHSession

logger = logging.getLogger(__name__)


def new_dir_suffix() -> int:
    """Return a non-negative random suffix for a working directory name.

    Drawn from the operating system's CSPRNG, so machines provisioned
    concurrently on shared infrastructure do not collide.
    """
    return secrets.randbits(DIR_SUFFIX_BITS)


class Machine:
    """One usable remote execution environment backed by a cloud node.

    Construction opens an SSH session to the node and creates the machine's
    working directory; if either step fails, ``MachineSetupError`` is raised
    and no instance is returned. A machine is then ``READY`` until ``close``
    destroys the node.

    Parameters
    ----------
    provider : MachineProvider
        Provider that created the node
    node : NodeMetadata
        Metadata of the already-created node
    process_name : str
        Test runtime process terminated by ``reset`` (default: java)
    ssh_port : int
        SSH port on the node (default: 22)
    ssh_timeout : float | None
        SSH connect timeout, see ``SSHSession``

    Attributes
    ----------
    provider : MachineProvider
        Provider that created the node
    node : NodeMetadata
        Metadata of the backing node
    ports : PortAllocator
        Pool of the provider-granted inbound ports
    state : MachineState
        Current lifecycle state
    """

    def __init__(
        self,
        provider: MachineProvider,
        node: NodeMetadata,
        process_name: str = DEFAULT_PROCESS_NAME,
        ssh_port: int = DEFAULT_SSH_PORT,
        ssh_timeout: float | None = None,
    ) -> None:
        if not node.public_addresses:
            raise MachineSetupError(f"Node {node.id} has no public address")

        self.provider = provider
        self.node = node
        self.process_name = process_name
        self.ssh_port = ssh_port
        self.ssh_timeout = ssh_timeout
        self.state = MachineState.CREATED
        self._lock = threading.Lock()

        self.ports = PortAllocator(provider.available_inbound_ports())
        self._dir = f"{MACHINE_HOME_PREFIX}{new_dir_suffix()}"

        with self.connect() as ssh:
            try:
                result = ssh.execute_remote_command(f"mkdir -p {shlex.quote(self._dir)}")
            except ConnectionError as e:
                raise MachineSetupError(
                    f"Failed to create working directory {self._dir} on node {node.id}"
                ) from e

        if not result.ok:
            raise MachineSetupError(
                f"Failed to create working directory {self._dir} on node {node.id} "
                f"(exit code {result.exit_code}): {result.stderr.strip()}"
            )

        self.state = MachineState.READY
        logger.info("Machine ready on node %s (%s), dir=%s", node.id, self.public_ip_address, self._dir)

    @property
    def public_ip_address(self) -> str:
        """First public address of the node."""
        return self.node.public_addresses[0]

    @property
    def user(self) -> str:
        """Remote account, ``ubuntu`` when the provider supplied no credentials."""
        if self.node.credentials is None:
            return DEFAULT_SSH_USERNAME
        return self.node.credentials.user

    @property
    def dir(self) -> str:
        """Working directory of this machine on the node."""
        return self._dir

    def _ensure_open(self) -> None:
        if self.state == MachineState.CLOSED:
            raise MachineClosedError(f"Machine on node {self.node.id} is closed")

    def connect(self) -> SSHSession:
        """Open a new authenticated SSH session to the node.

        The caller owns the returned session and must close it.

        Returns
        -------
        SSHSession
            Open, authenticated session

        Raises
        ------
        MachineClosedError
            If the machine has been closed
        MachineSetupError
            If the session cannot be opened or authenticated
        """
        self._ensure_open()

        ssh = SSHSession(
            self.public_ip_address,
            self.user,
            port=self.ssh_port,
            timeout=self.ssh_timeout,
        )
        try:
            ssh.open()
            ssh.authenticate(self.provider.authenticator())
        except ConnectionError as e:
            ssh.close()
            raise MachineSetupError("Failed to create ssh connection") from e
        except BaseException:
            ssh.close()
            raise

        return ssh

    def get_next_available_port(self) -> int:
        """Take an inbound port no earlier call has returned.

        Returns
        -------
        int
            Port number granted by the provider

        Raises
        ------
        MachineClosedError
            If the machine has been closed
        PortPoolExhaustedError
            If every granted port has already been handed out
        """
        self._ensure_open()
        return self.ports.take()

    def reset(self) -> None:
        """Clean the node in place so it can serve another test run.

        Removes everything matching ``machine*`` from the login directory,
        terminates the test runtime processes and recreates the working
        directory. Finding no process to terminate is not an error. The port
        pool is not replenished.

        Raises
        ------
        MachineClosedError
            If the machine has been closed
        MachineSetupError
            If no session can be opened
        RemoteCommandError
            If the working directory cannot be removed or recreated
        SSHTransportError
            If the connection drops during cleanup
        """
        with self._lock:
            self._ensure_open()
            self.state = MachineState.RESETTING

        logger.info("Resetting node: %s", self.node.id)

        try:
            with self.connect() as ssh:
                ssh.execute_remote_command(f"rm -rf {MACHINE_ARTIFACT_PATTERN}").check()

                kill = ssh.execute_remote_command(f"killall {shlex.quote(self.process_name)}")
                if not kill.ok:
                    logger.error(
                        "Failed to kill %s processes: %s",
                        self.process_name,
                        kill.stderr.strip() or f"exit code {kill.exit_code}",
                    )

                ssh.execute_remote_command(f"mkdir -p {shlex.quote(self._dir)}").check()
        finally:
            with self._lock:
                if self.state == MachineState.RESETTING:
                    self.state = MachineState.READY

    def close(self) -> None:
        """Destroy the backing node.

        Terminal: later ``connect``, ``reset`` and ``get_next_available_port``
        calls raise ``MachineClosedError``. Calling ``close`` again is a no-op.
        If the provider fails to destroy the node the error propagates and the
        machine stays open, so the call can be retried.
        """
        with self._lock:
            if self.state == MachineState.CLOSED:
                logger.debug("Node %s already destroyed", self.node.id)
                return

            logger.info("Destroying node: %s", self.node.id)
            self.provider.destroy(self.node.id)
            self.state = MachineState.CLOSED

    def __enter__(self) -> Machine:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"Machine(node={self.node.id!r}, host={self.public_ip_address!r}, "
            f"dir={self._dir!r}, state={self.state.value!r})"
        )
