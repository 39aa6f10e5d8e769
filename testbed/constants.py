"""Global constants for testbed.

This module contains library-wide constants used by the machine lifecycle,
the SSH session wrapper and the providers. Provider-specific values live in
the provider packages.
"""

from enum import Enum

BEGINNING_PORT = 20000
"""First port of the conventional inbound port range.

Providers that grant a contiguous range of inbound ports start counting
from here unless configured otherwise.
"""

DEFAULT_INBOUND_PORT_COUNT = 100
"""Number of inbound ports opened on a node by default.

Every call to ``Machine.get_next_available_port`` consumes one of these,
so test topologies that start many services need a larger grant.
"""

DEFAULT_SSH_USERNAME = "ubuntu"
"""Account used for SSH when the provider supplies no credentials."""

DEFAULT_SSH_PORT = 22
"""Port of the SSH daemon on provisioned nodes."""

DEFAULT_SSH_TIMEOUT_SECONDS = 30
"""Socket and handshake timeout for opening an SSH transport.

Overridable with the ``TESTBED_SSH_TIMEOUT`` environment variable.
"""

MACHINE_HOME_PREFIX = "./machine_home_"
"""Prefix of the per-machine working directory on the remote node."""

MACHINE_ARTIFACT_PATTERN = "machine*"
"""Shell glob matching everything ``reset`` removes from the login directory."""

DEFAULT_PROCESS_NAME = "java"
"""Name of the test runtime process terminated by ``reset``."""

MAX_COMMAND_LENGTH = 10000
"""Maximum length in characters for commands sent to a remote node.

Prevents extremely long commands that could cause issues with
shell argument parsing or remote system limitations.
"""

CHANNEL_READ_SIZE = 32768
"""Bytes read from a command channel per receive call."""

CHANNEL_POLL_INTERVAL_SECONDS = 0.01
"""Pause between polls of a command channel with no output ready."""

DIR_SUFFIX_BITS = 31
"""Bit width of the random working-directory suffix (non-negative int)."""

DEFAULT_REGION = "us-east-1"
"""Default cloud provider region for node provisioning."""

DEFAULT_PROVIDER = "aws"
"""Provider used when the configuration names none."""

WAITER_DELAY_SECONDS = 15
"""Delay between waiter polling attempts in seconds.

Used by AWS waiters when polling for resource state changes
(e.g., waiting for instance to reach 'running' state).
"""

WAITER_MAX_ATTEMPTS_SHORT = 20
"""Maximum number of attempts for short-duration waiter operations."""

WAITER_MAX_ATTEMPTS_LONG = 40
"""Maximum number of attempts for long-duration waiter operations.

Used for instance termination, which may take several minutes.
"""


class MachineState(str, Enum):
    """Lifecycle states of a ``Machine``."""

    CREATED = "created"
    READY = "ready"
    RESETTING = "resetting"
    CLOSED = "closed"
