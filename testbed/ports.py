"""Thread-safe inbound port pool for a single machine."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable

from testbed.constants import BEGINNING_PORT, DEFAULT_INBOUND_PORT_COUNT
from testbed.exceptions import PortPoolExhaustedError

logger = logging.getLogger(__name__)

MAX_PORT = 65535


def inbound_port_range(
    start: int = BEGINNING_PORT, count: int = DEFAULT_INBOUND_PORT_COUNT
) -> list[int]:
    """Build the conventional contiguous inbound port list.

    Parameters
    ----------
    start : int
        First port in the range (default: 20000)
    count : int
        Number of ports in the range

    Returns
    -------
    list[int]
        Ports ``start`` through ``start + count - 1``

    Raises
    ------
    ValueError
        If count is negative or the range leaves the valid port space
    """
    if count < 0:
        raise ValueError(f"Port count must be non-negative, got {count}")

    if count and (start < 1 or start + count - 1 > MAX_PORT):
        raise ValueError(
            f"Port range {start}-{start + count - 1} is outside 1-{MAX_PORT}"
        )

    return list(range(start, start + count))


class PortAllocator:
    """Pool of provider-granted ports handed out at most once each.

    Ports are loaded in order and taken from the end (last in, first out).
    There is no release operation: a port, once taken, is never returned
    by this instance again.

    Parameters
    ----------
    ports : Iterable[int]
        Ordered port numbers granted by the provider

    Attributes
    ----------
    granted : tuple[int, ...]
        Ports the pool was seeded with, in their original order
    _available : list[int]
        Ports not yet handed out
    _lock : threading.Lock
        Protects concurrent access to the pool
    """

    def __init__(self, ports: Iterable[int]) -> None:
        available: list[int] = []
        seen: set[int] = set()

        for port in ports:
            if isinstance(port, bool) or not isinstance(port, int):
                raise ValueError(f"Port must be an integer, got {port!r}")
            if not 1 <= port <= MAX_PORT:
                raise ValueError(f"Port {port} is outside 1-{MAX_PORT}")
            if port in seen:
                raise ValueError(f"Duplicate port {port} in granted ports")
            seen.add(port)
            available.append(port)

        self.granted = tuple(available)
        self._available = available
        self._lock = threading.Lock()

    def take(self) -> int:
        """Take the next available port.

        Returns
        -------
        int
            A port that has not been handed out before

        Raises
        ------
        PortPoolExhaustedError
            If every granted port has already been taken
        """
        with self._lock:
            if not self._available:
                raise PortPoolExhaustedError(
                    f"No more free inbound ports ({len(self.granted)} granted, all taken)"
                )

            port = self._available.pop()
            logger.debug("Allocated port %s", port)
            return port

    @property
    def remaining(self) -> int:
        """Number of ports still available."""
        with self._lock:
            return len(self._available)

    def __len__(self) -> int:
        return self.remaining
