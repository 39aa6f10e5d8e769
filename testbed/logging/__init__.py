"""Logging helpers for testbed."""

from testbed.logging.formatters import (
    StreamFormatter,
    StreamRoutingFilter,
    configure_logging,
)

__all__ = ["StreamFormatter", "StreamRoutingFilter", "configure_logging"]
