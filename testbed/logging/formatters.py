"""Logging formatters and filters for remote command output."""

from __future__ import annotations

import logging
import sys

QUIET_LOGGERS = ("botocore", "boto3", "urllib3", "paramiko")


class StreamFormatter(logging.Formatter):
    """Logging formatter that prepends stream tags based on extra parameter."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with stream prefix if present.

        Parameters
        ----------
        record : logging.LogRecord
            Log record to format

        Returns
        -------
        str
            Formatted log message with optional stream prefix
        """
        msg = super().format(record)
        stream = getattr(record, "stream", None)

        if stream == "stdout":
            return f"[stdout] {msg}"
        elif stream == "stderr":
            return f"[stderr] {msg}"

        return msg


class StreamRoutingFilter(logging.Filter):
    """Route records to a handler by the remote stream they came from.

    Records tagged ``stream="stderr"`` and records at WARNING or above go to
    the stderr handler; everything else goes to the stdout handler.

    Parameters
    ----------
    target : str
        Either "stdout" or "stderr"
    """

    def __init__(self, target: str) -> None:
        super().__init__()
        if target not in ("stdout", "stderr"):
            raise ValueError(f"Unknown stream target: {target}")
        self.target = target

    def filter(self, record: logging.LogRecord) -> bool:
        to_stderr = (
            getattr(record, "stream", None) == "stderr"
            or record.levelno >= logging.WARNING
        )
        return to_stderr if self.target == "stderr" else not to_stderr


def configure_logging(level: int = logging.INFO, fmt: str = "%(message)s") -> None:
    """Install stdout/stderr handlers on the root logger.

    Third-party loggers (boto, urllib3, paramiko) are limited to WARNING.

    Parameters
    ----------
    level : int
        Root logger level (default: INFO)
    fmt : str
        Format string passed to ``StreamFormatter``
    """
    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(StreamFormatter(fmt))
    stdout_handler.addFilter(StreamRoutingFilter("stdout"))

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(StreamFormatter(fmt))
    stderr_handler.addFilter(StreamRoutingFilter("stderr"))

    logging.basicConfig(
        level=level,
        handlers=[stdout_handler, stderr_handler],
        force=True,
    )

    for module in QUIET_LOGGERS:
        logging.getLogger(module).setLevel(logging.WARNING)
