"""AWS-specific utility functions for testbed."""

from __future__ import annotations

import os
from pathlib import Path


def tags_to_dict(tags: list[dict[str, str]] | None) -> dict[str, str]:
    """Convert an AWS ``[{"Key": k, "Value": v}]`` tag list to a dict."""
    return {tag["Key"]: tag["Value"] for tag in tags or []}


def get_keys_dir() -> Path:
    """Directory holding private keys of provisioned nodes.

    Honours ``TESTBED_DIR`` and defaults to ``~/.testbed``.
    """
    testbed_dir = os.environ.get("TESTBED_DIR", str(Path.home() / ".testbed"))
    return Path(testbed_dir).expanduser() / "keys"


def get_aws_credentials_error_message() -> str:
    """Get standard AWS credentials error message.

    Returns
    -------
    str
        Formatted AWS credentials error message
    """
    return (
        "Cloud credentials not found\n\n"
        "Configure your credentials:\n"
        "  aws configure\n\n"
        "Or set environment variables:\n"
        "  export AWS_ACCESS_KEY_ID=...\n"
        "  export AWS_SECRET_ACCESS_KEY=..."
    )
