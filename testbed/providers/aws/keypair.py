"""SSH key pairs for EC2 nodes."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from testbed.providers.aws.constants import NAME_PREFIX
from testbed.providers.aws.errors import handle_aws_errors
from testbed.providers.aws.utils import get_keys_dir
from testbed.providers.exceptions import ProviderAPIError

logger = logging.getLogger(__name__)


class KeyPairManager:
    """Create and delete EC2 key pairs and their private key files."""

    def __init__(self, ec2_client: Any, region: str) -> None:
        self.ec2_client = ec2_client
        self.region = region

    @staticmethod
    def key_name(unique_id: str) -> str:
        return f"{NAME_PREFIX}-{unique_id}"

    @staticmethod
    def key_file(unique_id: str) -> Path:
        return get_keys_dir() / f"{unique_id}.pem"

    def create_key_pair(self, unique_id: str) -> tuple[str, Path]:
        """Create SSH key pair and save the private key to disk.

        Parameters
        ----------
        unique_id : str
            Unique identifier to use in key name

        Returns
        -------
        tuple[str, Path]
            Tuple of (key_name, key_file_path)
        """
        key_name = self.key_name(unique_id)

        with handle_aws_errors():
            response = self.ec2_client.create_key_pair(KeyName=key_name)

        key_file = self.key_file(unique_id)
        key_file.parent.mkdir(parents=True, exist_ok=True)
        key_file.write_text(response["KeyMaterial"])
        key_file.chmod(0o600)

        logger.debug("Created key pair %s at %s", key_name, key_file)
        return key_name, key_file

    def delete_key_pair(self, unique_id: str) -> None:
        """Delete the key pair and its private key file, logging failures."""
        key_name = self.key_name(unique_id)

        try:
            with handle_aws_errors():
                self.ec2_client.delete_key_pair(KeyName=key_name)
        except ProviderAPIError as e:
            logger.debug("Failed to delete key pair %s: %s", key_name, e)

        key_file = self.key_file(unique_id)
        if key_file.exists():
            try:
                key_file.unlink()
            except OSError as e:
                logger.warning("Failed to delete key file %s: %s", key_file, e)
