"""AMI resolution for testbed nodes."""

import logging
import re
from typing import Any

from testbed.providers.aws.constants import DEFAULT_AMI_NAME_PATTERN, DEFAULT_AMI_OWNER
from testbed.providers.aws.errors import handle_aws_errors

logger = logging.getLogger(__name__)


class AMIResolver:
    """Resolve the image a node is launched from."""

    def __init__(self, ec2_client: Any, region: str) -> None:
        self.ec2_client = ec2_client
        self.region = region

    def resolve_ami(self, config: dict[str, Any]) -> str:
        """Resolve AMI ID from configuration.

        Priority order:
        1. ``ami.image_id``
        2. ``ami.query`` (name pattern, optional owner and architecture)
        3. Latest official Ubuntu 24.04 x86_64 image

        Parameters
        ----------
        config : dict[str, Any]
            Configuration dictionary containing an optional ``ami`` section

        Returns
        -------
        str
            AMI ID to launch

        Raises
        ------
        ValueError
            If both image_id and query are given, if image_id is malformed,
            if query.name is missing or if no image matches the query
        """
        ami_config = config.get("ami") or {}

        if "image_id" in ami_config and "query" in ami_config:
            raise ValueError(
                "Cannot specify both 'ami.image_id' and 'ami.query'. "
                "Use image_id for a specific AMI or query to search for the latest."
            )

        if "image_id" in ami_config:
            ami_id = ami_config["image_id"]
            if not re.match(r"^ami-[0-9a-f]{8,17}$", ami_id):
                raise ValueError(f"Invalid AMI ID format: '{ami_id}'")
            return ami_id

        if "query" in ami_config:
            query = ami_config["query"]

            if "name" not in query:
                raise ValueError("ami.query.name is required")

            return self.find_ami_by_query(
                name_pattern=query["name"],
                owner=query.get("owner"),
                architecture=query.get("architecture"),
            )

        return self.find_ami_by_query(
            name_pattern=DEFAULT_AMI_NAME_PATTERN,
            owner=DEFAULT_AMI_OWNER,
            architecture="x86_64",
        )

    def find_ami_by_query(
        self,
        name_pattern: str,
        owner: str | None = None,
        architecture: str | None = None,
    ) -> str:
        """Return the newest image (by CreationDate) matching the filters.

        Raises
        ------
        ValueError
            If architecture is invalid or no image matches
        """
        filters = [
            {"Name": "name", "Values": [name_pattern]},
            {"Name": "state", "Values": ["available"]},
        ]

        if architecture:
            if architecture not in ("x86_64", "arm64"):
                raise ValueError(
                    f"Invalid architecture: '{architecture}'. Must be 'x86_64' or 'arm64'"
                )
            filters.append({"Name": "architecture", "Values": [architecture]})

        kwargs: dict[str, Any] = {"Filters": filters}
        if owner:
            kwargs["Owners"] = [owner]

        with handle_aws_errors():
            response = self.ec2_client.describe_images(**kwargs)

        if not response["Images"]:
            raise ValueError(f"No AMI found for owner={owner}, name={name_pattern}")

        newest = max(response["Images"], key=lambda image: image["CreationDate"])
        logger.debug("Resolved AMI %s (%s)", newest["ImageId"], newest.get("Name"))
        return newest["ImageId"]
