"""Security groups opening SSH and the inbound port range of a node."""

import logging
import time
import uuid
from typing import Any

from testbed.constants import DEFAULT_SSH_PORT
from testbed.providers.aws.constants import (
    MANAGED_BY_TAG,
    NAME_PREFIX,
    SSH_SECURITY_GROUP_DEFAULT_CIDR,
)
from testbed.providers.aws.errors import handle_aws_errors
from testbed.providers.exceptions import ProviderAPIError

logger = logging.getLogger(__name__)


class NetworkManager:
    """Manage EC2 network resources (security groups, VPCs)."""

    def __init__(self, ec2_client: Any, region: str) -> None:
        """Initialize NetworkManager.

        Parameters
        ----------
        ec2_client : Any
            Boto3 EC2 client
        region : str
            AWS region name
        """
        self.ec2_client = ec2_client
        self.region = region

    def get_default_vpc_id(self) -> str:
        """Get the default VPC ID for the region.

        Raises
        ------
        ValueError
            If no default VPC is found
        """
        with handle_aws_errors():
            vpcs = self.ec2_client.describe_vpcs(
                Filters=[{"Name": "isDefault", "Values": ["true"]}]
            )

        if not vpcs["Vpcs"]:
            raise ValueError(f"No default VPC found in region '{self.region}'")

        return vpcs["Vpcs"][0]["VpcId"]

    def create_security_group(
        self,
        unique_id: str,
        inbound_ports: list[int],
        allowed_cidr: str | None = None,
        ssh_port: int = DEFAULT_SSH_PORT,
    ) -> str:
        """Create a security group allowing SSH and the granted inbound ports.

        Parameters
        ----------
        unique_id : str
            Unique identifier to use in security group name
        inbound_ports : list[int]
            Ports that services started by tests will listen on
        allowed_cidr : str | None
            CIDR block allowed in. If None, defaults to 0.0.0.0/0
        ssh_port : int
            SSH daemon port (default: 22)

        Returns
        -------
        str
            Security group ID
        """
        sg_name = f"{NAME_PREFIX}-{unique_id}"
        vpc_id = self.get_default_vpc_id()

        sg_id = self._create_security_group_with_retry(sg_name, unique_id, vpc_id)

        with handle_aws_errors():
            self.ec2_client.create_tags(
                Resources=[sg_id], Tags=[{"Key": "ManagedBy", "Value": MANAGED_BY_TAG}]
            )

        cidr_block = allowed_cidr if allowed_cidr else SSH_SECURITY_GROUP_DEFAULT_CIDR

        if cidr_block == SSH_SECURITY_GROUP_DEFAULT_CIDR:
            logger.warning(
                "Security group %s is open to %s (all IPs). "
                "Consider restricting ssh_allowed_cidr to your IP range.",
                sg_name,
                SSH_SECURITY_GROUP_DEFAULT_CIDR,
            )

        permissions = [
            self._tcp_permission(from_port, to_port, cidr_block)
            for from_port, to_port in port_ranges([ssh_port, *inbound_ports])
        ]

        with handle_aws_errors():
            self.ec2_client.authorize_security_group_ingress(
                GroupId=sg_id, IpPermissions=permissions
            )

        logger.debug("Created security group %s (%s) with %d rules", sg_name, sg_id, len(permissions))
        return sg_id

    def delete_security_group(self, sg_id: str) -> None:
        """Delete a security group, logging instead of raising on failure."""
        try:
            with handle_aws_errors():
                self.ec2_client.delete_security_group(GroupId=sg_id)
        except ProviderAPIError as e:
            logger.debug("Failed to delete security group %s: %s", sg_id, e)

    @staticmethod
    def _tcp_permission(from_port: int, to_port: int, cidr_block: str) -> dict[str, Any]:
        return {
            "IpProtocol": "tcp",
            "FromPort": from_port,
            "ToPort": to_port,
            "IpRanges": [{"CidrIp": cidr_block}],
        }

    def _create_security_group_with_retry(
        self, sg_name: str, unique_id: str, vpc_id: str, max_retries: int = 3
    ) -> str:
        """Create security group, retrying with a new suffix on name collision.

        Raises
        ------
        ProviderAPIError
            If creation fails after all retries
        """
        for attempt in range(max_retries):
            try:
                with handle_aws_errors():
                    response = self.ec2_client.create_security_group(
                        GroupName=sg_name,
                        Description=f"Testbed node {unique_id}",
                        VpcId=vpc_id,
                    )
                return response["GroupId"]
            except ProviderAPIError as e:
                if e.error_code != "InvalidGroup.Duplicate":
                    raise

                if attempt == max_retries - 1:
                    raise

                logger.debug(
                    "Security group name collision, retrying with suffix (attempt %d/%d)",
                    attempt + 1,
                    max_retries,
                )
                time.sleep(2**attempt)

                sg_name = f"{NAME_PREFIX}-{unique_id}-{str(uuid.uuid4())[:8]}"

        raise ProviderAPIError(
            message=f"Failed to create security group after {max_retries} attempts",
            error_code="SecurityGroupCreationFailed",
        )


def port_ranges(ports: list[int]) -> list[tuple[int, int]]:
    """Collapse ports into sorted, inclusive ``(from, to)`` ranges.

    >>> port_ranges([22, 20000, 20001, 20002, 20005])
    [(22, 22), (20000, 20002), (20005, 20005)]
    """
    ranges: list[tuple[int, int]] = []

    for port in sorted(set(ports)):
        if ranges and port == ranges[-1][1] + 1:
            ranges[-1] = (ranges[-1][0], port)
        else:
            ranges.append((port, port))

    return ranges
