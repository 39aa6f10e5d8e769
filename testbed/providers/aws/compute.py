"""EC2-backed machine provider for testbed."""

from __future__ import annotations

import logging
import threading
import time
import uuid
from typing import Any

import boto3
from botocore.exceptions import WaiterError

from testbed.constants import (
    BEGINNING_PORT,
    DEFAULT_INBOUND_PORT_COUNT,
    DEFAULT_PROCESS_NAME,
    DEFAULT_REGION,
    DEFAULT_SSH_PORT,
    DEFAULT_SSH_USERNAME,
    WAITER_DELAY_SECONDS,
    WAITER_MAX_ATTEMPTS_LONG,
    WAITER_MAX_ATTEMPTS_SHORT,
)
from testbed.core.interfaces import NodeCredentials, NodeMetadata
from testbed.machine import Machine
from testbed.ports import inbound_port_range
from testbed.providers.aws.ami import AMIResolver
from testbed.providers.aws.constants import (
    DEFAULT_INSTANCE_TYPE,
    MANAGED_BY_TAG,
    NAME_PREFIX,
    ROOT_DEVICE_NAME,
)
from testbed.providers.aws.errors import handle_aws_errors
from testbed.providers.aws.keypair import KeyPairManager
from testbed.providers.aws.network import NetworkManager
from testbed.providers.aws.utils import tags_to_dict
from testbed.providers.exceptions import ProviderError
from testbed.services.ssh import KeyFileAuthenticator

logger = logging.getLogger(__name__)


class EC2MachineProvider:
    """Provision EC2 instances and wrap them as ``Machine`` objects.

    The provider owns one SSH key pair, created on first use unless the
    configuration names an existing ``key_name``/``key_file``, and one
    security group per node opening SSH plus the inbound port range.

    Parameters
    ----------
    config : dict[str, Any]
        Merged configuration from ConfigLoader
    region : str | None
        AWS region. If None, uses ``config["region"]``
    boto3_client_factory : Callable[..., Any] | None
        Optional factory for creating boto3 clients. If None, uses boto3.client
    boto3_resource_factory : Callable[..., Any] | None
        Optional factory for creating boto3 resources. If None, uses boto3.resource
    """

    def __init__(
        self,
        config: dict[str, Any],
        region: str | None = None,
        boto3_client_factory: Any | None = None,
        boto3_resource_factory: Any | None = None,
    ) -> None:
        self.config = config
        self.region = region or config.get("region") or DEFAULT_REGION
        self.boto3_client_factory = boto3_client_factory or boto3.client
        self.boto3_resource_factory = boto3_resource_factory or boto3.resource
        self.ec2_client = self.boto3_client_factory("ec2", region_name=self.region)
        self.ec2_resource = self.boto3_resource_factory("ec2", region_name=self.region)

        self.ami_resolver = AMIResolver(self.ec2_client, self.region)
        self.keypair_manager = KeyPairManager(self.ec2_client, self.region)
        self.network_manager = NetworkManager(self.ec2_client, self.region)

        self.key_name: str | None = config.get("key_name")
        self.key_file: str | None = config.get("key_file")
        self._owned_key_id: str | None = None
        self._lock = threading.Lock()

    def available_inbound_ports(self) -> list[int]:
        """Inbound ports opened on every node this provider creates."""
        return inbound_port_range(
            self.config.get("inbound_port_start", BEGINNING_PORT),
            self.config.get("inbound_port_count", DEFAULT_INBOUND_PORT_COUNT),
        )

    def authenticator(self) -> KeyFileAuthenticator:
        """Authenticator using the provider's private key.

        Raises
        ------
        RuntimeError
            If no key pair has been created or configured yet
        """
        if self.key_file is None:
            raise RuntimeError("No SSH key available: no node has been created yet")
        return KeyFileAuthenticator(self.key_file)

    def _ensure_key_pair(self) -> str:
        with self._lock:
            if self.key_name is None:
                unique_id = f"{int(time.time())}-{uuid.uuid4().hex[:8]}"
                key_name, key_file = self.keypair_manager.create_key_pair(unique_id)
                self.key_name = key_name
                self.key_file = str(key_file)
                self._owned_key_id = unique_id
            return self.key_name

    def create_node(self, name: str | None = None) -> NodeMetadata:
        """Launch one instance and wait until it is running.

        Parameters
        ----------
        name : str | None
            Name tag. If None, uses a generated ``testbed-<id>`` name.

        Returns
        -------
        NodeMetadata
            Metadata of the running node

        Raises
        ------
        ValueError
            If the AMI configuration is invalid
        RuntimeError
            If the instance fails to launch or reach the running state
        """
        key_name = self._ensure_key_pair()
        ami_id = self.ami_resolver.resolve_ami(self.config)
        unique_id = f"{int(time.time())}-{uuid.uuid4().hex[:8]}"
        instance_name = name or f"{NAME_PREFIX}-{unique_id}"

        sg_id = self.network_manager.create_security_group(
            unique_id,
            self.available_inbound_ports(),
            allowed_cidr=self.config.get("ssh_allowed_cidr"),
            ssh_port=self.config.get("ssh_port", DEFAULT_SSH_PORT),
        )

        instance = None
        try:
            with handle_aws_errors():
                instances = self.ec2_resource.create_instances(
                    ImageId=ami_id,
                    InstanceType=self.config.get("instance_type", DEFAULT_INSTANCE_TYPE),
                    KeyName=key_name,
                    SecurityGroupIds=[sg_id],
                    MinCount=1,
                    MaxCount=1,
                    BlockDeviceMappings=[
                        {
                            "DeviceName": ROOT_DEVICE_NAME,
                            "Ebs": {
                                "VolumeSize": self.config.get("disk_size", 20),
                                "VolumeType": "gp3",
                                "DeleteOnTermination": True,
                            },
                        }
                    ],
                    TagSpecifications=[
                        {
                            "ResourceType": "instance",
                            "Tags": [
                                {"Key": "ManagedBy", "Value": MANAGED_BY_TAG},
                                {"Key": "Name", "Value": instance_name},
                                {"Key": "UniqueId", "Value": unique_id},
                            ],
                        }
                    ],
                )
            instance = instances[0]

            logger.info("Launched instance %s, waiting for it to run...", instance.id)
            waiter = self.ec2_client.get_waiter("instance_running")
            waiter.wait(
                InstanceIds=[instance.id],
                WaiterConfig={
                    "Delay": WAITER_DELAY_SECONDS,
                    "MaxAttempts": WAITER_MAX_ATTEMPTS_SHORT,
                },
            )
            with handle_aws_errors():
                instance.reload()
        except (ProviderError, WaiterError) as e:
            self._rollback(instance, sg_id)
            raise RuntimeError(f"Failed to launch instance: {e}") from e

        return self._node_from_instance(instance)

    def _node_from_instance(self, instance: Any) -> NodeMetadata:
        addresses = tuple(
            address
            for address in (instance.public_ip_address, instance.public_dns_name)
            if address
        )
        return NodeMetadata(
            id=instance.id,
            public_addresses=addresses,
            credentials=NodeCredentials(
                user=self.config.get("ssh_username", DEFAULT_SSH_USERNAME),
                private_key_file=self.key_file,
            ),
            status=instance.state["Name"],
            tags=tags_to_dict(instance.tags),
        )

    def _rollback(self, instance: Any, sg_id: str) -> None:
        if instance is not None:
            try:
                with handle_aws_errors():
                    instance.terminate()
                    self.ec2_client.get_waiter("instance_terminated").wait(
                        InstanceIds=[instance.id],
                        WaiterConfig={
                            "Delay": WAITER_DELAY_SECONDS,
                            "MaxAttempts": WAITER_MAX_ATTEMPTS_LONG,
                        },
                    )
            except (ProviderError, WaiterError) as cleanup_error:
                logger.warning(
                    "Failed to terminate instance during rollback: %s", cleanup_error
                )

        self.network_manager.delete_security_group(sg_id)

    def get(self, name: str | None = None) -> Machine:
        """Create a node and return it as a ready ``Machine``.

        If the machine cannot be set up, for any reason, the node is
        destroyed before the error is re-raised.

        Raises
        ------
        MachineSetupError
            If the node is unreachable over SSH or the working directory
            cannot be created
        RuntimeError
            If the node fails to launch
        """
        node = self.create_node(name)

        try:
            return Machine(
                self,
                node,
                process_name=self.config.get("process_name", DEFAULT_PROCESS_NAME),
                ssh_port=self.config.get("ssh_port", DEFAULT_SSH_PORT),
                ssh_timeout=self.config.get("ssh_timeout"),
            )
        except Exception:
            try:
                self.destroy(node.id)
            except (ProviderError, RuntimeError) as cleanup_error:
                logger.warning(
                    "Failed to destroy node %s after setup failure: %s",
                    node.id,
                    cleanup_error,
                )
            raise

    def destroy(self, node_id: str) -> None:
        """Terminate a node and delete its security group.

        Parameters
        ----------
        node_id : str
            Instance ID to terminate

        Raises
        ------
        ProviderAPIError
            If the terminate request is rejected
        RuntimeError
            If the instance fails to terminate within timeout
        """
        with handle_aws_errors():
            instance = self.ec2_resource.Instance(node_id)
            groups = instance.security_groups or []
            instance.terminate()

        try:
            waiter = self.ec2_client.get_waiter("instance_terminated")
            waiter.wait(
                InstanceIds=[node_id],
                WaiterConfig={
                    "Delay": WAITER_DELAY_SECONDS,
                    "MaxAttempts": WAITER_MAX_ATTEMPTS_LONG,
                },
            )
        except WaiterError as e:
            raise RuntimeError(f"Failed to terminate instance: {e}") from e

        for group in groups:
            if group["GroupName"].startswith(f"{NAME_PREFIX}-"):
                self.network_manager.delete_security_group(group["GroupId"])

        logger.info("Instance %s terminated", node_id)

    def close(self) -> None:
        """Delete the key pair this provider created, if any."""
        with self._lock:
            if self._owned_key_id is None:
                return

            self.keypair_manager.delete_key_pair(self._owned_key_id)
            self._owned_key_id = None
            self.key_name = None
            self.key_file = None

