"""AWS-specific constants for EC2 node provisioning."""

MANAGED_BY_TAG = "testbed"
"""Value of the ``ManagedBy`` tag put on every resource testbed creates."""

NAME_PREFIX = "testbed"
"""Prefix of key pair, security group and instance names."""

SSH_SECURITY_GROUP_DEFAULT_CIDR = "0.0.0.0/0"
"""CIDR allowed to reach SSH and the inbound ports when none is configured."""

DEFAULT_INSTANCE_TYPE = "t3.medium"
"""Instance type launched when the configuration names none."""

DEFAULT_AMI_OWNER = "099720109477"
"""Canonical's AWS account, owner of the official Ubuntu images."""

DEFAULT_AMI_NAME_PATTERN = "ubuntu/images/hvm-ssd*/ubuntu-noble-24.04-amd64-server-*"
"""Name pattern of the default Ubuntu 24.04 image.

Ubuntu images log in as ``ubuntu``, which matches the default SSH user.
"""

ROOT_DEVICE_NAME = "/dev/sda1"
"""Root block device of Ubuntu AMIs."""
