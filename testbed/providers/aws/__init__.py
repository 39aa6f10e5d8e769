"""AWS provider implementation."""

from testbed.providers.aws.compute import EC2MachineProvider

__all__ = ["EC2MachineProvider"]
