"""Provider registry and management.

This module implements a provider registry that lets testbed provision
machines on more than one cloud through the ``MachineProvider`` interface.
"""

from __future__ import annotations

from typing import Any

from testbed.constants import DEFAULT_PROVIDER, DEFAULT_REGION
from testbed.core.interfaces import MachineProvider
from testbed.providers.aws import EC2MachineProvider
from testbed.providers.exceptions import (
    ProviderAPIError,
    ProviderConnectionError,
    ProviderCredentialsError,
    ProviderError,
)

_PROVIDERS: dict[str, dict[str, Any]] = {}


def register_provider(
    name: str,
    provider_class: type[MachineProvider],
    default_region: str | None = None,
) -> None:
    """Register a cloud provider implementation.

    Parameters
    ----------
    name : str
        Provider name (e.g., 'aws')
    provider_class : type[MachineProvider]
        Class implementing the MachineProvider protocol. It is constructed
        with the merged configuration dictionary.
    default_region : str | None
        Default region for this provider
    """
    _PROVIDERS[name] = {
        "provider": provider_class,
        "default_region": default_region,
    }


def get_provider(name: str) -> type[MachineProvider]:
    """Get a registered provider class by name.

    Raises
    ------
    ValueError
        If provider is not registered
    """
    if name not in _PROVIDERS:
        raise ValueError(f"Unknown provider: {name}")
    return _PROVIDERS[name]["provider"]


def list_providers() -> list[str]:
    """List all registered provider names."""
    return list(_PROVIDERS.keys())


def get_default_region(provider_name: str) -> str:
    """Get the default region for a provider.

    Raises
    ------
    ValueError
        If provider is not registered or has no default region
    """
    if provider_name not in _PROVIDERS:
        raise ValueError(f"Unknown provider: {provider_name}")

    default_region = _PROVIDERS[provider_name]["default_region"]

    if default_region is None:
        raise ValueError(f"No default region defined for provider: {provider_name}")

    return default_region


def create_machine_provider(config: dict[str, Any]) -> MachineProvider:
    """Instantiate the provider named by ``config["provider"]``.

    Parameters
    ----------
    config : dict[str, Any]
        Merged configuration from ConfigLoader

    Returns
    -------
    MachineProvider
        Provider ready to create machines
    """
    provider_class = get_provider(config.get("provider", DEFAULT_PROVIDER))
    return provider_class(config)


__all__ = [
    "register_provider",
    "get_provider",
    "list_providers",
    "get_default_region",
    "create_machine_provider",
    "ProviderError",
    "ProviderCredentialsError",
    "ProviderAPIError",
    "ProviderConnectionError",
]

register_provider("aws", EC2MachineProvider, DEFAULT_REGION)
