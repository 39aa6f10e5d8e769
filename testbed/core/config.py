import copy
import logging
import os
from pathlib import Path
from typing import Any

import yaml
from omegaconf import OmegaConf
from omegaconf.errors import InterpolationResolutionError

from testbed.constants import (
    BEGINNING_PORT,
    DEFAULT_INBOUND_PORT_COUNT,
    DEFAULT_PROCESS_NAME,
    DEFAULT_PROVIDER,
    DEFAULT_SSH_PORT,
    DEFAULT_SSH_USERNAME,
)
from testbed.providers import get_default_region, list_providers

logger = logging.getLogger(__name__)

POSITIVE_INT_FIELDS = ("disk_size", "inbound_port_count", "ssh_port")
STRING_FIELDS = ("provider", "region", "instance_type", "ssh_username", "process_name")


class ConfigLoader:
    """Load and merge YAML configuration with defaults."""

    def __init__(self) -> None:
        """Initialize ConfigLoader with provider-specific defaults."""
        self.BUILT_IN_DEFAULTS = {
            "provider": DEFAULT_PROVIDER,
            "region": get_default_region(DEFAULT_PROVIDER),
            "instance_type": "t3.medium",
            "disk_size": 20,
            "ssh_username": DEFAULT_SSH_USERNAME,
            "ssh_port": DEFAULT_SSH_PORT,
            "ssh_timeout": None,
            "ssh_allowed_cidr": None,
            "inbound_port_start": BEGINNING_PORT,
            "inbound_port_count": DEFAULT_INBOUND_PORT_COUNT,
            "process_name": DEFAULT_PROCESS_NAME,
        }

    def load_config(self, config_path: str | None = None) -> dict[str, Any]:
        """Load configuration from YAML file.

        Parameters
        ----------
        config_path : str | None
            Path to YAML config file. If None, checks TESTBED_CONFIG env var,
            then falls back to testbed.yaml

        Returns
        -------
        dict[str, Any]
            Parsed configuration with defaults and machines sections,
            with all variable interpolations resolved

        Raises
        ------
        ValueError
            If the YAML is invalid or variables cannot be resolved
        RuntimeError
            If the file cannot be read
        omegaconf.errors.InterpolationResolutionError
            If undefined variables are referenced or circular references exist
        """
        if config_path is None:
            config_path = os.environ.get("TESTBED_CONFIG", "testbed.yaml")

        config_file = Path(config_path)

        if not config_file.exists():
            logger.debug("Config file %s not found, using built-in defaults", config_file)
            return {"defaults": {}}

        try:
            cfg = OmegaConf.load(config_file)
        except yaml.YAMLError as e:
            logger.error("Failed to parse YAML config file %s: %s", config_file, e)
            raise ValueError(f"Invalid YAML in {config_file}: {e}") from e
        except OSError as e:
            logger.error("Failed to read config file %s: %s", config_file, e)
            raise RuntimeError(f"Failed to read config file {config_file}: {e}") from e

        if not cfg:
            return {"defaults": {}}

        if "vars" in cfg:
            vars_dict = OmegaConf.to_container(cfg.vars, resolve=False)
            for key, value in vars_dict.items():
                if key not in cfg:
                    cfg[key] = value

        try:
            config = OmegaConf.to_container(cfg, resolve=True, throw_on_missing=True)
        except InterpolationResolutionError as e:
            logger.error("Failed to resolve configuration variables: %s", e)
            raise
        except (ValueError, KeyError, AttributeError) as e:
            logger.error("Failed to resolve configuration variables: %s", e)
            raise ValueError(f"Configuration variable resolution error: {e}") from e

        return config

    def get_machine_config(
        self, config: dict[str, Any], machine_name: str | None = None
    ) -> dict[str, Any]:
        """Get merged configuration for a named machine profile or defaults.

        Parameters
        ----------
        config : dict[str, Any]
            Full configuration from YAML
        machine_name : str | None
            Name of a profile under ``machines``, or None for defaults only

        Returns
        -------
        dict[str, Any]
            Merged configuration (built-in defaults + YAML defaults + profile)

        Raises
        ------
        ValueError
            If the named profile does not exist
        """
        merged = copy.deepcopy(self.BUILT_IN_DEFAULTS)
        merged.update(config.get("defaults") or {})

        if machine_name is not None:
            machines = config.get("machines") or {}

            if machine_name not in machines:
                available = list(machines.keys())

                if not available:
                    raise ValueError(
                        f"Machine '{machine_name}' not found in configuration. "
                        f"No machines are defined in the config file."
                    )

                raise ValueError(
                    f"Machine '{machine_name}' not found in configuration. "
                    f"Available machines: {available}"
                )

            merged.update(machines[machine_name] or {})
            merged["machine_name"] = machine_name

        return merged

    def validate_config(self, config: dict[str, Any]) -> None:
        """Validate configuration has correct types and ranges.

        Parameters
        ----------
        config : dict[str, Any]
            Merged configuration to validate

        Raises
        ------
        ValueError
            If any field is missing, of the wrong type or out of range
        """
        for field in STRING_FIELDS:
            if not isinstance(config.get(field), str) or not config[field]:
                raise ValueError(f"{field} must be a non-empty string")

        if config["provider"] not in list_providers():
            raise ValueError(
                f"Unknown provider '{config['provider']}'. "
                f"Available providers: {list_providers()}"
            )

        for field in POSITIVE_INT_FIELDS:
            value = config.get(field)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ValueError(f"{field} must be a positive integer, got {value!r}")

        start = config.get("inbound_port_start")
        if isinstance(start, bool) or not isinstance(start, int) or start < 1:
            raise ValueError(f"inbound_port_start must be a positive integer, got {start!r}")

        last_port = start + config["inbound_port_count"] - 1
        if last_port > 65535:
            raise ValueError(
                f"Inbound port range {start}-{last_port} exceeds the maximum port 65535"
            )

        ssh_timeout = config.get("ssh_timeout")
        if ssh_timeout is not None and (
            isinstance(ssh_timeout, bool)
            or not isinstance(ssh_timeout, (int, float))
            or ssh_timeout <= 0
        ):
            raise ValueError(f"ssh_timeout must be a positive number, got {ssh_timeout!r}")

        if ("key_name" in config) != ("key_file" in config):
            raise ValueError("key_name and key_file must be configured together")

    def load_machine_config(
        self, config_path: str | None = None, machine_name: str | None = None
    ) -> dict[str, Any]:
        """Load, merge and validate the configuration of one machine.

        Parameters
        ----------
        config_path : str | None
            Path to YAML config file, see ``load_config``
        machine_name : str | None
            Profile under ``machines``, or None for defaults only

        Returns
        -------
        dict[str, Any]
            Validated merged configuration
        """
        config = self.get_machine_config(self.load_config(config_path), machine_name)
        self.validate_config(config)
        return config
