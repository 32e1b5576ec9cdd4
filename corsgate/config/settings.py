"""
Configuration management for Corsgate.

Loads YAML configuration from file with sensible defaults and validation.
Supports environment variable substitution using ${ENV_VAR} syntax.
"""

import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import yaml

from corsgate.exceptions import InvalidConfigurationError
from corsgate.logging_config import get_logger

logger = get_logger(__name__)


def _expand_env_vars(value: Any) -> Any:
    """
    Recursively expand environment variables in configuration values.

    Supports ${ENV_VAR} syntax with optional default values: ${ENV_VAR:default}

    Args:
        value: Configuration value (string, dict, list, or other)

    Returns:
        Value with environment variables expanded

    Examples:
        "${CORSGATE_LISTEN}" -> value of CORSGATE_LISTEN env var
        "${CORSGATE_LISTEN:0.0.0.0:8080}" -> value of CORSGATE_LISTEN or "0.0.0.0:8080"
    """
    if isinstance(value, str):
        # Pattern matches ${VAR} or ${VAR:default}
        pattern = r'\$\{([^}:]+)(?::([^}]*))?\}'

        def replace_env_var(match):
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else ""
            return os.environ.get(var_name, default_value)

        return re.sub(pattern, replace_env_var, value)
    elif isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_expand_env_vars(item) for item in value]
    else:
        return value


@dataclass
class TLSConfig:
    """TLS configuration for the gateway listener."""

    enabled: bool = False
    cert_file: str = ""
    key_file: str = ""
    ca_file: str = ""


@dataclass
class GatewayConfig:
    """
    Gateway configuration.

    Attributes:
        listen_address: Address to bind the server (e.g., "0.0.0.0:8080")
        origin_whitelist: Origins allowed through the gateway; empty means no
            whitelist restriction, "*" admits every origin
        origin_blacklist: Origins rejected by the gateway
        dashboard_path: Dashboard asset path; empty uses the packaged asset
        tls: Listener TLS settings
        forwarding: Forwarding engine option overrides
    """

    listen_address: str = "0.0.0.0:8080"
    origin_whitelist: List[str] = field(default_factory=list)
    origin_blacklist: List[str] = field(default_factory=list)
    dashboard_path: str = ""
    tls: TLSConfig = field(default_factory=TLSConfig)
    forwarding: Dict[str, Any] = field(default_factory=dict)


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    file: str = ""
    format: str = "text"  # "text" or "json"


@dataclass
class CorsgateConfig:
    """Main Corsgate configuration."""

    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def get_default_config_path() -> str:
    """Get the default configuration file path."""
    return os.path.expanduser("~/.corsgate/config.yaml")


def get_default_config() -> CorsgateConfig:
    """
    Get default configuration with sensible defaults.

    Returns:
        CorsgateConfig: Default configuration object
    """
    return CorsgateConfig()


def load_config(config_path: Optional[str] = None) -> CorsgateConfig:
    """
    Load configuration from YAML file with validation.

    If config file is not found, returns default configuration.
    If config file is malformed or invalid, raises InvalidConfigurationError.

    Args:
        config_path: Path to configuration file. If None, uses default path.

    Returns:
        CorsgateConfig: Loaded and validated configuration

    Raises:
        InvalidConfigurationError: If configuration is invalid or malformed
    """
    if config_path is None:
        config_path = get_default_config_path()

    config_path = os.path.expanduser(config_path)

    if not os.path.exists(config_path):
        logger.info(f"Configuration file not found at {config_path}, using defaults")
        return get_default_config()

    try:
        with open(config_path, 'r') as f:
            config_data = yaml.safe_load(f)
        logger.debug(f"Loaded configuration from {config_path}")
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse YAML configuration file '{config_path}': {e}")
        raise InvalidConfigurationError(
            f"Failed to parse YAML configuration file '{config_path}': {e}"
        )
    except OSError as e:
        logger.error(f"Failed to read configuration file '{config_path}': {e}")
        raise InvalidConfigurationError(
            f"Failed to read configuration file '{config_path}': {e}"
        )

    if config_data is None:
        logger.info(f"Configuration file {config_path} is empty, using defaults")
        return get_default_config()

    if not isinstance(config_data, dict):
        raise InvalidConfigurationError(
            f"Configuration file '{config_path}' must contain a mapping at the top level"
        )

    config_data = _expand_env_vars(config_data)

    try:
        config = _build_config_from_dict(config_data)
        _validate_config(config)
    except InvalidConfigurationError as e:
        logger.error(f"Invalid configuration in '{config_path}': {e}")
        raise InvalidConfigurationError(
            f"Invalid configuration in '{config_path}': {e}"
        )

    logger.info(f"Successfully loaded and validated configuration from {config_path}")
    return config


def _section(config_data: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = config_data.get(name) or {}
    if not isinstance(section, dict):
        raise InvalidConfigurationError(f"'{name}' section must be a mapping")
    return section


def _build_config_from_dict(config_data: Dict[str, Any]) -> CorsgateConfig:
    """
    Build CorsgateConfig from dictionary loaded from YAML.

    Merges user configuration with defaults.

    Args:
        config_data: Dictionary loaded from YAML file

    Returns:
        CorsgateConfig: Configuration object

    Raises:
        InvalidConfigurationError: If a section has the wrong shape
    """
    default_config = get_default_config()

    gateway_data = _section(config_data, 'gateway')
    tls_data = _section(gateway_data, 'tls')
    tls = TLSConfig(
        enabled=tls_data.get('enabled', default_config.gateway.tls.enabled),
        cert_file=os.path.expanduser(tls_data.get('cert_file', default_config.gateway.tls.cert_file)),
        key_file=os.path.expanduser(tls_data.get('key_file', default_config.gateway.tls.key_file)),
        ca_file=os.path.expanduser(tls_data.get('ca_file', default_config.gateway.tls.ca_file)),
    )

    dashboard_path = gateway_data.get('dashboard_path', default_config.gateway.dashboard_path)
    gateway = GatewayConfig(
        listen_address=str(gateway_data.get('listen_address', default_config.gateway.listen_address)),
        origin_whitelist=gateway_data.get('origin_whitelist') or [],
        origin_blacklist=gateway_data.get('origin_blacklist') or [],
        dashboard_path=os.path.expanduser(dashboard_path) if dashboard_path else "",
        tls=tls,
        forwarding=gateway_data.get('forwarding') or {},
    )

    logging_data = _section(config_data, 'logging')
    log_file = logging_data.get('file', default_config.logging.file)
    logging = LoggingConfig(
        level=logging_data.get('level', default_config.logging.level),
        file=os.path.expanduser(log_file) if log_file else "",
        format=logging_data.get('format', default_config.logging.format),
    )

    return CorsgateConfig(gateway=gateway, logging=logging)


def _validate_config(config: CorsgateConfig) -> None:
    """
    Validate configuration values.

    Args:
        config: Configuration to validate

    Raises:
        InvalidConfigurationError: If configuration is invalid
    """
    parse_listen_address(config.gateway.listen_address)

    for name in ("origin_whitelist", "origin_blacklist"):
        origins = getattr(config.gateway, name)
        if not isinstance(origins, list) or not all(isinstance(o, str) for o in origins):
            raise InvalidConfigurationError(f"{name} must be a list of strings")

    if not isinstance(config.gateway.forwarding, dict):
        raise InvalidConfigurationError("forwarding must be a mapping of option overrides")

    if config.gateway.tls.enabled:
        if not config.gateway.tls.cert_file or not config.gateway.tls.key_file:
            raise InvalidConfigurationError(
                "tls.cert_file and tls.key_file are required when TLS is enabled"
            )

    valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if str(config.logging.level).upper() not in valid_log_levels:
        raise InvalidConfigurationError(
            f"logging level must be one of {valid_log_levels}, "
            f"got '{config.logging.level}'"
        )

    valid_formats = ["text", "json"]
    if config.logging.format not in valid_formats:
        raise InvalidConfigurationError(
            f"logging format must be one of {valid_formats}, "
            f"got '{config.logging.format}'"
        )


def parse_listen_address(listen_address: str) -> tuple:
    """
    Split a "host:port" listen address.

    Returns:
        (host, port) tuple

    Raises:
        InvalidConfigurationError: If the address is malformed
    """
    host, sep, port_str = str(listen_address).rpartition(":")
    if not sep or not host:
        raise InvalidConfigurationError(
            f"listen_address must be in 'host:port' form, got '{listen_address}'"
        )
    try:
        port = int(port_str)
    except ValueError:
        raise InvalidConfigurationError(
            f"listen_address port must be an integer, got '{port_str}'"
        )
    if not 1 <= port <= 65535:
        raise InvalidConfigurationError(
            f"listen_address port must be between 1 and 65535, got {port}"
        )
    return host, port
