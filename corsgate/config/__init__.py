"""
Configuration management for Corsgate.

Handles loading and validation of configuration files.
"""

from corsgate.config.settings import (
    CorsgateConfig,
    GatewayConfig,
    LoggingConfig,
    TLSConfig,
    get_default_config,
    get_default_config_path,
    load_config,
    parse_listen_address,
)

__all__ = [
    "CorsgateConfig",
    "GatewayConfig",
    "LoggingConfig",
    "TLSConfig",
    "get_default_config",
    "get_default_config_path",
    "load_config",
    "parse_listen_address",
]
