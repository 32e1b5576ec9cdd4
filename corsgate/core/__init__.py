"""
Core decision logic for Corsgate.

Pure building blocks used by the gateway dispatcher: origin access policy,
CORS negotiation and request accounting.
"""

from corsgate.core.access_policy import WILDCARD_ORIGIN, OriginPolicyConfig, is_allowed
from corsgate.core.cors import CORS_HEADERS, CorsNegotiator
from corsgate.core.stats import StatsRegistry, StatsSnapshot, format_uptime

__all__ = [
    "WILDCARD_ORIGIN",
    "OriginPolicyConfig",
    "is_allowed",
    "CORS_HEADERS",
    "CorsNegotiator",
    "StatsRegistry",
    "StatsSnapshot",
    "format_uptime",
]
