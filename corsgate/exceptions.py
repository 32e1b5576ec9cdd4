"""
Exception hierarchy for Corsgate.

All custom exceptions inherit from CorsgateError base class.
"""


class CorsgateError(Exception):
    """Base exception for all Corsgate errors."""
    pass


# Configuration Errors
class ConfigurationError(CorsgateError):
    """Base exception for configuration-related errors."""
    pass


class InvalidConfigurationError(ConfigurationError):
    """Raised when configuration is invalid or malformed."""
    pass


# Forwarding Errors
class ForwardingError(CorsgateError):
    """Base exception for upstream forwarding errors."""
    pass


class UnresolvableTargetError(ForwardingError):
    """Raised when no upstream target can be derived from a request."""
    pass


# Response State Errors
class ResponseStateError(CorsgateError):
    """Base exception for invalid operations on a response handle."""
    pass


class HeadersAlreadySentError(ResponseStateError):
    """Raised when modifying headers after they have been sent."""
    pass


class ResponseFinishedError(ResponseStateError):
    """Raised when writing to a response that has already ended."""
    pass
