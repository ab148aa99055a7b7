"""Common utilities and exceptions."""

from libs.common.exceptions import ConfigurationError, QueryGatewayError

__all__ = [
    "QueryGatewayError",
    "ConfigurationError",
]
