"""
Exception hierarchy for the query gateway.

Per-request failures (rejected SQL, database errors, timeouts) are returned as
values and never raised past the gateway boundary. The exceptions below are
raised only while wiring the gateway together at startup.
"""


class QueryGatewayError(Exception):
    """
    Base exception for all query gateway errors.

    Example:
        >>> try:
        ...     pool = build_connection_pool(settings)
        ... except QueryGatewayError as e:
        ...     logger.error(f"Gateway setup failed: {e}")
    """

    pass


class ConfigurationError(QueryGatewayError):
    """
    Raised when required configuration is missing or inconsistent.

    Example:
        >>> if not settings.analytics_database_url:
        ...     raise ConfigurationError("ANALYTICS_DATABASE_URL not configured")
    """

    pass
