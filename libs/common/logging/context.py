"""Request ID propagation for gateway log correlation.

Every call into the query gateway runs under a request ID so that the
validation, execution and translation log lines for a single question can be
grouped together. IDs are UUIDv4 strings stored in a context variable, which
keeps them isolated between concurrent asyncio tasks.

Example:
    >>> from libs.common.logging.context import RequestContext, get_request_id
    >>> with RequestContext("req-123"):
    ...     get_request_id()
    'req-123'
"""

import contextvars
import uuid
from types import TracebackType

_request_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "request_id", default=None
)

# HTTP header the external request layer uses to hand us its ID
REQUEST_ID_HEADER = "X-Request-ID"


def generate_request_id() -> str:
    """Generate a new unique request ID (UUID v4 string)."""
    return str(uuid.uuid4())


def get_request_id() -> str | None:
    """Get the request ID bound to the current context, if any."""
    return _request_id_var.get()


def set_request_id(request_id: str) -> None:
    """Bind a request ID to the current context.

    Args:
        request_id: The request ID to set

    Raises:
        ValueError: If request_id is empty
    """
    if not request_id:
        raise ValueError("Request ID cannot be empty")
    _request_id_var.set(request_id)


def clear_request_id() -> None:
    """Remove the request ID from the current context."""
    _request_id_var.set(None)


def get_or_create_request_id() -> str:
    """Return the current request ID, generating and binding one if missing."""
    request_id = get_request_id()
    if request_id is None:
        request_id = generate_request_id()
        set_request_id(request_id)
    return request_id


class RequestContext:
    """Context manager that scopes a request ID to a block of code.

    The previous ID (or its absence) is restored on exit.

    Example:
        >>> with RequestContext() as request_id:
        ...     gateway_logger.info("sql_query_gateway")
    """

    def __init__(self, request_id: str | None = None) -> None:
        self.request_id = request_id or generate_request_id()
        self._previous: str | None = None

    def __enter__(self) -> str:
        self._previous = get_request_id()
        set_request_id(self.request_id)
        return self.request_id

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._previous is not None:
            set_request_id(self._previous)
        else:
            clear_request_id()
