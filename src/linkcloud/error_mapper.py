"""Translation of backend-native failures into the gateway error taxonomy.

Every backend call runs inside map_backend_errors(). Taxonomy errors raised
by the backend itself pass through untouched; anything else is classified by
the status code the backend extracts from it:

- invalid-input-shaped codes (400) -> InvalidInputError
- not-found-shaped codes (404)     -> NotFoundError
- everything else                  -> BackendInternalError

Exceptions without a status (transport failures, SDK parsing errors) also
become BackendInternalError; they differ from remote 5xx replies only in
what gets logged.
"""

import logging
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from linkcloud.exceptions import (
    BackendInternalError,
    ErrorKind,
    GatewayError,
    InvalidInputError,
    NotFoundError,
)

logger = logging.getLogger(__name__)

INVALID_INPUT_STATUSES = frozenset({400})
NOT_FOUND_STATUSES = frozenset({404})

StatusExtractor = Callable[[BaseException], Optional[int]]


def classify_status(status_code: Optional[int]) -> ErrorKind:
    """Map a backend status code to an error kind using the fixed precedence."""
    if status_code in INVALID_INPUT_STATUSES:
        return ErrorKind.INVALID_INPUT
    if status_code in NOT_FOUND_STATUSES:
        return ErrorKind.NOT_FOUND
    return ErrorKind.BACKEND_INTERNAL


def error_for_status(status_code: Optional[int], operation: str, subject: str) -> GatewayError:
    """Build the taxonomy error for a failed backend call.

    Args:
        status_code: Backend-native status, or None for transport failures
        operation: Operation being performed (e.g. "download_blob")
        subject: Human-readable target (e.g. "blob a.jpg")

    Returns:
        An InvalidInputError, NotFoundError or BackendInternalError
    """
    kind = classify_status(status_code)
    if kind is ErrorKind.INVALID_INPUT:
        return InvalidInputError(f"Invalid {subject}", status_code=status_code)
    if kind is ErrorKind.NOT_FOUND:
        return NotFoundError(f"{subject[:1].upper()}{subject[1:]} not found", status_code=status_code)
    return BackendInternalError(
        f"Unknown error encountered during {operation} on {subject}",
        status_code=status_code,
    )


def _log_translation(error: GatewayError, status_code: Optional[int], cause: BaseException) -> None:
    extra = {
        "error_kind": error.kind.value if error.kind else None,
        "backend_status": status_code if status_code is not None else "transport",
        "cause": type(cause).__name__,
    }
    if isinstance(error, BackendInternalError):
        logger.error(error.message, exc_info=cause, extra=extra)
    else:
        logger.warning(error.message, extra=extra)


@contextmanager
def map_backend_errors(operation: str, subject: str, status_of: StatusExtractor) -> Iterator[None]:
    """Run a backend call, converting foreign exceptions to taxonomy errors.

    Args:
        operation: Operation name used in messages and logs
        subject: Human-readable target of the call
        status_of: Backend-specific function returning the native status code
            of an exception, or None when it carries none

    Raises:
        GatewayError: Always the taxonomy error; the original exception is
            chained as ``__cause__``
    """
    try:
        yield
    except GatewayError:
        raise
    except Exception as e:
        status_code = status_of(e)
        error = error_for_status(status_code, operation, subject)
        _log_translation(error, status_code, e)
        raise error from e


def guard_iterator(
    iterator: Iterator, operation: str, subject: str, status_of: StatusExtractor
) -> Iterator:
    """Wrap a lazy backend sequence so failures during iteration are translated too."""
    with map_backend_errors(operation, subject, status_of):
        yield from iterator
