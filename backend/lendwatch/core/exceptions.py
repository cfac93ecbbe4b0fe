"""Custom exceptions and exception handling for the status API."""

from __future__ import annotations

import traceback
import uuid
from typing import Any, Dict, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse

from .logging import get_logger

logger = get_logger(__name__)


class LendWatchError(Exception):
    """Base exception for the lending protocol monitor."""

    def __init__(
        self,
        message: str,
        error_code: str = "UNKNOWN_ERROR",
        details: Optional[Dict[str, Any]] = None,
        trace_id: Optional[str] = None
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.trace_id = trace_id or str(uuid.uuid4())
        super().__init__(self.message)


class ConfigurationError(LendWatchError):
    """Raised when configuration is invalid. Fatal to bot initialization."""

    def __init__(self, message: str, **kwargs: Any):
        kwargs.setdefault("error_code", "INVALID_CONFIGURATION")
        super().__init__(message, **kwargs)


class EmptyWindowError(LendWatchError):
    """Raised when statistics are requested before any observation exists."""

    def __init__(self, message: str = "No observations recorded", **kwargs: Any):
        kwargs.setdefault("error_code", "EMPTY_WINDOW")
        super().__init__(message, **kwargs)


class ObservationFetchError(LendWatchError):
    """Raised when fetching one observation from the chain fails."""

    def __init__(self, message: str, **kwargs: Any):
        kwargs.setdefault("error_code", "OBSERVATION_FETCH_FAILED")
        super().__init__(message, **kwargs)


class DecodeError(LendWatchError):
    """Raised when chain data for one observation is malformed."""

    def __init__(self, message: str, **kwargs: Any):
        kwargs.setdefault("error_code", "DECODE_FAILED")
        super().__init__(message, **kwargs)


class ChainConnectionError(LendWatchError):
    """Raised when the blockchain node cannot be reached."""

    def __init__(self, message: str, **kwargs: Any):
        kwargs.setdefault("error_code", "CHAIN_CONNECTION_FAILED")
        super().__init__(message, **kwargs)


async def exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global exception handler that creates structured error responses.

    Args:
        request: FastAPI request object
        exc: Exception that was raised

    Returns:
        JSON response with error details and trace ID
    """
    method = request.method
    url = str(request.url)

    if isinstance(exc, LendWatchError):
        status_code = status.HTTP_400_BAD_REQUEST
        error_response = {
            "error": True,
            "error_code": exc.error_code,
            "message": exc.message,
            "trace_id": exc.trace_id,
            "details": exc.details
        }

        logger.error(
            f"Application error: {exc.message}",
            extra={
                'extra_data': {
                    'error_code': exc.error_code,
                    'trace_id': exc.trace_id,
                    'method': method,
                    'url': url,
                    'details': exc.details
                }
            }
        )
    else:
        trace_id = str(uuid.uuid4())
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        error_response = {
            "error": True,
            "error_code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
            "trace_id": trace_id
        }

        logger.error(
            f"Unexpected error: {str(exc)}",
            extra={
                'extra_data': {
                    'exception_type': type(exc).__name__,
                    'traceback': traceback.format_exc(),
                    'trace_id': trace_id,
                    'method': method,
                    'url': url
                }
            }
        )

    return JSONResponse(
        status_code=status_code,
        content=error_response
    )


def create_safe_error_dict(error: BaseException, trace_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Create a safe error dictionary for logging that doesn't expose sensitive data.

    Args:
        error: Exception object
        trace_id: Trace ID for correlation

    Returns:
        Safe error dictionary for logging
    """
    error_dict: Dict[str, Any] = {
        "error_type": type(error).__name__,
        "error_message": str(error),
    }

    if isinstance(error, LendWatchError):
        error_dict["error_code"] = error.error_code
        error_dict["details"] = error.details
        error_dict["trace_id"] = trace_id or error.trace_id
    elif trace_id is not None:
        error_dict["trace_id"] = trace_id

    return error_dict
