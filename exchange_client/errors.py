"""
Exchange Client - Error Taxonomy.

============================================================
PURPOSE
============================================================
Unified error representation for the fetch path.

ERROR KINDS:
1. TRANSPORT      - Connection failure, timeout
2. EMPTY_BODY     - Response carried no bytes
3. DECODE         - Body is not JSON
4. FIELD_CAST     - Expected field missing or of the wrong shape
5. HTTP_STATUS    - Exchange answered with status >= 400
6. CONFIGURATION  - Invalid client configuration

Fetch-path errors are logged and returned inside a FetchResult;
they are never raised to the caller. ConfigurationError is raised.

============================================================
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


logger = logging.getLogger(__name__)


# ============================================================
# ERROR KINDS
# ============================================================

class ErrorKind(Enum):
    """Fetch failure categories."""

    TRANSPORT = "TRANSPORT"
    EMPTY_BODY = "EMPTY_BODY"
    DECODE = "DECODE"
    FIELD_CAST = "FIELD_CAST"
    HTTP_STATUS = "HTTP_STATUS"
    CONFIGURATION = "CONFIGURATION"


# ============================================================
# FETCH ERROR
# ============================================================

class FetchError(Exception):
    """
    A failed fetch attempt.

    Carried as a value inside FetchResult rather than raised, so callers
    can tell a transient failure from a cache hit.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        exchange_id: Optional[str] = None,
        endpoint: Optional[str] = None,
        status_code: Optional[int] = None,
        raw_body: Optional[str] = None,
        original_error: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.exchange_id = exchange_id
        self.endpoint = endpoint
        self.status_code = status_code
        self.raw_body = raw_body
        self.original_error = original_error
        self.timestamp = datetime.utcnow()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "kind": self.kind.value,
            "message": self.message,
            "exchange_id": self.exchange_id,
            "endpoint": self.endpoint,
            "status_code": self.status_code,
            "raw_body": self.raw_body[:200] if self.raw_body else None,
            "original_error": str(self.original_error) if self.original_error else None,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        parts = [f"[{self.kind.value}] {self.message}"]
        if self.exchange_id:
            parts.append(f"[exchange={self.exchange_id}]")
        if self.endpoint:
            parts.append(f"[endpoint={self.endpoint}]")
        if self.status_code is not None:
            parts.append(f"[status={self.status_code}]")
        if self.original_error:
            parts.append(f"(caused by: {self.original_error})")
        return " ".join(parts)


class ConfigurationError(Exception):
    """Invalid or incomplete client configuration."""

    def __init__(self, message: str, exchange_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.kind = ErrorKind.CONFIGURATION
        self.message = message
        self.exchange_id = exchange_id


# ============================================================
# HELPERS
# ============================================================

def create_transport_error(
    exchange_id: str,
    endpoint: str,
    error: BaseException,
) -> FetchError:
    """Create transport error."""
    return FetchError(
        kind=ErrorKind.TRANSPORT,
        message=f"Transport failure: {error}",
        exchange_id=exchange_id,
        endpoint=endpoint,
        original_error=error,
    )


def create_empty_body_error(
    exchange_id: str,
    endpoint: str,
    status_code: Optional[int] = None,
) -> FetchError:
    """Create empty body error."""
    return FetchError(
        kind=ErrorKind.EMPTY_BODY,
        message="No data in response",
        exchange_id=exchange_id,
        endpoint=endpoint,
        status_code=status_code,
    )


def create_decode_error(
    exchange_id: str,
    endpoint: str,
    raw_body: str,
    error: Optional[BaseException] = None,
    status_code: Optional[int] = None,
) -> FetchError:
    """Create decode error."""
    return FetchError(
        kind=ErrorKind.DECODE,
        message="Response is not JSON",
        exchange_id=exchange_id,
        endpoint=endpoint,
        status_code=status_code,
        raw_body=raw_body,
        original_error=error,
    )


def create_field_cast_error(
    exchange_id: str,
    call_site: str,
    detail: str,
    status_code: Optional[int] = None,
) -> FetchError:
    """Create field cast error identifying the call site."""
    return FetchError(
        kind=ErrorKind.FIELD_CAST,
        message=f"Cast failed in {call_site}: {detail}",
        exchange_id=exchange_id,
        endpoint=call_site,
        status_code=status_code,
    )


def create_http_status_error(
    exchange_id: str,
    endpoint: str,
    status_code: int,
    payload: Any = None,
) -> FetchError:
    """Create HTTP status error, extracting the exchange message if present."""
    message = f"HTTP {status_code}"
    if isinstance(payload, dict) and payload.get("message"):
        message = f"{message}: {payload['message']}"
    return FetchError(
        kind=ErrorKind.HTTP_STATUS,
        message=message,
        exchange_id=exchange_id,
        endpoint=endpoint,
        status_code=status_code,
        raw_body=payload if isinstance(payload, str) else None,
    )


__all__ = [
    "ErrorKind",
    "FetchError",
    "ConfigurationError",
    "create_transport_error",
    "create_empty_body_error",
    "create_decode_error",
    "create_field_cast_error",
    "create_http_status_error",
]
