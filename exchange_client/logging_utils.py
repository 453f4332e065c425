"""
Exchange Client - Secure Logging Utilities.

============================================================
PURPOSE
============================================================
Request/response logging for the fetch path with:
- Credential masking (API keys, passphrases, signatures)
- Per-endpoint verbosity gating
- Truncated response previews

============================================================
SECURITY REQUIREMENTS
============================================================
1. NEVER log raw API keys, secrets or passphrases
2. Mask sensitive headers (CB-ACCESS-*, Authorization, ...)
3. Log body previews only, never unbounded payloads

============================================================
"""

import json
import logging
import threading
from typing import Any, Dict, Optional

from .endpoints import EndpointDescriptor, VerbosityLevel


logger = logging.getLogger(__name__)


# ============================================================
# SENSITIVE DATA
# ============================================================

# Header names that should be masked
SENSITIVE_HEADERS = {
    "authorization",
    "x-api-key",
    "cb-access-key",
    "cb-access-sign",
    "cb-access-passphrase",
    "api-key",
    "secret",
    "signature",
}

PREVIEW_LENGTH = 200


# ============================================================
# MASKING FUNCTIONS
# ============================================================

def mask_value(value: str, show_chars: int = 4) -> str:
    """
    Mask a sensitive value, showing only first few chars.

    Args:
        value: Value to mask
        show_chars: Number of chars to show at start

    Returns:
        Masked value
    """
    if not value or len(value) <= show_chars:
        return "***"
    return f"{value[:show_chars]}...***"


def mask_headers(headers: Dict[str, str]) -> Dict[str, str]:
    """
    Mask sensitive headers.

    Args:
        headers: Request/response headers

    Returns:
        Headers with sensitive values masked
    """
    if not headers:
        return {}

    masked = {}
    for key, value in headers.items():
        if key.lower() in SENSITIVE_HEADERS:
            masked[key] = mask_value(str(value))
        else:
            masked[key] = value
    return masked


def preview(body: Any, limit: int = PREVIEW_LENGTH) -> Optional[str]:
    """Truncated string rendering of a body for log lines."""
    if body is None:
        return None
    if isinstance(body, bytes):
        text = body.decode("utf-8", errors="replace")
    elif isinstance(body, (dict, list)):
        try:
            text = json.dumps(body)
        except (TypeError, ValueError):
            text = "<unserializable>"
    else:
        text = str(body)
    return text if len(text) <= limit else f"{text[:limit]}..."


# ============================================================
# ENDPOINT LOGGER
# ============================================================

class EndpointLogger:
    """
    Verbosity-aware logger for one exchange.

    Lines are emitted only when the descriptor's log level enables the
    content kind; failures are always logged at WARNING.
    """

    def __init__(self, exchange_id: str, logger_name: Optional[str] = None):
        """
        Initialize endpoint logger.

        Args:
            exchange_id: Exchange identifier
            logger_name: Logger name (default: exchange_client.<exchange_id>)
        """
        self._exchange_id = exchange_id
        self._logger = logging.getLogger(logger_name or f"exchange_client.{exchange_id}")
        self._request_counter = 0
        self._lock = threading.Lock()

    @property
    def exchange_id(self) -> str:
        return self._exchange_id

    def _generate_request_id(self) -> str:
        with self._lock:
            self._request_counter += 1
            return f"{self._exchange_id}-{self._request_counter}"

    def log_request(
        self,
        descriptor: EndpointDescriptor,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        body: Optional[str] = None,
    ) -> str:
        """
        Log outgoing request.

        Returns:
            Request ID for correlation
        """
        request_id = self._generate_request_id()

        if descriptor.should_log(VerbosityLevel.URL):
            self._logger.info(f"[{request_id}] {method} {url}")
        if descriptor.should_log(VerbosityLevel.REQUEST_HEADERS):
            self._logger.info(f"[{request_id}] Request Headers: {mask_headers(headers or {})}")
            if body:
                self._logger.info(f"[{request_id}] Request Data: {preview(body)}")

        return request_id

    def log_response(
        self,
        descriptor: EndpointDescriptor,
        request_id: str,
        status_code: Optional[int],
        latency_ms: float,
        headers: Optional[Dict[str, str]] = None,
        body: Any = None,
    ) -> None:
        """Log a response that arrived (successfully or not)."""
        if descriptor.should_log(VerbosityLevel.RESPONSE):
            self._logger.info(
                f"[{request_id}] Response {status_code} in {latency_ms:.1f}ms: {preview(body)}"
            )
        if descriptor.should_log(VerbosityLevel.RESPONSE_HEADERS):
            self._logger.info(f"[{request_id}] Response Headers: {mask_headers(headers or {})}")

    def log_failure(
        self,
        descriptor: EndpointDescriptor,
        request_id: Optional[str],
        message: str,
    ) -> None:
        """Log a failed attempt regardless of verbosity."""
        self._logger.warning(f"[{request_id or self._exchange_id}] {descriptor.name}: {message}")


__all__ = [
    "SENSITIVE_HEADERS",
    "mask_value",
    "mask_headers",
    "preview",
    "EndpointLogger",
]
