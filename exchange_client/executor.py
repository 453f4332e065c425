"""
Exchange Client - Fetch Executor.

============================================================
PURPOSE
============================================================
Issues one HTTP call for an endpoint descriptor and decodes the body.

FLOW:
1. Build the (signed) request via RequestSigner
2. Log method/URL, and headers/body per the descriptor's verbosity
3. Dispatch on the Transport
4. Transport error -> logged, body still inspected
5. No body bytes -> EMPTY_BODY (or TRANSPORT) failure
6. Status >= 400 -> HTTP_STATUS failure (JSON or not), body kept
7. Body not JSON -> DECODE failure, raw text kept in the outcome
8. Otherwise -> decoded JSON plus response metadata

No retries: a failed fetch leaves caches untouched and the next
caller retries on its own initiative.

============================================================
"""

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .endpoints import EndpointDescriptor
from .errors import (
    FetchError,
    create_decode_error,
    create_empty_body_error,
    create_http_status_error,
    create_transport_error,
)
from .logging_utils import EndpointLogger
from .metrics import ClientMetrics
from .signing import RequestSigner
from .transport import Transport


logger = logging.getLogger(__name__)


# ============================================================
# OUTCOME TYPES
# ============================================================

@dataclass
class ResponseMetadata:
    """HTTP-level details of a completed call."""

    request_id: str
    url: str
    status_code: Optional[int] = None
    headers: Dict[str, str] = field(default_factory=dict)
    latency_ms: float = 0.0


@dataclass
class ExecutionOutcome:
    """
    Result of one executed call.

    payload holds the decoded JSON on success, the raw text on a DECODE
    failure, and the error body (decoded, or raw text) on an HTTP_STATUS
    failure.
    """

    metadata: ResponseMetadata
    payload: Any = None
    error: Optional[FetchError] = None
    transport_error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


# ============================================================
# EXECUTOR
# ============================================================

class FetchExecutor:
    """Builds, dispatches, logs and decodes endpoint calls."""

    def __init__(
        self,
        exchange_id: str,
        transport: Transport,
        signer: RequestSigner,
        endpoint_logger: Optional[EndpointLogger] = None,
        metrics: Optional[ClientMetrics] = None,
    ):
        """
        Initialize executor.

        Args:
            exchange_id: Exchange identifier used in errors and logs
            transport: HTTP transport
            signer: Request builder/signer
            endpoint_logger: Verbosity-aware logger
            metrics: Metrics collector
        """
        self._exchange_id = exchange_id
        self._transport = transport
        self._signer = signer
        self._logger = endpoint_logger or EndpointLogger(exchange_id)
        self._metrics = metrics or ClientMetrics(exchange_id)

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def metrics(self) -> ClientMetrics:
        return self._metrics

    async def execute(self, descriptor: EndpointDescriptor) -> ExecutionOutcome:
        """
        Execute one call for descriptor.

        Args:
            descriptor: Endpoint to call

        Returns:
            ExecutionOutcome (never raises for fetch failures)
        """
        request = self._signer.build(descriptor)
        request_id = self._logger.log_request(
            descriptor,
            method=request.method,
            url=request.url,
            headers=request.headers,
            body=request.body,
        )

        start_time = time.monotonic()
        response = await self._transport.send(request)
        latency_ms = (time.monotonic() - start_time) * 1000

        metadata = ResponseMetadata(
            request_id=request_id,
            url=response.url or request.url,
            status_code=response.status,
            headers=dict(response.headers or {}),
            latency_ms=latency_ms,
        )

        if response.error is not None:
            self._logger.log_failure(descriptor, request_id, f"Response Error: {response.error}")

        self._logger.log_response(
            descriptor,
            request_id,
            status_code=response.status,
            latency_ms=latency_ms,
            headers=metadata.headers,
            body=response.body,
        )

        outcome = self._decode(descriptor, metadata, response.body, response.error)
        self._metrics.record_request(
            endpoint=descriptor.path,
            latency_ms=latency_ms,
            success=outcome.ok,
            status_code=response.status,
            error_kind=outcome.error.kind.value if outcome.error else None,
        )
        return outcome

    def _decode(
        self,
        descriptor: EndpointDescriptor,
        metadata: ResponseMetadata,
        body: Optional[bytes],
        transport_error: Optional[BaseException],
    ) -> ExecutionOutcome:
        if not body:
            if transport_error is not None:
                error = create_transport_error(self._exchange_id, descriptor.path, transport_error)
            else:
                error = create_empty_body_error(
                    self._exchange_id, descriptor.path, metadata.status_code
                )
            self._logger.log_failure(descriptor, metadata.request_id, f"No data for request: {metadata.url}")
            return ExecutionOutcome(metadata, error=error, transport_error=transport_error)

        text = body.decode("utf-8", errors="replace")

        try:
            payload = json.loads(text)
        except ValueError as e:
            if self._is_error_status(metadata.status_code):
                return self._status_failure(descriptor, metadata, text, transport_error)
            self._logger.log_failure(
                descriptor, metadata.request_id, f"Data is not a json for request: {metadata.url}"
            )
            error = create_decode_error(
                self._exchange_id, descriptor.path, text, e, metadata.status_code
            )
            return ExecutionOutcome(
                metadata, payload=text, error=error, transport_error=transport_error
            )

        if self._is_error_status(metadata.status_code):
            return self._status_failure(descriptor, metadata, payload, transport_error)

        return ExecutionOutcome(metadata, payload=payload, transport_error=transport_error)

    @staticmethod
    def _is_error_status(status_code: Optional[int]) -> bool:
        return status_code is not None and status_code >= 400

    def _status_failure(
        self,
        descriptor: EndpointDescriptor,
        metadata: ResponseMetadata,
        payload: Any,
        transport_error: Optional[BaseException],
    ) -> ExecutionOutcome:
        """HTTP_STATUS failure; payload is the decoded body, or its text if not JSON."""
        error = create_http_status_error(
            self._exchange_id, descriptor.path, metadata.status_code, payload
        )
        self._logger.log_failure(descriptor, metadata.request_id, str(error))
        return ExecutionOutcome(
            metadata, payload=payload, error=error, transport_error=transport_error
        )


__all__ = [
    "ResponseMetadata",
    "ExecutionOutcome",
    "FetchExecutor",
]
