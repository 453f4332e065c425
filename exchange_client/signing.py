"""
Exchange Client - Request Signing.

============================================================
PURPOSE
============================================================
Builds outgoing requests from endpoint descriptors and signs the
authenticated ones.

SIGNATURE:
    prehash   = timestamp + METHOD + path + body
    signature = BASE64(HMAC-SHA256(BASE64_DECODE(secret), prehash))

The timestamp is the wall clock in fractional seconds and is the same
value sent in the timestamp header. It is independent from the
NonceClock.

FAILURE MODE:
If the secret cannot be decoded or the HMAC fails, the signature
header is omitted and the request is still built; the exchange then
rejects it with an authentication error.

============================================================
"""

import base64
import binascii
import hashlib
import hmac
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Mapping, Optional

from .endpoints import EndpointDescriptor, HttpMethod


logger = logging.getLogger(__name__)


# ============================================================
# REQUEST TYPES
# ============================================================

@dataclass
class PreparedRequest:
    """A request ready for the transport."""

    method: str
    url: str
    path: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None


@dataclass(frozen=True)
class SignatureHeaders:
    """Header names used by an exchange's authentication scheme."""

    signature: str = "CB-ACCESS-SIGN"
    timestamp: str = "CB-ACCESS-TIMESTAMP"
    passphrase: str = "CB-ACCESS-PASSPHRASE"
    key: str = "CB-ACCESS-KEY"


@dataclass(frozen=True)
class Credentials:
    """API credentials. The secret is base64 encoded."""

    key: str = ""
    secret: str = ""
    passphrase: str = ""

    @property
    def is_complete(self) -> bool:
        return bool(self.key and self.secret and self.passphrase)

    def __repr__(self) -> str:
        return "Credentials(key=***, secret=***, passphrase=***)"


# ============================================================
# SIGNING PRIMITIVES
# ============================================================

def canonical_body(post_data: Mapping[str, str]) -> str:
    """Canonical JSON form of a POST payload ("" when empty)."""
    if not post_data:
        return ""
    return json.dumps(dict(post_data), sort_keys=True, separators=(",", ":"))


def compute_signature(
    secret: str,
    timestamp: str,
    method: str,
    path: str,
    body: str = "",
) -> str:
    """
    Create request signature.

    Args:
        secret: Base64 encoded API secret
        timestamp: Timestamp string sent alongside the request
        method: HTTP method
        path: Request path
        body: Canonical request body

    Returns:
        Base64 encoded signature

    Raises:
        binascii.Error: If the secret is not valid base64
    """
    key = base64.b64decode(secret, validate=True)
    prehash = f"{timestamp}{method.upper()}{path}{body}"
    digest = hmac.new(key, prehash.encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def wall_clock_timestamp() -> str:
    """Signing timestamp: wall clock seconds with fractional part."""
    return str(time.time())


# ============================================================
# REQUEST SIGNER
# ============================================================

class RequestSigner:
    """Builds plain or signed requests for endpoint descriptors."""

    def __init__(
        self,
        credentials: Optional[Credentials] = None,
        headers: SignatureHeaders = SignatureHeaders(),
        timestamp_source: Callable[[], str] = wall_clock_timestamp,
    ):
        """
        Initialize signer.

        Args:
            credentials: API credentials (None for public-only services)
            headers: Header names for the authentication scheme
            timestamp_source: Produces the signing timestamp string
        """
        self._credentials = credentials or Credentials()
        self._headers = headers
        self._timestamp_source = timestamp_source

    @property
    def credentials(self) -> Credentials:
        return self._credentials

    def build(self, descriptor: EndpointDescriptor) -> PreparedRequest:
        """
        Build the outgoing request for a descriptor.

        Args:
            descriptor: Endpoint to call

        Returns:
            PreparedRequest with auth headers attached when required
        """
        body = canonical_body(descriptor.post_data)
        request = PreparedRequest(
            method=descriptor.method.value,
            url=descriptor.url,
            path=descriptor.path,
            body=body if body and descriptor.method == HttpMethod.POST else None,
        )
        if request.body is not None:
            request.headers["Content-Type"] = "application/json"

        if descriptor.authenticated:
            self._sign(request, descriptor, body)

        return request

    def _sign(
        self,
        request: PreparedRequest,
        descriptor: EndpointDescriptor,
        body: str,
    ) -> None:
        timestamp = self._timestamp_source()

        try:
            signature = compute_signature(
                self._credentials.secret,
                timestamp,
                descriptor.method.value,
                descriptor.path,
                body,
            )
        except (binascii.Error, ValueError, TypeError) as e:
            logger.warning(f"Signature omitted for {descriptor.name}: {e}")
        else:
            request.headers[self._headers.signature] = signature

        request.headers[self._headers.timestamp] = timestamp
        request.headers[self._headers.passphrase] = self._credentials.passphrase
        request.headers[self._headers.key] = self._credentials.key


__all__ = [
    "PreparedRequest",
    "SignatureHeaders",
    "Credentials",
    "RequestSigner",
    "canonical_body",
    "compute_signature",
    "wall_clock_timestamp",
]
