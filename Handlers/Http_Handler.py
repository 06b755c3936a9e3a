"""
HTTP Handler - Delivers Envelopes to the remote collector with HTTP POST.

Implements the Transmitter protocol. One requests.Session is opened when
the node starts and closed once when it stops; a failed POST never tears
it down, so the next attempt starts from a healthy transport.
"""
import time
from typing import Dict, Optional

import requests

from core.events import Envelope
from core.protocols import DeliveryReceipt
from utils.constants import DEFAULT_TIMEOUT, XML_CONTENT_TYPE
from utils.failures import TransmitError
from utils.logger import Logger, redact_url


class HttpTransmitter:
    """Single-attempt HTTP(S) delivery of Envelope XML documents.

    Implements the Transmitter protocol:
        send(envelope) -> DeliveryReceipt   (raises TransmitError)

    Usage:
        with HttpTransmitter(url) as transmitter:
            transmitter.send(envelope)
    """

    def __init__(
        self,
        url: str,
        timeout: float = DEFAULT_TIMEOUT,
        verify_tls: bool = True,
        headers: Optional[Dict[str, str]] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Args:
            url: Destination URL of the collector.
            timeout: Seconds allowed for connect and read.
            verify_tls: Verify the peer certificate. Disable only on explicit opt-in.
            headers: Extra request headers; Content-Type is always application/xml.
            session: Pre-built session (tests); opened lazily otherwise.
        """
        self.url = url
        self.timeout = timeout
        self.verify_tls = verify_tls
        self.headers = dict(headers or {})
        self.headers['Content-Type'] = XML_CONTENT_TYPE
        self.logger = Logger("HttpTransmitter")
        self._session: Optional[requests.Session] = session

    # ── Lifecycle ─────────────────────────────────────────────────────

    def open(self) -> "HttpTransmitter":
        """Create the shared session. Idempotent."""
        if self._session is None:
            self._session = requests.Session()
        if not self.verify_tls:
            self.logger.warning(
                f"TLS certificate verification disabled for {redact_url(self.url)}"
            )
        return self

    def close(self) -> None:
        """Close the shared session. Idempotent."""
        if self._session is not None:
            self._session.close()
            self._session = None
            self.logger.debug("HTTP session closed")

    @property
    def is_open(self) -> bool:
        return self._session is not None

    def __enter__(self) -> "HttpTransmitter":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ── Transmitter protocol ──────────────────────────────────────────

    def send(self, envelope: Envelope) -> DeliveryReceipt:
        """
        POST one Envelope. Exactly one attempt, no retry.

        Raises:
            TransmitError: the session is closed, the request failed, or the
                collector answered with a non-2xx status.
        """
        safe_url = redact_url(self.url)
        if self._session is None:
            raise TransmitError(f"Transmitter for {safe_url} is not open")

        started = time.monotonic()
        try:
            response = self._session.post(
                self.url,
                data=envelope.to_xml(),
                headers=self.headers,
                timeout=self.timeout,
                verify=self.verify_tls,
            )
        except requests.RequestException as e:
            raise TransmitError(f"POST to {safe_url} failed: {e}") from e

        elapsed_ms = (time.monotonic() - started) * 1000.0

        if not 200 <= response.status_code < 300:
            raise TransmitError(
                f"POST to {safe_url} rejected with HTTP {response.status_code}",
                status_code=response.status_code,
            )

        self.logger.info(
            f"Delivered {envelope!r} to {safe_url} "
            f"({response.status_code}, {elapsed_ms:.0f} ms)"
        )
        return DeliveryReceipt(status_code=response.status_code, elapsed_ms=elapsed_ms)
