"""Push gateway adapter — the "deliver to connection" primitive.

Learn: The gateway holds the actual WebSocket connections. We hand it a
connection id and a payload; it answers with success, 410 Gone (the
socket is dead, forget it), or some other failure.

Everything provider-specific stays in this module. The publisher only
ever sees a DeliveryOutcome from classify_delivery_error, so swapping
gateways never touches the prune-vs-retain decision.

The HTTP adapter speaks the management API shape used by API Gateway
and compatible self-hosted gateways:
    POST {endpoint}/@connections/{connectionId}   body = raw payload
"""

import enum
from abc import ABC, abstractmethod
from typing import Optional
from urllib.parse import quote

import httpx

from clinicpush.config import Settings


class GatewayError(Exception):
    """Base class for delivery failures."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ConnectionGoneError(GatewayError):
    """The gateway reports the target channel no longer exists (HTTP 410)."""


class DeliveryError(GatewayError):
    """Any other failure: network, timeout, throttling, 5xx."""


class DeliveryOutcome(str, enum.Enum):
    GONE = "gone"
    TRANSIENT = "transient"


def classify_delivery_error(exc: BaseException) -> DeliveryOutcome:
    """Map a failed delivery to GONE (prune) or TRANSIENT (keep the record).

    Timeouts are TRANSIENT: a slow peer isn't proof of a dead one.
    """
    if isinstance(exc, ConnectionGoneError):
        return DeliveryOutcome.GONE
    if isinstance(exc, GatewayError) and exc.status_code == 410:
        return DeliveryOutcome.GONE
    if isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code == 410:
        return DeliveryOutcome.GONE
    return DeliveryOutcome.TRANSIENT


class PushGateway(ABC):
    """Abstract deliver-to-connection primitive."""

    @abstractmethod
    async def deliver(self, connection_id: str, data: bytes) -> None:
        """Send `data` to one connection. Raises GatewayError on failure."""

    async def close(self) -> None:
        """Release client resources. Default: nothing to release."""


class HttpPushGateway(PushGateway):
    """Management-API client over httpx.

    Learn: One AsyncClient per process, created at startup and reused for
    every publish (connection pooling). Its timeout bounds each individual
    delivery attempt.
    """

    def __init__(
        self,
        endpoint: str,
        api_key: str = "",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self.endpoint = endpoint.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.endpoint,
            timeout=timeout,
            headers=headers,
            transport=transport,
        )

    async def deliver(self, connection_id: str, data: bytes) -> None:
        path = f"/@connections/{quote(connection_id, safe='')}"
        try:
            resp = await self._client.post(path, content=data)
        except httpx.TimeoutException as e:
            raise DeliveryError(f"Delivery timed out: {e!r}") from e
        except httpx.HTTPError as e:
            raise DeliveryError(f"Delivery failed: {e!r}") from e

        if resp.status_code == 410:
            raise ConnectionGoneError(
                f"Connection {connection_id} is gone", status_code=410
            )
        if resp.status_code >= 300:
            raise DeliveryError(
                f"Gateway returned {resp.status_code}: {resp.text[:200]}",
                status_code=resp.status_code,
            )

    async def close(self) -> None:
        await self._client.aclose()


def build_gateway(settings: Settings) -> Optional[PushGateway]:
    """Create the process-scoped gateway client, or None when delivery is disabled."""
    if not settings.realtime_enabled:
        return None
    return HttpPushGateway(
        settings.gateway_endpoint,
        api_key=settings.gateway_api_key,
        timeout=settings.gateway_timeout_seconds,
    )
