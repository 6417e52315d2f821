"""JSON-over-HTTP sink.

Posts each batch as ``{"run_id": ..., "events": [...]}`` to the configured
endpoint. Any non-2xx response is a delivery failure.
"""

from __future__ import annotations

import httpx

from k8stream.models.events import EnrichedEvent
from k8stream.observability.logging import get_logger
from k8stream.sinks.base import Sink, SinkError

_log = get_logger("sinks.http")


class HTTPSink(Sink):
    """Delivers batches by POSTing JSON to a URL.

    Args:
        url:     Full endpoint URL.
        token:   Optional bearer token sent in the Authorization header.
        timeout: HTTP request timeout in seconds. Defaults to 10.
        transport: Optional httpx transport (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        url: str,
        token: str = "",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not url:
            raise ValueError("HTTP sink url must not be empty")
        self._url = url
        self._timeout = timeout
        self._transport = transport
        self._headers = {"Content-Type": "application/json"}
        if token:
            self._headers["Authorization"] = f"Bearer {token}"

    @property
    def sink_name(self) -> str:
        return "http"

    async def deliver(self, run_id: str, events: list[EnrichedEvent]) -> None:
        payload = {"run_id": run_id, "events": [e.to_dict() for e in events]}
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(self._url, json=payload, headers=self._headers)
        except httpx.TimeoutException as exc:
            raise SinkError(f"timed out posting batch to {self._url}") from exc
        except httpx.HTTPError as exc:
            raise SinkError(f"error posting batch to {self._url}: {exc}") from exc

        if not response.is_success:
            _log.warning(
                "sink_non_2xx_response",
                status_code=response.status_code,
                body=response.text[:200],
                size=len(events),
            )
            raise SinkError(f"sink responded with HTTP {response.status_code}")
