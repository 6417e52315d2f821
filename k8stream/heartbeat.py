"""Periodic liveness ping.

POSTs ``{"run_id", "version", "timestamp"}`` to a configured URL. Failures
are logged and never stop the pipeline.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import httpx

from k8stream.observability.logging import get_logger

_log = get_logger("heartbeat")


class Heartbeat:
    """Background task reporting that this run is alive.

    Args:
        run_id:   pipeline run identifier.
        url:      endpoint receiving the ping.
        interval: seconds between pings.
        timeout:  HTTP request timeout in seconds.
    """

    def __init__(
        self,
        run_id: str,
        url: str,
        interval: float = 60.0,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not url:
            raise ValueError("Heartbeat url must not be empty")
        self._run_id = run_id
        self._url = url
        self._interval = interval
        self._timeout = timeout
        self._transport = transport
        self._task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        self._task = asyncio.create_task(self._run(), name="heartbeat")
        _log.info("heartbeat_started", url=self._url, interval=self._interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def beat(self) -> bool:
        """Send one ping. Returns True on a 2xx response."""
        from k8stream import __version__

        payload = {
            "run_id": self._run_id,
            "version": __version__,
            "timestamp": datetime.now(tz=UTC).isoformat(),
        }
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(self._url, json=payload)
        except httpx.HTTPError as exc:
            _log.warning("heartbeat_failed", error=str(exc))
            return False
        if not response.is_success:
            _log.warning("heartbeat_non_2xx_response", status_code=response.status_code)
            return False
        return True

    async def _run(self) -> None:
        while True:
            await self.beat()
            await asyncio.sleep(self._interval)
