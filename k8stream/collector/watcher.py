"""Cluster-wide watch streams for Events and Services.

One task per watched kind. Every callback into the dispatch handler goes
through a single lock, so notifications are processed one at a time in the
order each stream delivers them. Streams reconnect with exponential
back-off and restart from a fresh list when the server reports the
resource version as expired (HTTP 410).
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from kubernetes_asyncio import watch  # type: ignore[import-untyped]
from kubernetes_asyncio.client.exceptions import ApiException  # type: ignore[import-untyped]

from k8stream.observability.logging import get_logger

if TYPE_CHECKING:
    from k8stream.pipeline.handler import DispatchHandler

_log = get_logger("collector.watcher")

_BACKOFF_INITIAL = 1.0
_BACKOFF_MAX = 30.0
_HTTP_GONE = 410


class Watcher:
    """Feeds watch notifications for several kinds into a DispatchHandler.

    Args:
        streams:          kind -> list function accepting ``watch=True`` kwargs,
                          e.g. ``{"Event": core.list_event_for_all_namespaces}``.
        handler:          dispatch handler receiving the callbacks.
        timeout_seconds:  server-side watch timeout before a clean reconnect.
    """

    def __init__(
        self,
        streams: dict[str, Callable[..., Any]],
        handler: DispatchHandler,
        timeout_seconds: int = 300,
    ) -> None:
        self._streams = streams
        self._handler = handler
        self._timeout = timeout_seconds
        self._dispatch_lock = asyncio.Lock()
        self._tasks: list[asyncio.Task[None]] = []
        self._synced: set[str] = set()

    @property
    def synced(self) -> bool:
        """True once every stream has delivered an item or completed a clean cycle."""
        return self._synced == set(self._streams)

    async def start(self) -> None:
        for kind, list_fn in self._streams.items():
            task = asyncio.create_task(self._run(kind, list_fn), name=f"watch-{kind.lower()}")
            self._tasks.append(task)
        _log.info("watcher_started", kinds=sorted(self._streams))

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        _log.info("watcher_stopped")

    async def _run(self, kind: str, list_fn: Callable[..., Any]) -> None:
        resource_version = ""
        backoff = _BACKOFF_INITIAL
        while True:
            try:
                resource_version = await self._stream_once(kind, list_fn, resource_version)
                backoff = _BACKOFF_INITIAL
                continue
            except ApiException as exc:
                if exc.status == _HTTP_GONE:
                    _log.info("watch_relist", kind=kind, reason="resource version expired")
                    resource_version = ""
                    continue
                _log.warning("watch_api_error", kind=kind, status=exc.status, error=str(exc.reason))
            except Exception as exc:
                _log.warning("watch_stream_error", kind=kind, error=str(exc))

            await asyncio.sleep(backoff)
            backoff = min(backoff * 2, _BACKOFF_MAX)

    async def _stream_once(self, kind: str, list_fn: Callable[..., Any], resource_version: str) -> str:
        """Consume one watch connection; return the last resource version seen."""
        kwargs: dict[str, Any] = {"timeout_seconds": self._timeout}
        if resource_version:
            kwargs["resource_version"] = resource_version

        async with watch.Watch() as w:
            async for item in w.stream(list_fn, **kwargs):
                self._synced.add(kind)
                event_type = str(item.get("type", ""))
                raw = item.get("raw_object") or {}
                if event_type == "ERROR":
                    if raw.get("code") == _HTTP_GONE:
                        _log.info("watch_relist", kind=kind, reason="resource version expired")
                        return ""
                    _log.warning("watch_error_event", kind=kind, message=raw.get("message", ""))
                    continue

                version = (raw.get("metadata") or {}).get("resourceVersion")
                if version:
                    resource_version = str(version)
                await self.dispatch(kind, event_type, raw)
        # A quiet stream that closes cleanly at its timeout is still in sync.
        self._synced.add(kind)
        return resource_version

    async def dispatch(self, kind: str, event_type: str, obj: dict[str, Any]) -> None:
        """Invoke the handler callback matching *event_type*, one at a time."""
        async with self._dispatch_lock:
            match event_type:
                case "ADDED":
                    await self._handler.on_add(obj, kind=kind)
                case "MODIFIED":
                    # Watch events carry only the new state.
                    await self._handler.on_update(None, obj, kind=kind)
                case "DELETED":
                    await self._handler.on_delete(obj, kind=kind)
                case _:
                    _log.debug("watch_event_ignored", kind=kind, type=event_type)
