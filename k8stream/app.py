"""Application bootstrap for k8stream.

Wires all components in dependency order and manages the asyncio lifecycle.
Startup order: config → logging → store → K8s client → sink → batcher
              → enricher/handler → watcher → store purger → heartbeat → REST

Shutdown stops the watch streams first so no new notifications arrive, then
the remaining components in reverse order. Each component's stop error is
caught and logged independently. A partially filled batch is not flushed.
"""

from __future__ import annotations

import asyncio
import signal
from typing import TYPE_CHECKING

from k8stream.config import load_config
from k8stream.models.config import K8StreamConfig
from k8stream.observability.logging import get_logger, setup_logging

if TYPE_CHECKING:
    import structlog

    from k8stream.collector.kube_client import KubeClient
    from k8stream.collector.watcher import Watcher
    from k8stream.pipeline.batcher import Batcher
    from k8stream.pipeline.handler import DispatchHandler
    from k8stream.sinks.base import Sink
    from k8stream.store.base import LocalStore

_SHUTDOWN_GRACE_SECONDS = 15


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class K8StreamApp:
    """Application root. Owns every component and coordinates their lifecycle.

    ``stop()`` is safe to call on an app that was never started or is
    already stopped.
    """

    def __init__(self) -> None:
        self.config: K8StreamConfig | None = None

        self._store: LocalStore | None = None
        self._kube: KubeClient | None = None
        self._sink: Sink | None = None
        self._batcher: Batcher | None = None
        self._handler: DispatchHandler | None = None
        self._watcher: Watcher | None = None
        self._heartbeat: object | None = None
        self._rest_server: object | None = None

        self._background_tasks: list[asyncio.Task[None]] = []

        self._running = False
        self._log: structlog.stdlib.BoundLogger | None = None

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start all components in dependency order.

        Raises _ComponentError if a mandatory component cannot start.
        """
        self.config = load_config()

        setup_logging(self.config.log.level, run_id=self.config.uid)
        self._log = get_logger("app")
        self._log.info("k8stream starting", version=_k8stream_version(), run_id=self.config.uid)

        self._start_store()
        await self._start_kube_client()
        self._start_sink()
        await self._start_batcher()
        self._start_handler()
        await self._start_watcher()
        await self._start_store_purger()
        await self._start_heartbeat()
        await self._start_rest()

        self._running = True
        self._log.info("k8stream started")

    def _start_store(self) -> None:
        assert self._log is not None
        try:
            from k8stream.store import MemoryStore

            self._store = MemoryStore()
            self._log.info("local store started", backend="memory")
        except Exception as exc:
            raise _ComponentError("store", exc) from exc

    async def _start_kube_client(self) -> None:
        """Initialise kubernetes-asyncio from in-cluster config or kubeconfig."""
        assert self._log is not None
        assert self.config is not None
        assert self._store is not None
        self._log.debug("starting k8s client")
        try:
            import kubernetes_asyncio.config as k8s_config  # type: ignore[import-untyped]
            from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]

            from k8stream.collector.kube_client import KubeClient

            kubeconfig = self.config.kube.kubeconfig
            if kubeconfig:
                await k8s_config.load_kube_config(config_file=kubeconfig)
                self._log.info("k8s client configured from kubeconfig", path=kubeconfig)
            else:
                try:
                    k8s_config.load_incluster_config()
                    self._log.info("k8s client configured from in-cluster service account")
                except k8s_config.ConfigException:
                    await k8s_config.load_kube_config()
                    self._log.info("k8s client configured from kubeconfig")

            self._kube = KubeClient(
                api_client=k8s_client.ApiClient(),
                store=self._store,
                lookup_timeout=self.config.kube.lookup_timeout_seconds,
                node_address_ttl=self.config.store.node_address_ttl_seconds,
            )
        except Exception as exc:
            raise _ComponentError("k8s_client", exc) from exc

    def _start_sink(self) -> None:
        assert self._log is not None
        assert self.config is not None
        try:
            from k8stream.sinks import build_sink

            self._sink = build_sink(self.config.sink)
            self._log.info("sink configured", sink=self._sink.sink_name)
        except Exception as exc:
            raise _ComponentError("sink", exc) from exc

    async def _start_batcher(self) -> None:
        assert self._log is not None
        assert self.config is not None
        assert self._sink is not None
        try:
            from k8stream.pipeline.batcher import Batcher

            batcher = Batcher(
                run_id=self.config.uid,
                sink=self._sink,
                batch_size=self.config.batch.size,
                interval=self.config.batch.interval_seconds,
                queue_size=self.config.batch.queue_size,
            )
            await batcher.start()
            self._batcher = batcher
        except Exception as exc:
            raise _ComponentError("batcher", exc) from exc

    def _start_handler(self) -> None:
        assert self._log is not None
        assert self.config is not None
        assert self._store is not None
        assert self._kube is not None
        assert self._batcher is not None
        try:
            from k8stream.pipeline import Deduplicator, DispatchHandler, Enricher, ReverseIndex

            enricher = Enricher(
                store=self._store,
                client=self._kube,
                dedup=Deduplicator(self._store, ttl_seconds=self.config.store.event_ttl_seconds),
                index=ReverseIndex(self._store, ttl_seconds=self.config.store.index_ttl_seconds),
                emit=self._batcher.put,
            )
            self._handler = DispatchHandler(enricher)
        except Exception as exc:
            raise _ComponentError("handler", exc) from exc

    async def _start_watcher(self) -> None:
        assert self._log is not None
        assert self.config is not None
        assert self._kube is not None
        assert self._handler is not None
        self._log.debug("starting watcher")
        try:
            from k8stream.collector.watcher import Watcher

            core = self._kube.core
            watcher = Watcher(
                streams={
                    "Event": core.list_event_for_all_namespaces,
                    "Service": core.list_service_for_all_namespaces,
                },
                handler=self._handler,
                timeout_seconds=self.config.kube.watch_timeout_seconds,
            )
            await watcher.start()
            self._watcher = watcher
        except Exception as exc:
            raise _ComponentError("watcher", exc) from exc

    async def _start_store_purger(self) -> None:
        """Launch a periodic task that drops expired store records."""
        assert self._log is not None
        assert self.config is not None
        store = self._store
        interval = self.config.store.purge_interval_seconds

        async def _purger() -> None:
            while True:
                await asyncio.sleep(interval)
                try:
                    removed = store.purge_expired()  # type: ignore[union-attr]
                except Exception as exc:
                    if self._log:
                        self._log.warning("store_purge_failed", error=str(exc))
                    continue
                if removed and self._log:
                    self._log.debug("store_purged", removed=removed)

        task = asyncio.create_task(_purger(), name="store-purger")
        self._background_tasks.append(task)

    async def _start_heartbeat(self) -> None:
        """Start the liveness ping if a URL is configured. Non-fatal."""
        assert self._log is not None
        assert self.config is not None
        hb = self.config.heartbeat
        if not hb.url:
            self._log.info("heartbeat disabled (no url)")
            return
        try:
            from k8stream.heartbeat import Heartbeat

            heartbeat = Heartbeat(
                run_id=self.config.uid,
                url=hb.url,
                interval=hb.interval_seconds,
                timeout=hb.timeout_seconds,
            )
            await heartbeat.start()
            self._heartbeat = heartbeat
        except Exception as exc:
            self._log.warning("heartbeat failed to start", error=str(exc))
            self._heartbeat = None

    async def _start_rest(self) -> None:
        """Start the uvicorn status server. Non-fatal."""
        assert self._log is not None
        assert self.config is not None
        if not self.config.api.enabled:
            self._log.info("rest api disabled")
            return
        try:
            import uvicorn  # type: ignore[import-untyped]

            from k8stream.api import create_app

            fastapi_app = create_app(batcher=self._batcher, store=self._store, watcher=self._watcher)
            uv_config = uvicorn.Config(
                app=fastapi_app,
                host="0.0.0.0",
                port=self.config.api.port,
                log_config=None,
                access_log=False,
            )
            server = uvicorn.Server(uv_config)
            task = asyncio.create_task(server.serve(), name="rest-server")
            self._background_tasks.append(task)
            self._rest_server = server
            self._log.info("rest api started", port=self.config.api.port)
        except Exception as exc:
            self._log.warning("rest api failed to start", error=str(exc))
            self._rest_server = None

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Stop all components, watch streams first."""
        if not self._running and self._log is None:
            return

        log = self._log or get_logger("app")
        log.info("k8stream shutting down")
        self._running = False

        await self._stop_component("watcher", self._watcher)

        for task in reversed(self._background_tasks):
            if not task.done():
                task.cancel()
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
        self._background_tasks.clear()

        await self._stop_component("heartbeat", self._heartbeat)
        await self._stop_component("batcher", self._batcher)
        await self._stop_component("sink", self._sink)
        await self._stop_component("k8s_client", self._kube)
        if self._store is not None:
            self._store.close()

        self._watcher = None
        self._batcher = None
        log.info("k8stream stopped")

    async def _stop_component(self, name: str, component: object | None) -> None:
        """Call stop() (or close()) on a component, catching all errors."""
        if component is None:
            return
        log = self._log or get_logger("app")
        stop_fn = getattr(component, "stop", None) or getattr(component, "close", None)
        if stop_fn is None:
            return
        try:
            result = stop_fn()
            if asyncio.iscoroutine(result):
                await asyncio.wait_for(result, timeout=_SHUTDOWN_GRACE_SECONDS)
        except TimeoutError:
            log.warning("component stop timed out", component=name, timeout=_SHUTDOWN_GRACE_SECONDS)
        except Exception as exc:
            log.error("component stop raised an error", component=name, error=str(exc))


def _k8stream_version() -> str:
    from k8stream import __version__

    return __version__


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main() -> None:
    """Create the app, register OS signals, run until shutdown is requested."""
    app = K8StreamApp()
    loop = asyncio.get_running_loop()

    shutdown: asyncio.Task[None] | None = None

    def _request_shutdown() -> None:
        nonlocal shutdown
        if shutdown is not None:
            return
        shutdown = asyncio.create_task(app.stop(), name="shutdown")

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _request_shutdown)

    try:
        await app.start()
        while app._running:
            await asyncio.sleep(1)
        if shutdown is not None:
            await shutdown
    except _ComponentError as exc:
        log = get_logger("app")
        log.critical(
            "fatal startup error",
            component=exc.component,
            error=str(exc.cause),
        )
        await app.stop()
        raise SystemExit(1) from exc
    finally:
        if app._running:
            await app.stop()


def run() -> None:
    """Console-script entry point (``k8stream``)."""
    asyncio.run(main())
