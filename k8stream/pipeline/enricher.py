"""Enrichment of raw notifications into EnrichedEvents.

Lookup failures against the Kubernetes API are logged and enrichment
continues with whatever data is available. Store errors propagate so the
dispatch handler can abort the notification.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any

from k8stream.collector.base import LookupFailure, OrchestrationClient
from k8stream.models.events import EnrichedEvent, ResourceEvent, ServiceChange
from k8stream.observability.logging import get_logger
from k8stream.observability.metrics import (
    events_enriched_total,
    lookup_failures_total,
    notifications_dropped_total,
)
from k8stream.pipeline.dedup import Deduplicator, version_at_least
from k8stream.pipeline.reverse_index import SERVICE_PODS_TABLE, SERVICE_TABLE, ReverseIndex
from k8stream.store.base import LocalStore, encode

_log = get_logger("pipeline.enricher")

EVENT_SYSTEM_NAMESPACES = frozenset({"kube-system", "kubernetes", "kubernetes-dashboard"})
SERVICE_SYSTEM_NAMESPACES = frozenset({"kube-system", "kubernetes-dashboard"})
DEFAULT_SERVICE_NAME = "kubernetes"

Emit = Callable[[EnrichedEvent], Awaitable[None]]


def mini_pod_info(pod: dict[str, Any]) -> dict[str, Any]:
    """Return the pod fields carried on every enriched record."""
    metadata = pod.get("metadata") or {}
    status = pod.get("status") or {}
    return {
        "uid": metadata.get("uid", ""),
        "name": metadata.get("name", ""),
        "namespace": metadata.get("namespace", ""),
        "start_time": status.get("startTime"),
        "ip": status.get("podIP", ""),
        "host_ip": status.get("hostIP", ""),
    }


def _event_timestamp(obj: dict[str, Any]) -> int:
    metadata = obj.get("metadata") or {}
    for value in (
        metadata.get("creationTimestamp"),
        obj.get("lastTimestamp"),
        obj.get("eventTime"),
    ):
        if not value:
            continue
        try:
            return int(datetime.fromisoformat(str(value)).timestamp())
        except ValueError:
            continue
    return int(time.time())


class Enricher:
    """Turns ResourceEvent and ServiceChange notifications into EnrichedEvents.

    Args:
        store:   shared local store.
        client:  Kubernetes API lookups.
        dedup:   identity gate, also records what was forwarded.
        index:   pod -> services reverse index.
        emit:    coroutine that hands an event to the batcher.
    """

    def __init__(
        self,
        store: LocalStore,
        client: OrchestrationClient,
        dedup: Deduplicator,
        index: ReverseIndex,
        emit: Emit,
    ) -> None:
        self._store = store
        self._client = client
        self._dedup = dedup
        self._index = index
        self._emit = emit

    # ------------------------------------------------------------------
    # Resource events
    # ------------------------------------------------------------------

    async def enrich_event(self, notification: ResourceEvent) -> EnrichedEvent | None:
        """Enrich and forward a core Event. Returns None when skipped."""
        if notification.namespace in EVENT_SYSTEM_NAMESPACES:
            notifications_dropped_total.labels(reason="system_namespace").inc()
            return None

        identity = notification.identity
        if self._dedup.already_processed(identity):
            notifications_dropped_total.labels(reason="duplicate").inc()
            _log.debug("event_already_processed", event_uid=identity, op=notification.op.value)
            return None

        obj = notification.obj
        involved = obj.get("involvedObject") or {}
        source = obj.get("source") or {}
        host = str(source.get("host", ""))

        resolved: dict[str, Any] | None = None
        try:
            resolved = await self._client.resolve_object(involved)
        except LookupFailure as exc:
            lookup_failures_total.labels(target="object").inc()
            _log.warning(
                "involved_object_lookup_failed",
                event_uid=identity,
                kind=involved.get("kind", ""),
                name=involved.get("name", ""),
                error=str(exc),
            )

        address: list[str] = []
        if host:
            try:
                address = await self._client.resolve_node_address(host)
            except LookupFailure as exc:
                lookup_failures_total.labels(target="node_address").inc()
                _log.warning("node_address_lookup_failed", event_uid=identity, host=host, error=str(exc))

        event = EnrichedEvent(
            id=identity,
            timestamp=_event_timestamp(obj),
            component=str(source.get("component", "")),
            host=host,
            message=str(obj.get("message", "")),
            namespace=notification.namespace,
            reason=str(obj.get("reason", "")),
            reference_uid=str(involved.get("uid", "")),
            reference_namespace=str(involved.get("namespace", "")),
            reference_name=str(involved.get("name", "")),
            reference_kind=str(involved.get("kind", "")),
            reference_version=str(involved.get("apiVersion", "")),
            address=address,
        )
        if resolved is not None:
            self._apply_involved_object(event, resolved)

        # Identity is stored before the event leaves; a failed write aborts.
        self._dedup.record(identity, event)
        await self._emit(event)
        events_enriched_total.labels(kind="event").inc()
        return event

    def _apply_involved_object(self, event: EnrichedEvent, resolved: dict[str, Any]) -> None:
        metadata = resolved.get("metadata") or {}
        kind = str(resolved.get("kind", "")) or event.reference_kind
        event.reference_namespace = str(metadata.get("namespace", "")) or event.reference_namespace
        event.reference_kind = kind
        event.object_uid = str(metadata.get("uid", ""))
        event.labels = dict(metadata.get("labels") or {})
        event.annotations = dict(metadata.get("annotations") or {})

        if kind.lower() != "pod":
            return
        pod = mini_pod_info(resolved)
        pod["impacted_services"] = self._index.impacted_services(pod["uid"]) if pod["uid"] else []
        event.pod = pod

    # ------------------------------------------------------------------
    # Services
    # ------------------------------------------------------------------

    async def enrich_service(self, notification: ServiceChange) -> EnrichedEvent | None:
        """Record a service, refresh the reverse index and forward a change event."""
        if notification.namespace in SERVICE_SYSTEM_NAMESPACES or notification.name == DEFAULT_SERVICE_NAME:
            notifications_dropped_total.labels(reason="system_namespace").inc()
            return None

        service_uid = notification.uid
        incoming = notification.resource_version
        stored = self._dedup.stored_version(service_uid)
        if (stored is not None and version_at_least(stored, incoming)) or self._dedup.already_processed(
            notification.identity
        ):
            notifications_dropped_total.labels(reason="stale_version").inc()
            _log.debug("service_already_processed", service_uid=service_uid, version=incoming, stored=stored)
            return None

        service = notification.obj
        self._store.set(SERVICE_TABLE, service_uid, encode(service))

        pods: list[dict[str, Any]] = []
        try:
            pods = await self._client.resolve_pods_for_service(service)
        except LookupFailure as exc:
            lookup_failures_total.labels(target="service_pods").inc()
            _log.warning(
                "service_pods_lookup_failed",
                service=notification.name,
                namespace=notification.namespace,
                error=str(exc),
            )
        else:
            # The previous pod mapping is kept when the lookup fails.
            self._store.set(SERVICE_PODS_TABLE, service_uid, encode(pods))
            for pod in pods:
                pod_uid = str((pod.get("metadata") or {}).get("uid", ""))
                if pod_uid:
                    self._index.add(pod_uid, service_uid)

        metadata = service.get("metadata") or {}
        event = EnrichedEvent(
            id=notification.identity,
            timestamp=int(time.time()),
            component=notification.name,
            message=notification.event_type,
            namespace=notification.namespace,
            reason=notification.event_type,
            reference_version=incoming,
            object_uid=service_uid,
            labels=dict(metadata.get("labels") or {}),
            annotations=dict(metadata.get("annotations") or {}),
            pod={str((p.get("metadata") or {}).get("name", "")): mini_pod_info(p) for p in pods},
        )

        self._dedup.record(notification.identity, event)
        self._dedup.record(service_uid, event)
        await self._emit(event)
        events_enriched_total.labels(kind="service").inc()
        _log.info(
            "service_indexed",
            service=notification.name,
            namespace=notification.namespace,
            version=incoming,
            pods=len(pods),
        )
        return event
