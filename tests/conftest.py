"""Shared fixtures and object builders for k8stream tests.

Provides raw Kubernetes objects in the shape the watch streams deliver,
a scriptable fake of the orchestration API, and a recording sink, so the
pipeline can be exercised without a cluster.
"""

from __future__ import annotations

from typing import Any

import pytest

from k8stream.collector.base import LookupFailure
from k8stream.models.events import EnrichedEvent
from k8stream.pipeline.dedup import Deduplicator
from k8stream.pipeline.enricher import Enricher
from k8stream.pipeline.handler import DispatchHandler
from k8stream.pipeline.reverse_index import ReverseIndex
from k8stream.sinks.base import Sink, SinkError
from k8stream.store.memory import MemoryStore

# ---------------------------------------------------------------------------
# Object builders
# ---------------------------------------------------------------------------


def make_pod(
    uid: str = "P1",
    name: str = "web-7b4f8c6d-x2kj",
    namespace: str = "default",
    labels: dict[str, str] | None = None,
) -> dict[str, Any]:
    return {
        "kind": "Pod",
        "apiVersion": "v1",
        "metadata": {
            "uid": uid,
            "name": name,
            "namespace": namespace,
            "labels": labels if labels is not None else {"app": "web"},
            "annotations": {"team": "payments"},
        },
        "status": {
            "startTime": "2024-01-15T10:00:00Z",
            "podIP": "10.0.0.12",
            "hostIP": "192.168.1.20",
        },
    }


def make_event(
    uid: str = "E1",
    namespace: str = "default",
    reason: str = "BackOff",
    message: str = "Back-off restarting failed container",
    involved_kind: str = "Pod",
    involved_name: str = "web-7b4f8c6d-x2kj",
    involved_uid: str = "P1",
    host: str = "node-1",
) -> dict[str, Any]:
    return {
        "kind": "Event",
        "apiVersion": "v1",
        "metadata": {
            "uid": uid,
            "name": f"{involved_name}.17a",
            "namespace": namespace,
            "creationTimestamp": "2024-01-15T10:30:00Z",
        },
        "involvedObject": {
            "kind": involved_kind,
            "namespace": namespace,
            "name": involved_name,
            "uid": involved_uid,
            "apiVersion": "v1",
        },
        "reason": reason,
        "message": message,
        "source": {"component": "kubelet", "host": host},
    }


def make_service(
    uid: str = "S1",
    name: str = "web",
    namespace: str = "default",
    resource_version: str = "100",
    selector: dict[str, str] | None = None,
) -> dict[str, Any]:
    return {
        "kind": "Service",
        "apiVersion": "v1",
        "metadata": {
            "uid": uid,
            "name": name,
            "namespace": namespace,
            "resourceVersion": resource_version,
            "labels": {"app": name},
            "annotations": {},
        },
        "spec": {"selector": selector if selector is not None else {"app": "web"}},
    }


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeOrchestrationClient:
    """In-memory stand-in for KubeClient.

    ``objects`` maps (kind, namespace, name) to raw objects, ``nodes`` maps
    hostnames to address lists, ``pods`` lists every pod considered for
    selector matching. Setting ``fail`` to a set of method names makes those
    lookups raise LookupFailure.
    """

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str, str], dict[str, Any]] = {}
        self.nodes: dict[str, list[str]] = {}
        self.pods: list[dict[str, Any]] = []
        self.fail: set[str] = set()
        self.calls: list[str] = []

    def add_pod(self, pod: dict[str, Any]) -> None:
        meta = pod["metadata"]
        self.objects[("Pod", meta["namespace"], meta["name"])] = pod
        self.pods.append(pod)

    async def resolve_object(self, reference: dict[str, Any]) -> dict[str, Any]:
        self.calls.append("resolve_object")
        if "resolve_object" in self.fail:
            raise LookupFailure("api unavailable")
        key = (reference.get("kind", ""), reference.get("namespace", ""), reference.get("name", ""))
        if key not in self.objects:
            raise LookupFailure(f"{key} not found")
        return self.objects[key]

    async def resolve_node_address(self, hostname: str) -> list[str]:
        self.calls.append("resolve_node_address")
        if "resolve_node_address" in self.fail:
            raise LookupFailure("api unavailable")
        if hostname not in self.nodes:
            raise LookupFailure(f"node {hostname} not found")
        return self.nodes[hostname]

    async def resolve_pods_for_service(self, service: dict[str, Any]) -> list[dict[str, Any]]:
        self.calls.append("resolve_pods_for_service")
        if "resolve_pods_for_service" in self.fail:
            raise LookupFailure("api unavailable")
        selector = service.get("spec", {}).get("selector") or {}
        namespace = service["metadata"]["namespace"]
        if not selector:
            return []
        return [
            p
            for p in self.pods
            if p["metadata"]["namespace"] == namespace
            and all(p["metadata"].get("labels", {}).get(k) == v for k, v in selector.items())
        ]


class RecordingSink(Sink):
    """Sink that keeps every delivered batch. ``failures`` makes the next N calls fail."""

    def __init__(self, failures: int = 0) -> None:
        self.batches: list[tuple[str, list[EnrichedEvent]]] = []
        self.failures = failures

    @property
    def sink_name(self) -> str:
        return "recording"

    async def deliver(self, run_id: str, events: list[EnrichedEvent]) -> None:
        if self.failures:
            self.failures -= 1
            raise SinkError("sink unavailable")
        self.batches.append((run_id, list(events)))


class Collector:
    """Emit target that records pushed events in order."""

    def __init__(self) -> None:
        self.events: list[EnrichedEvent] = []

    async def __call__(self, event: EnrichedEvent) -> None:
        self.events.append(event)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture()
def kube() -> FakeOrchestrationClient:
    client = FakeOrchestrationClient()
    client.add_pod(make_pod())
    client.nodes["node-1"] = ["192.168.1.20", "node-1.internal"]
    return client


@pytest.fixture()
def emitted() -> Collector:
    return Collector()


@pytest.fixture()
def enricher(store: MemoryStore, kube: FakeOrchestrationClient, emitted: Collector) -> Enricher:
    return Enricher(
        store=store,
        client=kube,
        dedup=Deduplicator(store),
        index=ReverseIndex(store),
        emit=emitted,
    )


@pytest.fixture()
def handler(enricher: Enricher) -> DispatchHandler:
    return DispatchHandler(enricher)
