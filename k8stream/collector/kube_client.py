"""Kubernetes API lookups backed by kubernetes-asyncio.

Objects are returned as plain JSON dicts (camelCase keys, as served by the
API), the same shape the watch streams deliver. Node addresses are cached
in the local store for ``node_address_ttl`` seconds.
"""

from __future__ import annotations

from typing import Any

import aiohttp
from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]
from kubernetes_asyncio.client.exceptions import ApiException  # type: ignore[import-untyped]

from k8stream.collector.base import LookupFailure
from k8stream.observability.logging import get_logger
from k8stream.store.base import LocalStore, StoreError, encode

_log = get_logger("collector.kube_client")

NODE_ADDRESS_TABLE = "node-address"

# kind -> (api group, read method, namespaced)
_READERS: dict[str, tuple[str, str, bool]] = {
    "Pod": ("core", "read_namespaced_pod", True),
    "Service": ("core", "read_namespaced_service", True),
    "Endpoints": ("core", "read_namespaced_endpoints", True),
    "ConfigMap": ("core", "read_namespaced_config_map", True),
    "PersistentVolumeClaim": ("core", "read_namespaced_persistent_volume_claim", True),
    "ReplicationController": ("core", "read_namespaced_replication_controller", True),
    "ServiceAccount": ("core", "read_namespaced_service_account", True),
    "Node": ("core", "read_node", False),
    "Namespace": ("core", "read_namespace", False),
    "PersistentVolume": ("core", "read_persistent_volume", False),
    "Deployment": ("apps", "read_namespaced_deployment", True),
    "ReplicaSet": ("apps", "read_namespaced_replica_set", True),
    "StatefulSet": ("apps", "read_namespaced_stateful_set", True),
    "DaemonSet": ("apps", "read_namespaced_daemon_set", True),
    "Job": ("batch", "read_namespaced_job", True),
    "CronJob": ("batch", "read_namespaced_cron_job", True),
}


def label_selector(selector: dict[str, str]) -> str:
    """Render a service selector map as an equality-based label selector."""
    return ",".join(f"{key}={value}" for key, value in sorted(selector.items()))


class KubeClient:
    """OrchestrationClient implementation over the typed kubernetes-asyncio APIs.

    Args:
        api_client:        configured ``kubernetes_asyncio.client.ApiClient``.
        store:             local store used to cache node addresses.
        lookup_timeout:    per-request timeout in seconds.
        node_address_ttl:  cache lifetime of resolved node addresses.
    """

    def __init__(
        self,
        api_client: Any,
        store: LocalStore,
        lookup_timeout: float = 5.0,
        node_address_ttl: int = 300,
    ) -> None:
        self._api_client = api_client
        self._store = store
        self._timeout = lookup_timeout
        self._node_address_ttl = node_address_ttl
        self.core = k8s_client.CoreV1Api(api_client)
        self._apis = {
            "core": self.core,
            "apps": k8s_client.AppsV1Api(api_client),
            "batch": k8s_client.BatchV1Api(api_client),
        }

    async def resolve_object(self, reference: dict[str, Any]) -> dict[str, Any]:
        kind = str(reference.get("kind", ""))
        name = str(reference.get("name", ""))
        namespace = str(reference.get("namespace", ""))
        reader = _READERS.get(kind)
        if reader is None:
            raise LookupFailure(f"unsupported kind {kind!r} for {namespace}/{name}")
        if not name:
            raise LookupFailure(f"reference to {kind} has no name")

        group, method_name, namespaced = reader
        kwargs: dict[str, Any] = {"name": name, "_request_timeout": self._timeout}
        if namespaced:
            kwargs["namespace"] = namespace
        obj = await self._call(getattr(self._apis[group], method_name), f"{kind} {namespace}/{name}", **kwargs)

        data = self._to_dict(obj)
        data.setdefault("kind", kind)
        return data

    async def resolve_node_address(self, hostname: str) -> list[str]:
        try:
            cached = self._store.get(NODE_ADDRESS_TABLE, hostname)
            if cached is not None:
                return list(cached.json())
        except StoreError as exc:
            _log.debug("node_address_cache_unreadable", host=hostname, error=str(exc))

        node = await self._call(
            self.core.read_node,
            f"Node {hostname}",
            name=hostname,
            _request_timeout=self._timeout,
        )
        data = self._to_dict(node)
        addresses = [
            str(entry["address"])
            for entry in (data.get("status") or {}).get("addresses") or []
            if entry.get("address")
        ]
        self._store.set_with_ttl(NODE_ADDRESS_TABLE, hostname, encode(addresses), self._node_address_ttl)
        return addresses

    async def resolve_pods_for_service(self, service: dict[str, Any]) -> list[dict[str, Any]]:
        metadata = service.get("metadata") or {}
        selector = (service.get("spec") or {}).get("selector") or {}
        if not selector:
            # A service without a selector targets manually managed endpoints.
            return []

        namespace = str(metadata.get("namespace", ""))
        pod_list = await self._call(
            self.core.list_namespaced_pod,
            f"pods for Service {namespace}/{metadata.get('name', '')}",
            namespace=namespace,
            label_selector=label_selector(selector),
            _request_timeout=self._timeout,
        )
        return [self._to_dict(pod) for pod in pod_list.items or []]

    async def close(self) -> None:
        await self._api_client.close()

    async def _call(self, method: Any, what: str, **kwargs: Any) -> Any:
        try:
            return await method(**kwargs)
        except ApiException as exc:
            raise LookupFailure(f"{what}: HTTP {exc.status} {exc.reason}") from exc
        except TimeoutError as exc:
            raise LookupFailure(f"{what}: timed out after {self._timeout}s") from exc
        except aiohttp.ClientError as exc:
            raise LookupFailure(f"{what}: {exc}") from exc

    def _to_dict(self, obj: Any) -> dict[str, Any]:
        if isinstance(obj, dict):
            return obj
        data = self._api_client.sanitize_for_serialization(obj)
        return data if isinstance(data, dict) else {}
