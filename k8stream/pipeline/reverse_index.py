"""Pod -> services reverse index.

Each pod owns a table ``pod-service-<podUID>`` holding one record per
service that selects it. Adding a service is a single upsert, so two
service updates touching the same pod never overwrite each other's entry.

Entries are not removed when a service stops selecting a pod. With
``ttl_seconds > 0`` they expire instead and are re-added on the next change
of a service that still selects the pod.
"""

from __future__ import annotations

from k8stream.observability.logging import get_logger
from k8stream.store.base import LocalStore, StoreError, make_key

_log = get_logger("pipeline.reverse_index")

SERVICE_TABLE = "service"
SERVICE_PODS_TABLE = "service-pods"
POD_SERVICE_TABLE = "pod-service"

_PRESENT = b"true"


def pod_index_table(pod_uid: str) -> str:
    return make_key(POD_SERVICE_TABLE, pod_uid)


class ReverseIndex:
    """Maintains and queries the pod -> services mapping."""

    def __init__(self, store: LocalStore, ttl_seconds: int = 0) -> None:
        self._store = store
        self._ttl = ttl_seconds

    def add(self, pod_uid: str, service_uid: str) -> None:
        self._store.set_with_ttl(pod_index_table(pod_uid), service_uid, _PRESENT, self._ttl)

    def service_ids(self, pod_uid: str) -> list[str]:
        return self._store.list_by_prefix(pod_index_table(pod_uid))

    def impacted_services(self, pod_uid: str) -> list[str]:
        """Return the names of every service recorded as selecting *pod_uid*.

        Ids whose service record is missing or unreadable are logged and
        skipped. An unknown pod yields an empty list.
        """
        names: list[str] = []
        for service_uid in self.service_ids(pod_uid):
            try:
                record = self._store.get(SERVICE_TABLE, service_uid)
                if record is None:
                    _log.warning("impacted_service_missing", pod_uid=pod_uid, service_uid=service_uid)
                    continue
                name = record.json()["metadata"]["name"]
            except (StoreError, KeyError, TypeError) as exc:
                _log.warning(
                    "impacted_service_unresolved",
                    pod_uid=pod_uid,
                    service_uid=service_uid,
                    error=str(exc),
                )
                continue
            names.append(str(name))
        return names
