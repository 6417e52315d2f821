"""Dispatch handler: the watch callbacks.

Raw objects are classified into the closed Notification variant and routed
to the enricher. A failure while processing one notification is logged and
never reaches the watch stream.
"""

from __future__ import annotations

from typing import Any, assert_never

from k8stream.models.events import (
    EnrichedEvent,
    Notification,
    Operation,
    ResourceEvent,
    ServiceChange,
)
from k8stream.observability.logging import get_logger
from k8stream.observability.metrics import notification_errors_total, notifications_total
from k8stream.pipeline.enricher import Enricher
from k8stream.store.base import StoreError

_log = get_logger("pipeline.handler")

EVENT_KIND = "Event"
SERVICE_KIND = "Service"


def to_notification(obj: Any, op: Operation, kind: str | None = None) -> Notification | None:
    """Classify *obj* by its kind. Unsupported kinds yield None."""
    if not isinstance(obj, dict):
        return None
    match kind or obj.get("kind"):
        case "Event":
            return ResourceEvent(obj=obj, op=op)
        case "Service":
            return ServiceChange(obj=obj, op=op)
        case _:
            return None


class DispatchHandler:
    """Receives add/update/delete callbacks from the watch collector.

    ``kind`` lets the caller name the watched kind when the raw object does
    not carry a ``kind`` field.
    """

    def __init__(self, enricher: Enricher) -> None:
        self._enricher = enricher

    async def on_add(self, obj: Any, kind: str | None = None) -> EnrichedEvent | None:
        return await self._handle(obj, Operation.ADDED, kind)

    async def on_update(self, old: Any, new: Any, kind: str | None = None) -> EnrichedEvent | None:
        return await self._handle(new, Operation.UPDATED, kind)

    async def on_delete(self, obj: Any, kind: str | None = None) -> EnrichedEvent | None:
        return await self._handle(obj, Operation.DELETED, kind)

    async def dispatch(self, notification: Notification) -> EnrichedEvent | None:
        match notification:
            case ResourceEvent():
                return await self._enricher.enrich_event(notification)
            case ServiceChange():
                return await self._enricher.enrich_service(notification)
            case _:
                assert_never(notification)

    async def _handle(self, obj: Any, op: Operation, kind: str | None) -> EnrichedEvent | None:
        notification = to_notification(obj, op, kind)
        if notification is None:
            return None

        kind_label = type(notification).__name__
        notifications_total.labels(kind=kind_label, op=op.value).inc()
        try:
            return await self.dispatch(notification)
        except StoreError as exc:
            notification_errors_total.labels(kind=kind_label).inc()
            _log.error(
                "notification_store_error",
                kind=kind_label,
                op=op.value,
                uid=notification.uid,
                error=str(exc),
            )
        except Exception as exc:
            notification_errors_total.labels(kind=kind_label).inc()
            _log.error(
                "notification_processing_failed",
                kind=kind_label,
                op=op.value,
                uid=notification.uid,
                error=str(exc),
                exc_info=True,
            )
        return None
