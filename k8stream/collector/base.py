"""Orchestration API contract used by the enricher."""

from __future__ import annotations

from typing import Any, Protocol


class LookupFailure(Exception):
    """Raised when a point lookup against the Kubernetes API fails."""


class OrchestrationClient(Protocol):
    """Synchronous point lookups of entities related to a notification.

    Every method raises :class:`LookupFailure` when the lookup cannot be
    answered (not found, timeout, transport error, unsupported kind).
    """

    async def resolve_object(self, reference: dict[str, Any]) -> dict[str, Any]: ...

    async def resolve_node_address(self, hostname: str) -> list[str]: ...

    async def resolve_pods_for_service(self, service: dict[str, Any]) -> list[dict[str, Any]]: ...
