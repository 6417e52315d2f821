"""Event processing pipeline.

Submodules:
    dedup          -- Deduplicator: first-notification-wins identity gate.
    reverse_index  -- ReverseIndex: pod -> services mapping and lookup.
    enricher       -- Enricher: ResourceEvent / ServiceChange enrichment.
    batcher        -- Batcher: size/time-triggered delivery to the sink.
    handler        -- DispatchHandler: watch callbacks.
"""

from k8stream.pipeline.batcher import Batcher
from k8stream.pipeline.dedup import Deduplicator
from k8stream.pipeline.enricher import Enricher
from k8stream.pipeline.handler import DispatchHandler
from k8stream.pipeline.reverse_index import ReverseIndex

__all__ = ["Batcher", "Deduplicator", "DispatchHandler", "Enricher", "ReverseIndex"]
