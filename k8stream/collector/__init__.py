"""Collector package for k8stream.

Connects the pipeline to the Kubernetes API.

Submodules
----------
base         -- OrchestrationClient protocol and LookupFailure.
kube_client  -- KubeClient: point lookups (involved objects, node addresses,
                pods selected by a service) over kubernetes-asyncio.
watcher      -- Watcher: cluster-wide Event and Service watch streams with
                reconnect/relist, serialised into the dispatch handler.
"""

from k8stream.collector.base import LookupFailure, OrchestrationClient
from k8stream.collector.kube_client import KubeClient
from k8stream.collector.watcher import Watcher

__all__ = ["KubeClient", "LookupFailure", "OrchestrationClient", "Watcher"]
