"""k8stream: Kubernetes event enrichment and forwarding pipeline."""

__version__ = "0.1.0"
