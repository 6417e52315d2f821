"""Status API for k8stream.

Exposes:
    create_app -- FastAPI application factory (health, status, metrics).
"""

from k8stream.api.app import create_app

__all__ = ["create_app"]
