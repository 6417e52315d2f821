"""Logging and metrics for k8stream."""
