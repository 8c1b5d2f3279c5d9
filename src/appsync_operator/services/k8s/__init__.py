"""Kubernetes API services."""
