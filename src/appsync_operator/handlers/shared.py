"""Shared utilities for handlers."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator

from kubernetes import client, config

_config_loaded = False
_config_lock = threading.Lock()


def load_k8s_config() -> None:
    """Load in-cluster configuration, falling back to the local kubeconfig."""
    global _config_loaded
    with _config_lock:
        if _config_loaded:
            return
        try:
            config.load_incluster_config()
        except config.ConfigException:
            config.load_kube_config()
        _config_loaded = True


def get_k8s_client() -> client.CustomObjectsApi:
    """Get Kubernetes CustomObjectsApi client."""
    load_k8s_config()
    return client.CustomObjectsApi()


def get_core_v1_client() -> client.CoreV1Api:
    """Get Kubernetes CoreV1Api client."""
    load_k8s_config()
    return client.CoreV1Api()


class ResourceLocks:
    """One lock per resource identity.

    kopf runs change handlers and timers for the same object independently;
    these locks keep reconciles of one App strictly sequential.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def _lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(key, threading.Lock())

    @contextmanager
    def hold(self, key: str, blocking: bool = True) -> Iterator[bool]:
        """Hold the lock for ``key``; yields False if non-blocking and busy."""
        lock = self._lock_for(key)
        acquired = lock.acquire(blocking=blocking)
        try:
            yield acquired
        finally:
            if acquired:
                lock.release()

    def forget(self, key: str) -> None:
        with self._guard:
            self._locks.pop(key, None)
