"""Reconcile engine: dispatcher, pipelines, status transitions and scheduling."""

from .app import AppReconciler, ReconcileResult
from .status import AppStatusMachine
from .timer import ReconcileTimer

__all__ = ["AppReconciler", "AppStatusMachine", "ReconcileResult", "ReconcileTimer"]
