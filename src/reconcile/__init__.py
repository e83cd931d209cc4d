"""Reconcilers: turn upstream snapshots into local inserts, updates and transitions."""

from src.reconcile.base import Reconciler
from src.reconcile.incidents import IncidentReconciler
from src.reconcile.maintenances import MaintenanceReconciler, MaintenanceSnapshot
from src.reconcile.metrics import MetricsReconciler, MetricsSnapshot
from src.reconcile.repository import (
    IncidentRepository,
    MaintenanceRepository,
    MetricRepository,
    StatusLogRepository,
)
from src.reconcile.schemas import ReconcileOutcome
from src.reconcile.status import StatusReconciler

__all__ = [
    "IncidentReconciler",
    "IncidentRepository",
    "MaintenanceReconciler",
    "MaintenanceRepository",
    "MaintenanceSnapshot",
    "MetricRepository",
    "MetricsReconciler",
    "MetricsSnapshot",
    "ReconcileOutcome",
    "Reconciler",
    "StatusLogRepository",
    "StatusReconciler",
]
