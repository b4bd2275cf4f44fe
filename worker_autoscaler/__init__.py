"""Autoscale Kubernetes worker Jobs from task-queue enqueue events."""

from worker_autoscaler.execution import (
    KubernetesGateway,
    Reconciler,
    SetupResourceApplier,
    WorkerJobOwner,
    before_enqueue,
    load_manifest,
    normalize,
    render_manifest,
)

__version__ = "0.1.0"

__all__ = [
    "KubernetesGateway",
    "Reconciler",
    "SetupResourceApplier",
    "WorkerJobOwner",
    "before_enqueue",
    "load_manifest",
    "normalize",
    "render_manifest",
]
