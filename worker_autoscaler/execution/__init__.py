"""
Worker Job reconciliation against Kubernetes.
"""

from worker_autoscaler.execution.gateway import KubernetesGateway
from worker_autoscaler.execution.manifest import normalize
from worker_autoscaler.execution.owner import WorkerJobOwner
from worker_autoscaler.execution.reconciler import Reconciler, before_enqueue
from worker_autoscaler.execution.setup_resources import SetupResourceApplier
from worker_autoscaler.execution.templates import load_manifest, render_manifest

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
