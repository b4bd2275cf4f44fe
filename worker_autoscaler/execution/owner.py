"""
Owner contract for tasks that autoscale worker Jobs.

A task class subclasses WorkerJobOwner (or simply provides the same
attributes) and its task framework's enqueue hook calls
`worker_autoscaler.before_enqueue(task)`.

Example:

    class ResourceIntensiveTask(WorkerJobOwner):
        setup_manifests = ["queue_config"]

        def job_manifest(self):
            return render_manifest(
                job_name="worker-job",
                image="us.gcr.io/project-id/some-worker",
                queue="high-memory",
            )

        def queue_config(self):
            return {
                "apiVersion": "v1",
                "kind": "ConfigMap",
                "metadata": {"name": "high-memory-queue"},
                "data": {"QUEUE": "high-memory"},
            }

        def max_workers(self):
            # Scale based on time of day
            return 15 if datetime.now().hour < 8 else 5
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Sequence

from worker_autoscaler.execution.setup_resources import ManifestProducer


class WorkerJobOwner(ABC):
    """Base class for tasks whose enqueue should spin up a worker Job."""

    # Setup-manifest producers applied before each reconciliation, in order:
    # method names on the owner or zero-argument callables.
    setup_manifests: Sequence[ManifestProducer] = ()

    @abstractmethod
    def job_manifest(self) -> Dict[str, Any]:
        """Kubernetes Job manifest for one worker."""
        pass

    def max_workers(self) -> Optional[int]:
        """
        Maximum concurrent worker Jobs for this owner's group.

        None defers to the configured `max_workers` setting.
        """
        return None
