"""
Worker Job reconciliation.

On each trigger: apply setup resources, reap finished Jobs and Pods, then
submit a new worker Job if the owner's group is below its ceiling.

The ceiling is a best-effort throttle: concurrent reconciliations in
different processes may both see room and both create a Job.
"""

from typing import Any, Optional

from worker_autoscaler.core.config import Settings, settings as default_settings
from worker_autoscaler.core.exceptions import ResourceNotFoundError
from worker_autoscaler.core.telemetry import get_logger, span_attributes, trace_span
from worker_autoscaler.execution.gateway import KubernetesGateway
from worker_autoscaler.execution.manifest import (
    group_label_selector,
    is_job_finished,
    is_pod_finished,
    job_label_selector,
    normalize,
    pod_label_selector,
    worker_group,
)
from worker_autoscaler.execution.setup_resources import SetupResourceApplier

logger = get_logger(__name__)


class Reconciler:
    """Scales worker Jobs for an owner, synchronously, when triggered."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        gateway: Optional[KubernetesGateway] = None,
    ):
        self.settings = settings or default_settings
        self._gateway = gateway

    @property
    def gateway(self) -> KubernetesGateway:
        # Created on first use so a disabled reconciler never connects
        if self._gateway is None:
            self._gateway = KubernetesGateway(self.settings)
        return self._gateway

    def max_workers(self, owner: Any) -> int:
        """Owner override if it yields a value, else the configured default."""
        override = getattr(owner, "max_workers", None)
        value = override() if callable(override) else override
        if value is None:
            return self.settings.max_workers
        return int(value)

    def apply_setup_resources(self, owner: Any) -> None:
        producers = getattr(owner, "setup_manifests", None) or ()
        if not producers:
            return
        SetupResourceApplier(self.gateway).apply(owner, producers)

    @trace_span
    def reap_finished_jobs(self) -> int:
        """Delete finished worker Jobs. Returns how many were deleted here."""
        reaped = 0
        for job in self.gateway.jobs.list(job_label_selector()):
            if not is_job_finished(job):
                continue
            name, namespace = job.metadata.name, job.metadata.namespace
            try:
                self.gateway.jobs.delete(name, namespace)
                reaped += 1
            except ResourceNotFoundError:
                logger.info(f"Job {namespace}/{name} already deleted or not found")
        if reaped:
            logger.info(f"Reaped {reaped} finished worker job(s)")
        return reaped

    @trace_span
    def reap_finished_pods(self) -> int:
        """Delete finished worker Pods. Returns how many were deleted here."""
        reaped = 0
        for pod in self.gateway.pods.list(pod_label_selector()):
            if not is_pod_finished(pod):
                continue
            name, namespace = pod.metadata.name, pod.metadata.namespace
            try:
                self.gateway.pods.delete(name, namespace)
                reaped += 1
            except ResourceNotFoundError:
                logger.info(f"Pod {namespace}/{name} already deleted or not found")
        if reaped:
            logger.info(f"Reaped {reaped} finished worker pod(s)")
        return reaped

    def running_jobs(self, group: str, namespace: str) -> int:
        """Count non-finished worker Jobs in a group."""
        jobs = self.gateway.jobs.list(group_label_selector(group), namespace=namespace)
        return sum(1 for job in jobs if not is_job_finished(job))

    @trace_span
    def apply_job(self, owner: Any) -> Optional[Any]:
        """Submit a new worker Job unless the group is at its ceiling."""
        manifest = owner.job_manifest()
        group = worker_group(manifest)
        context_namespace = self.gateway.default_namespace
        namespace = (manifest.get("metadata") or {}).get("namespace") or context_namespace

        limit = self.max_workers(owner)
        running = self.running_jobs(group, namespace)
        span_attributes({"worker.group": group, "worker.namespace": namespace})
        if running >= limit:
            logger.info(
                f"Group {group} in {namespace} has {running}/{limit} workers; "
                f"not creating a job"
            )
            return None

        job_manifest = normalize(manifest, context_namespace)
        created = self.gateway.jobs.create(job_manifest)
        logger.info(
            f"Created worker job {job_manifest['metadata']['name']} in {namespace} "
            f"({running + 1}/{limit})"
        )
        return created

    @trace_span
    def reconcile(self, owner: Any) -> Optional[Any]:
        """
        Run one reconciliation for owner.

        Returns:
            The created Job, or None when disabled or at the ceiling

        Raises:
            Any error other than a not-found during reaping
        """
        if not self.settings.enabled:
            logger.debug("Worker autoscaling disabled; skipping reconciliation")
            return None

        self.apply_setup_resources(owner)
        self.reap_finished_jobs()
        self.reap_finished_pods()
        return self.apply_job(owner)


def before_enqueue(
    owner: Any,
    settings: Optional[Settings] = None,
    gateway: Optional[KubernetesGateway] = None,
) -> Optional[Any]:
    """
    Entry point for a task framework's before-enqueue hook.

    Call it explicitly from the hook; nothing registers itself implicitly.
    """
    return Reconciler(settings, gateway).reconcile(owner)
