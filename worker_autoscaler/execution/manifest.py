"""
Manifest normalization for worker Jobs.

Turns an owner's raw Job manifest into one that can be submitted over and
over: namespace resolved, marker and group labels attached, a fresh name
suffix, a restart policy, and single-pass INTERVAL.
"""

import copy
import re
import secrets
import string
from typing import Any, Dict, Optional

from worker_autoscaler.core.constants import (
    CONTAINER_COMPLETED_REASON,
    DEFAULT_NAMESPACE,
    DEFAULT_RESTART_POLICY,
    GROUP_LABEL,
    INTERVAL_ENV_NAME,
    JOB_MARKER_VALUE,
    MARKER_LABEL,
    NAME_SUFFIX_LENGTH,
    POD_MARKER_VALUE,
    POD_SUCCEEDED_PHASE,
    SINGLE_PASS_INTERVAL,
)
from worker_autoscaler.core.exceptions import MalformedManifestError
from worker_autoscaler.core.telemetry import get_logger

Manifest = Dict[str, Any]

logger = get_logger(__name__)

SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def job_label_selector() -> str:
    return f"{MARKER_LABEL}={JOB_MARKER_VALUE}"


def pod_label_selector() -> str:
    return f"{MARKER_LABEL}={POD_MARKER_VALUE}"


def group_label_selector(group: str) -> str:
    return f"{job_label_selector()},{GROUP_LABEL}={group}"


def random_suffix(length: int = NAME_SUFFIX_LENGTH) -> str:
    """DNS-safe random suffix: lowercase letters and digits."""
    return "".join(secrets.choice(SUFFIX_ALPHABET) for _ in range(length))


def unique_name(name: str) -> str:
    return f"{name}-{random_suffix()}"


def _section(parent: Dict[str, Any], key: str) -> Dict[str, Any]:
    """Nested mapping under key, created when absent or empty (null in YAML)."""
    section = parent.get(key)
    if section is None:
        section = parent[key] = {}
    elif not isinstance(section, dict):
        raise MalformedManifestError(f"Manifest section {key!r} is not a mapping")
    return section


def _metadata(manifest: Manifest) -> Dict[str, Any]:
    return _section(manifest, "metadata")


def _pod_template(manifest: Manifest) -> Dict[str, Any]:
    return _section(_section(manifest, "spec"), "template")


def _pod_spec(manifest: Manifest) -> Dict[str, Any]:
    return _section(_pod_template(manifest), "spec")


def manifest_name(manifest: Manifest) -> str:
    """The declared `metadata.name`, required to derive group and unique name."""
    metadata = manifest.get("metadata")
    name = metadata.get("name") if isinstance(metadata, dict) else None
    if not isinstance(name, str) or not name:
        raise MalformedManifestError("Job manifest is missing metadata.name")
    return name


def _group_for(name: str, labels: Dict[str, Any]) -> str:
    """
    Group of a manifest named name.

    An existing group label is kept only when name is that group, or the
    group plus generated suffixes (an already normalized manifest).
    """
    group = labels.get(GROUP_LABEL)
    if group and (
        name == group
        or re.fullmatch(
            rf"{re.escape(group)}(-[a-z0-9]{{{NAME_SUFFIX_LENGTH}}})+", name
        )
    ):
        return group
    if group:
        logger.warning(
            f"Group label {group!r} does not match manifest name {name!r}; "
            f"using {name!r}"
        )
    return name


def worker_group(manifest: Manifest) -> str:
    """Group a Job is counted in: its declared (pre-suffix) name."""
    name = manifest_name(manifest)
    return _group_for(name, manifest["metadata"].get("labels") or {})


def ensure_namespace(
    manifest: Manifest, context_namespace: Optional[str] = None
) -> Manifest:
    """Set metadata.namespace unless the manifest already carries one."""
    metadata = _metadata(manifest)
    if not metadata.get("namespace"):
        metadata["namespace"] = context_namespace or DEFAULT_NAMESPACE
    return manifest


def ensure_labels(manifest: Manifest) -> Manifest:
    """Attach the job marker, group and pod-template marker labels."""
    metadata = _metadata(manifest)
    labels = metadata.get("labels") or {}
    labels[MARKER_LABEL] = JOB_MARKER_VALUE
    labels[GROUP_LABEL] = _group_for(manifest_name(manifest), labels)
    metadata["labels"] = labels

    template = _pod_template(manifest)
    template_metadata = template.get("metadata") or {}
    template_labels = template_metadata.get("labels") or {}
    template_labels[MARKER_LABEL] = POD_MARKER_VALUE
    template_metadata["labels"] = template_labels
    template["metadata"] = template_metadata
    return manifest


def ensure_unique_name(manifest: Manifest) -> Manifest:
    metadata = _metadata(manifest)
    metadata["name"] = unique_name(manifest_name(manifest))
    return manifest


def ensure_restart_policy(manifest: Manifest) -> Manifest:
    pod_spec = _pod_spec(manifest)
    if not pod_spec.get("restartPolicy"):
        pod_spec["restartPolicy"] = DEFAULT_RESTART_POLICY
    return manifest


def override_interval(manifest: Manifest) -> Manifest:
    """
    Force existing INTERVAL env entries to "0" so each Job runs one pass.

    Containers without an INTERVAL entry are left alone.
    """
    for container in _pod_spec(manifest).get("containers") or []:
        for env in container.get("env") or []:
            if env.get("name") == INTERVAL_ENV_NAME:
                env.pop("valueFrom", None)
                env["value"] = SINGLE_PASS_INTERVAL
    return manifest


def normalize(manifest: Manifest, context_namespace: Optional[str] = None) -> Manifest:
    """
    Build a submission-ready copy of a raw Job manifest.

    Args:
        manifest: Raw Job manifest; not modified
        context_namespace: Namespace of the connection context, if any

    Returns:
        New manifest with namespace, labels, unique name, restart policy and
        INTERVAL override applied

    Raises:
        MalformedManifestError: metadata.name is missing
    """
    normalized = copy.deepcopy(manifest)
    manifest_name(normalized)

    ensure_namespace(normalized, context_namespace)
    ensure_labels(normalized)
    ensure_unique_name(normalized)
    ensure_restart_policy(normalized)
    override_interval(normalized)
    return normalized


def is_job_finished(job: Any) -> bool:
    """A Job is finished once its succeeded count reaches its completions."""
    spec = getattr(job, "spec", None)
    status = getattr(job, "status", None)
    completions = getattr(spec, "completions", None)
    succeeded = getattr(status, "succeeded", None)
    # Unset completions on a non-parallel Job means one
    if completions is None:
        completions = 1
    return completions == (succeeded or 0)


def is_pod_finished(pod: Any) -> bool:
    """
    A Pod is finished when it succeeded and every container completed.

    OOMKilled containers can leave a pod in phase Succeeded; those are kept.
    """
    status = getattr(pod, "status", None)
    if getattr(status, "phase", None) != POD_SUCCEEDED_PHASE:
        return False

    container_statuses = getattr(status, "container_statuses", None) or []
    if not container_statuses:
        return False

    for container_status in container_statuses:
        terminated = getattr(getattr(container_status, "state", None), "terminated", None)
        if getattr(terminated, "reason", None) != CONTAINER_COMPLETED_REASON:
            return False
    return True
