from enum import Enum


class PropagationPolicy(str, Enum):
    """Kubernetes delete propagation policies."""

    BACKGROUND = "Background"
    FOREGROUND = "Foreground"
    ORPHAN = "Orphan"


# Label keys are wire-visible: deployed Jobs and Pods are matched on them.
MARKER_LABEL = "resque-kubernetes"
GROUP_LABEL = "resque-kubernetes-group"
JOB_MARKER_VALUE = "job"
POD_MARKER_VALUE = "pod"

DEFAULT_NAMESPACE = "default"
DEFAULT_RESTART_POLICY = "OnFailure"

# Worker containers read INTERVAL as their polling period; "0" means run once.
INTERVAL_ENV_NAME = "INTERVAL"
SINGLE_PASS_INTERVAL = "0"

NAME_SUFFIX_LENGTH = 5

POD_SUCCEEDED_PHASE = "Succeeded"
CONTAINER_COMPLETED_REASON = "Completed"

SERVICE_ACCOUNT_NAMESPACE_PATH = (
    "/var/run/secrets/kubernetes.io/serviceaccount/namespace"
)
