from typing import Optional


class AutoscalerError(Exception):
    """Base autoscaler exception."""

    pass


class MalformedManifestError(AutoscalerError):
    """Manifest is missing a field required to submit it."""

    pass


class MissingKindError(MalformedManifestError):
    """Setup manifest has no `kind`."""

    pass


class UnsupportedKindError(AutoscalerError):
    """Setup manifest `kind` has no known creation call."""

    def __init__(self, kind: str):
        super().__init__(f"Unsupported setup resource kind: {kind}")
        self.kind = kind


class KubernetesApiError(AutoscalerError):
    """Kubernetes API call failed."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        reason: Optional[str] = None,
    ):
        super().__init__(message)
        self.status = status
        self.reason = reason


class ResourceNotFoundError(KubernetesApiError):
    """Kubernetes resource does not exist (HTTP 404)."""

    pass


class ConnectionContextError(AutoscalerError):
    """No Kubernetes connection context could be discovered."""

    pass
