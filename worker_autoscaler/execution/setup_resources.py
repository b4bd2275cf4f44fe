"""
Applies auxiliary resources (ConfigMaps, Secrets, ...) an owner needs before
its worker Job runs.

Setup manifests are applied on every trigger and are not deduplicated, so
owners must make them safe to create repeatedly. There is no rollback: a
failure leaves earlier resources in place.
"""

import copy
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from worker_autoscaler.core.exceptions import (
    MalformedManifestError,
    MissingKindError,
    UnsupportedKindError,
)
from worker_autoscaler.core.telemetry import get_logger, trace_span
from worker_autoscaler.execution.gateway import KubernetesGateway
from worker_autoscaler.execution.manifest import ensure_namespace

logger = get_logger(__name__)

ManifestProducer = Union[str, Callable[[], Dict[str, Any]]]


def manifest_kind(manifest: Dict[str, Any]) -> str:
    kind = manifest.get("kind")
    if not isinstance(kind, str) or not kind.strip():
        raise MissingKindError("Setup manifest is missing kind")
    return kind.strip()


class SetupResourceApplier:
    """Creates setup resources through the gateway's misc client."""

    def __init__(
        self, gateway: KubernetesGateway, default_namespace: Optional[str] = None
    ):
        self.gateway = gateway
        self._default_namespace = default_namespace

    @property
    def default_namespace(self) -> str:
        return self._default_namespace or self.gateway.default_namespace

    def _produce(self, owner: Any, producer: ManifestProducer) -> Dict[str, Any]:
        if isinstance(producer, str):
            manifest = getattr(owner, producer)()
        else:
            manifest = producer()
        if not isinstance(manifest, dict):
            raise MalformedManifestError(
                f"Setup manifest producer {producer!r} did not return a mapping"
            )
        return manifest

    def apply_manifest(self, manifest: Dict[str, Any]) -> Any:
        """Resolve namespace and create one setup resource."""
        manifest = copy.deepcopy(manifest)
        kind = manifest_kind(manifest)
        if not self.gateway.misc.supports(kind):
            raise UnsupportedKindError(kind)
        ensure_namespace(manifest, self.default_namespace)
        metadata = manifest["metadata"]

        logger.info(
            f"Creating {kind} {metadata.get('name', '<unnamed>')} "
            f"in namespace {metadata['namespace']}"
        )
        return self.gateway.misc.create(kind, manifest)

    @trace_span
    def apply(self, owner: Any, producers: Sequence[ManifestProducer]) -> List[Any]:
        """
        Apply every producer's manifest in order, stopping at the first failure.

        Args:
            owner: Object the named producers are looked up on
            producers: Method names on owner, or zero-argument callables

        Returns:
            Created resources, in producer order
        """
        created = []
        for producer in producers:
            created.append(self.apply_manifest(self._produce(owner, producer)))
        return created
