"""
Kubernetes gateway used by the reconciler.

Wraps the official Kubernetes Python client in three scoped sub-clients:
- jobs (BatchV1Api)
- pods (CoreV1Api)
- misc setup resources (ConfigMaps, Secrets, Services, ...)

Every call goes through a RetryPolicy.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from kubernetes import client, config

from worker_autoscaler.core.config import Settings, settings as default_settings
from worker_autoscaler.core.constants import SERVICE_ACCOUNT_NAMESPACE_PATH
from worker_autoscaler.core.exceptions import (
    ConnectionContextError,
    UnsupportedKindError,
)
from worker_autoscaler.core.telemetry import get_logger
from worker_autoscaler.execution.retry import RetryPolicy

logger = get_logger(__name__)


@dataclass
class ConnectionContext:
    """Resolved API client plus the namespace the context defaults to."""

    api_client: Any
    namespace: Optional[str] = None
    source: str = "provided"


def _service_account_namespace(
    path: str = SERVICE_ACCOUNT_NAMESPACE_PATH,
) -> Optional[str]:
    namespace_file = Path(path)
    if not namespace_file.exists():
        return None
    namespace = namespace_file.read_text(encoding="utf-8").strip()
    return namespace or None


def _kubeconfig_namespace() -> Optional[str]:
    try:
        _, active_context = config.list_kube_config_contexts()
    except config.ConfigException:
        return None
    if not active_context:
        return None
    return active_context.get("context", {}).get("namespace")


def discover_connection(settings: Settings) -> ConnectionContext:
    """
    Resolve how to reach the Kubernetes API.

    A pre-built client on settings wins; otherwise the in-cluster service
    account is tried first, then the local kubeconfig.
    """
    if settings.api_client is not None:
        return ConnectionContext(api_client=settings.api_client, source="provided")

    configuration = client.Configuration()
    try:
        config.load_incluster_config(client_configuration=configuration)
        return ConnectionContext(
            api_client=client.ApiClient(configuration),
            namespace=_service_account_namespace(),
            source="in-cluster",
        )
    except config.ConfigException:
        logger.debug("Not running in cluster, falling back to kubeconfig")

    try:
        config.load_kube_config(client_configuration=configuration)
    except config.ConfigException as e:
        raise ConnectionContextError(
            f"No Kubernetes connection context available: {e}"
        ) from e

    return ConnectionContext(
        api_client=client.ApiClient(configuration),
        namespace=_kubeconfig_namespace(),
        source="kubeconfig",
    )


class JobsClient:
    """Batch Job operations."""

    def __init__(
        self,
        batch_v1: client.BatchV1Api,
        retry: RetryPolicy,
        propagation_policy: str = "Background",
    ):
        self.batch_v1 = batch_v1
        self.retry = retry
        self.propagation_policy = propagation_policy

    def list(self, label_selector: str, namespace: Optional[str] = None) -> List[Any]:
        """List Jobs matching a label selector, across namespaces unless one is given."""
        if namespace:
            result = self.retry.call(
                self.batch_v1.list_namespaced_job,
                namespace=namespace,
                label_selector=label_selector,
                description=f"list jobs in {namespace}",
            )
        else:
            result = self.retry.call(
                self.batch_v1.list_job_for_all_namespaces,
                label_selector=label_selector,
                description="list jobs",
            )
        return list(result.items or [])

    def create(self, manifest: Dict[str, Any]) -> Any:
        metadata = manifest["metadata"]
        return self.retry.call(
            self.batch_v1.create_namespaced_job,
            namespace=metadata["namespace"],
            body=manifest,
            description=f"create job {metadata['name']}",
        )

    def delete(self, name: str, namespace: str) -> None:
        # Background propagation removes the Job's pods as well
        self.retry.call(
            self.batch_v1.delete_namespaced_job,
            name=name,
            namespace=namespace,
            propagation_policy=self.propagation_policy,
            description=f"delete job {namespace}/{name}",
        )


class PodsClient:
    """Pod operations."""

    def __init__(self, core_v1: client.CoreV1Api, retry: RetryPolicy):
        self.core_v1 = core_v1
        self.retry = retry

    def list(self, label_selector: str, namespace: Optional[str] = None) -> List[Any]:
        if namespace:
            result = self.retry.call(
                self.core_v1.list_namespaced_pod,
                namespace=namespace,
                label_selector=label_selector,
                description=f"list pods in {namespace}",
            )
        else:
            result = self.retry.call(
                self.core_v1.list_pod_for_all_namespaces,
                label_selector=label_selector,
                description="list pods",
            )
        return list(result.items or [])

    def delete(self, name: str, namespace: str) -> None:
        self.retry.call(
            self.core_v1.delete_namespaced_pod,
            name=name,
            namespace=namespace,
            description=f"delete pod {namespace}/{name}",
        )


class MiscClient:
    """Creates auxiliary resources, dispatching on lowercased `kind`."""

    def __init__(
        self,
        core_v1: client.CoreV1Api,
        batch_v1: client.BatchV1Api,
        retry: RetryPolicy,
    ):
        self.retry = retry
        self.creators: Dict[str, Callable[..., Any]] = {
            "configmap": core_v1.create_namespaced_config_map,
            "secret": core_v1.create_namespaced_secret,
            "service": core_v1.create_namespaced_service,
            "serviceaccount": core_v1.create_namespaced_service_account,
            "persistentvolumeclaim": core_v1.create_namespaced_persistent_volume_claim,
            "job": batch_v1.create_namespaced_job,
            "cronjob": batch_v1.create_namespaced_cron_job,
        }

    def supports(self, kind: str) -> bool:
        return kind.lower() in self.creators

    def create(self, kind: str, manifest: Dict[str, Any]) -> Any:
        """Create a namespaced resource of the given kind from its manifest."""
        creator = self.creators.get(kind.lower())
        if creator is None:
            raise UnsupportedKindError(kind)

        metadata = manifest.get("metadata", {})
        return self.retry.call(
            creator,
            namespace=metadata["namespace"],
            body=manifest,
            description=f"create_{kind.lower()} {metadata.get('name', '')}".rstrip(),
        )


class KubernetesGateway:
    """
    Lazily connected entry point to the jobs, pods and misc sub-clients.

    Connection discovery happens once, on first use.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        retry: Optional[RetryPolicy] = None,
    ):
        self.settings = settings or default_settings
        self.retry = retry or RetryPolicy.from_settings(self.settings)
        self._context: Optional[ConnectionContext] = None
        self._jobs: Optional[JobsClient] = None
        self._pods: Optional[PodsClient] = None
        self._misc: Optional[MiscClient] = None

    @property
    def context(self) -> ConnectionContext:
        if self._context is None:
            self._context = discover_connection(self.settings)
            logger.info(
                f"Connected to Kubernetes via {self._context.source} context"
                f" (namespace: {self._context.namespace or 'unset'})"
            )
        return self._context

    @property
    def default_namespace(self) -> str:
        """Context namespace, else the configured fallback."""
        return self.context.namespace or self.settings.default_namespace

    @property
    def jobs(self) -> JobsClient:
        if self._jobs is None:
            self._jobs = JobsClient(
                client.BatchV1Api(self.context.api_client),
                self.retry,
                propagation_policy=self.settings.job_propagation_policy.value,
            )
        return self._jobs

    @property
    def pods(self) -> PodsClient:
        if self._pods is None:
            self._pods = PodsClient(client.CoreV1Api(self.context.api_client), self.retry)
        return self._pods

    @property
    def misc(self) -> MiscClient:
        if self._misc is None:
            self._misc = MiscClient(
                client.CoreV1Api(self.context.api_client),
                client.BatchV1Api(self.context.api_client),
                self.retry,
            )
        return self._misc
