import pytest
from kubernetes.client.rest import ApiException
from kubernetes.config import ConfigException
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

from worker_autoscaler.core.config import Settings
from worker_autoscaler.core.exceptions import (
    ConnectionContextError,
    KubernetesApiError,
    ResourceNotFoundError,
    UnsupportedKindError,
)
from worker_autoscaler.execution.gateway import (
    JobsClient,
    KubernetesGateway,
    MiscClient,
    PodsClient,
    _service_account_namespace,
    discover_connection,
)
from worker_autoscaler.execution.retry import RetryPolicy


@pytest.fixture
def retry():
    return RetryPolicy(attempts=3, base_delay=0, max_delay=0, sleep=lambda _: None)


@pytest.fixture
def mock_config():
    """Patch kubeconfig/in-cluster loading, keeping the real ConfigException."""
    with patch("worker_autoscaler.execution.gateway.config") as mock_config:
        mock_config.ConfigException = ConfigException
        yield mock_config


@pytest.fixture
def mock_client():
    with patch("worker_autoscaler.execution.gateway.client") as mock_client:
        yield mock_client


class TestDiscoverConnection:
    """Tests for connection context discovery."""

    def test_provided_client_wins(self, mock_config):
        api_client = MagicMock()
        context = discover_connection(Settings(api_client=api_client))

        assert context.api_client is api_client
        assert context.namespace is None
        assert context.source == "provided"
        mock_config.load_incluster_config.assert_not_called()
        mock_config.load_kube_config.assert_not_called()

    def test_in_cluster(self, mock_config, mock_client):
        with patch(
            "worker_autoscaler.execution.gateway._service_account_namespace",
            return_value="workers",
        ):
            context = discover_connection(Settings())

        assert context.source == "in-cluster"
        assert context.namespace == "workers"
        assert context.api_client is mock_client.ApiClient.return_value
        mock_config.load_kube_config.assert_not_called()

    def test_service_account_namespace_file(self, tmp_path):
        namespace_file = tmp_path / "namespace"
        namespace_file.write_text("workers\n")

        assert _service_account_namespace(str(namespace_file)) == "workers"
        assert _service_account_namespace(str(tmp_path / "missing")) is None

    def test_falls_back_to_kubeconfig(self, mock_config, mock_client):
        mock_config.load_incluster_config.side_effect = ConfigException("Not in cluster")
        mock_config.list_kube_config_contexts.return_value = (
            [],
            {"name": "dev", "context": {"cluster": "dev", "namespace": "space"}},
        )

        context = discover_connection(Settings())

        assert context.source == "kubeconfig"
        assert context.namespace == "space"
        mock_config.load_kube_config.assert_called_once()

    def test_kubeconfig_without_namespace(self, mock_config, mock_client):
        mock_config.load_incluster_config.side_effect = ConfigException("Not in cluster")
        mock_config.list_kube_config_contexts.return_value = (
            [],
            {"name": "dev", "context": {"cluster": "dev"}},
        )

        assert discover_connection(Settings()).namespace is None

    def test_no_context_available(self, mock_config, mock_client):
        mock_config.load_incluster_config.side_effect = ConfigException("Not in cluster")
        mock_config.load_kube_config.side_effect = ConfigException("No kubeconfig")

        with pytest.raises(ConnectionContextError):
            discover_connection(Settings())


class TestKubernetesGateway:
    """Tests for lazy gateway construction."""

    def test_default_namespace_falls_back_to_settings(self, mock_client):
        gateway = KubernetesGateway(
            Settings(api_client=MagicMock(), default_namespace="fallback")
        )
        assert gateway.default_namespace == "fallback"

    def test_sub_clients_use_provided_api_client(self, mock_client):
        api_client = MagicMock()
        gateway = KubernetesGateway(Settings(api_client=api_client))

        assert gateway.jobs is gateway.jobs
        assert isinstance(gateway.pods, PodsClient)
        assert isinstance(gateway.misc, MiscClient)
        mock_client.BatchV1Api.assert_any_call(api_client)
        mock_client.CoreV1Api.assert_any_call(api_client)

    def test_discovers_once(self, mock_config, mock_client):
        mock_config.list_kube_config_contexts.return_value = ([], None)
        gateway = KubernetesGateway(Settings())

        gateway.jobs
        gateway.pods
        gateway.misc

        mock_config.load_incluster_config.assert_called_once()

    def test_propagation_policy_from_settings(self, mock_client):
        gateway = KubernetesGateway(
            Settings(api_client=MagicMock(), job_propagation_policy="Foreground")
        )
        assert gateway.jobs.propagation_policy == "Foreground"


class TestJobsClient:
    """Tests for job list/create/delete."""

    def test_list_all_namespaces(self, retry):
        batch_v1 = MagicMock()
        batch_v1.list_job_for_all_namespaces.return_value = SimpleNamespace(items=["a"])

        jobs = JobsClient(batch_v1, retry).list("resque-kubernetes=job")

        assert jobs == ["a"]
        batch_v1.list_job_for_all_namespaces.assert_called_once_with(
            label_selector="resque-kubernetes=job"
        )

    def test_list_namespaced(self, retry):
        batch_v1 = MagicMock()
        batch_v1.list_namespaced_job.return_value = SimpleNamespace(items=None)

        jobs = JobsClient(batch_v1, retry).list("resque-kubernetes=job", "space")

        assert jobs == []
        batch_v1.list_namespaced_job.assert_called_once_with(
            namespace="space", label_selector="resque-kubernetes=job"
        )

    def test_create_uses_manifest_namespace(self, retry):
        batch_v1 = MagicMock()
        manifest = {"metadata": {"name": "thing-abcde", "namespace": "space"}}

        JobsClient(batch_v1, retry).create(manifest)

        batch_v1.create_namespaced_job.assert_called_once_with(
            namespace="space", body=manifest
        )

    def test_delete_with_background_propagation(self, retry):
        batch_v1 = MagicMock()

        JobsClient(batch_v1, retry).delete("thing-abcde", "space")

        call_kwargs = batch_v1.delete_namespaced_job.call_args[1]
        assert call_kwargs["name"] == "thing-abcde"
        assert call_kwargs["namespace"] == "space"
        assert call_kwargs["propagation_policy"] == "Background"

    def test_delete_not_found(self, retry):
        batch_v1 = MagicMock()
        batch_v1.delete_namespaced_job.side_effect = ApiException(
            status=404, reason="Not Found"
        )

        with pytest.raises(ResourceNotFoundError):
            JobsClient(batch_v1, retry).delete("thing-abcde", "space")
        assert batch_v1.delete_namespaced_job.call_count == 1

    def test_create_retries_server_errors(self, retry):
        batch_v1 = MagicMock()
        batch_v1.create_namespaced_job.side_effect = [
            ApiException(status=503, reason="Service Unavailable"),
            "created",
        ]
        manifest = {"metadata": {"name": "thing-abcde", "namespace": "space"}}

        assert JobsClient(batch_v1, retry).create(manifest) == "created"
        assert batch_v1.create_namespaced_job.call_count == 2


class TestPodsClient:
    """Tests for pod list/delete."""

    def test_list_all_namespaces(self, retry):
        core_v1 = MagicMock()
        core_v1.list_pod_for_all_namespaces.return_value = SimpleNamespace(items=["p"])

        assert PodsClient(core_v1, retry).list("resque-kubernetes=pod") == ["p"]

    def test_list_namespaced(self, retry):
        core_v1 = MagicMock()
        core_v1.list_namespaced_pod.return_value = SimpleNamespace(items=["p"])

        PodsClient(core_v1, retry).list("resque-kubernetes=pod", "space")

        core_v1.list_namespaced_pod.assert_called_once_with(
            namespace="space", label_selector="resque-kubernetes=pod"
        )

    def test_delete(self, retry):
        core_v1 = MagicMock()

        PodsClient(core_v1, retry).delete("pod-1", "space")

        core_v1.delete_namespaced_pod.assert_called_once_with(
            name="pod-1", namespace="space"
        )

    def test_delete_forbidden(self, retry):
        core_v1 = MagicMock()
        core_v1.delete_namespaced_pod.side_effect = ApiException(
            status=403, reason="Forbidden"
        )

        with pytest.raises(KubernetesApiError) as exc_info:
            PodsClient(core_v1, retry).delete("pod-1", "space")

        assert not isinstance(exc_info.value, ResourceNotFoundError)
        assert exc_info.value.status == 403


class TestMiscClient:
    """Tests for kind-dispatched creation."""

    def test_create_config_map(self, retry):
        core_v1 = MagicMock()
        manifest = {"kind": "ConfigMap", "metadata": {"name": "cfg", "namespace": "space"}}

        MiscClient(core_v1, MagicMock(), retry).create("ConfigMap", manifest)

        core_v1.create_namespaced_config_map.assert_called_once_with(
            namespace="space", body=manifest
        )

    def test_create_cron_job(self, retry):
        batch_v1 = MagicMock()
        manifest = {"kind": "CronJob", "metadata": {"name": "cron", "namespace": "space"}}

        MiscClient(MagicMock(), batch_v1, retry).create("CronJob", manifest)

        batch_v1.create_namespaced_cron_job.assert_called_once()

    def test_unsupported_kind(self, retry):
        misc = MiscClient(MagicMock(), MagicMock(), retry)

        assert not misc.supports("Deployment")
        with pytest.raises(UnsupportedKindError):
            misc.create("Deployment", {"metadata": {"namespace": "space"}})
