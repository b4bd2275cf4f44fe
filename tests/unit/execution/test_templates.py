import pytest
from jinja2.exceptions import UndefinedError

from worker_autoscaler.core.exceptions import MalformedManifestError
from worker_autoscaler.execution.manifest import normalize
from worker_autoscaler.execution.templates import load_manifest, render_manifest


class TestWorkerJobTemplate:
    """Tests for the packaged worker Job template."""

    def test_template_renders_correctly(self):
        manifest = render_manifest(
            job_name="worker-job",
            image="us.gcr.io/project-id/some-worker",
            queue="high-memory",
            env_vars=[{"name": "REDIS_URL", "value": "redis://redis:6379/0"}],
        )

        assert manifest["kind"] == "Job"
        assert manifest["metadata"] == {"name": "worker-job"}
        assert manifest["spec"]["ttlSecondsAfterFinished"] == 300

        container = manifest["spec"]["template"]["spec"]["containers"][0]
        assert container["image"] == "us.gcr.io/project-id/some-worker"
        assert container["env"] == [
            {"name": "QUEUE", "value": "high-memory"},
            {"name": "INTERVAL", "value": "5"},
            {"name": "REDIS_URL", "value": "redis://redis:6379/0"},
        ]

    def test_template_namespace(self):
        manifest = render_manifest(
            job_name="worker-job", image="worker", queue="default", job_namespace="space"
        )
        assert manifest["metadata"]["namespace"] == "space"

    def test_template_without_namespace_uses_context(self):
        """Without job_namespace the context namespace applies on normalize."""
        manifest = render_manifest(job_name="worker-job", image="worker", queue="low")

        assert "namespace" not in manifest["metadata"]
        assert normalize(manifest, "space")["metadata"]["namespace"] == "space"
        assert normalize(manifest)["metadata"]["namespace"] == "default"

    def test_missing_variable_raises(self):
        with pytest.raises(UndefinedError):
            render_manifest(job_name="worker-job")

    def test_rendered_manifest_normalizes(self):
        manifest = render_manifest(job_name="worker-job", image="worker", queue="low")

        normalized = normalize(manifest)

        env = normalized["spec"]["template"]["spec"]["containers"][0]["env"]
        assert {"name": "INTERVAL", "value": "0"} in env
        assert normalized["metadata"]["labels"]["resque-kubernetes-group"] == "worker-job"

    def test_custom_template_dir(self, tmp_path):
        (tmp_path / "config.yaml.j2").write_text(
            "kind: ConfigMap\nmetadata:\n  name: {{ name }}\n"
        )

        manifest = render_manifest("config.yaml.j2", str(tmp_path), name="cfg")

        assert manifest == {"kind": "ConfigMap", "metadata": {"name": "cfg"}}


class TestLoadManifest:
    """Tests for reading YAML manifests."""

    def test_load_manifest(self, tmp_path):
        path = tmp_path / "job.yaml"
        path.write_text("metadata:\n  name: thing\nspec: {}\n")

        assert load_manifest(str(path)) == {"metadata": {"name": "thing"}, "spec": {}}

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(MalformedManifestError):
            load_manifest(str(path))
