"""
Helpers for owners that keep their manifests as YAML or Jinja2 templates.
"""

import os
from typing import Any, Dict, Optional

import yaml
from jinja2 import Environment, FileSystemLoader, StrictUndefined

from worker_autoscaler.core.exceptions import MalformedManifestError

DEFAULT_TEMPLATE_DIR = os.path.join(
    os.path.dirname(os.path.dirname(__file__)), "job_templates"
)
DEFAULT_JOB_TEMPLATE = "worker_job.yaml.j2"


def _parse(document: str, source: str) -> Dict[str, Any]:
    manifest = yaml.safe_load(document)
    if not isinstance(manifest, dict):
        raise MalformedManifestError(f"{source} does not contain a mapping")
    return manifest


def render_manifest(
    template_name: str = DEFAULT_JOB_TEMPLATE,
    template_dir: Optional[str] = None,
    **context: Any,
) -> Dict[str, Any]:
    """
    Render a Jinja2 YAML template into a manifest dict.

    Args:
        template_name: Template file name inside template_dir
        template_dir: Directory holding templates (defaults to the packaged ones)
        **context: Template variables

    Returns:
        Parsed manifest
    """
    jinja_env = Environment(
        loader=FileSystemLoader(template_dir or DEFAULT_TEMPLATE_DIR),
        undefined=StrictUndefined,
    )
    template = jinja_env.get_template(template_name)
    return _parse(template.render(**context), template_name)


def load_manifest(path: str) -> Dict[str, Any]:
    """Read a plain YAML manifest from disk."""
    with open(path, "r", encoding="utf-8") as fh:
        return _parse(fh.read(), path)
