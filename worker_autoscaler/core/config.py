from typing import Any, Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from worker_autoscaler.core.constants import (
    DEFAULT_NAMESPACE,
    PropagationPolicy,
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="WORKER_AUTOSCALER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Autoscaling
    enabled: bool = False  # Off until the host process opts in
    max_workers: int = Field(default=10, ge=0)

    # Kubernetes connection
    default_namespace: str = DEFAULT_NAMESPACE
    api_client: Optional[Any] = None  # Pre-built kubernetes.client.ApiClient
    job_propagation_policy: PropagationPolicy = PropagationPolicy.BACKGROUND

    # Retries against the Kubernetes API
    retry_attempts: int = Field(default=3, ge=1)
    retry_base_delay: float = 0.5
    retry_max_delay: float = 8.0

    # Logging
    log_level: str = "INFO"

    # OpenTelemetry
    otel_service_name: str = "worker-autoscaler"
    otel_exporter_endpoint: Optional[str] = None  # e.g. https://api.axiom.co/v1/traces
    otel_exporter_headers: Dict[str, str] = Field(default_factory=dict)


# Process-wide default, assembled once at import. Hosts may build their own
# Settings and hand it to the Reconciler instead.
settings = Settings()
