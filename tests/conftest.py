from unittest.mock import MagicMock

import pytest

from worker_autoscaler.core.config import Settings


@pytest.fixture
def settings():
    """Enabled settings with a pre-built (mock) API client."""
    return Settings(
        enabled=True,
        max_workers=10,
        api_client=MagicMock(),
        retry_base_delay=0,
        retry_max_delay=0,
    )


@pytest.fixture
def job_manifest():
    return {
        "metadata": {"name": "thing"},
        "spec": {
            "template": {
                "spec": {
                    "containers": [
                        {
                            "name": "worker",
                            "image": "some-worker",
                            "env": [
                                {"name": "QUEUE", "value": "high-memory"},
                                {"name": "INTERVAL", "value": "5"},
                            ],
                        }
                    ]
                }
            }
        },
    }
