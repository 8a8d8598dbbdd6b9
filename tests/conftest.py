"""Pytest configuration and shared fixtures for FleetDeck tests."""

import os
import shutil
import tempfile
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from fleetdeck.lib.deploy_logger import DeployLogger
from fleetdeck.models.config import FleetSettings
from fleetdeck.models.release import ApplicationType, FleetApplication


@pytest.fixture
def temp_dir() -> Generator[Path]:
    """Create a temporary directory for test file operations.

    Yields:
        Path to temporary directory
    """
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def isolated_env() -> Generator[dict[str, str]]:
    """Provide isolated environment variables for testing.

    Removes FLEETDECK_* variables for the test and restores the original
    environment afterwards.
    """
    original_env = os.environ.copy()
    for key in list(os.environ):
        if key.startswith("FLEETDECK_"):
            del os.environ[key]
    yield original_env
    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def deploy_logger() -> DeployLogger:
    """Deploy logger that prints everything, including debug lines."""
    return DeployLogger(verbose=True)


@pytest.fixture
def settings() -> FleetSettings:
    """Settings with a fixed token pointing at a test domain."""
    return FleetSettings(base_url="fleet.test", token="test-token")


@pytest.fixture
def make_app() -> Callable[..., FleetApplication]:
    """Factory for FleetApplication with the given type flags."""

    def _make(
        *,
        is_legacy: bool = False,
        supports_multicontainer: bool = True,
        arch: str = "aarch64",
        **overrides: Any,
    ) -> FleetApplication:
        data: dict[str, Any] = {
            "id": 42,
            "app_name": "myfleet",
            "slug": "gh_user/myfleet",
            "arch": arch,
            "device_type_slug": "raspberrypi4-64",
            "application_type": ApplicationType(
                slug="microservices" if supports_multicontainer else "essentials",
                supports_multicontainer=supports_multicontainer,
                is_legacy=is_legacy,
            ),
        }
        data.update(overrides)
        return FleetApplication(**data)

    return _make


@pytest.fixture
def mock_docker_client() -> MagicMock:
    """Docker client mock whose image lookups fail unless configured."""
    client = MagicMock()
    client.images.get.side_effect = Exception("No such image")
    return client
