"""Base interface for release-creation strategies."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, ClassVar, Literal

if TYPE_CHECKING:
    import docker

    from fleetdeck.lib.deploy_logger import DeployLogger
    from fleetdeck.models.config import FleetSettings
    from fleetdeck.models.deployment import DeployOptions
    from fleetdeck.models.project import Project
    from fleetdeck.models.release import FleetApplication, ImageRecord, ReleaseSummary
    from fleetdeck.services.fleet_client import FleetAPIClient


class BaseReleaseStrategy(ABC):
    """Abstract base class for release-creation strategies.

    A strategy is selected once per deploy from the target fleet's
    capabilities and turns the reconciled image records into a release.
    """

    name: ClassVar[Literal["legacy", "multicontainer"]]

    def __init__(
        self,
        *,
        docker_client: docker.DockerClient,
        fleet_client: FleetAPIClient,
        settings: FleetSettings,
        deploy_logger: DeployLogger,
    ) -> None:
        self.docker_client = docker_client
        self.fleet_client = fleet_client
        self.settings = settings
        self.deploy_logger = deploy_logger

    @abstractmethod
    async def create_release(
        self,
        *,
        app: FleetApplication,
        project: Project,
        images: list[ImageRecord],
        options: DeployOptions,
    ) -> ReleaseSummary:
        """Create a release from the reconciled images.

        Args:
            app: Target fleet
            project: Loaded project, whose composition is sent with the release
            images: One record per declared service
            options: Deploy request options

        Returns:
            ReleaseSummary carrying the release commit

        Raises:
            DeploymentError: If pushing images or creating the release fails
            FleetAPIError: If the fleet service rejects a request
        """
