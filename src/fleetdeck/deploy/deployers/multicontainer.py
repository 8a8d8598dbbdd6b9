"""Release strategy for multi-container fleets."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from fleetdeck.deploy.deployers.base import BaseReleaseStrategy
from fleetdeck.services.release_api import deploy_project

if TYPE_CHECKING:
    from fleetdeck.models.deployment import DeployOptions
    from fleetdeck.models.project import Project
    from fleetdeck.models.release import FleetApplication, ImageRecord, ReleaseSummary


class MulticontainerReleaseStrategy(BaseReleaseStrategy):
    """Submit the composition and all images as one release request."""

    name = "multicontainer"

    async def create_release(
        self,
        *,
        app: FleetApplication,
        project: Project,
        images: list[ImageRecord],
        options: DeployOptions,
    ) -> ReleaseSummary:
        """Push all images and create the release, returning its commit."""
        user, token = await asyncio.gather(
            self.fleet_client.whoami(),
            self.fleet_client.get_token(),
        )

        return await deploy_project(
            self.docker_client,
            self.deploy_logger,
            project.composition,
            images,
            app.id,
            int(user["id"]),
            f"Bearer {token}",
            self.settings.resolved_api_url,
            not options.should_upload_logs,
            registry_url=self.settings.resolved_registry_url,
            username=str(user.get("username", "")),
        )
