"""Release strategy for legacy single-image fleets."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from fleetdeck.deploy.deployers.base import BaseReleaseStrategy
from fleetdeck.lib.errors import ExpectedError
from fleetdeck.services.release_api import LegacyDeployOptions, deploy_legacy

if TYPE_CHECKING:
    from fleetdeck.models.deployment import DeployOptions
    from fleetdeck.models.project import Project
    from fleetdeck.models.release import FleetApplication, ImageRecord, ReleaseSummary


class LegacyReleaseStrategy(BaseReleaseStrategy):
    """Deploy exactly one image through the legacy builder endpoint.

    The builder only answers with a release id, so the commit is looked up
    with a second request.
    """

    name = "legacy"

    async def create_release(
        self,
        *,
        app: FleetApplication,
        project: Project,
        images: list[ImageRecord],
        options: DeployOptions,
    ) -> ReleaseSummary:
        """Push the single image and resolve the created release's commit."""
        if len(images) != 1:
            raise ExpectedError(
                "Target fleet requires the legacy deploy method, which supports "
                f"a single service only ({len(images)} given). Aborting!"
            )

        self.deploy_logger.log_warn("Target fleet requires legacy deploy method.")

        token, username = await asyncio.gather(
            self.fleet_client.get_token(),
            self.fleet_client.get_username(),
        )

        image = images[0]
        release_id = await deploy_legacy(
            self.docker_client,
            self.deploy_logger,
            token,
            username,
            self.settings.base_url,
            LegacyDeployOptions(
                # options.app_name may be prefixed by 'owner/', unlike app.app_name
                app_name=options.app_name,
                image_name=image.name,
                build_logs=image.logs,
                should_upload_logs=options.should_upload_logs,
            ),
            builder_url=self.settings.resolved_builder_url,
        )
        return await self.fleet_client.get_release(release_id)
