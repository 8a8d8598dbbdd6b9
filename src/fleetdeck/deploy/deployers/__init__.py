"""Release-creation strategies for fleet deploys."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fleetdeck.deploy.deployers.base import BaseReleaseStrategy
from fleetdeck.deploy.deployers.legacy import LegacyReleaseStrategy
from fleetdeck.deploy.deployers.multicontainer import MulticontainerReleaseStrategy

if TYPE_CHECKING:
    import docker

    from fleetdeck.lib.deploy_logger import DeployLogger
    from fleetdeck.models.config import FleetSettings
    from fleetdeck.models.release import TargetCapabilities
    from fleetdeck.services.fleet_client import FleetAPIClient


def create_release_strategy(
    capabilities: TargetCapabilities,
    *,
    docker_client: docker.DockerClient,
    fleet_client: FleetAPIClient,
    settings: FleetSettings,
    deploy_logger: DeployLogger,
) -> BaseReleaseStrategy:
    """Select the release strategy for the target fleet's capabilities.

    Legacy fleets always use the legacy strategy, whatever the service count.
    """
    strategy_cls: type[BaseReleaseStrategy]
    if capabilities.is_legacy:
        strategy_cls = LegacyReleaseStrategy
    else:
        strategy_cls = MulticontainerReleaseStrategy

    return strategy_cls(
        docker_client=docker_client,
        fleet_client=fleet_client,
        settings=settings,
        deploy_logger=deploy_logger,
    )


__all__ = [
    "BaseReleaseStrategy",
    "LegacyReleaseStrategy",
    "MulticontainerReleaseStrategy",
    "create_release_strategy",
]
