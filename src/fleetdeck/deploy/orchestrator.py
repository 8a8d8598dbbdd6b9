"""Deploy orchestration.

Runs one deploy request end to end: load the project, check it against the
target fleet, skip services whose image already exists, build the rest, and
create a release with the strategy the fleet requires.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

from fleetdeck.config.project_loader import load_project
from fleetdeck.deploy.builder import BuildTarget, ProjectBuilder
from fleetdeck.deploy.deployers import BaseReleaseStrategy, create_release_strategy
from fleetdeck.deploy.probe import ImageProbe
from fleetdeck.deploy.pruner import prune_composition
from fleetdeck.deploy.reconciler import key_by_service, reconcile_images
from fleetdeck.lib.errors import ExpectedError
from fleetdeck.lib.logging_config import get_logger
from fleetdeck.models.release import DeployOutcome, ImageRecord

if TYPE_CHECKING:
    import docker

    from fleetdeck.lib.deploy_logger import DeployLogger
    from fleetdeck.models.config import FleetSettings
    from fleetdeck.models.deployment import ComposeOptions, DeployOptions
    from fleetdeck.models.project import Project
    from fleetdeck.models.release import TargetCapabilities
    from fleetdeck.services.fleet_client import FleetAPIClient

logger = get_logger(__name__)

UP_TO_DATE_MESSAGE = "Everything is up to date (use --build to force a rebuild)"

StrategyFactory = Callable[..., BaseReleaseStrategy]


def validate_deploy_request(options: DeployOptions) -> None:
    """Reject flag combinations that make no sense before any work is done.

    Raises:
        ExpectedError: If an image is given together with --build
    """
    if options.image and options.should_perform_build:
        raise ExpectedError("Build option is not applicable when specifying an image")


def check_capabilities(project: Project, capabilities: TargetCapabilities) -> None:
    """Fail if the project has more services than the fleet can run.

    Raises:
        ExpectedError: If a multi-service project targets a fleet without
            multi-container support, or a fleet that needs the legacy method
    """
    if len(project.descriptors) <= 1:
        return
    if not capabilities.supports_multicontainer:
        raise ExpectedError(
            "Target fleet does not support multiple containers. Aborting!"
        )
    if capabilities.is_legacy:
        raise ExpectedError(
            "Target fleet requires the legacy deploy method, which supports "
            "a single service only. Aborting!"
        )


class DeployOrchestrator:
    """Drive a deploy through probe, build, reconcile and release.

    Example:
        >>> orchestrator = DeployOrchestrator(
        ...     docker_client=client,
        ...     fleet_client=fleet_client,
        ...     settings=settings,
        ...     deploy_logger=DeployLogger(),
        ... )
        >>> outcome = await orchestrator.deploy(options, compose_opts)
        >>> outcome.commit
    """

    def __init__(
        self,
        *,
        docker_client: docker.DockerClient,
        fleet_client: FleetAPIClient,
        settings: FleetSettings,
        deploy_logger: DeployLogger,
        probe: ImageProbe | None = None,
        builder: ProjectBuilder | None = None,
        strategy_factory: StrategyFactory = create_release_strategy,
    ) -> None:
        self.docker_client = docker_client
        self.fleet_client = fleet_client
        self.settings = settings
        self.deploy_logger = deploy_logger
        self.probe = probe or ImageProbe(docker_client)
        self.builder = builder or ProjectBuilder(docker_client, deploy_logger)
        self.strategy_factory = strategy_factory

    async def deploy(
        self, options: DeployOptions, compose_opts: ComposeOptions
    ) -> DeployOutcome:
        """Run the deploy.

        Deferred messages are printed before the result is reported, on
        success and on failure alike.

        Returns:
            DeployOutcome with the release commit and the records sent

        Raises:
            ExpectedError: On invalid flags or an unsupported project
            DeploymentError: If a build, push or release request fails
            FleetAPIError: If the fleet service rejects a request
        """
        try:
            outcome = await self._run(options, compose_opts)
        except Exception:
            self.deploy_logger.output_deferred_messages()
            self.deploy_logger.log_error("Deploy failed")
            raise

        self.deploy_logger.output_deferred_messages()
        self.deploy_logger.log_success("Deploy succeeded!")
        self.deploy_logger.log_success(f"Release: {outcome.commit}")
        return outcome

    async def _run(
        self, options: DeployOptions, compose_opts: ComposeOptions
    ) -> DeployOutcome:
        validate_deploy_request(options)

        app = await self.fleet_client.get_application(options.app_name)
        capabilities = app.capabilities
        logger.debug(
            f"Fleet '{app.app_name}' ({app.arch}, {app.device_type_slug}): "
            f"{capabilities}"
        )

        project = load_project(self.deploy_logger, compose_opts, options.image)
        check_capabilities(project, capabilities)

        strategy = self.strategy_factory(
            capabilities,
            docker_client=self.docker_client,
            fleet_client=self.fleet_client,
            settings=self.settings,
            deploy_logger=self.deploy_logger,
        )

        pruned = await prune_composition(
            project,
            self.probe,
            force_rebuild=options.should_perform_build,
            concurrency=self.settings.probe_concurrency,
        )

        built: dict[str, ImageRecord] = {}
        if pruned.nothing_to_build:
            self.deploy_logger.log_info(UP_TO_DATE_MESSAGE)
        else:
            images = await self.builder.build_project(
                pruned.composition,
                project_path=project.path,
                project_name=project.name,
                target=BuildTarget(
                    arch=app.arch,
                    device_type=app.device_type_slug,
                    emulated=options.build_emulated,
                ),
                build_opts=options.build_opts,
                inline_logs=compose_opts.inline_logs,
                registry_secrets=compose_opts.registry_secrets,
            )
            built = key_by_service(images)

        images = reconcile_images(project.descriptors, built)
        release = await strategy.create_release(
            app=app, project=project, images=images, options=options
        )

        return DeployOutcome(
            commit=release.commit,
            images=images,
            strategy=strategy.name,
            built=list(built),
            skipped=pruned.skipped,
        )
