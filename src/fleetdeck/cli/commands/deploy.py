"""CLI command for deploying projects to a fleet.

Implements 'fleetdeck deploy', which builds (or reuses) the project's images
and creates a release on the target fleet.
"""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Generator
from contextlib import contextmanager

import click
from pydantic import ValidationError as PydanticValidationError

from fleetdeck.config.loader import (
    SettingsLoader,
    get_token,
    load_registry_secrets,
)
from fleetdeck.config.project_loader import validate_project_directory
from fleetdeck.config.validator import to_config_error
from fleetdeck.deploy.docker_client import get_docker
from fleetdeck.deploy.orchestrator import DeployOrchestrator, validate_deploy_request
from fleetdeck.lib.deploy_logger import DeployLogger
from fleetdeck.lib.errors import (
    ConfigError,
    DeploymentError,
    ExpectedError,
    FleetDeckError,
    ValidationError,
)
from fleetdeck.lib.logging_config import get_logger, setup_logging
from fleetdeck.models.config import FleetSettings
from fleetdeck.models.deployment import (
    BuildOptions,
    ComposeOptions,
    DeployOptions,
    DockerConnectionOptions,
)
from fleetdeck.models.release import DeployOutcome
from fleetdeck.services.fleet_client import FleetAPIClient

logger = get_logger(__name__)


@contextmanager
def handle_command_errors() -> Generator[None, None, None]:
    """Context manager for consistent error handling in fleetdeck commands.

    Exit codes:
        1: Expected (user) error, shown verbatim
        2: Configuration error
        3: Deployment, fleet API or unexpected error
    """
    try:
        yield
    except (ExpectedError, ValidationError) as e:
        logger.debug(f"Expected error: {e}")
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(1)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        click.secho("Error: Configuration error", fg="red", err=True)
        click.echo(f"  {e.message}", err=True)
        sys.exit(2)
    except DeploymentError as e:
        logger.error(f"Deployment error: {e}")
        click.secho(f"Error: {e.operation} failed", fg="red", err=True)
        click.echo(f"  {e.message}", err=True)
        sys.exit(3)
    except FleetDeckError as e:
        logger.error(f"Fleet error: {e}")
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(3)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(3)


def parse_build_args(
    ctx: click.Context, param: click.Parameter, value: tuple[str, ...]
) -> dict[str, str]:
    """Turn repeated ``-B KEY=VALUE`` options into a mapping."""
    build_args: dict[str, str] = {}
    for item in value:
        key, sep, arg_value = item.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected KEY=VALUE, got '{item}'")
        build_args[key] = arg_value
    return build_args


async def run_deploy(
    settings: FleetSettings,
    token: str,
    options: DeployOptions,
    compose_opts: ComposeOptions,
    docker_opts: DockerConnectionOptions,
    deploy_logger: DeployLogger,
) -> DeployOutcome:
    """Connect to Docker and the fleet API, then run the orchestrator."""
    docker_client = await asyncio.to_thread(get_docker, docker_opts)
    try:
        async with FleetAPIClient(
            settings.resolved_api_url, token, timeout=settings.request_timeout
        ) as fleet_client:
            orchestrator = DeployOrchestrator(
                docker_client=docker_client,
                fleet_client=fleet_client,
                settings=settings,
                deploy_logger=deploy_logger,
            )
            return await orchestrator.deploy(options, compose_opts)
    finally:
        docker_client.close()


@click.command(context_settings={"help_option_names": ["--help"]})
@click.argument("app_name")
@click.argument("image", required=False)
@click.option(
    "--source",
    "-s",
    "source",
    type=click.Path(),
    default=".",
    show_default=True,
    help="Source directory of the project",
)
@click.option(
    "--build",
    "-b",
    "build",
    is_flag=True,
    help="Force a rebuild before deploying",
)
@click.option(
    "--nologupload",
    is_flag=True,
    help="Don't upload build logs to the dashboard with the image",
)
@click.option("--projectName", "-n", "project_name", help="Alternate project name")
@click.option(
    "--emulated",
    "-e",
    is_flag=True,
    help="Build for the fleet architecture using emulation",
)
@click.option("--dockerfile", help="Alternate Dockerfile for single-service projects")
@click.option("--logs", is_flag=True, help="Display full build logs")
@click.option(
    "--noparent-check",
    is_flag=True,
    help="Disable the compose file check in the parent directory",
)
@click.option(
    "--registry-secrets",
    "-R",
    "registry_secrets",
    type=click.Path(),
    help="YAML or JSON file with private registry credentials",
)
@click.option("--docker", "-P", "docker_socket", help="Path to a local Docker socket")
@click.option("--dockerHost", "-h", "docker_host", help="Docker daemon hostname")
@click.option("--dockerPort", "-p", "docker_port", type=int, help="Docker daemon port")
@click.option("--ca", type=click.Path(), help="Docker host TLS CA certificate file")
@click.option("--cert", type=click.Path(), help="Docker host TLS certificate file")
@click.option("--key", type=click.Path(), help="Docker host TLS key file")
@click.option("--tag", "-t", help="Image tag for single-image builds")
@click.option(
    "--buildArg",
    "-B",
    "build_args",
    multiple=True,
    callback=parse_build_args,
    help="Build-time variable KEY=VALUE (repeatable)",
)
@click.option(
    "--cache-from",
    help="Comma-separated list of images to consider as cache sources",
)
@click.option("--nocache", is_flag=True, help="Don't use the cache when building")
@click.option("--squash", is_flag=True, help="Squash newly built layers")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose debug logging")
@click.option("--quiet", "-q", is_flag=True, help="Only print the release commit")
def deploy(
    app_name: str,
    image: str | None,
    source: str,
    build: bool,
    nologupload: bool,
    project_name: str | None,
    emulated: bool,
    dockerfile: str | None,
    logs: bool,
    noparent_check: bool,
    registry_secrets: str | None,
    docker_socket: str | None,
    docker_host: str | None,
    docker_port: int | None,
    ca: str | None,
    cert: str | None,
    key: str | None,
    tag: str | None,
    build_args: dict[str, str],
    cache_from: str | None,
    nocache: bool,
    squash: bool,
    verbose: bool,
    quiet: bool,
) -> None:
    """Deploy a project or image to a fleet.

    APP_NAME is the target fleet, or <owner>/<fleet> for a fleet shared with
    you. IMAGE deploys an existing image instead of building the project.

    Images that already exist locally are reused unless --build is given.

    Example:

        fleetdeck deploy myfleet

        fleetdeck deploy myorg/myfleet --build --source ./myproject

        fleetdeck deploy myfleet myrepo/myimage:latest
    """
    setup_logging(verbose=verbose, quiet=quiet)
    deploy_logger = DeployLogger(verbose=verbose, quiet=quiet)

    with handle_command_errors():
        try:
            options = DeployOptions(
                app_name=app_name,
                image=image,
                should_perform_build=build,
                should_upload_logs=not nologupload,
                build_emulated=emulated,
                build_opts=BuildOptions(
                    tag=tag,
                    buildargs=build_args,
                    cache_from=cache_from or [],
                    nocache=nocache,
                    squash=squash,
                ),
            )
            compose_opts = ComposeOptions(
                project_path=source,
                project_name=project_name,
                dockerfile_path=dockerfile,
                inline_logs=logs,
                noparent_check=noparent_check,
            )
            docker_opts = DockerConnectionOptions(
                socket_path=docker_socket,
                host=docker_host,
                port=docker_port,
                ca=ca,
                cert=cert,
                key=key,
            )
        except PydanticValidationError as e:
            raise to_config_error(e, "options") from e

        validate_deploy_request(options)

        settings = SettingsLoader().load()
        token = get_token(settings)

        if image is None:
            compose_opts = validate_project_directory(
                deploy_logger, compose_opts, registry_secrets
            )
        else:
            compose_opts = compose_opts.model_copy(
                update={"registry_secrets": load_registry_secrets(registry_secrets)}
            )

        outcome = asyncio.run(
            run_deploy(
                settings, token, options, compose_opts, docker_opts, deploy_logger
            )
        )

        if quiet:
            click.echo(outcome.commit)
