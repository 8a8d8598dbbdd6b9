"""Project loading for deploy commands.

Turns a source directory (or an explicit image reference) into a Project:
the ordered service descriptors plus the composition they came from.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from fleetdeck.config.defaults import (
    COMPOSE_FILE_NAMES,
    DEFAULT_COMPOSE_VERSION,
    DEFAULT_SERVICE_NAME,
)
from fleetdeck.config.env_loader import substitute_env_vars
from fleetdeck.config.loader import load_registry_secrets
from fleetdeck.config.validator import to_config_error
from fleetdeck.lib.errors import ConfigError, ExpectedError, ValidationError
from fleetdeck.lib.logging_config import get_logger
from fleetdeck.models.project import (
    BuildSpec,
    Composition,
    PlainImage,
    Project,
    ServiceDescriptor,
    ServiceSpec,
)

if TYPE_CHECKING:
    from fleetdeck.lib.deploy_logger import DeployLogger
    from fleetdeck.models.deployment import ComposeOptions

logger = get_logger(__name__)

_INVALID_NAME_CHARS = re.compile(r"[^a-z0-9_.-]")


def find_compose_file(path: Path) -> Path | None:
    """Return the first compose file found in ``path``, if any."""
    for name in COMPOSE_FILE_NAMES:
        candidate = path / name
        if candidate.is_file():
            return candidate
    return None


def normalize_project_name(name: str) -> str:
    """Lowercase ``name`` and drop characters not allowed in image names."""
    normalized = _INVALID_NAME_CHARS.sub("", name.lower()).lstrip("._-")
    return normalized or "project"


def default_project_name(path: Path) -> str:
    """Derive a docker-safe project name from the directory name."""
    return normalize_project_name(path.resolve().name)


def _parse_build_args(raw: Any, service_name: str) -> dict[str, str]:
    if raw is None:
        return {}
    if isinstance(raw, dict):
        return {str(k): "" if v is None else str(v) for k, v in raw.items()}
    if isinstance(raw, list):
        args: dict[str, str] = {}
        for item in raw:
            key, _, value = str(item).partition("=")
            args[key] = value
        return args
    raise ConfigError(
        field=f"services.{service_name}.build.args",
        message="Build args must be a mapping or a list of KEY=value",
    )


def _parse_build(raw: Any, tag: str, service_name: str) -> BuildSpec:
    if isinstance(raw, str):
        return BuildSpec(tag=tag, context=raw)
    if not isinstance(raw, dict):
        raise ValidationError(
            field=f"services.{service_name}.build",
            message="Build must be a context path or a mapping",
            expected="string or mapping",
            actual=type(raw).__name__,
        )
    return BuildSpec(
        tag=tag,
        context=str(raw.get("context", ".")),
        dockerfile=raw.get("dockerfile"),
        args=_parse_build_args(raw.get("args"), service_name),
        target=raw.get("target"),
    )


def parse_composition(
    raw: dict[str, Any], project_name: str
) -> tuple[Composition, list[ServiceDescriptor]]:
    """Normalize a parsed compose file.

    Services with a ``build`` key become build specs tagged
    ``<project>_<service>``; services with only ``image`` become plain
    images.

    Raises:
        ConfigError: If the compose structure is not usable
    """
    services_raw = raw.get("services")
    if not isinstance(services_raw, dict) or not services_raw:
        raise ConfigError(
            field="services",
            message="Compose file must define at least one service",
        )

    services: dict[str, ServiceSpec] = {}
    descriptors: list[ServiceDescriptor] = []

    for service_name, service_raw in services_raw.items():
        service_name = str(service_name)
        if not isinstance(service_raw, dict):
            raise ValidationError(
                field=f"services.{service_name}",
                message="Service definition must be a mapping",
                expected="mapping of compose keys",
                actual=type(service_raw).__name__,
            )

        extra = {k: v for k, v in service_raw.items() if k not in ("build", "image")}
        image = service_raw.get("image")

        try:
            if "build" in service_raw:
                tag = f"{project_name}_{service_name}".lower()
                build = _parse_build(service_raw["build"], tag, service_name)
                spec = ServiceSpec(build=build, image=image, extra=extra)
                descriptor = ServiceDescriptor(service_name=service_name, image=build)
            elif image:
                spec = ServiceSpec(image=str(image), extra=extra)
                descriptor = ServiceDescriptor(
                    service_name=service_name, image=PlainImage(ref=str(image))
                )
            else:
                raise ConfigError(
                    field=f"services.{service_name}",
                    message="Service must define 'image' or 'build'",
                )
        except PydanticValidationError as exc:
            raise to_config_error(exc, f"services.{service_name}") from exc

        services[service_name] = spec
        descriptors.append(descriptor)

    composition = Composition(
        version=str(raw.get("version", DEFAULT_COMPOSE_VERSION)),
        services=services,
        networks=raw.get("networks") or {},
        volumes=raw.get("volumes") or {},
    )
    return composition, descriptors


def _single_service(service_name: str, image: PlainImage | BuildSpec) -> tuple[
    Composition, list[ServiceDescriptor]
]:
    if isinstance(image, BuildSpec):
        spec = ServiceSpec(build=image)
    else:
        spec = ServiceSpec(image=image.ref)
    composition = Composition(
        version=DEFAULT_COMPOSE_VERSION, services={service_name: spec}
    )
    return composition, [ServiceDescriptor(service_name=service_name, image=image)]


def load_project(
    deploy_logger: DeployLogger,
    compose_opts: ComposeOptions,
    image: str | None = None,
) -> Project:
    """Load the project to deploy.

    Args:
        deploy_logger: User-facing logger for progress messages
        compose_opts: Project options from the command line
        image: Explicit image reference; skips compose/Dockerfile discovery

    Returns:
        The loaded Project

    Raises:
        ConfigError: If the compose file cannot be read or is invalid
    """
    project_path = Path(compose_opts.project_path)
    if compose_opts.project_name:
        project_name = normalize_project_name(compose_opts.project_name)
    else:
        project_name = default_project_name(project_path)

    if image:
        deploy_logger.log_debug(f"Loading project for image {image}...")
        composition, descriptors = _single_service(
            DEFAULT_SERVICE_NAME, PlainImage(ref=image)
        )
    else:
        deploy_logger.log_debug("Loading project...")
        compose_file = find_compose_file(project_path)
        if compose_file is not None:
            deploy_logger.log_debug(f"Using compose file {compose_file}")
            try:
                raw = yaml.safe_load(
                    substitute_env_vars(compose_file.read_text(encoding="utf-8"))
                )
            except (OSError, yaml.YAMLError) as exc:
                raise ConfigError(
                    field="compose",
                    message=f"Failed to read {compose_file}: {exc}",
                ) from exc
            if not isinstance(raw, dict):
                raise ConfigError(
                    field="compose",
                    message=f"{compose_file} must contain a mapping",
                )
            composition, descriptors = parse_composition(raw, project_name)
        else:
            deploy_logger.log_debug(
                "No compose file found, deploying a single-service project"
            )
            composition, descriptors = _single_service(
                DEFAULT_SERVICE_NAME,
                BuildSpec(
                    tag=f"{project_name}_{DEFAULT_SERVICE_NAME}",
                    context=".",
                    dockerfile=compose_opts.dockerfile_path,
                ),
            )

    try:
        project = Project(
            descriptors=descriptors,
            composition=composition,
            path=str(project_path),
            name=project_name,
        )
    except PydanticValidationError as exc:
        raise to_config_error(exc, "project", str(project_path)) from exc

    logger.debug(
        f"Loaded project '{project.name}' with services "
        f"{[d.service_name for d in project.descriptors]}"
    )
    return project


def validate_project_directory(
    deploy_logger: DeployLogger,
    compose_opts: ComposeOptions,
    registry_secrets_path: str | None = None,
) -> ComposeOptions:
    """Check the project directory before anything is built.

    Returns:
        ComposeOptions with registry secrets loaded

    Raises:
        ExpectedError: If the directory or alternate Dockerfile is missing, or
            a compose file exists only in the parent directory
        ConfigError: If the registry secrets file is invalid
    """
    project_path = Path(compose_opts.project_path)
    if not project_path.is_dir():
        raise ExpectedError(
            f'Could not access source folder: "{compose_opts.project_path}"'
        )

    if compose_opts.dockerfile_path:
        if not (project_path / compose_opts.dockerfile_path).is_file():
            raise ExpectedError(
                "Error: specified Dockerfile not found: "
                f'"{compose_opts.dockerfile_path}"'
            )

    if not compose_opts.noparent_check and find_compose_file(project_path) is None:
        parent_compose = find_compose_file(project_path.resolve().parent)
        if parent_compose is not None:
            raise ExpectedError(
                f'"{parent_compose.name}" file found in parent directory: please '
                "check that the correct source folder was specified. (Suppress "
                "with '--noparent-check'.)"
            )

    secrets = load_registry_secrets(registry_secrets_path)
    if secrets:
        deploy_logger.log_debug(f"Loaded registry secrets for {sorted(secrets)}")
    return compose_opts.model_copy(update={"registry_secrets": secrets})
