"""Image build dispatcher for fleet deploys.

Builds (or pulls) every service of a composition with the Docker SDK and
returns one ImageRecord per service that was processed.
"""

from __future__ import annotations

import asyncio
import platform as host_platform
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from docker.errors import APIError, BuildError, DockerException, ImageNotFound

from fleetdeck.config.defaults import HOST_ARCH_ALIASES, get_platform_for_arch
from fleetdeck.deploy.dockerfile import cleanup_dockerfile, prepare_dockerfile
from fleetdeck.lib.errors import DeploymentError
from fleetdeck.lib.logging_config import get_logger
from fleetdeck.models.release import ImageRecord

if TYPE_CHECKING:
    import docker
    from docker.models.images import Image

    from fleetdeck.lib.deploy_logger import DeployLogger
    from fleetdeck.models.deployment import BuildOptions, RegistryCredentials
    from fleetdeck.models.project import BuildSpec, Composition

logger = get_logger(__name__)

_DOCKER_HUB_KEYS = ("", "docker.io", "index.docker.io", "registry-1.docker.io")


@dataclass
class BuildTarget:
    """Fleet-specific build parameters shared by all services.

    Attributes:
        arch: Fleet CPU architecture (e.g. armv7hf)
        device_type: Fleet device type slug (e.g. raspberrypi3)
        emulated: Build for ``arch`` even if the host differs
    """

    arch: str
    device_type: str
    emulated: bool = False

    @property
    def platform(self) -> str:
        return get_platform_for_arch(self.arch)


@dataclass
class BuildLog:
    """Collected output of one build."""

    lines: list[str] = field(default_factory=list)

    def extend_from_stream(self, entries: Iterable[Any]) -> None:
        for entry in entries:
            # Docker SDK returns dict[str, Any] for log entries
            if isinstance(entry, dict):
                if "stream" in entry:
                    stream_val = entry["stream"]
                    if isinstance(stream_val, str) and stream_val.strip():
                        self.lines.append(stream_val.rstrip("\n"))
                elif "status" in entry:
                    status = str(entry["status"])
                    if entry.get("id"):
                        status = f"{entry['id']}: {status}"
                    self.lines.append(status)
                elif "error" in entry:
                    self.lines.append(f"ERROR: {entry['error']}")

    @property
    def text(self) -> str:
        return "\n".join(self.lines)


def get_host_arch() -> str | None:
    """Return the fleet architecture name of the machine running the build."""
    return HOST_ARCH_ALIASES.get(host_platform.machine().lower())


def registry_for_reference(reference: str) -> str:
    """Return the registry host of an image reference ("" for Docker Hub)."""
    first, sep, _ = reference.partition("/")
    if sep and ("." in first or ":" in first or first == "localhost"):
        return first
    return ""


def _image_props(image: Image) -> dict[str, Any]:
    attrs = getattr(image, "attrs", None) or {}
    return {"image_id": image.id or "", "size": attrs.get("Size")}


class ProjectBuilder:
    """Build or pull all services of a composition.

    Example:
        >>> builder = ProjectBuilder(client, deploy_logger)
        >>> images = await builder.build_project(
        ...     composition,
        ...     project_path="./myproject",
        ...     project_name="myproject",
        ...     target=BuildTarget(arch="aarch64", device_type="raspberrypi4-64"),
        ...     build_opts=BuildOptions(),
        ... )
    """

    def __init__(
        self, client: docker.DockerClient, deploy_logger: DeployLogger
    ) -> None:
        self.client = client
        self.deploy_logger = deploy_logger

    async def build_project(
        self,
        composition: Composition,
        *,
        project_path: str,
        project_name: str,
        target: BuildTarget,
        build_opts: BuildOptions,
        inline_logs: bool = False,
        registry_secrets: dict[str, RegistryCredentials] | None = None,
    ) -> list[ImageRecord]:
        """Build every service of ``composition``.

        Args:
            composition: Pruned composition; every service in it is processed
            project_path: Project source directory
            project_name: Project name, used in log messages
            target: Fleet architecture and device type
            build_opts: Options forwarded to docker build
            inline_logs: Print build output as each service finishes
            registry_secrets: Credentials for pulling private images

        Returns:
            One ImageRecord per service in the composition

        Raises:
            DeploymentError: If any build or pull fails
        """
        host_arch = get_host_arch()
        if not target.emulated and host_arch and host_arch != target.arch:
            self.deploy_logger.defer(
                f"Building for {target.arch} on a {host_arch} host without "
                "--emulated; images may not run on the fleet's devices."
            )

        self.deploy_logger.log_info(
            f"Building {len(composition.services)} service(s) for project "
            f"'{project_name}'..."
        )

        images: list[ImageRecord] = []
        for service_name, spec in composition.services.items():
            if spec.build is not None:
                record = await asyncio.to_thread(
                    self._build_service,
                    service_name,
                    spec.build,
                    Path(project_path),
                    target,
                    build_opts,
                )
            elif spec.image:
                record = await asyncio.to_thread(
                    self._pull_service,
                    service_name,
                    spec.image,
                    target,
                    registry_secrets or {},
                )
            else:
                raise DeploymentError(
                    operation="build",
                    message=f"Service '{service_name}' has neither build nor image",
                )

            if inline_logs:
                for line in record.logs.splitlines():
                    self.deploy_logger.log_build_line(service_name, line)
            images.append(record)

        return images

    def _build_service(
        self,
        service_name: str,
        spec: BuildSpec,
        project_path: Path,
        target: BuildTarget,
        build_opts: BuildOptions,
    ) -> ImageRecord:
        context = (project_path / spec.context).resolve()
        if not context.is_dir():
            raise DeploymentError(
                operation="build",
                message=f"Build context not found for '{service_name}': {context}",
            )

        dockerfile, project_type = prepare_dockerfile(
            context,
            arch=target.arch,
            device_type=target.device_type,
            dockerfile=spec.dockerfile,
        )

        build_kwargs = build_opts.to_docker_kwargs()
        if spec.args:
            overrides = build_kwargs.get("buildargs", {})
            build_kwargs["buildargs"] = {**spec.args, **overrides}
        if spec.target:
            build_kwargs["target"] = spec.target
        if target.emulated:
            build_kwargs["platform"] = target.platform

        self.deploy_logger.log_debug(f"Building {service_name} as {spec.tag}")
        log = BuildLog()
        try:
            image, build_logs = self.client.images.build(
                path=str(context),
                tag=spec.tag,
                dockerfile=dockerfile,
                rm=True,  # Remove intermediate containers
                **build_kwargs,
            )
            log.extend_from_stream(build_logs)
            if build_opts.tag:
                repository, _, tag = build_opts.tag.partition(":")
                image.tag(repository, tag or None)
        except BuildError as e:
            log.extend_from_stream(e.build_log or [])
            message = f"Docker build failed for service '{service_name}': {e.msg}"
            if log.lines:
                message += "\n" + "\n".join(log.lines[-5:])
            raise DeploymentError(operation="build", message=message) from e
        except DockerException as e:
            raise DeploymentError(
                operation="build",
                message=f"Docker error while building '{service_name}': {e}",
            ) from e
        finally:
            cleanup_dockerfile(context, dockerfile)

        props = _image_props(image)
        props.update({"dockerfile": dockerfile, "project_type": project_type.value})
        return ImageRecord(
            service_name=service_name, name=spec.tag, logs=log.text, props=props
        )

    def _pull_service(
        self,
        service_name: str,
        reference: str,
        target: BuildTarget,
        registry_secrets: dict[str, RegistryCredentials],
    ) -> ImageRecord:
        registry = registry_for_reference(reference)
        credentials = registry_secrets.get(registry)
        if credentials is None and registry == "":
            hub_keys = [k for k in _DOCKER_HUB_KEYS if k in registry_secrets]
            if hub_keys:
                credentials = registry_secrets[hub_keys[0]]

        pull_kwargs: dict[str, Any] = {}
        if credentials is not None:
            pull_kwargs["auth_config"] = credentials.model_dump()
        if target.emulated:
            pull_kwargs["platform"] = target.platform

        self.deploy_logger.log_debug(f"Pulling {reference} for {service_name}")
        try:
            # The SDK splits tag or digest off the reference and defaults to latest
            image = self.client.images.pull(reference, **pull_kwargs)
        except (ImageNotFound, APIError) as e:
            raise DeploymentError(
                operation="pull",
                message=f"Failed to pull image '{reference}' for '{service_name}': {e}",
            ) from e
        except DockerException as e:
            raise DeploymentError(
                operation="pull",
                message=f"Docker error while pulling '{reference}': {e}",
            ) from e

        props = _image_props(image)
        props["pulled"] = True
        return ImageRecord(
            service_name=service_name,
            name=reference,
            logs=f"Pulled image {reference}",
            props=props,
        )
