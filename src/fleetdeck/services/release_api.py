"""Release creation against the fleet service.

Two protocols exist. Legacy fleets take a single image pushed to the v1
registry and announced to the builder, which answers with a release id.
Multi-container fleets take all images pushed to the v2 registry plus the
composition in one release request, which answers with the release commit.
"""

from __future__ import annotations

import asyncio
import hashlib
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import httpx
from docker.errors import DockerException

from fleetdeck.lib.errors import DeploymentError, FleetAPIError, FleetConnectionError
from fleetdeck.lib.logging_config import get_logger
from fleetdeck.models.release import ReleaseSummary
from fleetdeck.services.fleet_client import error_detail

if TYPE_CHECKING:
    import docker

    from fleetdeck.lib.deploy_logger import DeployLogger
    from fleetdeck.models.project import Composition
    from fleetdeck.models.release import ImageRecord

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 60.0  # seconds


@dataclass
class LegacyDeployOptions:
    """Options for a legacy single-image deploy.

    Attributes:
        app_name: Target fleet, possibly prefixed with ``owner/``
        image_name: Local image to push
        build_logs: Build log attached to the release
        should_upload_logs: Whether to send the build log
    """

    app_name: str
    image_name: str
    build_logs: str
    should_upload_logs: bool


def push_image(
    client: docker.DockerClient,
    deploy_logger: DeployLogger,
    local_name: str,
    repository: str,
    tag: str,
    auth_config: dict[str, str],
) -> str:
    """Tag a local image and push it, returning the pushed reference.

    Raises:
        DeploymentError: If tagging or pushing fails
    """
    remote = f"{repository}:{tag}"
    deploy_logger.log_info(f"Pushing {local_name} to {remote}...")
    try:
        image = client.images.get(local_name)
        image.tag(repository, tag)
        stream = client.images.push(
            repository, tag=tag, auth_config=auth_config, stream=True, decode=True
        )
        for entry in stream:
            if isinstance(entry, dict) and "error" in entry:
                raise DeploymentError(
                    operation="push",
                    message=f"Failed to push {remote}: {entry['error']}",
                )
    except DockerException as e:
        raise DeploymentError(
            operation="push", message=f"Docker error while pushing {remote}: {e}"
        ) from e
    return remote


async def _post_json(
    url: str,
    payload: dict[str, Any],
    headers: dict[str, str],
    transport: httpx.AsyncBaseTransport | None,
) -> dict[str, Any]:
    """POST a JSON payload as one request and return the decoded response."""
    async with httpx.AsyncClient(
        timeout=DEFAULT_TIMEOUT, transport=transport
    ) as http_client:
        try:
            response = await http_client.post(url, json=payload, headers=headers)
        except httpx.TransportError as e:
            raise FleetConnectionError(url, original_error=e) from e

    if not response.is_success:
        raise FleetAPIError(url, response.status_code, error_detail(response))

    try:
        data = response.json()
    except ValueError as e:
        raise FleetAPIError(
            url, response.status_code, "Unexpected response body"
        ) from e
    if not isinstance(data, dict):
        raise FleetAPIError(url, response.status_code, "Unexpected response body")
    return data


def _split_app_name(app_name: str, username: str) -> tuple[str, str]:
    owner, sep, name = app_name.partition("/")
    if not sep:
        return username.lower(), app_name.lower()
    return owner.lower(), name.lower()


async def deploy_legacy(
    client: docker.DockerClient,
    deploy_logger: DeployLogger,
    token: str,
    username: str,
    base_url: str,
    options: LegacyDeployOptions,
    *,
    builder_url: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> int:
    """Push one image to a legacy fleet and return the created release id.

    Raises:
        DeploymentError: If the push fails or the builder returns no release id
        FleetAPIError: If the builder rejects the request
    """
    owner, app = _split_app_name(options.app_name, username)
    repository = f"registry.{base_url}/{owner}/{app}"
    tag = uuid.uuid4().hex[:7]

    await asyncio.to_thread(
        push_image,
        client,
        deploy_logger,
        options.image_name,
        repository,
        tag,
        {"username": username, "password": token},
    )

    payload: dict[str, Any] = {"image": f"{repository}:{tag}"}
    if options.should_upload_logs:
        payload["buildLogs"] = options.build_logs

    builder = (builder_url or f"https://builder.{base_url}").rstrip("/")
    deploy_logger.log_info("Creating release...")
    data = await _post_json(
        f"{builder}/v1/push?owner={owner}&app={app}",
        payload,
        {"Authorization": f"Bearer {token}"},
        transport,
    )

    release_id = data.get("id", data.get("releaseId"))
    if release_id is None:
        raise DeploymentError(
            operation="release", message="Builder response did not include a release id"
        )
    return int(release_id)


def image_repository(
    registry_url: str, app_id: int, service_name: str, commit: str
) -> str:
    """Return the v2 registry repository for a release image."""
    digest = hashlib.sha256(f"{app_id}/{service_name}/{commit}".encode()).hexdigest()
    return f"{registry_url}/v2/{digest[:32]}"


async def deploy_project(
    client: docker.DockerClient,
    deploy_logger: DeployLogger,
    composition: Composition,
    images: list[ImageRecord],
    app_id: int,
    user_id: int,
    auth_header: str,
    api_endpoint: str,
    skip_log_upload: bool,
    *,
    registry_url: str,
    username: str = "fleetdeck",
    transport: httpx.AsyncBaseTransport | None = None,
) -> ReleaseSummary:
    """Push all images and create a multi-container release.

    Raises:
        DeploymentError: If an image push fails
        FleetAPIError: If the release request is rejected
    """
    commit = uuid.uuid4().hex
    start = datetime.now(timezone.utc)
    token = auth_header.removeprefix("Bearer ").strip()

    release_images: list[dict[str, Any]] = []
    for image in images:
        location = await asyncio.to_thread(
            push_image,
            client,
            deploy_logger,
            image.name,
            image_repository(registry_url, app_id, image.service_name, commit),
            "latest",
            {"username": username, "password": token},
        )
        release_images.append(
            {
                "service_name": image.service_name,
                "is_stored_at__image_location": location,
                "build_log": None if skip_log_upload else image.logs,
                "image_size": image.props.get("size"),
                "content_hash": image.props.get("image_id"),
                "dockerfile": image.props.get("dockerfile"),
            }
        )

    payload = {
        "belongs_to__application": app_id,
        "is_created_by__user": user_id,
        "commit": commit,
        "composition": composition.to_compose(),
        "source": "local",
        "start_timestamp": start.isoformat(),
        "end_timestamp": datetime.now(timezone.utc).isoformat(),
        "images": release_images,
    }

    deploy_logger.log_info("Creating release...")
    data = await _post_json(
        f"{api_endpoint.rstrip('/')}/v6/release/deploy",
        payload,
        {"Authorization": auth_header},
        transport,
    )
    data.setdefault("commit", commit)
    return ReleaseSummary.model_validate(data)
