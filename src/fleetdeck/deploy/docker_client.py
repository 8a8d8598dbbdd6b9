"""Docker client creation from command line connection options."""

from __future__ import annotations

import docker
from docker.errors import DockerException
from docker.tls import TLSConfig

from fleetdeck.lib.errors import DockerNotAvailableError
from fleetdeck.lib.logging_config import get_logger
from fleetdeck.models.deployment import DockerConnectionOptions

logger = get_logger(__name__)

DEFAULT_DOCKER_PORT = 2375
DEFAULT_DOCKER_TLS_PORT = 2376


def get_docker_base_url(options: DockerConnectionOptions) -> str | None:
    """Return the daemon URL for the options, or None to use the environment."""
    if options.socket_path:
        return f"unix://{options.socket_path}"
    if options.host:
        default_port = (
            DEFAULT_DOCKER_TLS_PORT if options.uses_tls else DEFAULT_DOCKER_PORT
        )
        return f"tcp://{options.host}:{options.port or default_port}"
    return None


def get_docker(options: DockerConnectionOptions | None = None) -> docker.DockerClient:
    """Create a Docker client and check that the daemon answers.

    Args:
        options: Connection options; None or empty options use DOCKER_HOST
            and friends from the environment.

    Raises:
        DockerNotAvailableError: If the daemon cannot be reached
    """
    options = options or DockerConnectionOptions()
    base_url = get_docker_base_url(options)

    try:
        if base_url is None:
            client = docker.from_env()  # type: ignore[attr-defined]
        else:
            tls: TLSConfig | bool = False
            if options.uses_tls:
                client_cert = None
                if options.cert and options.key:
                    client_cert = (options.cert, options.key)
                tls = TLSConfig(
                    client_cert=client_cert,
                    ca_cert=options.ca,
                    verify=bool(options.ca),
                )
            client = docker.DockerClient(base_url=base_url, tls=tls)
        client.ping()
    except DockerException as e:
        raise DockerNotAvailableError(operation="docker", detail=str(e)) from e

    logger.debug(f"Connected to Docker daemon at {base_url or 'environment default'}")
    return client
