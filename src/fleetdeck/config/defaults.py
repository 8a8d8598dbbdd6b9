"""Default configuration values for FleetDeck."""

import logging

logger = logging.getLogger(__name__)


# Client settings defaults
DEFAULT_SETTINGS: dict[str, str | int | float | None] = {
    "base_url": "fleetdeck.io",
    "data_directory": "~/.fleetdeck",
    "probe_concurrency": 10,
    "request_timeout": 30.0,  # seconds
}

DEFAULT_CONFIG_FILE = "~/.fleetdeckrc.yml"
TOKEN_FILE_NAME = "token"

# Compose files searched for in the project directory, in order
COMPOSE_FILE_NAMES: tuple[str, ...] = (
    "docker-compose.yml",
    "docker-compose.yaml",
)

# Service name used for single-image and single-Dockerfile projects
DEFAULT_SERVICE_NAME = "main"

# Compose file version assumed when a project has no compose file
DEFAULT_COMPOSE_VERSION = "2.1"

SKIPPED_BUILD_MESSAGE = "Build skipped; image for service already exists."

# Fleet architecture to docker platform mapping
ARCH_PLATFORMS: dict[str, str] = {
    "amd64": "linux/amd64",
    "i386": "linux/386",
    "aarch64": "linux/arm64",
    "armv7hf": "linux/arm/v7",
    "rpi": "linux/arm/v6",
}

# ``platform.machine()`` values mapped to fleet architectures
HOST_ARCH_ALIASES: dict[str, str] = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "i386": "i386",
    "i686": "i386",
    "aarch64": "aarch64",
    "arm64": "aarch64",
    "armv7l": "armv7hf",
    "armv6l": "rpi",
}


def get_platform_for_arch(arch: str) -> str:
    """Return the docker platform string for a fleet architecture.

    Unknown architectures fall back to linux/<arch> with a warning.
    """
    if arch in ARCH_PLATFORMS:
        return ARCH_PLATFORMS[arch]
    logger.warning(f"Unknown architecture '{arch}', assuming platform linux/{arch}")
    return f"linux/{arch}"
