"""Local image existence probe."""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import TYPE_CHECKING

from fleetdeck.lib.logging_config import get_logger

if TYPE_CHECKING:
    import docker

logger = get_logger(__name__)


class ProbeResult(str, Enum):
    """Outcome of an image existence probe."""

    FOUND = "found"
    NOT_FOUND = "not_found"

    @property
    def exists(self) -> bool:
        return self is ProbeResult.FOUND


class ImageProbe:
    """Ask the local Docker daemon whether an image reference exists.

    Any runtime error (daemon unreachable, malformed reference) is reported
    as NOT_FOUND. A failed probe can only cause an unnecessary rebuild.
    """

    def __init__(self, client: docker.DockerClient) -> None:
        self.client = client

    def _inspect(self, reference: str) -> ProbeResult:
        if not reference:
            return ProbeResult.NOT_FOUND
        try:
            self.client.images.get(reference)
        except Exception as e:
            logger.debug(f"Image probe for '{reference}' treated as not found: {e}")
            return ProbeResult.NOT_FOUND
        return ProbeResult.FOUND

    async def probe(self, reference: str) -> ProbeResult:
        """Probe ``reference`` without blocking the event loop."""
        return await asyncio.to_thread(self._inspect, reference)
