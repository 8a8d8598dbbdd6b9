"""Composition pruning: drop services whose image already exists locally."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from fleetdeck.deploy.probe import ProbeResult
from fleetdeck.lib.concurrency import bounded_map
from fleetdeck.lib.logging_config import get_logger

if TYPE_CHECKING:
    from fleetdeck.deploy.probe import ImageProbe
    from fleetdeck.models.project import Composition, Project, ServiceDescriptor

logger = get_logger(__name__)


@dataclass
class PruneResult:
    """Composition left to build plus the services that were skipped.

    Attributes:
        composition: Composition containing only the services to build
        skipped: Names of services whose image already exists locally
    """

    composition: Composition
    skipped: list[str] = field(default_factory=list)

    @property
    def nothing_to_build(self) -> bool:
        return not self.composition.services


async def prune_composition(
    project: Project,
    probe: ImageProbe,
    *,
    force_rebuild: bool,
    concurrency: int = 10,
) -> PruneResult:
    """Remove services with an existing local image from the composition.

    Args:
        project: Loaded project
        probe: Image existence probe
        force_rebuild: Build everything; no probes are issued
        concurrency: Maximum concurrent probes

    Returns:
        PruneResult; ``nothing_to_build`` is True when every image exists
    """
    if force_rebuild:
        return PruneResult(composition=project.composition)

    async def probe_descriptor(descriptor: ServiceDescriptor) -> ProbeResult:
        return await probe.probe(descriptor.image_reference)

    outcomes = await bounded_map(probe_descriptor, project.descriptors, concurrency)

    skipped: list[str] = []
    for outcome in outcomes:
        # A probe that raised is the same as a probe that found nothing
        if outcome.ok and outcome.value is ProbeResult.FOUND:
            skipped.append(outcome.item.service_name)
        elif not outcome.ok:
            logger.debug(
                f"Probe for service '{outcome.item.service_name}' failed: "
                f"{outcome.error}"
            )

    if skipped:
        logger.debug(f"Skipping build for existing images: {skipped}")

    return PruneResult(
        composition=project.composition.without(skipped), skipped=skipped
    )
