"""Merge build results with skipped services into one record per service."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from fleetdeck.config.defaults import SKIPPED_BUILD_MESSAGE
from fleetdeck.lib.errors import InternalConsistencyError
from fleetdeck.models.project import ServiceDescriptor
from fleetdeck.models.release import ImageRecord


def key_by_service(images: Iterable[ImageRecord]) -> dict[str, ImageRecord]:
    """Index build results by service name.

    Raises:
        InternalConsistencyError: If a service was built twice
    """
    keyed: dict[str, ImageRecord] = {}
    for image in images:
        if image.service_name in keyed:
            raise InternalConsistencyError(
                f"Build returned more than one image for service "
                f"'{image.service_name}'"
            )
        keyed[image.service_name] = image
    return keyed


def skipped_record(descriptor: ServiceDescriptor) -> ImageRecord:
    """Record for a service whose build was skipped."""
    return ImageRecord(
        service_name=descriptor.service_name,
        name=descriptor.image_reference,
        logs=SKIPPED_BUILD_MESSAGE,
        props={},
    )


def reconcile_images(
    descriptors: Sequence[ServiceDescriptor],
    built: dict[str, ImageRecord],
) -> list[ImageRecord]:
    """Return exactly one ImageRecord per descriptor, in descriptor order.

    Services without a build result get a skip record.

    Raises:
        InternalConsistencyError: If ``built`` holds a service that was not
            declared, or the result does not cover every descriptor once
    """
    declared = {d.service_name for d in descriptors}
    unexpected = sorted(set(built) - declared)
    if unexpected:
        raise InternalConsistencyError(
            f"Build returned images for undeclared services: {', '.join(unexpected)}"
        )

    images = [built.get(d.service_name) or skipped_record(d) for d in descriptors]

    names = [image.service_name for image in images]
    if len(names) != len(set(names)) or set(names) != declared:
        raise InternalConsistencyError(
            "Image records do not match the declared services"
        )
    return images
