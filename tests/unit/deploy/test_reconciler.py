"""Unit tests for build result reconciliation."""

from __future__ import annotations

import pytest

from fleetdeck.config.defaults import SKIPPED_BUILD_MESSAGE
from fleetdeck.deploy.reconciler import key_by_service, reconcile_images
from fleetdeck.lib.errors import InternalConsistencyError
from fleetdeck.models.project import BuildSpec, PlainImage, ServiceDescriptor
from fleetdeck.models.release import ImageRecord


@pytest.fixture
def descriptors() -> list[ServiceDescriptor]:
    return [
        ServiceDescriptor(service_name="api", image=BuildSpec(tag="proj_api")),
        ServiceDescriptor(service_name="db", image=PlainImage(ref="postgres:16")),
    ]


def record(service_name: str, name: str = "img") -> ImageRecord:
    return ImageRecord(
        service_name=service_name,
        name=name,
        logs="built",
        props={"image_id": "sha256:1"},
    )


class TestKeyByService:
    """Tests for key_by_service."""

    def test_indexes_by_service_name(self) -> None:
        keyed = key_by_service([record("api"), record("db")])

        assert set(keyed) == {"api", "db"}

    def test_duplicate_service_raises(self) -> None:
        with pytest.raises(InternalConsistencyError, match="more than one image"):
            key_by_service([record("api"), record("api")])


class TestReconcileImages:
    """Tests for reconcile_images."""

    def test_one_record_per_descriptor_in_order(
        self, descriptors: list[ServiceDescriptor]
    ) -> None:
        images = reconcile_images(descriptors, {"api": record("api", "proj_api")})

        assert [i.service_name for i in images] == ["api", "db"]
        assert images[0].logs == "built"

    def test_skipped_service_gets_synthesized_record(
        self, descriptors: list[ServiceDescriptor]
    ) -> None:
        images = reconcile_images(descriptors, {"api": record("api")})

        skipped = images[1]
        assert skipped.name == "postgres:16"
        assert skipped.logs == SKIPPED_BUILD_MESSAGE
        assert skipped.props == {}

    def test_nothing_built(self, descriptors: list[ServiceDescriptor]) -> None:
        images = reconcile_images(descriptors, {})

        assert [i.name for i in images] == ["proj_api", "postgres:16"]
        assert all(i.logs == SKIPPED_BUILD_MESSAGE for i in images)

    def test_undeclared_service_raises(
        self, descriptors: list[ServiceDescriptor]
    ) -> None:
        with pytest.raises(InternalConsistencyError, match="undeclared services"):
            reconcile_images(descriptors, {"ghost": record("ghost")})
