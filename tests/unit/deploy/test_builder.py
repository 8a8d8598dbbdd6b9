"""Unit tests for ProjectBuilder.

Docker is mocked throughout; builds and pulls are checked through the
arguments passed to the Docker SDK.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from docker.errors import APIError, BuildError

from fleetdeck.deploy.builder import (
    BuildLog,
    BuildTarget,
    ProjectBuilder,
    registry_for_reference,
)
from fleetdeck.deploy.dockerfile import GENERATED_DOCKERFILE_NAME
from fleetdeck.lib.errors import DeploymentError
from fleetdeck.models.deployment import BuildOptions, RegistryCredentials
from fleetdeck.models.project import BuildSpec, Composition, ServiceSpec


@pytest.fixture
def mock_image() -> MagicMock:
    image = MagicMock()
    image.id = "sha256:abc123"
    image.attrs = {"Size": 1024}
    return image


@pytest.fixture
def docker_client(mock_image: MagicMock) -> MagicMock:
    client = MagicMock()
    client.images.build.return_value = (
        mock_image,
        [{"stream": "Step 1/2 : FROM alpine\n"}, {"stream": "Successfully built\n"}],
    )
    client.images.pull.return_value = mock_image
    return client


@pytest.fixture
def target() -> BuildTarget:
    return BuildTarget(arch="aarch64", device_type="raspberrypi4-64")


def build_composition(tmp_path: Path, *names: str) -> Composition:
    services: dict[str, ServiceSpec] = {}
    for name in names:
        (tmp_path / name).mkdir()
        (tmp_path / name / "Dockerfile").write_text("FROM alpine\n")
        services[name] = ServiceSpec(
            build=BuildSpec(tag=f"proj_{name}", context=name)
        )
    return Composition(services=services)


class TestBuildLog:
    """Tests for BuildLog stream collection."""

    def test_collects_stream_status_and_error_entries(self) -> None:
        log = BuildLog()
        log.extend_from_stream(
            [
                {"stream": "Step 1/1 : FROM alpine\n"},
                {"stream": "\n"},
                {"status": "Downloading", "id": "layer1"},
                {"error": "no space left"},
                "ignored",
            ]
        )

        assert log.lines == [
            "Step 1/1 : FROM alpine",
            "layer1: Downloading",
            "ERROR: no space left",
        ]


class TestRegistryForReference:
    """Tests for registry_for_reference."""

    @pytest.mark.parametrize(
        ("reference", "expected"),
        [
            ("redis:7", ""),
            ("library/redis", ""),
            ("ghcr.io/org/app:1.0", "ghcr.io"),
            ("localhost:5000/app", "localhost:5000"),
        ],
    )
    def test_registry_host(self, reference: str, expected: str) -> None:
        assert registry_for_reference(reference) == expected


class TestProjectBuilder:
    """Tests for ProjectBuilder.build_project."""

    @pytest.mark.asyncio
    async def test_builds_every_service(
        self, tmp_path, docker_client, target, deploy_logger
    ) -> None:
        composition = build_composition(tmp_path, "web", "worker")
        builder = ProjectBuilder(docker_client, deploy_logger)

        with patch("fleetdeck.deploy.builder.get_host_arch", return_value="aarch64"):
            images = await builder.build_project(
                composition,
                project_path=str(tmp_path),
                project_name="proj",
                target=target,
                build_opts=BuildOptions(nocache=True),
            )

        assert [i.service_name for i in images] == ["web", "worker"]
        assert images[0].name == "proj_web"
        assert images[0].logs == "Step 1/2 : FROM alpine\nSuccessfully built"
        assert images[0].props == {
            "image_id": "sha256:abc123",
            "size": 1024,
            "dockerfile": "Dockerfile",
            "project_type": "dockerfile",
        }

        kwargs = docker_client.images.build.call_args_list[0].kwargs
        assert kwargs["path"] == str((tmp_path / "web").resolve())
        assert kwargs["tag"] == "proj_web"
        assert kwargs["rm"] is True
        assert kwargs["nocache"] is True
        assert "platform" not in kwargs
        assert deploy_logger.deferred_messages == []

    @pytest.mark.asyncio
    async def test_emulated_build_sets_platform(
        self, tmp_path, docker_client, deploy_logger
    ) -> None:
        composition = build_composition(tmp_path, "main")
        builder = ProjectBuilder(docker_client, deploy_logger)

        await builder.build_project(
            composition,
            project_path=str(tmp_path),
            project_name="proj",
            target=BuildTarget(
                arch="armv7hf", device_type="raspberrypi3", emulated=True
            ),
            build_opts=BuildOptions(),
        )

        kwargs = docker_client.images.build.call_args.kwargs
        assert kwargs["platform"] == "linux/arm/v7"

    @pytest.mark.asyncio
    async def test_arch_mismatch_defers_warning(
        self, tmp_path, docker_client, target, deploy_logger
    ) -> None:
        composition = build_composition(tmp_path, "main")
        builder = ProjectBuilder(docker_client, deploy_logger)

        with patch("fleetdeck.deploy.builder.get_host_arch", return_value="amd64"):
            await builder.build_project(
                composition,
                project_path=str(tmp_path),
                project_name="proj",
                target=target,
                build_opts=BuildOptions(),
            )

        [(level, message)] = deploy_logger.deferred_messages
        assert level == "warn"
        assert "aarch64" in message
        assert "--emulated" in message

    @pytest.mark.asyncio
    async def test_service_build_args_are_merged(
        self, tmp_path, docker_client, target, deploy_logger
    ) -> None:
        (tmp_path / "api").mkdir()
        (tmp_path / "api" / "Dockerfile").write_text("FROM alpine\n")
        composition = Composition(
            services={
                "api": ServiceSpec(
                    build=BuildSpec(
                        tag="proj_api",
                        context="api",
                        args={"MODE": "prod", "LEVEL": "1"},
                        target="runtime",
                    )
                )
            }
        )
        builder = ProjectBuilder(docker_client, deploy_logger)

        await builder.build_project(
            composition,
            project_path=str(tmp_path),
            project_name="proj",
            target=target,
            build_opts=BuildOptions(buildargs={"LEVEL": "2"}),
        )

        kwargs = docker_client.images.build.call_args.kwargs
        assert kwargs["buildargs"] == {"MODE": "prod", "LEVEL": "2"}
        assert kwargs["target"] == "runtime"

    @pytest.mark.asyncio
    async def test_extra_tag_is_applied(
        self, tmp_path, docker_client, mock_image, target, deploy_logger
    ) -> None:
        composition = build_composition(tmp_path, "main")
        builder = ProjectBuilder(docker_client, deploy_logger)

        await builder.build_project(
            composition,
            project_path=str(tmp_path),
            project_name="proj",
            target=target,
            build_opts=BuildOptions(tag="myrepo/app:v1"),
        )

        mock_image.tag.assert_called_once_with("myrepo/app", "v1")

    @pytest.mark.asyncio
    async def test_template_dockerfile_is_cleaned_up(
        self, tmp_path, docker_client, target, deploy_logger
    ) -> None:
        (tmp_path / "main").mkdir()
        (tmp_path / "main" / "Dockerfile.template").write_text(
            "FROM fleetdeck/%%FLEET_MACHINE_NAME%%-alpine\n"
        )
        composition = Composition(
            services={
                "main": ServiceSpec(build=BuildSpec(tag="proj_main", context="main"))
            }
        )
        builder = ProjectBuilder(docker_client, deploy_logger)

        images = await builder.build_project(
            composition,
            project_path=str(tmp_path),
            project_name="proj",
            target=target,
            build_opts=BuildOptions(),
        )

        assert docker_client.images.build.call_args.kwargs["dockerfile"] == (
            GENERATED_DOCKERFILE_NAME
        )
        assert images[0].props["project_type"] == "dockerfile_template"
        assert not (tmp_path / "main" / GENERATED_DOCKERFILE_NAME).exists()

    @pytest.mark.asyncio
    async def test_build_error_raises_deployment_error(
        self, tmp_path, docker_client, target, deploy_logger
    ) -> None:
        composition = build_composition(tmp_path, "main")
        docker_client.images.build.side_effect = BuildError(
            reason="returned a non-zero code: 1",
            build_log=[{"stream": "Step 2/2 : RUN false\n"}],
        )
        builder = ProjectBuilder(docker_client, deploy_logger)

        with pytest.raises(DeploymentError) as exc_info:
            await builder.build_project(
                composition,
                project_path=str(tmp_path),
                project_name="proj",
                target=target,
                build_opts=BuildOptions(),
            )

        assert exc_info.value.operation == "build"
        assert "main" in exc_info.value.message
        assert "RUN false" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_missing_context_raises(
        self, tmp_path, docker_client, target, deploy_logger
    ) -> None:
        composition = Composition(
            services={
                "main": ServiceSpec(build=BuildSpec(tag="proj_main", context="nope"))
            }
        )
        builder = ProjectBuilder(docker_client, deploy_logger)

        with pytest.raises(DeploymentError, match="Build context not found"):
            await builder.build_project(
                composition,
                project_path=str(tmp_path),
                project_name="proj",
                target=target,
                build_opts=BuildOptions(),
            )

        docker_client.images.build.assert_not_called()

    @pytest.mark.asyncio
    async def test_image_service_is_pulled_with_credentials(
        self, tmp_path, docker_client, target, deploy_logger
    ) -> None:
        composition = Composition(
            services={"cache": ServiceSpec(image="ghcr.io/org/cache:2")}
        )
        builder = ProjectBuilder(docker_client, deploy_logger)

        images = await builder.build_project(
            composition,
            project_path=str(tmp_path),
            project_name="proj",
            target=target,
            build_opts=BuildOptions(),
            registry_secrets={
                "ghcr.io": RegistryCredentials(username="bot", password="s3cret")
            },
        )

        docker_client.images.pull.assert_called_once_with(
            "ghcr.io/org/cache:2",
            auth_config={"username": "bot", "password": "s3cret"},
        )
        docker_client.images.build.assert_not_called()
        assert images[0].name == "ghcr.io/org/cache:2"
        assert images[0].props["pulled"] is True

    @pytest.mark.asyncio
    async def test_pull_failure_raises_deployment_error(
        self, tmp_path, docker_client, target, deploy_logger
    ) -> None:
        docker_client.images.pull.side_effect = APIError("pull access denied")
        composition = Composition(services={"cache": ServiceSpec(image="private/x")})
        builder = ProjectBuilder(docker_client, deploy_logger)

        with pytest.raises(DeploymentError) as exc_info:
            await builder.build_project(
                composition,
                project_path=str(tmp_path),
                project_name="proj",
                target=target,
                build_opts=BuildOptions(),
            )

        assert exc_info.value.operation == "pull"

    @pytest.mark.asyncio
    async def test_inline_logs_are_printed(
        self, tmp_path, docker_client, target, deploy_logger, capsys
    ) -> None:
        composition = build_composition(tmp_path, "main")
        builder = ProjectBuilder(docker_client, deploy_logger)

        await builder.build_project(
            composition,
            project_path=str(tmp_path),
            project_name="proj",
            target=target,
            build_opts=BuildOptions(),
            inline_logs=True,
        )

        out = capsys.readouterr().out
        assert "[Build] [main] Step 1/2 : FROM alpine" in out
