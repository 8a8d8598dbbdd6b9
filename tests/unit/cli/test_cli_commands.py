"""Unit tests for the fleetdeck CLI.

Tests cover:
- deploy option parsing into DeployOptions, ComposeOptions and Docker options
- Exit codes for expected, configuration and deployment errors
- device table output
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, patch

import click
import pytest
from click.testing import CliRunner

from fleetdeck import __version__
from fleetdeck.cli.commands.device import format_device
from fleetdeck.cli.main import main
from fleetdeck.lib.errors import DeploymentError, DeviceNotFoundError
from fleetdeck.models.release import DeployOutcome, DeviceInfo, ImageRecord


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI runner."""
    return CliRunner()


@pytest.fixture
def cli_env(tmp_path: Path) -> dict[str, str | None]:
    """Environment with a token and no user config file."""
    return {
        "FLEETDECK_TOKEN": "test-token",
        "FLEETDECK_CONFIG": str(tmp_path / "missing-rc.yml"),
        "FLEETDECK_BASE_URL": "fleet.test",
        "FLEETDECK_LOG_LEVEL": None,
    }


@pytest.fixture
def source_dir(tmp_path: Path) -> Path:
    source = tmp_path / "app"
    source.mkdir()
    (source / "Dockerfile").write_text("FROM alpine\n")
    return source


@pytest.fixture
def outcome() -> DeployOutcome:
    return DeployOutcome(
        commit="abc123",
        images=[ImageRecord(service_name="main", name="app_main")],
        strategy="multicontainer",
        built=["main"],
    )


class TestDeployCommand:
    """Tests for 'fleetdeck deploy'."""

    def test_help_uses_long_option_only(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["deploy", "--help"])

        assert result.exit_code == 0
        assert "--dockerHost" in result.output
        assert "--nologupload" in result.output

    def test_options_are_forwarded(
        self, runner, cli_env, source_dir, outcome
    ) -> None:
        with patch(
            "fleetdeck.cli.commands.deploy.run_deploy",
            new=AsyncMock(return_value=outcome),
        ) as mock_run:
            result = runner.invoke(
                main,
                [
                    "deploy",
                    "myorg/myfleet",
                    "--source",
                    str(source_dir),
                    "--build",
                    "--nologupload",
                    "--emulated",
                    "-B",
                    "A=1",
                    "--buildArg",
                    "B=two=2",
                    "--cache-from",
                    "img:1,img:2",
                    "-h",
                    "10.0.0.5",
                    "-p",
                    "2376",
                    "--projectName",
                    "custom",
                ],
                env=cli_env,
            )

        assert result.exit_code == 0, result.output
        settings, token, options, compose_opts, docker_opts, _ = (
            mock_run.call_args.args
        )
        assert settings.base_url == "fleet.test"
        assert token == "test-token"
        assert options.app_name == "myorg/myfleet"
        assert options.should_perform_build is True
        assert options.should_upload_logs is False
        assert options.build_emulated is True
        assert options.build_opts.buildargs == {"A": "1", "B": "two=2"}
        assert options.build_opts.cache_from == ["img:1", "img:2"]
        assert compose_opts.project_path == str(source_dir)
        assert compose_opts.project_name == "custom"
        assert docker_opts.host == "10.0.0.5"
        assert docker_opts.port == 2376

    def test_quiet_prints_only_commit(
        self, runner, cli_env, source_dir, outcome
    ) -> None:
        with patch(
            "fleetdeck.cli.commands.deploy.run_deploy",
            new=AsyncMock(return_value=outcome),
        ):
            result = runner.invoke(
                main,
                ["deploy", "myfleet", "-s", str(source_dir), "--quiet"],
                env=cli_env,
            )

        assert result.exit_code == 0
        assert result.output.strip() == "abc123"

    def test_image_with_build_exits_1(self, runner, cli_env) -> None:
        with patch("fleetdeck.cli.commands.deploy.run_deploy") as mock_run:
            result = runner.invoke(
                main, ["deploy", "myfleet", "nginx:latest", "--build"], env=cli_env
            )

        assert result.exit_code == 1
        assert "Build option is not applicable" in result.output
        mock_run.assert_not_called()

    def test_missing_source_exits_1(self, runner, cli_env, tmp_path) -> None:
        result = runner.invoke(
            main,
            ["deploy", "myfleet", "--source", str(tmp_path / "nope")],
            env=cli_env,
        )

        assert result.exit_code == 1
        assert "Could not access source folder" in result.output

    def test_missing_token_exits_2(
        self, runner, cli_env, source_dir, tmp_path
    ) -> None:
        cli_env["FLEETDECK_TOKEN"] = None
        cli_env["FLEETDECK_DATA_DIRECTORY"] = str(tmp_path / "data")

        result = runner.invoke(
            main, ["deploy", "myfleet", "-s", str(source_dir)], env=cli_env
        )

        assert result.exit_code == 2
        assert "Configuration error" in result.output

    def test_deployment_error_exits_3(self, runner, cli_env, source_dir) -> None:
        with patch(
            "fleetdeck.cli.commands.deploy.run_deploy",
            new=AsyncMock(
                side_effect=DeploymentError(operation="build", message="exit 1")
            ),
        ):
            result = runner.invoke(
                main, ["deploy", "myfleet", "-s", str(source_dir)], env=cli_env
            )

        assert result.exit_code == 3
        assert "build failed" in result.output

    def test_malformed_build_arg_is_usage_error(
        self, runner, cli_env, source_dir
    ) -> None:
        result = runner.invoke(
            main,
            ["deploy", "myfleet", "-s", str(source_dir), "-B", "NOVALUE"],
            env=cli_env,
        )

        assert result.exit_code == 2
        assert "KEY=VALUE" in result.output


class TestDeviceCommand:
    """Tests for 'fleetdeck device'."""

    def test_prints_vertical_table(self, runner, cli_env) -> None:
        info = DeviceInfo(
            device_name="bold-star",
            id=9,
            uuid="7cf02a6f1b2c",
            is_online=True,
            commit="abc123",
        )
        with patch(
            "fleetdeck.cli.commands.device.fetch_device",
            new=AsyncMock(return_value=info),
        ) as mock_fetch:
            result = runner.invoke(main, ["device", "7cf02a6"], env=cli_env)

        assert result.exit_code == 0, result.output
        assert "== BOLD-STAR" in result.output
        assert "FLEET" in result.output
        assert "N/a" in result.output
        assert mock_fetch.call_args.args[1:] == ("test-token", "7cf02a6")

    def test_unknown_device_exits_3(self, runner, cli_env) -> None:
        with patch(
            "fleetdeck.cli.commands.device.fetch_device",
            new=AsyncMock(side_effect=DeviceNotFoundError("nope")),
        ):
            result = runner.invoke(main, ["device", "nope"], env=cli_env)

        assert result.exit_code == 3
        assert "Device not found: nope" in result.output

    def test_format_device_renders_booleans(self) -> None:
        output = format_device(
            DeviceInfo(device_name="d", id=1, uuid="u", is_online=False)
        )

        lines = click.unstyle(output).splitlines()
        online = next(line for line in lines if line.startswith("IS ONLINE"))
        assert online.split()[-1] == "false"


def test_version(runner: CliRunner) -> None:
    result = runner.invoke(main, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output
