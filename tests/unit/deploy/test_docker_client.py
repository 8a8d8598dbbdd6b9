"""Unit tests for Docker client creation."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from docker.errors import DockerException

from fleetdeck.deploy.docker_client import get_docker, get_docker_base_url
from fleetdeck.lib.errors import DockerNotAvailableError
from fleetdeck.models.deployment import DockerConnectionOptions


class TestGetDockerBaseUrl:
    """Tests for get_docker_base_url."""

    def test_environment_default(self) -> None:
        assert get_docker_base_url(DockerConnectionOptions()) is None

    def test_socket_path(self) -> None:
        options = DockerConnectionOptions(socket_path="/var/run/docker.sock")

        assert get_docker_base_url(options) == "unix:///var/run/docker.sock"

    def test_host_with_default_ports(self) -> None:
        assert (
            get_docker_base_url(DockerConnectionOptions(host="10.0.0.5"))
            == "tcp://10.0.0.5:2375"
        )
        assert (
            get_docker_base_url(DockerConnectionOptions(host="10.0.0.5", ca="ca.pem"))
            == "tcp://10.0.0.5:2376"
        )

    def test_explicit_port(self) -> None:
        options = DockerConnectionOptions(host="builder", port=12375)

        assert get_docker_base_url(options) == "tcp://builder:12375"


class TestGetDocker:
    """Tests for get_docker."""

    def test_uses_environment_when_no_options(self) -> None:
        with patch("fleetdeck.deploy.docker_client.docker.from_env") as mock_from_env:
            client = get_docker()

        assert client is mock_from_env.return_value
        client.ping.assert_called_once()

    def test_remote_host(self) -> None:
        with patch(
            "fleetdeck.deploy.docker_client.docker.DockerClient"
        ) as mock_client_cls:
            get_docker(DockerConnectionOptions(host="10.0.0.5"))

        mock_client_cls.assert_called_once_with(
            base_url="tcp://10.0.0.5:2375", tls=False
        )

    def test_unreachable_daemon_raises(self) -> None:
        mock_client = MagicMock()
        mock_client.ping.side_effect = DockerException("connection refused")

        with patch(
            "fleetdeck.deploy.docker_client.docker.from_env", return_value=mock_client
        ):
            with pytest.raises(DockerNotAvailableError, match="connection refused"):
                get_docker()
