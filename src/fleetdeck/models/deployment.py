"""Pydantic models for deploy command options.

These models carry the parsed CLI flags from the command layer into the
project loader, the build dispatcher and the deploy orchestrator.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RegistryCredentials(BaseModel):
    """Credentials for a private registry used while pulling images."""

    model_config = ConfigDict(extra="forbid")

    username: str
    password: str


class ComposeOptions(BaseModel):
    """Project-level options shared by commands that load a composition.

    Attributes:
        project_path: Source directory of the project
        project_name: Explicit project name (defaults to the directory name)
        dockerfile_path: Alternate Dockerfile for single-service projects
        inline_logs: Stream build logs to the terminal while building
        noparent_check: Skip the parent-directory compose file check
        registry_secrets: Registry credentials keyed by registry host
    """

    model_config = ConfigDict(extra="forbid")

    project_path: str = Field(default=".", description="Project source directory")
    project_name: str | None = Field(default=None, description="Project name")
    dockerfile_path: str | None = Field(default=None, description="Alt Dockerfile")
    inline_logs: bool = Field(default=False, description="Stream build logs")
    noparent_check: bool = Field(default=False, description="Skip parent check")
    registry_secrets: dict[str, RegistryCredentials] = Field(default_factory=dict)


class DockerConnectionOptions(BaseModel):
    """How to reach the Docker daemon used for probing and building."""

    model_config = ConfigDict(extra="forbid")

    socket_path: str | None = Field(default=None, description="Unix socket path")
    host: str | None = Field(default=None, description="Docker daemon host")
    port: int | None = Field(default=None, ge=1, le=65535)
    ca: str | None = Field(default=None, description="TLS CA certificate path")
    cert: str | None = Field(default=None, description="TLS client certificate")
    key: str | None = Field(default=None, description="TLS client key")

    @property
    def uses_tls(self) -> bool:
        return bool(self.ca or self.cert or self.key)


class BuildOptions(BaseModel):
    """Options forwarded to every ``docker build`` call."""

    model_config = ConfigDict(extra="forbid")

    tag: str | None = Field(default=None, description="Tag for single-image builds")
    buildargs: dict[str, str] = Field(default_factory=dict)
    cache_from: list[str] = Field(default_factory=list)
    nocache: bool = False
    squash: bool = False

    @field_validator("cache_from", mode="before")
    @classmethod
    def split_cache_from(cls, v: Any) -> Any:
        """Accept a comma separated string as well as a list."""
        if isinstance(v, str):
            return [part.strip() for part in v.split(",") if part.strip()]
        return v

    def to_docker_kwargs(self) -> dict[str, Any]:
        """Return keyword arguments for ``client.images.build``."""
        kwargs: dict[str, Any] = {}
        if self.buildargs:
            kwargs["buildargs"] = dict(self.buildargs)
        if self.cache_from:
            kwargs["cache_from"] = list(self.cache_from)
        if self.nocache:
            kwargs["nocache"] = True
        if self.squash:
            kwargs["squash"] = True
        return kwargs


class DeployOptions(BaseModel):
    """Everything the orchestrator needs for one deploy request.

    Attributes:
        app_name: Target fleet name, possibly prefixed with ``owner/``
        image: Explicit image to deploy instead of building a project
        should_perform_build: Force a rebuild even if images exist locally
        should_upload_logs: Attach build logs to the release
        build_emulated: Build for the fleet architecture with emulation
        build_opts: Options forwarded to docker build
    """

    model_config = ConfigDict(extra="forbid")

    app_name: str
    image: str | None = None
    should_perform_build: bool = False
    should_upload_logs: bool = True
    build_emulated: bool = False
    build_opts: BuildOptions = Field(default_factory=BuildOptions)
