"""Pydantic model for FleetDeck client settings."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FleetSettings(BaseModel):
    """Client settings resolved from defaults, config file, and environment.

    Service URLs are derived from ``base_url`` unless set explicitly.

    Attributes:
        base_url: Domain of the fleet service (e.g. fleetdeck.io)
        api_url: Override for the REST API endpoint
        builder_url: Override for the legacy builder endpoint
        registry_url: Override for the image registry host
        dashboard_url: Override for the dashboard URL
        data_directory: Local directory for the session token and cache
        token: Session or API token
        probe_concurrency: Maximum concurrent local image probes
        request_timeout: HTTP request timeout in seconds
    """

    model_config = ConfigDict(extra="forbid")

    base_url: str = Field(default="fleetdeck.io", description="Service domain")
    api_url: str | None = Field(default=None, description="REST API endpoint")
    builder_url: str | None = Field(default=None, description="Builder endpoint")
    registry_url: str | None = Field(default=None, description="Registry host")
    dashboard_url: str | None = Field(default=None, description="Dashboard URL")
    data_directory: str = Field(default="~/.fleetdeck", description="Data dir")
    token: str | None = Field(default=None, description="Session or API token")
    probe_concurrency: int = Field(default=10, ge=1, le=100)
    request_timeout: float = Field(default=30.0, gt=0)

    @field_validator("base_url")
    @classmethod
    def strip_scheme(cls, v: str) -> str:
        """Store the bare domain; a scheme or trailing slash is dropped."""
        for scheme in ("https://", "http://"):
            if v.startswith(scheme):
                v = v[len(scheme) :]
        return v.rstrip("/")

    @property
    def resolved_api_url(self) -> str:
        return (self.api_url or f"https://api.{self.base_url}").rstrip("/")

    @property
    def resolved_builder_url(self) -> str:
        return (self.builder_url or f"https://builder.{self.base_url}").rstrip("/")

    @property
    def resolved_registry_url(self) -> str:
        return self.registry_url or f"registry2.{self.base_url}"

    @property
    def resolved_dashboard_url(self) -> str:
        return (self.dashboard_url or f"https://dashboard.{self.base_url}").rstrip(
            "/"
        )
