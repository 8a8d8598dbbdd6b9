"""Pydantic models for fleets, image records, and release outcomes."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ApplicationType(BaseModel):
    """Fleet type flags reported by the fleet API."""

    model_config = ConfigDict(extra="ignore")

    slug: str | None = Field(default=None, description="Fleet type slug")
    supports_multicontainer: bool = Field(
        default=False, description="Whether the fleet runs multiple services"
    )
    is_legacy: bool = Field(
        default=False, description="Whether the fleet requires legacy deploys"
    )


class TargetCapabilities(BaseModel):
    """Release capabilities of the target fleet."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    is_legacy: bool = False
    supports_multicontainer: bool = False

    @classmethod
    def from_application_type(
        cls, application_type: ApplicationType | None
    ) -> TargetCapabilities:
        """Derive capabilities from the fleet type; unknown types get neither flag."""
        if application_type is None:
            return cls()
        return cls(
            is_legacy=application_type.is_legacy,
            supports_multicontainer=application_type.supports_multicontainer,
        )


class FleetApplication(BaseModel):
    """Target fleet as returned by the fleet API."""

    model_config = ConfigDict(extra="ignore")

    id: int = Field(..., description="Fleet id")
    app_name: str = Field(..., description="Fleet name")
    slug: str | None = Field(default=None, description="Fleet slug (owner/name)")
    arch: str = Field(..., description="CPU architecture of the fleet's devices")
    device_type_slug: str = Field(..., description="Default device type slug")
    application_type: ApplicationType | None = Field(default=None)

    @property
    def capabilities(self) -> TargetCapabilities:
        return TargetCapabilities.from_application_type(self.application_type)


class ImageRecord(BaseModel):
    """One image ready for release, built or reused.

    Attributes:
        service_name: Service the image belongs to
        name: Resolved image reference
        logs: Build log, or a fixed message when the build was skipped
        props: Build metadata (empty for skipped services)
    """

    model_config = ConfigDict(extra="forbid")

    service_name: str
    name: str
    logs: str = ""
    props: dict[str, Any] = Field(default_factory=dict)


class ReleaseSummary(BaseModel):
    """Release created by the release API."""

    model_config = ConfigDict(extra="ignore")

    id: int | None = None
    commit: str


class DeployOutcome(BaseModel):
    """Terminal result of a successful deploy."""

    model_config = ConfigDict(extra="forbid")

    commit: str
    images: list[ImageRecord]
    strategy: Literal["legacy", "multicontainer"]
    built: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)


class DeviceInfo(BaseModel):
    """Device details shown by ``fleetdeck device``."""

    model_config = ConfigDict(extra="ignore")

    device_name: str
    id: int
    uuid: str
    device_type: str | None = None
    status: str | None = None
    is_online: bool | None = None
    ip_address: str | None = None
    mac_address: str | None = None
    application_name: str = "N/a"
    last_seen: str | None = None
    commit: str | None = None
    supervisor_version: str | None = None
    is_web_accessible: bool | None = None
    note: str | None = None
    os_version: str | None = None
    dashboard_url: str | None = None
