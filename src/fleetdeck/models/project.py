"""Pydantic models for deploy projects.

A Project is the normalized view of a deploy target: the declared services,
the composition they came from, and where the project lives on disk.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class PlainImage(BaseModel):
    """Service image given as a plain image reference (e.g. ``redis:7``)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["image"] = "image"
    ref: str = Field(..., description="Image reference")


class BuildSpec(BaseModel):
    """Service image that is built from a local context.

    Attributes:
        tag: Image reference the built image is tagged with
        context: Build context directory, relative to the project path
        dockerfile: Alternate Dockerfile path relative to the context
        args: Build arguments
        target: Multi-stage build target
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["build"] = "build"
    tag: str = Field(..., description="Image tag for the built image")
    context: str = Field(default=".", description="Build context directory")
    dockerfile: str | None = Field(default=None, description="Alternate Dockerfile")
    args: dict[str, str] = Field(default_factory=dict, description="Build arguments")
    target: str | None = Field(default=None, description="Multi-stage target")


ImageSpec = Annotated[PlainImage | BuildSpec, Field(discriminator="kind")]


def resolve_image_reference(image: PlainImage | BuildSpec) -> str:
    """Return the image reference a service image resolves to."""
    match image:
        case PlainImage(ref=ref):
            return ref
        case BuildSpec(tag=tag):
            return tag
    raise TypeError(f"Unknown image spec: {image!r}")


class ServiceDescriptor(BaseModel):
    """One declared service of a project."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    service_name: str = Field(..., min_length=1, description="Service name")
    image: ImageSpec

    @property
    def image_reference(self) -> str:
        return resolve_image_reference(self.image)


class ServiceSpec(BaseModel):
    """Composition entry for a single service.

    Only the keys the deploy engine consumes are modelled; everything else
    in the compose file is kept verbatim in ``extra``.
    """

    model_config = ConfigDict(extra="forbid")

    image: str | None = Field(default=None, description="Image reference")
    build: BuildSpec | None = Field(default=None, description="Build settings")
    extra: dict[str, Any] = Field(
        default_factory=dict, description="Other compose keys, passed through"
    )

    def to_compose(self) -> dict[str, Any]:
        """Render the service back into compose-file form."""
        data: dict[str, Any] = dict(self.extra)
        if self.build is not None:
            build: dict[str, Any] = {"context": self.build.context}
            if self.build.dockerfile:
                build["dockerfile"] = self.build.dockerfile
            if self.build.args:
                build["args"] = dict(self.build.args)
            if self.build.target:
                build["target"] = self.build.target
            data["build"] = build
        if self.image is not None:
            data["image"] = self.image
        return data


class Composition(BaseModel):
    """Normalized mapping of service name to build/image specification."""

    model_config = ConfigDict(extra="forbid")

    version: str = Field(default="2.1", description="Compose file version")
    services: dict[str, ServiceSpec] = Field(default_factory=dict)
    networks: dict[str, Any] = Field(default_factory=dict)
    volumes: dict[str, Any] = Field(default_factory=dict)

    def without(self, service_names: list[str] | set[str]) -> Composition:
        """Return a deep copy with the named services removed."""
        pruned = self.model_copy(deep=True)
        pruned.services = {
            name: spec
            for name, spec in pruned.services.items()
            if name not in service_names
        }
        return pruned

    def to_compose(self) -> dict[str, Any]:
        """Render the composition as a compose-file style dictionary."""
        data: dict[str, Any] = {
            "version": self.version,
            "services": {
                name: spec.to_compose() for name, spec in self.services.items()
            },
        }
        if self.networks:
            data["networks"] = self.networks
        if self.volumes:
            data["volumes"] = self.volumes
        return data


class Project(BaseModel):
    """A loaded deploy target.

    Attributes:
        descriptors: Declared services, in declaration order
        composition: Composition the descriptors were derived from
        path: Project source directory
        name: Project name, used to tag built images
    """

    model_config = ConfigDict(extra="forbid")

    descriptors: list[ServiceDescriptor]
    composition: Composition
    path: str
    name: str

    @model_validator(mode="after")
    def validate_descriptor_coverage(self) -> Project:
        """Each descriptor must appear exactly once in the composition."""
        names = [d.service_name for d in self.descriptors]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate service names: {', '.join(duplicates)}")
        missing = [n for n in names if n not in self.composition.services]
        if missing:
            raise ValueError(
                f"Services missing from composition: {', '.join(missing)}"
            )
        return self
