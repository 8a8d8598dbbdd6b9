"""Dockerfile handling for fleet builds.

Projects may ship a plain Dockerfile, a Dockerfile.template whose
``%%FLEET_*%%`` placeholders are resolved per fleet, or nothing at all, in
which case a Dockerfile is generated for recognised project types.
"""

from __future__ import annotations

import re
from enum import Enum
from pathlib import Path

from jinja2 import Template

from fleetdeck.lib.errors import ExpectedError


class ProjectType(str, Enum):
    """How the Dockerfile for a build context is obtained."""

    DOCKERFILE = "dockerfile"
    DOCKERFILE_TEMPLATE = "dockerfile_template"
    NODE = "node"
    PYTHON = "python"


TEMPLATE_FILE_NAME = "Dockerfile.template"
GENERATED_DOCKERFILE_NAME = ".fleetdeck.Dockerfile"

_PLACEHOLDER_PATTERN = re.compile(r"%%(FLEET_ARCH|FLEET_MACHINE_NAME)%%")

# Jinja2 template for generated Dockerfiles
GENERATED_DOCKERFILE_TEMPLATE = """\
# Auto-generated Dockerfile for a {{ project_type }} project
FROM {{ base_image }}

WORKDIR /usr/src/app

{% if project_type == "node" %}
COPY package*.json ./
RUN npm ci --omit=dev || npm install --production
{% elif project_type == "python" %}
COPY requirements.txt ./
RUN pip install --no-cache-dir -r requirements.txt
{% endif %}

COPY . ./

CMD {{ command }}
"""

_GENERATED_DEFAULTS: dict[ProjectType, tuple[str, str]] = {
    ProjectType.NODE: (
        "fleetdeck/{device_type}-node:latest",
        '["npm", "start"]',
    ),
    ProjectType.PYTHON: (
        "fleetdeck/{device_type}-python:latest",
        '["python", "main.py"]',
    ),
}


def detect_project_type(path: Path, dockerfile: str | None = None) -> ProjectType:
    """Detect how to obtain a Dockerfile for the given build context.

    Args:
        path: Build context directory
        dockerfile: Alternate Dockerfile path relative to ``path``

    Returns:
        The detected ProjectType

    Raises:
        ExpectedError: If an alternate Dockerfile is missing or nothing usable
            is found in the directory
    """
    if dockerfile:
        if not (path / dockerfile).is_file():
            raise ExpectedError(f"Dockerfile not found: {path / dockerfile}")
        if dockerfile.endswith(".template"):
            return ProjectType.DOCKERFILE_TEMPLATE
        return ProjectType.DOCKERFILE

    if (path / TEMPLATE_FILE_NAME).is_file():
        return ProjectType.DOCKERFILE_TEMPLATE
    if (path / "Dockerfile").is_file():
        return ProjectType.DOCKERFILE
    if (path / "package.json").is_file():
        return ProjectType.NODE
    if (path / "requirements.txt").is_file():
        return ProjectType.PYTHON

    raise ExpectedError(
        f"No Dockerfile, Dockerfile.template, package.json or requirements.txt "
        f"found in {path}"
    )


def resolve_dockerfile_template(content: str, arch: str, device_type: str) -> str:
    """Replace ``%%FLEET_ARCH%%`` and ``%%FLEET_MACHINE_NAME%%`` in a template.

    Example:
        >>> resolve_dockerfile_template(
        ...     "FROM fleetdeck/%%FLEET_MACHINE_NAME%%-node", "armv7hf", "raspberrypi3"
        ... )
        'FROM fleetdeck/raspberrypi3-node'
    """
    values = {"FLEET_ARCH": arch, "FLEET_MACHINE_NAME": device_type}
    return _PLACEHOLDER_PATTERN.sub(lambda m: values[m.group(1)], content)


def generate_dockerfile(project_type: ProjectType, device_type: str) -> str:
    """Generate a Dockerfile for a node or python project.

    Raises:
        ValueError: If the project type cannot be generated
    """
    if project_type not in _GENERATED_DEFAULTS:
        raise ValueError(f"Cannot generate a Dockerfile for {project_type.value}")

    base_image, command = _GENERATED_DEFAULTS[project_type]
    template = Template(GENERATED_DOCKERFILE_TEMPLATE)
    return template.render(
        project_type=project_type.value,
        base_image=base_image.format(device_type=device_type),
        command=command,
    )


def prepare_dockerfile(
    context: Path,
    *,
    arch: str,
    device_type: str,
    dockerfile: str | None = None,
) -> tuple[str, ProjectType]:
    """Make sure a buildable Dockerfile exists in the context.

    Templates and generated Dockerfiles are written to
    ``GENERATED_DOCKERFILE_NAME`` inside the context; callers should remove it
    with ``cleanup_dockerfile`` once the build finished.

    Returns:
        Tuple of (Dockerfile path relative to the context, project type)
    """
    project_type = detect_project_type(context, dockerfile)

    if project_type == ProjectType.DOCKERFILE:
        return dockerfile or "Dockerfile", project_type

    if project_type == ProjectType.DOCKERFILE_TEMPLATE:
        template_path = context / (dockerfile or TEMPLATE_FILE_NAME)
        content = resolve_dockerfile_template(
            template_path.read_text(encoding="utf-8"), arch, device_type
        )
    else:
        content = generate_dockerfile(project_type, device_type)

    (context / GENERATED_DOCKERFILE_NAME).write_text(content, encoding="utf-8")
    return GENERATED_DOCKERFILE_NAME, project_type


def cleanup_dockerfile(context: Path, dockerfile: str) -> None:
    """Remove a Dockerfile written by prepare_dockerfile, if any."""
    if dockerfile == GENERATED_DOCKERFILE_NAME:
        (context / dockerfile).unlink(missing_ok=True)
