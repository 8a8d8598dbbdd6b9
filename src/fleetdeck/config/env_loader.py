"""Environment variable substitution for compose and settings files.

Supports ``${VAR}``, ``${VAR:-default}`` and ``$$`` (a literal dollar sign),
the subset of compose interpolation the loader needs.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping

from fleetdeck.lib.errors import ConfigError

_ENV_PATTERN = re.compile(
    r"\$\$|\$\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?::-(?P<default>[^}]*))?\}"
)


def substitute_env_vars(
    text: str,
    env: Mapping[str, str] | None = None,
) -> str:
    """Substitute environment variable references in ``text``.

    Args:
        text: Raw file contents
        env: Variables to use instead of ``os.environ``

    Returns:
        Text with all references replaced

    Raises:
        ConfigError: If a variable without a default is not set

    Example:
        >>> substitute_env_vars("image: ${IMG:-redis}", env={})
        'image: redis'
    """
    variables = os.environ if env is None else env

    def replace(match: re.Match[str]) -> str:
        if match.group(0) == "$$":
            return "$"
        name = match.group("name")
        default = match.group("default")
        if name in variables:
            return variables[name]
        if default is not None:
            return default
        raise ConfigError(
            field=name,
            message=f"Environment variable '{name}' is not set and has no default",
        )

    return _ENV_PATTERN.sub(replace, text)
