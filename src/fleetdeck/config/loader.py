"""Settings loader for the FleetDeck client.

Resolves FleetSettings from built-in defaults, the user's config file and
``FLEETDECK_*`` environment variables, in that order of precedence.
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from fleetdeck.config.defaults import (
    DEFAULT_CONFIG_FILE,
    DEFAULT_SETTINGS,
    TOKEN_FILE_NAME,
)
from fleetdeck.config.env_loader import substitute_env_vars
from fleetdeck.config.validator import to_config_error
from fleetdeck.lib.errors import ConfigError
from fleetdeck.models.config import FleetSettings
from fleetdeck.models.deployment import RegistryCredentials

logger = logging.getLogger(__name__)

# Environment variable to field name mapping
ENV_VAR_MAP = {
    "base_url": "FLEETDECK_BASE_URL",
    "api_url": "FLEETDECK_API_URL",
    "builder_url": "FLEETDECK_BUILDER_URL",
    "registry_url": "FLEETDECK_REGISTRY_URL",
    "dashboard_url": "FLEETDECK_DASHBOARD_URL",
    "data_directory": "FLEETDECK_DATA_DIRECTORY",
    "token": "FLEETDECK_TOKEN",
    "probe_concurrency": "FLEETDECK_PROBE_CONCURRENCY",
    "request_timeout": "FLEETDECK_REQUEST_TIMEOUT",
}

CONFIG_FILE_ENV_VAR = "FLEETDECK_CONFIG"


def _parse_env_value(field_name: str, value: str) -> Any:
    """Parse environment variable value to the field's type.

    Raises:
        ValueError: If value cannot be parsed
    """
    if field_name == "probe_concurrency":
        return int(value)
    if field_name == "request_timeout":
        return float(value)
    return value


def _get_env_value(field_name: str, env_vars: os._Environ[str] | dict[str, str]) -> Any:
    """Get a parsed environment variable value for a field, or None."""
    env_var_name = ENV_VAR_MAP.get(field_name)
    if not env_var_name or env_var_name not in env_vars:
        return None

    try:
        return _parse_env_value(field_name, env_vars[env_var_name])
    except ValueError:
        logger.warning(
            f"Ignoring invalid value for {env_var_name}: {env_vars[env_var_name]!r}"
        )
        return None


def _read_yaml_with_env_substitution(path: Path) -> dict[str, Any] | None:
    """Read a YAML file with environment variable substitution.

    Raises:
        OSError: If file cannot be read
        yaml.YAMLError: If YAML parsing fails
        ConfigError: If env var substitution fails
    """
    raw_text = path.read_text(encoding="utf-8")
    content = yaml.safe_load(substitute_env_vars(raw_text))
    return content if content else None


class SettingsLoader:
    """Load FleetSettings for CLI commands.

    Example:
        >>> settings = SettingsLoader().load()
        >>> settings.resolved_api_url
        'https://api.fleetdeck.io'
    """

    def __init__(
        self,
        config_path: str | Path | None = None,
        env: os._Environ[str] | dict[str, str] | None = None,
    ) -> None:
        self._env = os.environ if env is None else env
        if config_path is None:
            config_path = self._env.get(CONFIG_FILE_ENV_VAR, DEFAULT_CONFIG_FILE)
        self.config_path = Path(config_path).expanduser()

    def load(self) -> FleetSettings:
        """Resolve settings from defaults, config file and environment.

        Raises:
            ConfigError: If the config file is unreadable or invalid
        """
        data: dict[str, Any] = dict(DEFAULT_SETTINGS)
        data.update(self._load_config_file())

        for field_name in ENV_VAR_MAP:
            value = _get_env_value(field_name, self._env)
            if value is not None:
                data[field_name] = value

        try:
            return FleetSettings(**data)
        except PydanticValidationError as exc:
            raise to_config_error(exc, "settings", str(self.config_path)) from exc

    def _load_config_file(self) -> dict[str, Any]:
        if not self.config_path.exists():
            logger.debug(f"No config file at {self.config_path}, using defaults")
            return {}

        try:
            content = _read_yaml_with_env_substitution(self.config_path)
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(
                field="settings",
                message=f"Failed to read {self.config_path}: {exc}",
            ) from exc

        if content is None:
            return {}
        if not isinstance(content, dict):
            raise ConfigError(
                field="settings",
                message=f"{self.config_path} must contain a mapping of settings",
            )
        # Accept camelCase keys used by older config files
        return {_snake_case(key): value for key, value in content.items()}


def _snake_case(key: str) -> str:
    return "".join(f"_{c.lower()}" if c.isupper() else c for c in key)


def get_token(settings: FleetSettings) -> str:
    """Return the session token from settings or the data directory.

    Raises:
        ConfigError: If no token is available
    """
    if settings.token:
        return settings.token

    token_path = Path(settings.data_directory).expanduser() / TOKEN_FILE_NAME
    try:
        token = token_path.read_text(encoding="utf-8").strip()
    except FileNotFoundError:
        token = ""
    except OSError as exc:
        raise ConfigError(
            field="token",
            message=f"Failed to read token from {token_path}: {exc}",
        ) from exc

    if not token:
        raise ConfigError(
            field="token",
            message=(
                "Not logged in. Set FLEETDECK_TOKEN or save an API token to "
                f"{token_path}"
            ),
        )
    return token


def load_registry_secrets(path: str | Path | None) -> dict[str, RegistryCredentials]:
    """Load private registry credentials from a YAML or JSON file.

    The file maps registry hosts to ``{username, password}``. Hub images use
    the empty string or ``docker.io`` as the host.

    Raises:
        ConfigError: If the file is missing or malformed
    """
    if path is None:
        return {}

    secrets_path = Path(path).expanduser()
    if not secrets_path.exists():
        raise ConfigError(
            field="registry-secrets",
            message=f"Registry secrets file not found: {secrets_path}",
        )

    try:
        # YAML is a superset of JSON, so one parser covers both formats
        content = yaml.safe_load(secrets_path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(
            field="registry-secrets",
            message=f"Failed to parse {secrets_path}: {exc}",
        ) from exc

    if not isinstance(content, dict):
        raise ConfigError(
            field="registry-secrets",
            message=f"{secrets_path} must map registry hosts to credentials",
        )

    secrets: dict[str, RegistryCredentials] = {}
    for registry, credentials in content.items():
        try:
            secrets[str(registry)] = RegistryCredentials.model_validate(credentials)
        except PydanticValidationError as exc:
            raise to_config_error(
                exc, f"registry-secrets.{registry}", str(secrets_path)
            ) from exc
    return secrets
