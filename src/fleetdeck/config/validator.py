"""Validation helpers for FleetDeck settings and compose files."""

from pydantic import ValidationError as PydanticValidationError

from fleetdeck.lib.errors import ConfigError


def flatten_pydantic_errors(exc: PydanticValidationError) -> list[str]:
    """Flatten a Pydantic ValidationError into one message per field.

    Args:
        exc: Pydantic ValidationError exception

    Returns:
        List of messages such as ``Field 'services.web.image': ...``
    """
    errors: list[str] = []

    for error in exc.errors():
        loc = error.get("loc", ())
        field_path = ".".join(str(item) for item in loc) if loc else "unknown"
        msg = error.get("msg", "Unknown error")

        if error.get("type") == "value_error":
            errors.append(
                f"Field '{field_path}': {msg} (received: {error.get('input')!r})"
            )
        else:
            errors.append(f"Field '{field_path}': {msg}")

    return errors if errors else ["Validation failed with unknown error"]


def to_config_error(
    exc: PydanticValidationError, field: str, source: str | None = None
) -> ConfigError:
    """Convert a Pydantic ValidationError into a ConfigError.

    Args:
        exc: The validation error
        field: Top-level field or section being validated
        source: File the data came from, included in the message

    Returns:
        ConfigError listing every field error on its own line
    """
    lines = flatten_pydantic_errors(exc)
    header = f"Invalid {field} in {source}" if source else f"Invalid {field}"
    return ConfigError(
        field=field,
        message=header + ":\n" + "\n".join(f"  - {line}" for line in lines),
    )
