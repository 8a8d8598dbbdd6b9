"""CLI command for showing device details."""

from __future__ import annotations

import asyncio

import click

from fleetdeck.cli.commands.deploy import handle_command_errors
from fleetdeck.config.loader import SettingsLoader, get_token
from fleetdeck.lib.logging_config import get_logger, setup_logging
from fleetdeck.models.config import FleetSettings
from fleetdeck.models.release import DeviceInfo
from fleetdeck.services.fleet_client import FleetAPIClient

logger = get_logger(__name__)

# Row label and DeviceInfo field, in display order
DEVICE_ROWS: tuple[tuple[str, str], ...] = (
    ("ID", "id"),
    ("DEVICE TYPE", "device_type"),
    ("STATUS", "status"),
    ("IS ONLINE", "is_online"),
    ("IP ADDRESS", "ip_address"),
    ("MAC ADDRESS", "mac_address"),
    ("FLEET", "application_name"),
    ("LAST SEEN", "last_seen"),
    ("UUID", "uuid"),
    ("COMMIT", "commit"),
    ("SUPERVISOR VERSION", "supervisor_version"),
    ("IS WEB ACCESSIBLE", "is_web_accessible"),
    ("NOTE", "note"),
    ("OS VERSION", "os_version"),
    ("DASHBOARD URL", "dashboard_url"),
)


def format_device(device: DeviceInfo) -> str:
    """Render device details as a vertical table headed by the device name."""
    width = max(len(label) for label, _ in DEVICE_ROWS)
    lines = [click.style(f"== {device.device_name.upper()}", bold=True)]
    for label, field_name in DEVICE_ROWS:
        value = getattr(device, field_name)
        if value is None:
            value = ""
        elif isinstance(value, bool):
            value = "true" if value else "false"
        lines.append(f"{click.style(label.ljust(width), bold=True)}  {value}")
    return "\n".join(lines)


async def fetch_device(settings: FleetSettings, token: str, uuid: str) -> DeviceInfo:
    async with FleetAPIClient(
        settings.resolved_api_url, token, timeout=settings.request_timeout
    ) as client:
        return await client.get_device(uuid, settings.resolved_dashboard_url)


@click.command()
@click.argument("uuid")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose debug logging")
def device(uuid: str, verbose: bool) -> None:
    """Show info about a single device.

    UUID may be the full device uuid or a unique prefix of it.

    Example:

        fleetdeck device 7cf02a6
    """
    setup_logging(verbose=verbose)

    with handle_command_errors():
        settings = SettingsLoader().load()
        token = get_token(settings)
        info = asyncio.run(fetch_device(settings, token, uuid))
        click.echo(format_device(info))
