"""Entry point for the fleetdeck command line tool."""

import click

from fleetdeck import __version__
from fleetdeck.cli.commands.deploy import deploy
from fleetdeck.cli.commands.device import device


@click.group()
@click.version_option(__version__, prog_name="fleetdeck")
def main() -> None:
    """Build container images and deploy them to device fleets.

    \b
    EXAMPLES:

        Deploy the project in the current directory:
            fleetdeck deploy myfleet

        Show details of a device:
            fleetdeck device 7cf02a6
    """


main.add_command(deploy)
main.add_command(device)


if __name__ == "__main__":
    main()
