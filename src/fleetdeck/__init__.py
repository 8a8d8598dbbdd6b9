"""FleetDeck: build container images and deploy them to device fleets."""

__version__ = "0.1.0"
