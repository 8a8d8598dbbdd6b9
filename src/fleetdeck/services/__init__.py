"""Clients for the fleet-management service."""
