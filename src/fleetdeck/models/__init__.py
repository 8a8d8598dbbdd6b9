"""Pydantic models for projects, releases, options and settings."""
