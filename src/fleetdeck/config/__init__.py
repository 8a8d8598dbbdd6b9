"""Settings and project loading."""
