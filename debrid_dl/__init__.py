"""debrid-dl: a self-hosted download manager for debrid unrestrict services."""

__version__ = "0.3.0"
