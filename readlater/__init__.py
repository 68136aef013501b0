"""Read-later bridge: save links to third-party services and keep post interactions in sync."""

__version__ = "0.1.0"
