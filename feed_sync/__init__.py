"""feed_sync - feed discovery and synchronization engine."""

__version__ = "0.1.0"
