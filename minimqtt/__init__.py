"""A small MQTT client with region-of-interest and line-crossing helpers for foreground masks."""

__version__ = "0.1.0"

__all__ = ["packets", "client", "roi", "linecrossing"]