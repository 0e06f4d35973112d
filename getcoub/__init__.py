"""Download coub loops and rebuild them as a single playable video."""

from .version import VERSION as __version__

__all__ = ["__version__"]
