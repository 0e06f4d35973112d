"""Version information for getcoub."""

VERSION = "1.1.0"


def get_version_string():
    """Get full version string."""
    return f"getcoub {VERSION}"
