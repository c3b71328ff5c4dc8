"""
exec-commands version - single source of truth for the package version
"""

__version__ = "0.1.0"


def get_version() -> str:
    """Get the current exec-commands version string."""
    return __version__


def get_short_banner() -> str:
    """Get a compact version banner for --version."""
    return f"exec-commands v{__version__}"
