"""music-manager

Download songs as FLAC, keep their tags in a small SQLite database and
edit them from a terminal UI.
"""

__all__ = [
    "__version__",
]

# Keep in sync with pyproject.toml
__version__ = "0.1.0"
