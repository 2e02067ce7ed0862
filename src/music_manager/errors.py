"""Exception types shared across music-manager.

Core operations raise these; the CLI and the terminal UI catch
`MusicManagerError`, log it and carry on.
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence


class MusicManagerError(Exception):
    """Base class for every error raised by music-manager."""

    def __init__(self, message: str, *, path: Optional[Path] = None):
        super().__init__(message)
        self.message = message
        self.path = path

    def __str__(self) -> str:
        if self.path is not None:
            return f"{self.message} [{self.path}]"
        return self.message


class TagReadError(MusicManagerError):
    """The file has no readable FLAC tag block."""


class TagWriteError(MusicManagerError):
    """Writing the tag block back to disk failed."""


class RenameError(MusicManagerError):
    """Renaming a track file failed."""


class ListError(MusicManagerError):
    """Listing the browse directory failed."""


class DatabaseError(MusicManagerError):
    """A query against the track database failed."""


class DownloadError(MusicManagerError):
    """yt-dlp could not search or download."""


class ConvertError(MusicManagerError):
    """ffmpeg could not convert the downloaded audio to FLAC."""


class KeyConflictWarning(UserWarning):
    """Two or more enabled actions share a key.

    Not raised: the action registry logs it and keeps it in
    `ActionRegistry.conflicts`.
    """

    def __init__(self, key, actions: Sequence):
        self.key = key
        self.actions = tuple(actions)
        names = ", ".join(str(a) for a in self.actions)
        super().__init__(f"Conflict key {key} with actions {names}")
