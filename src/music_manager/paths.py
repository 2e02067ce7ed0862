from __future__ import annotations

import os
import re
import unicodedata
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from loguru import logger

from music_manager.errors import ListError, RenameError


_ILLEGAL_CHARS_RE = re.compile(r'[\x00-\x1F\x7F<>:\/\\\|\?\*"]+')
_MULTIPLE_UNDERSCORES_RE = re.compile(r"_+")

# Many filesystems have a 255 byte/char filename limit per path segment.
_MAX_SEGMENT_LEN = 255

FLAC_SUFFIX = ".flac"


def sanitize_filename(name: str, *, preserve_ext: Optional[str] = None) -> str:
    """Make a single file name safe across common filesystems.

    - Normalize Unicode to NFC
    - Replace illegal characters with '_'
    - Trim trailing spaces/dots
    - Collapse multiple underscores
    - Enforce max length (preserving extension if provided)
    - Ensure not empty
    """
    s = unicodedata.normalize("NFC", name)
    s = _ILLEGAL_CHARS_RE.sub("_", s)
    s = s.strip().rstrip(" .")
    if not s:
        s = "_"
    s = _MULTIPLE_UNDERSCORES_RE.sub("_", s)

    if len(s) > _MAX_SEGMENT_LEN:
        if preserve_ext and s.lower().endswith(preserve_ext.lower()) and len(preserve_ext) < _MAX_SEGMENT_LEN:
            base_len = _MAX_SEGMENT_LEN - len(preserve_ext)
            s = s[:base_len] + preserve_ext
        else:
            s = s[:_MAX_SEGMENT_LEN]
    return s


def ensure_flac_suffix(name: str) -> str:
    """Append `.flac` unless the name already ends with it (any case)."""
    if name.lower().endswith(FLAC_SUFFIX):
        return name
    return name + FLAC_SUFFIX


class LocalFilesystem:
    """Directory listing and renames against the real filesystem."""

    def __init__(self, suffixes: Iterable[str] = (FLAC_SUFFIX,)):
        self.suffixes = tuple(s.lower() for s in suffixes)

    def list_directory(self, path: Path) -> List[Tuple[str, Path]]:
        """Return (name, path) for the browsable files in `path`, sorted by name."""
        try:
            entries = list(os.scandir(path))
        except OSError as e:
            raise ListError(f"Could not list directory: {e}", path=Path(path)) from e
        out: List[Tuple[str, Path]] = []
        for entry in entries:
            if not entry.is_file():
                continue
            if self.suffixes and not entry.name.lower().endswith(self.suffixes):
                continue
            out.append((entry.name, Path(entry.path)))
        out.sort(key=lambda t: t[0].casefold())
        return out

    def rename(self, old: Path, new: Path) -> None:
        """Rename a file; refuses to overwrite an existing target."""
        old, new = Path(old), Path(new)
        if old == new:
            return
        if new.exists():
            raise RenameError(f"Target already exists: {new.name}", path=old)
        try:
            os.rename(old, new)
        except OSError as e:
            raise RenameError(f"Could not rename to {new.name}: {e}", path=old) from e
        logger.bind(action="rename", file=str(new), status="ok").info(f"Renamed {old.name} -> {new.name}")
