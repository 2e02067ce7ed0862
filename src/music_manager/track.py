"""In-memory metadata of a single track.

A `TrackRecord` mirrors the editable part of a FLAC file's tag block (title,
artists, album) plus the file name, and can be rebuilt from a database row.
`display_lines` is recomputed after every mutation and never edited directly.
"""
from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from loguru import logger

from music_manager.paths import LocalFilesystem, ensure_flac_suffix
from music_manager.errors import RenameError
from music_manager.tags import ALBUM, ARTIST, TITLE, FlacTagStore

ARTIST_SEPARATOR = ":"
NONE_LABEL = "None"


class FieldSelector(Enum):
    DISPLAY_NAME = "File name"
    TITLE = "Title"
    ARTISTS = "Artists"
    ALBUM = "Album"

    @property
    def label(self) -> str:
        return self.value


# Order of `display_lines`
FIELDS: List[FieldSelector] = [
    FieldSelector.DISPLAY_NAME,
    FieldSelector.TITLE,
    FieldSelector.ARTISTS,
    FieldSelector.ALBUM,
]


class MetadataSource(Enum):
    FILE = "file"
    DATABASE = "database"


def split_artists(value: Optional[str]) -> Optional[List[str]]:
    """Decode a ':'-joined artist string, dropping empty segments."""
    if value is None:
        return None
    artists = [a for a in value.split(ARTIST_SEPARATOR) if a]
    return artists or None


def join_artists(artists: Optional[List[str]]) -> Optional[str]:
    if not artists:
        return None
    return ARTIST_SEPARATOR.join(artists)


def _first(values: Optional[List[str]]) -> Optional[str]:
    if not values:
        return None
    return values[0]


class TrackRecord:
    def __init__(
        self,
        path: Path,
        display_name: Optional[str] = None,
        *,
        title: Optional[str] = None,
        artists: Optional[List[str]] = None,
        album: Optional[str] = None,
        genre: Optional[str] = None,
        external_id: Optional[str] = None,
        thumbnail_url: Optional[str] = None,
        id: Optional[int] = None,
        tag_store=None,
        filesystem=None,
    ):
        self.path = Path(path)
        self.display_name = display_name if display_name is not None else self.path.name
        self.title = title
        self.artists = list(artists) if artists else None
        self.album = album
        self.genre = genre
        self.external_id = external_id
        self.thumbnail_url = thumbnail_url
        self.id = id
        self.initialized = False
        self.metadata_source = MetadataSource.FILE
        self._store = tag_store or FlacTagStore()
        self._fs = filesystem or LocalFilesystem()
        self.display_lines: List[str] = []
        self._refresh_lines()

    # -- construction ----------------------------------------------------

    @classmethod
    def load_from_file(cls, path: Path, *, tag_store=None, filesystem=None) -> "TrackRecord":
        """Build a record from the tag block of the FLAC file at `path`.

        Raises TagReadError when the file has no readable tag block.
        """
        record = cls(Path(path), tag_store=tag_store, filesystem=filesystem)
        record._read_tags()
        record.initialized = True
        return record

    @classmethod
    def load_from_persisted(
        cls,
        path: Path,
        display_name: Optional[str] = None,
        title: Optional[str] = None,
        artist: Optional[str] = None,
        album: Optional[str] = None,
        genre: Optional[str] = None,
        external_id: Optional[str] = None,
        thumbnail_url: Optional[str] = None,
        id: Optional[int] = None,
        *,
        tag_store=None,
        filesystem=None,
    ) -> "TrackRecord":
        """Rebuild a record from stored scalars; `artist` is ':'-joined."""
        record = cls(
            Path(path),
            display_name,
            title=title,
            artists=split_artists(artist),
            album=album,
            genre=genre,
            external_id=external_id,
            thumbnail_url=thumbnail_url,
            id=id,
            tag_store=tag_store,
            filesystem=filesystem,
        )
        record.metadata_source = MetadataSource.DATABASE
        return record

    def to_persisted(self) -> Dict[str, Any]:
        """Scalar fields accepted by `load_from_persisted`."""
        return {
            "path": str(self.path),
            "display_name": self.display_name,
            "title": self.title,
            "artist": join_artists(self.artists),
            "album": self.album,
            "genre": self.genre,
            "external_id": self.external_id,
            "thumbnail_url": self.thumbnail_url,
            "id": self.id,
        }

    # -- mutation --------------------------------------------------------

    def set_field(self, selector: FieldSelector, value: str) -> None:
        """Apply an edit typed by the user.

        Artists are entered ':'-separated. An empty title or album clears it.
        Renaming the file re-reads its tags from the new location; when that
        read fails the new path is kept and TagReadError propagates.
        """
        if selector is FieldSelector.DISPLAY_NAME:
            self._rename(value)
            return
        if selector is FieldSelector.TITLE:
            self.title = value or None
        elif selector is FieldSelector.ARTISTS:
            self.artists = split_artists(value)
        elif selector is FieldSelector.ALBUM:
            self.album = value or None
        else:
            raise ValueError(f"Unknown field: {selector}")
        self._refresh_lines()
        logger.bind(action="edit", file=str(self.path)).debug(f"{selector.label} set to {value!r}")

    def _rename(self, value: str) -> None:
        name = value.strip()
        if not name:
            raise RenameError("File name cannot be empty", path=self.path)
        if any(sep in name for sep in (os.sep, os.altsep) if sep):
            raise RenameError(f"Invalid file name: {name!r}", path=self.path)
        name = ensure_flac_suffix(name)
        new_path = self.path.with_name(name)
        self._fs.rename(self.path, new_path)

        self.path = new_path
        self.display_name = name
        self._refresh_lines()
        self._read_tags()

    def _read_tags(self) -> None:
        tags = self._store.read(self.path)
        self.title = _first(tags.get(TITLE))
        self.artists = list(tags[ARTIST]) if tags.get(ARTIST) else None
        self.album = _first(tags.get(ALBUM))
        self._refresh_lines()

    def persist_tag_block(self) -> None:
        """Write title, artists and album into the file's tag block."""
        self._store.write(
            self.path,
            {
                TITLE: [self.title] if self.title else None,
                ARTIST: list(self.artists) if self.artists else None,
                ALBUM: [self.album] if self.album else None,
            },
        )
        logger.bind(action="save", file=str(self.path), status="ok").info(f"Saved tags of {self.display_name}")

    # -- derived ---------------------------------------------------------

    def _refresh_lines(self) -> None:
        self.display_lines = [
            f"{FieldSelector.DISPLAY_NAME.label}: {self.display_name}",
            f"{FieldSelector.TITLE.label}: {self.title if self.title is not None else NONE_LABEL}",
            f"{FieldSelector.ARTISTS.label}: {join_artists(self.artists) or NONE_LABEL}",
            f"{FieldSelector.ALBUM.label}: {self.album if self.album is not None else NONE_LABEL}",
        ]

    @staticmethod
    def equate(a: "TrackRecord", b: "TrackRecord") -> bool:
        return (
            a.title == b.title
            and a.artists == b.artists
            and a.album == b.album
            and a.genre == b.genre
            and a.external_id == b.external_id
            and a.thumbnail_url == b.thumbnail_url
            and a.display_name == b.display_name
            and a.path == b.path
        )

    def __repr__(self) -> str:
        return f"TrackRecord(path={str(self.path)!r}, title={self.title!r}, artists={self.artists!r}, album={self.album!r})"
