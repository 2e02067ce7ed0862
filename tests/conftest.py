import struct
from pathlib import Path
from typing import Dict, List, Optional

import pytest
from loguru import logger

from music_manager.errors import ListError, RenameError, TagReadError, TagWriteError


@pytest.fixture(autouse=True)
def setup_test_logger():
    # Each test starts without sinks; tests that inspect logs add their own
    logger.remove()
    yield
    logger.remove()


class FakeTagStore:
    """In-memory tag blocks keyed by path."""

    def __init__(self, tags: Optional[Dict[Path, Dict[str, List[str]]]] = None):
        self.tags: Dict[Path, Dict[str, List[str]]] = {Path(k): v for k, v in (tags or {}).items()}
        self.fail_read = set()
        self.fail_write = set()
        self.reads: List[Path] = []
        self.writes: List[tuple] = []

    def read(self, path):
        path = Path(path)
        self.reads.append(path)
        if path in self.fail_read or path not in self.tags:
            raise TagReadError("no tag block", path=path)
        return {k: list(v) for k, v in self.tags[path].items()}

    def write(self, path, mapping):
        path = Path(path)
        if path in self.fail_write:
            raise TagWriteError("disk full", path=path)
        self.writes.append((path, dict(mapping)))
        block = self.tags.setdefault(path, {})
        for key, values in mapping.items():
            if values:
                block[key] = list(values)
            else:
                block.pop(key, None)


class FakeFilesystem:
    """A single flat directory of file names; renames move tag blocks too."""

    def __init__(self, directory: Path, names: List[str], store: Optional[FakeTagStore] = None):
        self.directory = Path(directory)
        self.names = list(names)
        self.store = store
        self.fail_rename = False
        self.fail_list = False
        self.renames: List[tuple] = []

    def list_directory(self, path):
        if self.fail_list:
            raise ListError("permission denied", path=Path(path))
        return [(n, self.directory / n) for n in self.names]

    def rename(self, old, new):
        old, new = Path(old), Path(new)
        if self.fail_rename:
            raise RenameError("read-only filesystem", path=old)
        self.renames.append((old, new))
        if old.name in self.names:
            self.names[self.names.index(old.name)] = new.name
        if self.store is not None and old in self.store.tags:
            self.store.tags[new] = self.store.tags.pop(old)


@pytest.fixture
def music_dir(tmp_path):
    return tmp_path / "Music"


@pytest.fixture
def library(music_dir):
    """Five tagged tracks in a fake directory."""
    names = [f"track{i}.flac" for i in range(5)]
    store = FakeTagStore(
        {
            music_dir / name: {
                "TITLE": [f"Song {i}"],
                "ARTIST": [f"Artist {i}", "Guest"],
                "ALBUM": [f"Album {i}"],
            }
            for i, name in enumerate(names)
        }
    )
    fs = FakeFilesystem(music_dir, names, store)
    return store, fs


def minimal_flac_bytes() -> bytes:
    """A FLAC stream with only a STREAMINFO block, enough for mutagen."""
    streaminfo = struct.pack(">HH", 4096, 4096)
    streaminfo += (0).to_bytes(3, "big") + (0).to_bytes(3, "big")
    # sample rate 44100, 2 channels, 16 bits per sample, 0 total samples
    streaminfo += ((44100 << 44) | (1 << 41) | (15 << 36)).to_bytes(8, "big")
    streaminfo += b"\0" * 16
    # last-metadata-block flag set, type 0 (STREAMINFO)
    header = bytes([0x80]) + len(streaminfo).to_bytes(3, "big")
    return b"fLaC" + header + streaminfo


@pytest.fixture
def flac_file(tmp_path):
    path = tmp_path / "song.flac"
    path.write_bytes(minimal_flac_bytes())
    return path
