import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import List, Optional
from loguru import logger

from music_manager.errors import DatabaseError
from music_manager.track import TrackRecord, join_artists

_COLUMNS = (
    "id, song_path, song_filename, song_title, song_artist, song_album, "
    "song_genre, song_youtube_id, song_thumbnail_url, date_added"
)


class TrackDB:
    """The `songs` table of the library database."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = threading.local()

    @property
    def conn(self) -> sqlite3.Connection:
        if not hasattr(self._conn, "connection"):
            try:
                self._conn.connection = sqlite3.connect(self.path, check_same_thread=False)
            except sqlite3.Error as e:
                raise DatabaseError(f"Could not open database: {e}", path=self.path) from e
            self._conn.connection.row_factory = sqlite3.Row
            self._conn.connection.execute("PRAGMA journal_mode = WAL;")
            self._conn.connection.execute("PRAGMA synchronous = NORMAL;")
        return self._conn.connection

    def close(self) -> None:
        if hasattr(self._conn, "connection"):
            self._conn.connection.close()
            del self._conn.connection

    def ensure_schema(self):
        """Create the songs table if it does not exist yet."""
        self._execute("""
            CREATE TABLE IF NOT EXISTS songs (
                id INTEGER UNIQUE PRIMARY KEY,
                song_path TEXT,
                song_filename TEXT,
                song_title TEXT,
                song_artist TEXT,
                song_album TEXT,
                song_genre TEXT,
                song_youtube_id TEXT,
                song_thumbnail_url TEXT,
                date_added TEXT
            )
        """)
        self._execute("CREATE INDEX IF NOT EXISTS idx_songs_path ON songs(song_path);")
        self.commit()

    def commit(self):
        self.conn.commit()

    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        try:
            return self.conn.execute(sql, params)
        except sqlite3.Error as e:
            raise DatabaseError(f"Query failed: {e}", path=self.path) from e

    @staticmethod
    def _to_record(row: sqlite3.Row) -> TrackRecord:
        return TrackRecord.load_from_persisted(
            path=Path(row["song_path"]),
            display_name=row["song_filename"],
            title=row["song_title"],
            artist=row["song_artist"],
            album=row["song_album"],
            genre=row["song_genre"],
            external_id=row["song_youtube_id"],
            thumbnail_url=row["song_thumbnail_url"],
            id=row["id"],
        )

    def insert_track(self, record: TrackRecord) -> int:
        """Insert a new row and store its id on the record."""
        cur = self._execute(
            """INSERT INTO songs (song_path, song_filename, song_title, song_artist, song_album,
                                  song_genre, song_youtube_id, song_thumbnail_url, date_added)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                str(record.path),
                record.display_name,
                record.title,
                join_artists(record.artists),
                record.album,
                record.genre,
                record.external_id,
                record.thumbnail_url,
                datetime.now().isoformat(timespec="seconds"),
            ),
        )
        self.commit()
        record.id = cur.lastrowid
        logger.bind(action="db", file=str(record.path), status="inserted").info(f"Added {record.display_name} (id {record.id})")
        return record.id

    def update_track(self, record: TrackRecord) -> None:
        """Overwrite the row of `record.id`; id and date_added never change."""
        if record.id is None:
            raise DatabaseError("Track has no database id", path=record.path)
        cur = self._execute(
            """UPDATE songs SET
                   song_path = ?,
                   song_filename = ?,
                   song_title = ?,
                   song_artist = ?,
                   song_album = ?,
                   song_genre = ?,
                   song_youtube_id = ?,
                   song_thumbnail_url = ?
               WHERE id = ?""",
            (
                str(record.path),
                record.display_name,
                record.title,
                join_artists(record.artists),
                record.album,
                record.genre,
                record.external_id,
                record.thumbnail_url,
                record.id,
            ),
        )
        self.commit()
        if cur.rowcount == 0:
            raise DatabaseError(f"No track with id {record.id}", path=record.path)
        logger.bind(action="db", file=str(record.path), status="updated").debug(f"Updated row {record.id}")

    def query_all(self) -> List[TrackRecord]:
        rows = self._execute(f"SELECT {_COLUMNS} FROM songs ORDER BY id").fetchall()
        return [self._to_record(r) for r in rows]

    def query_by_title(self, title: str) -> List[TrackRecord]:
        """Rows whose title matches exactly."""
        rows = self._execute(f"SELECT {_COLUMNS} FROM songs WHERE song_title = ? ORDER BY id", (title,)).fetchall()
        return [self._to_record(r) for r in rows]

    def query_by_id(self, track_id: int) -> Optional[TrackRecord]:
        row = self._execute(f"SELECT {_COLUMNS} FROM songs WHERE id = ?", (track_id,)).fetchone()
        return self._to_record(row) if row else None

    def search(self, term: str) -> List[TrackRecord]:
        """Substring match over title, artist and album."""
        like = f"%{term}%"
        rows = self._execute(
            f"""SELECT {_COLUMNS} FROM songs
                WHERE song_title LIKE ? OR song_artist LIKE ? OR song_album LIKE ?
                ORDER BY id""",
            (like, like, like),
        ).fetchall()
        return [self._to_record(r) for r in rows]

    def lookup_id_by_path(self, path: Path) -> Optional[int]:
        row = self._execute(
            "SELECT id FROM songs WHERE song_path = ? ORDER BY id DESC LIMIT 1", (str(path),)
        ).fetchone()
        return row["id"] if row else None

    def remove_track(self, track_id: int) -> bool:
        """Delete a row; returns False when no row had that id."""
        cur = self._execute("DELETE FROM songs WHERE id = ?", (track_id,))
        self.commit()
        if cur.rowcount:
            logger.bind(action="db", status="removed").info(f"Removed row {track_id}")
        return bool(cur.rowcount)
