"""Search and download audio with yt-dlp, then convert it to FLAC.

yt-dlp is used as a library. Its own output is routed to loguru through
`YtDlpLogger` so nothing is printed behind the caller's back.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests
from loguru import logger
from yt_dlp import YoutubeDL
from yt_dlp.utils import YoutubeDLError

from music_manager.encoder import convert_to_flac
from music_manager.errors import DownloadError
from music_manager.paths import FLAC_SUFFIX, sanitize_filename
from music_manager.tags import normalize_cover_art

VIDEO_URL = "https://www.youtube.com/watch?v={}"
THUMBNAIL_URL = "https://i.ytimg.com/vi/{}/hqdefault.jpg"

# File extension produced by FFmpegExtractAudio for each preferred codec
_AUDIO_EXTENSIONS = {
    "opus": "opus",
    "vorbis": "ogg",
    "m4a": "m4a",
    "mp3": "mp3",
    "flac": "flac",
    "wav": "wav",
}


@dataclass(frozen=True)
class VideoResult:
    id: str
    title: str
    channel: str
    thumbnail_url: Optional[str] = None

    @property
    def url(self) -> str:
        return VIDEO_URL.format(self.id)

    def describe(self) -> str:
        return f"Title: {self.title}, Channel: {self.channel}"


class YtDlpLogger:
    """Forward yt-dlp messages to loguru; keeps the last error for reporting."""

    def __init__(self) -> None:
        self.last_error: Optional[str] = None

    def debug(self, msg: str) -> None:
        # yt-dlp routes info messages here too; real debug output is prefixed
        if msg.startswith("[debug]"):
            logger.trace(msg)
        else:
            logger.debug(msg)

    def info(self, msg: str) -> None:
        logger.debug(msg)

    def warning(self, msg: str) -> None:
        logger.warning(msg)

    def error(self, msg: str) -> None:
        self.last_error = msg
        logger.error(msg)


def _base_options(yt_logger: YtDlpLogger, socket_timeout: int) -> Dict[str, Any]:
    return {
        "quiet": True,
        "no_warnings": True,
        "noprogress": True,
        "socket_timeout": socket_timeout,
        "logger": yt_logger,
    }


def _to_result(entry: Dict[str, Any]) -> VideoResult:
    video_id = entry.get("id") or ""
    thumbnail = entry.get("thumbnail")
    if not thumbnail and entry.get("thumbnails"):
        thumbnail = entry["thumbnails"][-1].get("url")
    return VideoResult(
        id=video_id,
        title=entry.get("title") or video_id,
        channel=entry.get("channel") or entry.get("uploader") or "Unknown",
        thumbnail_url=thumbnail or (THUMBNAIL_URL.format(video_id) if video_id else None),
    )


def search_videos(query: str, count: int = 5, socket_timeout: int = 10) -> List[VideoResult]:
    """Return up to `count` search results for `query` without downloading."""
    yt_logger = YtDlpLogger()
    options = _base_options(yt_logger, socket_timeout)
    options.update({"skip_download": True, "extract_flat": "in_playlist"})
    try:
        with YoutubeDL(options) as ydl:
            info = ydl.extract_info(f"ytsearch{count}:{query}", download=False)
    except YoutubeDLError as e:
        raise DownloadError(f"Search failed for {query!r}: {yt_logger.last_error or e}") from e
    entries = [e for e in (info or {}).get("entries") or [] if e]
    results = [_to_result(e) for e in entries]
    logger.bind(action="search", status="ok").info(f"{len(results)} results for {query!r}")
    return results


def audio_extension(audio_format: str) -> str:
    return _AUDIO_EXTENSIONS.get(audio_format, audio_format)


def target_paths(video: VideoResult, music_dir: Path, audio_format: str = "opus") -> tuple[Path, Path]:
    """(downloaded audio path, final FLAC path) for a video."""
    stem = sanitize_filename(video.title)
    music_dir = Path(music_dir)
    return music_dir / f"{stem}.{audio_extension(audio_format)}", music_dir / f"{stem}{FLAC_SUFFIX}"


def download_audio(
    video: VideoResult, music_dir: Path, audio_format: str = "opus", socket_timeout: int = 10
) -> Path:
    """Extract the best audio of `video` into `<music_dir>/<title>.<ext>`."""
    audio_path, _ = target_paths(video, music_dir, audio_format)
    yt_logger = YtDlpLogger()
    options = _base_options(yt_logger, socket_timeout)
    options.update(
        {
            "format": "bestaudio/best",
            # yt-dlp expands % sequences in the template
            "outtmpl": str(audio_path.with_suffix("")).replace("%", "%%") + ".%(ext)s",
            "postprocessors": [
                {
                    "key": "FFmpegExtractAudio",
                    "preferredcodec": audio_format,
                    "preferredquality": "0",
                }
            ],
            "keepvideo": False,
        }
    )
    logger.bind(action="download", file=str(audio_path)).info(f"Downloading {video.url}")
    try:
        with YoutubeDL(options) as ydl:
            info = ydl.extract_info(video.url, download=True)
    except YoutubeDLError as e:
        raise DownloadError(f"yt-dlp error: {yt_logger.last_error or e}", path=audio_path) from e
    if info is None:
        raise DownloadError("yt-dlp returned no info", path=audio_path)
    if not audio_path.exists():
        raise DownloadError("Downloaded file not found", path=audio_path)
    logger.bind(action="download", file=str(audio_path), status="ok").info(f"Downloaded {audio_path.name}")
    return audio_path


def download_flac(
    video: VideoResult,
    music_dir: Path,
    *,
    audio_format: str = "opus",
    compression_level: int = 12,
    socket_timeout: int = 10,
) -> Path:
    """Download and convert a video to FLAC, reusing files already present.

    - FLAC exists: nothing to do.
    - Only the downloaded audio exists: convert it.
    - Neither: download then convert.
    """
    audio_path, flac_path = target_paths(video, music_dir, audio_format)
    if flac_path.exists():
        logger.bind(action="download", file=str(flac_path), status="skipped").info(f"{flac_path.name} already exists")
        return flac_path
    if not audio_path.exists():
        download_audio(video, music_dir, audio_format=audio_format, socket_timeout=socket_timeout)
    else:
        logger.bind(action="download", file=str(audio_path), status="skipped").info(f"{audio_path.name} already downloaded")
    if audio_path == flac_path:
        return flac_path
    return convert_to_flac(audio_path, flac_path, compression_level=compression_level)


def fetch_cover_art(
    url: Optional[str],
    *,
    max_size: int = 1000,
    timeout: int = 10,
    session: Optional[requests.Session] = None,
) -> Optional[bytes]:
    """Download a thumbnail and return it as JPEG bytes, or None on any failure."""
    if not url:
        return None
    get = session.get if session is not None else requests.get
    try:
        response = get(url, timeout=timeout)
        response.raise_for_status()
        return normalize_cover_art(response.content, max_size=max_size)
    except requests.RequestException as e:
        logger.warning(f"Failed to download cover art: {e}")
    except OSError as e:
        # Pillow raises UnidentifiedImageError (an OSError) on garbage data
        logger.warning(f"Failed to process cover art: {e}")
    return None
