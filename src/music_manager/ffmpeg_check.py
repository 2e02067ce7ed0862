"""Preflight checks for the external tools of the download pipeline."""
from __future__ import annotations

import shutil
import subprocess
from dataclasses import dataclass
from typing import Optional, Set


@dataclass
class FFmpegStatus:
    available: bool
    ffmpeg_path: Optional[str] = None
    ffmpeg_version: Optional[str] = None
    has_flac: bool = False
    has_libopus: bool = False
    error: Optional[str] = None


@dataclass
class YtDlpStatus:
    available: bool
    version: Optional[str] = None
    error: Optional[str] = None


def _capture(cmd: list[str]) -> tuple[int, str, str]:
    try:
        proc = subprocess.run(cmd, capture_output=True, text=True, check=False)
    except OSError as exc:
        return 1, "", str(exc)
    return proc.returncode, proc.stdout, proc.stderr


def parse_encoders(listing: str) -> Set[str]:
    """Encoder names from `ffmpeg -encoders` output.

    Rows look like ` A....D flac   FLAC (Free Lossless Audio Codec)`; the
    header above the `------` separator is skipped.
    """
    names: Set[str] = set()
    in_table = False
    for line in listing.splitlines():
        fields = line.split()
        if not in_table:
            in_table = bool(fields) and set(fields[0]) == {"-"}
            continue
        if len(fields) >= 2:
            names.add(fields[1])
    return names


def probe_ffmpeg() -> FFmpegStatus:
    path = shutil.which("ffmpeg")
    if not path:
        return FFmpegStatus(available=False, error="ffmpeg not found in PATH")

    rc, out, err = _capture([path, "-version"])
    if rc != 0:
        return FFmpegStatus(available=False, ffmpeg_path=path, error=err or "ffmpeg -version failed")
    version = out.splitlines()[0].strip() if out else None

    rc, out, _ = _capture([path, "-hide_banner", "-encoders"])
    encoders = parse_encoders(out) if rc == 0 else set()
    return FFmpegStatus(
        available=True,
        ffmpeg_path=path,
        ffmpeg_version=version,
        has_flac="flac" in encoders,
        has_libopus="libopus" in encoders,
    )


def probe_ytdlp() -> YtDlpStatus:
    """yt-dlp is used as a library; report the installed version."""
    try:
        from yt_dlp.version import __version__
    except ImportError as e:
        return YtDlpStatus(available=False, error=f"yt-dlp is not installed: {e}")
    return YtDlpStatus(available=True, version=__version__)
