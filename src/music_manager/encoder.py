"""ffmpeg command construction and execution for the FLAC conversion step.

Outputs are written to a temporary file in the destination directory and
renamed on success, so truncated files aren't left behind on failure.
"""
from __future__ import annotations

import os
import shlex
import subprocess
import uuid
from pathlib import Path
from typing import List

from loguru import logger

from music_manager.errors import ConvertError
from music_manager.logging import truncate


def build_ffmpeg_flac_cmd(src: Path, out_tmp: Path, compression_level: int = 12) -> List[str]:
    return [
        "ffmpeg",
        "-nostdin",
        "-hide_banner",
        "-loglevel",
        "error",
        "-y",
        "-i",
        str(src),
        "-map",
        "0:a:0",  # explicit first audio stream only
        "-vn",
        "-c:a",
        "flac",
        "-compression_level",
        str(compression_level),
        "-f",
        "flac",  # temp name has no usable extension
        str(out_tmp),
    ]


def run_ffmpeg(cmd: List[str]) -> tuple[int, str]:
    """Run FFmpeg and return the exit code and stderr."""
    try:
        proc = subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True)
    except OSError as e:
        return 127, str(e)
    err = proc.stderr or ""
    return proc.returncode, err


def cmd_to_string(cmd: List[str]) -> str:
    return " ".join(shlex.quote(p) for p in cmd)


def _temp_out_path(final_path: Path) -> Path:
    """Return a unique temp file path in the same directory as final_path."""
    suffix = f".part-{os.getpid()}-{uuid.uuid4().hex[:8]}"
    return final_path.with_name(final_path.name + suffix)


def _discard(path: Path) -> None:
    if path.exists():
        path.unlink()


def convert_to_flac(src: Path, dest: Path, *, compression_level: int = 12, delete_source: bool = True) -> Path:
    """Convert `src` to FLAC at `dest` atomically.

    The source is deleted after a successful conversion unless
    delete_source is False. Raises ConvertError on failure.
    """
    src, dest = Path(src), Path(dest)
    out_tmp = _temp_out_path(dest)
    cmd = build_ffmpeg_flac_cmd(src, out_tmp, compression_level=compression_level)
    logger.debug("Running ffmpeg: {}", cmd_to_string(cmd))
    rc, err = run_ffmpeg(cmd)
    if rc != 0:
        _discard(out_tmp)
        logger.bind(action="convert", file=str(src), status="failed").error(
            f"ffmpeg exited with {rc}: {truncate(err)}"
        )
        raise ConvertError(f"ffmpeg exited with {rc}: {truncate(err, max_len=512, max_lines=5)}", path=src)
    try:
        os.replace(str(out_tmp), str(dest))
    except OSError as e:
        _discard(out_tmp)
        raise ConvertError(f"Rename failed: {e}", path=dest) from e

    if delete_source:
        try:
            src.unlink()
        except OSError as e:
            logger.warning(f"Could not delete {src.name}: {e}")
    logger.bind(action="convert", file=str(dest), status="ok").info(f"Converted {src.name} -> {dest.name}")
    return dest
