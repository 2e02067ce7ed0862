"""FLAC tag block access and cover art helpers built on mutagen and Pillow.

The tag store speaks plain dicts of upper-case Vorbis comment names to
value lists so the rest of the code never touches mutagen objects.
"""
from __future__ import annotations

from io import BytesIO
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from loguru import logger

from music_manager.errors import TagReadError, TagWriteError

TITLE = "TITLE"
ARTIST = "ARTIST"
ALBUM = "ALBUM"
GENRE = "GENRE"

FRONT_COVER = 3


class FlacTagStore:
    """Read/write the Vorbis comment block of FLAC files."""

    def read(self, path: Path) -> Dict[str, List[str]]:
        from mutagen import MutagenError
        from mutagen.flac import FLAC

        try:
            audio = FLAC(str(path))
        except (MutagenError, OSError) as e:
            raise TagReadError(f"Could not read FLAC tags: {e}", path=Path(path)) from e
        if audio.tags is None:
            return {}
        return {k.upper(): list(v) for k, v in audio.tags.as_dict().items()}

    def write(self, path: Path, mapping: Mapping[str, Optional[List[str]]]) -> None:
        """Set every key in `mapping`; a None or empty value removes the key.

        Keys that are not mentioned are left alone.
        """
        from mutagen import MutagenError
        from mutagen.flac import FLAC

        try:
            audio = FLAC(str(path))
            if audio.tags is None:
                audio.add_tags()
            for key, values in mapping.items():
                if values:
                    audio.tags[key] = list(values)
                elif key in audio.tags:
                    del audio.tags[key]
            audio.save()
        except (MutagenError, OSError) as e:
            raise TagWriteError(f"Could not write FLAC tags: {e}", path=Path(path)) from e
        logger.bind(action="tags", file=str(path), status="written").debug(
            f"Wrote {', '.join(mapping)} to {Path(path).name}"
        )


def normalize_cover_art(img_data: bytes, max_size: int = 1000) -> bytes:
    """Return `img_data` as an RGB JPEG no larger than max_size on either side."""
    from PIL import Image

    img = Image.open(BytesIO(img_data))
    if img.mode in ("RGBA", "LA", "P"):
        img = img.convert("RGB")
    if img.width > max_size or img.height > max_size:
        img.thumbnail((max_size, max_size), Image.Resampling.LANCZOS)
    out_buffer = BytesIO()
    img.save(out_buffer, format="JPEG", quality=90, optimize=True)
    return out_buffer.getvalue()


def embed_cover(path: Path, jpeg: bytes, description: str = "Cover") -> None:
    """Replace the front cover picture of a FLAC file."""
    from mutagen import MutagenError
    from mutagen.flac import FLAC, Picture

    pic = Picture()
    pic.type = FRONT_COVER
    pic.mime = "image/jpeg"
    pic.desc = description
    pic.data = jpeg
    try:
        audio = FLAC(str(path))
        audio.clear_pictures()
        audio.add_picture(pic)
        audio.save()
    except (MutagenError, OSError) as e:
        raise TagWriteError(f"Could not embed cover art: {e}", path=Path(path)) from e
    logger.bind(action="cover", file=str(path), status="embedded").info(
        f"Embedded cover art ({len(jpeg)} bytes) into {Path(path).name}"
    )


def has_front_cover(path: Path) -> bool:
    from mutagen import MutagenError
    from mutagen.flac import FLAC

    try:
        audio = FLAC(str(path))
    except (MutagenError, OSError) as e:
        raise TagReadError(f"Could not read FLAC pictures: {e}", path=Path(path)) from e
    return any(p.type == FRONT_COVER for p in audio.pictures)
