from io import BytesIO

import pytest
from PIL import Image

from music_manager.errors import TagReadError
from music_manager.tags import FlacTagStore, embed_cover, has_front_cover, normalize_cover_art
from music_manager.track import FieldSelector, TrackRecord


def _png(size=(1200, 800), mode="RGBA"):
    buf = BytesIO()
    Image.new(mode, size, (255, 0, 0, 128) if mode == "RGBA" else 128).save(buf, format="PNG")
    return buf.getvalue()


def test_read_untagged_file_is_empty(flac_file):
    assert FlacTagStore().read(flac_file) == {}


def test_read_non_flac_raises(tmp_path):
    bogus = tmp_path / "bogus.flac"
    bogus.write_bytes(b"not a flac file at all")
    with pytest.raises(TagReadError):
        FlacTagStore().read(bogus)


def test_read_missing_file_raises(tmp_path):
    with pytest.raises(TagReadError):
        FlacTagStore().read(tmp_path / "missing.flac")


def test_write_then_read(flac_file):
    store = FlacTagStore()
    store.write(flac_file, {"TITLE": ["One"], "ARTIST": ["A", "B"], "GENRE": ["Pop"]})
    store.write(flac_file, {"TITLE": ["Two"], "ARTIST": None})
    tags = store.read(flac_file)
    assert tags["TITLE"] == ["Two"]
    assert "ARTIST" not in tags
    assert tags["GENRE"] == ["Pop"]


def test_record_round_trip_through_real_file(flac_file):
    record = TrackRecord.load_from_file(flac_file)
    assert record.title is None
    record.set_field(FieldSelector.TITLE, "Song")
    record.set_field(FieldSelector.ARTISTS, "X:Y")
    record.set_field(FieldSelector.ALBUM, "Album")
    record.persist_tag_block()

    again = TrackRecord.load_from_file(flac_file)
    assert TrackRecord.equate(record, again)


def test_normalize_cover_art_makes_small_rgb_jpeg():
    jpeg = normalize_cover_art(_png(), max_size=500)
    img = Image.open(BytesIO(jpeg))
    assert img.format == "JPEG"
    assert img.mode == "RGB"
    assert max(img.size) == 500


def test_embed_cover(flac_file):
    embed_cover(flac_file, normalize_cover_art(_png((64, 64))))
    assert has_front_cover(flac_file)
    # replacing keeps a single picture
    embed_cover(flac_file, normalize_cover_art(_png((32, 32))))
    from mutagen.flac import FLAC
    assert len(FLAC(str(flac_file)).pictures) == 1


def test_has_front_cover_on_untagged_file(flac_file):
    assert not has_front_cover(flac_file)


def test_has_front_cover_rejects_non_flac(tmp_path):
    path = tmp_path / "bad.flac"
    path.write_bytes(b"not flac at all")
    with pytest.raises(TagReadError):
        has_front_cover(path)
