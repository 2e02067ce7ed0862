from pathlib import Path
from unittest.mock import patch

import pytest

from music_manager import cli
from music_manager.cli import EXIT_OK, EXIT_WITH_FILE_ERRORS, main
from music_manager.db import TrackDB
from music_manager.downloader import VideoResult
from music_manager.errors import DownloadError
from music_manager.track import TrackRecord


@pytest.fixture
def music(tmp_path):
    music_dir = tmp_path / "Music"
    music_dir.mkdir()
    db = TrackDB(music_dir / "database.sqlite")
    db.ensure_schema()
    for title, artists, album in [
        ("Blue Monday", ["New Order"], "Power, Corruption & Lies"),
        ("Feel Good Inc.", ["Gorillaz", "De La Soul"], "Demon Days"),
    ]:
        path = music_dir / f"{title}.flac"
        path.write_bytes(b"")
        db.insert_track(TrackRecord(path, title=title, artists=artists, album=album))
    db.close()
    return music_dir


def _run(music, *args):
    return main(["--config", str(music / "missing.toml"), "--music-dir", str(music), *args])


def _titles(music):
    db = TrackDB(music / "database.sqlite")
    try:
        return [r.title for r in db.query_all()]
    finally:
        db.close()


def test_list(music, capsys):
    assert _run(music, "list") == EXIT_OK
    out = capsys.readouterr().out.splitlines()
    assert out == [
        "1. Blue Monday - New Order [ID: 1]",
        "2. Feel Good Inc. - Gorillaz:De La Soul [ID: 2]",
    ]


def test_search_prints_paths(music, capsys):
    assert _run(music, "search", "demon") == EXIT_OK
    out = capsys.readouterr().out
    assert "Feel Good Inc." in out
    assert f"\tPath: {music / 'Feel Good Inc..flac'}" in out
    assert "Blue Monday" not in out


def test_remove_by_id_deletes_file_and_row(music):
    assert _run(music, "remove", "--id", "1") == EXIT_OK
    assert not (music / "Blue Monday.flac").exists()
    assert _titles(music) == ["Feel Good Inc."]


def test_remove_unknown_id(music):
    assert _run(music, "remove", "-i", "42") == EXIT_WITH_FILE_ERRORS
    assert len(_titles(music)) == 2


def test_remove_by_title_asks_then_confirms(music):
    with patch("builtins.input", side_effect=["1", "y"]):
        assert _run(music, "remove", "-t", "o") == EXIT_OK
    assert _titles(music) == ["Feel Good Inc."]


def test_remove_by_title_cancelled(music):
    with patch("builtins.input", side_effect=["1 2", "n"]):
        assert _run(music, "remove", "-t", "o") == EXIT_OK
    assert len(_titles(music)) == 2


def test_remove_by_title_bad_choice(music):
    with patch("builtins.input", side_effect=["7"]):
        assert _run(music, "remove", "-t", "o") == EXIT_WITH_FILE_ERRORS
    assert len(_titles(music)) == 2


def test_remove_requires_id_or_title(music):
    with pytest.raises(SystemExit):
        _run(music, "remove")


def test_write_config_exits_early(tmp_path, capsys):
    target = tmp_path / "conf" / "config.toml"
    assert main(["--config", str(target), "--music-dir", str(tmp_path), "--write-config", "list"]) == EXIT_OK
    assert target.exists()
    assert f'music_dir = "{tmp_path}"' in target.read_text()
    assert "Config written to" in capsys.readouterr().out


def test_search_only_download_does_not_touch_db(music, capsys):
    results = [VideoResult(id="a", title="Song", channel="Band")]
    with patch.object(cli, "search_videos", return_value=results), patch.object(cli, "download_one") as one:
        assert _run(music, "download", "--search-only", "song") == EXIT_OK
    one.assert_not_called()
    assert "1. Title: Song, Channel: Band" in capsys.readouterr().out


def test_download_counts_failures(music):
    results = [VideoResult(id="a", title="Song", channel="Band")]
    with patch.object(cli, "search_videos", return_value=results), patch.object(
        cli, "download_one", side_effect=DownloadError("boom")
    ), patch("builtins.input", return_value=""):
        assert _run(music, "download", "song") == EXIT_WITH_FILE_ERRORS


def test_download_no_results(music):
    with patch.object(cli, "search_videos", return_value=[]):
        assert _run(music, "download", "nothing") == EXIT_WITH_FILE_ERRORS


class TestPrompts:
    def test_ask_default_on_empty(self):
        with patch("builtins.input", return_value="  "):
            assert cli._ask("Album", "Unknown") == "Unknown"

    def test_ask_eof(self):
        with patch("builtins.input", side_effect=EOFError):
            assert cli._ask("Album") == ""

    def test_confirm(self):
        with patch("builtins.input", return_value="Yes"):
            assert cli._confirm("Go?") is True
        with patch("builtins.input", return_value=""):
            assert cli._confirm("Go?") is False
        with patch("builtins.input", side_effect=EOFError):
            assert cli._confirm("Go?") is False

    def test_choose(self):
        with patch("builtins.input", return_value=""):
            assert cli._choose(3, "Pick") == 0
        with patch("builtins.input", return_value="3"):
            assert cli._choose(3, "Pick") == 2
        with patch("builtins.input", return_value="4"):
            assert cli._choose(3, "Pick") is None
        with patch("builtins.input", return_value="x"):
            assert cli._choose(3, "Pick") is None


def test_download_one_tags_and_registers(music):
    video = VideoResult(id="vid1", title="Song", channel="Band", thumbnail_url="http://t/1.jpg")
    flac = music / "Song.flac"
    cfg = cli.MusicManagerSettings.load(config_path=music / "missing.toml", overrides={"music_dir": str(music)})
    written = {}

    def fake_persist(self):
        written[self.path] = (self.title, self.artists, self.album)

    db = TrackDB(cfg.database_path)
    try:
        with patch.object(cli, "download_flac", return_value=flac), patch.object(
            cli, "fetch_cover_art", return_value=None
        ) as fetch, patch.object(cli, "has_front_cover", return_value=False), patch.object(
            TrackRecord, "persist_tag_block", fake_persist
        ), patch("builtins.input", side_effect=["n", "y", "New Title", "", "Album X"]):
            record = cli.download_one(video, cfg, db)
        fetch.assert_called_once_with("http://t/1.jpg", max_size=1000, timeout=10)
        assert written[flac] == ("New Title", ["Band"], "Album X")
        stored = db.query_by_id(record.id)
        assert stored.external_id == "vid1"
        assert stored.title == "New Title"
    finally:
        db.close()


def test_download_one_keeps_existing_cover(music):
    video = VideoResult(id="vid2", title="Song", channel="Band", thumbnail_url="http://t/2.jpg")
    flac = music / "Song.flac"
    cfg = cli.MusicManagerSettings.load(config_path=music / "missing.toml", overrides={"music_dir": str(music)})
    db = TrackDB(cfg.database_path)
    try:
        with patch.object(cli, "download_flac", return_value=flac), patch.object(
            cli, "has_front_cover", return_value=True
        ), patch.object(cli, "fetch_cover_art") as fetch, patch.object(cli, "embed_cover") as embed, patch.object(
            TrackRecord, "persist_tag_block"
        ), patch("builtins.input", side_effect=["n", "n"]):
            record = cli.download_one(video, cfg, db)
        fetch.assert_not_called()
        embed.assert_not_called()
        assert db.query_by_id(record.id).title == "Song"
    finally:
        db.close()
