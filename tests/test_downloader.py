from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import requests
from yt_dlp.utils import DownloadError as YtDownloadError

from music_manager import downloader
from music_manager.downloader import (
    VideoResult,
    download_audio,
    download_flac,
    fetch_cover_art,
    search_videos,
    target_paths,
)
from music_manager.errors import DownloadError


def _ydl_returning(info, side_effect=None):
    ydl = MagicMock()
    ydl.__enter__.return_value = ydl
    ydl.extract_info.return_value = info
    if side_effect is not None:
        ydl.extract_info.side_effect = side_effect
    return ydl


VIDEO = VideoResult(id="abc", title="My Song", channel="Band", thumbnail_url="https://i.ytimg.com/vi/abc/hq.jpg")


@patch("music_manager.downloader.YoutubeDL")
def test_search_videos(mock_cls):
    mock_cls.return_value = _ydl_returning(
        {
            "entries": [
                {"id": "a1", "title": "First", "channel": "Chan"},
                None,
                {"id": "b2", "title": "Second", "uploader": "Up", "thumbnails": [{"url": "s"}, {"url": "big"}]},
            ]
        }
    )
    results = search_videos("some song", count=5, socket_timeout=10)

    ydl = mock_cls.return_value
    ydl.extract_info.assert_called_once_with("ytsearch5:some song", download=False)
    options = mock_cls.call_args[0][0]
    assert options["socket_timeout"] == 10
    assert options["skip_download"] is True
    assert [r.id for r in results] == ["a1", "b2"]
    assert results[0].channel == "Chan"
    assert results[0].thumbnail_url == "https://i.ytimg.com/vi/a1/hqdefault.jpg"
    assert results[1].channel == "Up"
    assert results[1].thumbnail_url == "big"
    assert results[0].describe() == "Title: First, Channel: Chan"


@patch("music_manager.downloader.YoutubeDL")
def test_search_error_is_wrapped(mock_cls):
    mock_cls.return_value = _ydl_returning(None, side_effect=YtDownloadError("network down"))
    with pytest.raises(DownloadError):
        search_videos("x")


def test_target_paths_sanitize_title(tmp_path):
    video = VideoResult(id="x", title="AC/DC: Back?", channel="c")
    audio, flac = target_paths(video, tmp_path)
    assert audio == tmp_path / "AC_DC_ Back_.opus"
    assert flac == tmp_path / "AC_DC_ Back_.flac"


@patch("music_manager.downloader.YoutubeDL")
def test_download_audio_options(mock_cls, tmp_path):
    def fake_extract(url, download):
        (tmp_path / "My Song.opus").write_bytes(b"opus")
        return {"id": "abc"}

    mock_cls.return_value = _ydl_returning(None, side_effect=fake_extract)
    path = download_audio(VIDEO, tmp_path, audio_format="opus")

    assert path == tmp_path / "My Song.opus"
    options = mock_cls.call_args[0][0]
    assert options["outtmpl"] == str(tmp_path / "My Song") + ".%(ext)s"
    pp = options["postprocessors"][0]
    assert pp["key"] == "FFmpegExtractAudio"
    assert pp["preferredcodec"] == "opus"
    assert pp["preferredquality"] == "0"
    mock_cls.return_value.extract_info.assert_called_once_with(VIDEO.url, download=True)


@patch("music_manager.downloader.YoutubeDL")
def test_download_audio_missing_output(mock_cls, tmp_path):
    mock_cls.return_value = _ydl_returning({"id": "abc"})
    with pytest.raises(DownloadError):
        download_audio(VIDEO, tmp_path)


def test_download_flac_skips_existing_flac(tmp_path):
    (tmp_path / "My Song.flac").write_bytes(b"")
    with patch.object(downloader, "download_audio") as dl, patch.object(downloader, "convert_to_flac") as conv:
        assert download_flac(VIDEO, tmp_path) == tmp_path / "My Song.flac"
    dl.assert_not_called()
    conv.assert_not_called()


def test_download_flac_converts_existing_audio(tmp_path):
    (tmp_path / "My Song.opus").write_bytes(b"")
    with patch.object(downloader, "download_audio") as dl, patch.object(downloader, "convert_to_flac") as conv:
        conv.return_value = tmp_path / "My Song.flac"
        download_flac(VIDEO, tmp_path, compression_level=8)
    dl.assert_not_called()
    conv.assert_called_once_with(tmp_path / "My Song.opus", tmp_path / "My Song.flac", compression_level=8)


def test_download_flac_downloads_then_converts(tmp_path):
    with patch.object(downloader, "download_audio") as dl, patch.object(downloader, "convert_to_flac") as conv:
        download_flac(VIDEO, tmp_path, socket_timeout=3)
    dl.assert_called_once_with(VIDEO, tmp_path, audio_format="opus", socket_timeout=3)
    conv.assert_called_once()


def test_fetch_cover_art_normalizes():
    session = MagicMock()
    session.get.return_value.content = b"img"
    with patch.object(downloader, "normalize_cover_art", return_value=b"jpeg") as norm:
        assert fetch_cover_art("http://x/t.jpg", max_size=300, session=session) == b"jpeg"
    session.get.assert_called_once_with("http://x/t.jpg", timeout=10)
    norm.assert_called_once_with(b"img", max_size=300)


def test_fetch_cover_art_network_failure_is_none():
    session = MagicMock()
    session.get.side_effect = requests.ConnectionError("down")
    assert fetch_cover_art("http://x/t.jpg", session=session) is None


def test_fetch_cover_art_bad_image_is_none():
    session = MagicMock()
    session.get.return_value.content = b"definitely not an image"
    assert fetch_cover_art("http://x/t.jpg", session=session) is None


def test_fetch_cover_art_without_url():
    assert fetch_cover_art(None) is None
