from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from loguru import logger

from music_manager.config import MusicManagerSettings, cli_overrides_from_args
from music_manager.db import TrackDB
from music_manager.downloader import VideoResult, download_flac, fetch_cover_art, search_videos
from music_manager.errors import MusicManagerError
from music_manager.ffmpeg_check import probe_ffmpeg, probe_ytdlp
from music_manager.logging import bind_run, log_event, setup_console, setup_json
from music_manager.paths import LocalFilesystem, ensure_flac_suffix, sanitize_filename
from music_manager.tags import embed_cover, has_front_cover
from music_manager.track import TrackRecord, join_artists, split_artists


EXIT_OK = 0
EXIT_WITH_FILE_ERRORS = 2
EXIT_PREFLIGHT_FAILED = 3

UNKNOWN_ALBUM = "Unknown"


def configure_logging(log_level: str = "INFO", log_json_path: Optional[str] = None) -> None:
    """Configure Loguru for human console output and optional JSON lines file."""
    setup_console(log_level)
    if log_json_path:
        setup_json(log_json_path)


def _ask(prompt: str, default: Optional[str] = None) -> str:
    """Read a line; an empty answer (or EOF) returns `default`."""
    suffix = f" [{default}]" if default else ""
    try:
        resp = input(f"{prompt}{suffix}: ").strip()
    except EOFError:
        resp = ""
    return resp or (default or "")


def _confirm(prompt: str) -> bool:
    try:
        resp = input(f"{prompt} [y/N]: ")
    except EOFError:
        return False
    return str(resp).strip().lower() in {"y", "yes"}


def _choose(count: int, prompt: str) -> Optional[int]:
    """Ask for a 1-based choice; returns a 0-based index or None."""
    resp = _ask(prompt, "1")
    try:
        idx = int(resp) - 1
    except ValueError:
        logger.error(f"Not a number: {resp!r}")
        return None
    if not 0 <= idx < count:
        logger.error(f"Choice out of range: {resp}")
        return None
    return idx


def _format_track(n: int, record: TrackRecord) -> str:
    return f"{n}. {record.title} - {join_artists(record.artists)} [ID: {record.id}]"


def _open_db(cfg: MusicManagerSettings) -> TrackDB:
    db = TrackDB(cfg.database_path)
    db.ensure_schema()
    return db


def cmd_preflight() -> int:
    st = probe_ffmpeg()
    if not st.available:
        logger.error("ffmpeg: NOT FOUND")
        if st.error:
            logger.error(st.error)
        return EXIT_PREFLIGHT_FAILED
    logger.info(f"ffmpeg: {st.ffmpeg_path}")
    logger.info(f"version: {st.ffmpeg_version}")
    logger.info(f"flac encoder (ffmpeg): {'YES' if st.has_flac else 'NO'}")
    logger.info(f"opus (ffmpeg): {'YES' if st.has_libopus else 'NO'}")

    st_yt = probe_ytdlp()
    logger.info(f"yt-dlp: {st_yt.version if st_yt.available else 'NOT FOUND'}")
    if st_yt.error:
        logger.error(st_yt.error)

    ok = st.available and st.has_flac and st_yt.available
    if not ok:
        logger.error("Downloading needs yt-dlp and an ffmpeg build with the flac encoder.")
    return EXIT_OK if ok else EXIT_PREFLIGHT_FAILED


def _print_results(results: List[VideoResult]) -> None:
    for n, video in enumerate(results, 1):
        print(f"{n}. {video.describe()}")


def _collect_metadata(record: TrackRecord, video: VideoResult) -> None:
    record.title = video.title
    record.artists = [video.channel]
    record.album = UNKNOWN_ALBUM
    if _confirm("Edit metadata?"):
        record.title = _ask("Title", video.title)
        record.artists = split_artists(_ask("Artists (separate with ':')", video.channel))
        record.album = _ask("Album", UNKNOWN_ALBUM)


def download_one(video: VideoResult, cfg: MusicManagerSettings, db: TrackDB) -> TrackRecord:
    """Download, convert, name, tag and register a single video."""
    music_dir = cfg.music_path
    music_dir.mkdir(parents=True, exist_ok=True)
    flac_path = download_flac(
        video,
        music_dir,
        audio_format=cfg.audio_format,
        compression_level=cfg.flac_compression_level,
        socket_timeout=cfg.socket_timeout,
    )

    if _confirm(f"Rename {flac_path.name}?"):
        new_name = ensure_flac_suffix(sanitize_filename(_ask("New file name", flac_path.stem)))
        new_path = flac_path.with_name(new_name)
        LocalFilesystem().rename(flac_path, new_path)
        flac_path = new_path

    record = TrackRecord(
        flac_path,
        external_id=video.id,
        thumbnail_url=video.thumbnail_url,
    )
    _collect_metadata(record, video)
    record.persist_tag_block()

    try:
        if has_front_cover(flac_path):
            logger.bind(action="cover", file=str(flac_path), status="skipped").info("Cover art already present")
        else:
            jpeg = fetch_cover_art(
                video.thumbnail_url, max_size=cfg.cover_art_max_size, timeout=cfg.socket_timeout
            )
            if jpeg:
                embed_cover(flac_path, jpeg)
    except MusicManagerError as e:
        logger.warning(str(e))

    db.insert_track(record)
    return record


def cmd_download(titles: List[str], cfg: MusicManagerSettings, *, search_only: bool = False) -> int:
    failed = 0
    db = None if search_only else _open_db(cfg)
    try:
        for title in titles:
            try:
                results = search_videos(title, count=cfg.search_count, socket_timeout=cfg.socket_timeout)
            except MusicManagerError as e:
                logger.error(str(e))
                failed += 1
                continue
            if not results:
                logger.warning(f"No results for {title!r}")
                failed += 1
                continue
            _print_results(results)
            if search_only:
                continue
            idx = _choose(len(results), "Select the song to download")
            if idx is None:
                failed += 1
                continue
            try:
                record = download_one(results[idx], cfg, db)
            except MusicManagerError as e:
                logger.bind(action="download", status="failed").error(str(e))
                failed += 1
                continue
            logger.bind(action="download", file=str(record.path), status="ok").success(f"Added {record.display_name}")
    finally:
        if db is not None:
            db.close()
    return EXIT_OK if failed == 0 else EXIT_WITH_FILE_ERRORS


def cmd_list(cfg: MusicManagerSettings) -> int:
    db = _open_db(cfg)
    try:
        for n, record in enumerate(db.query_all(), 1):
            print(_format_track(n, record))
    finally:
        db.close()
    return EXIT_OK


def cmd_search(term: str, cfg: MusicManagerSettings) -> int:
    db = _open_db(cfg)
    try:
        matches = db.search(term)
    finally:
        db.close()
    if not matches:
        logger.warning(f"No tracks match {term!r}")
    for n, record in enumerate(matches, 1):
        print(_format_track(n, record))
        print(f"\tPath: {record.path}")
    return EXIT_OK


def _remove(db: TrackDB, record: TrackRecord) -> None:
    if record.path.exists():
        record.path.unlink()
    else:
        logger.warning(f"File already gone: {record.path}")
    db.remove_track(record.id)
    log_event("remove", msg=f"Removed {record.display_name}", file=str(record.path), status="ok")


def cmd_remove(cfg: MusicManagerSettings, *, track_id: Optional[int] = None, title: Optional[str] = None) -> int:
    db = _open_db(cfg)
    try:
        if track_id is not None:
            record = db.query_by_id(track_id)
            if record is None:
                logger.error(f"No track with id {track_id}")
                return EXIT_WITH_FILE_ERRORS
            _remove(db, record)
            return EXIT_OK

        matches = db.search(title or "")
        if not matches:
            logger.error(f"No tracks match {title!r}")
            return EXIT_WITH_FILE_ERRORS
        for n, record in enumerate(matches, 1):
            print(_format_track(n, record))
        resp = _ask("Numbers to remove (space separated)")
        chosen = []
        for token in resp.split():
            try:
                idx = int(token) - 1
            except ValueError:
                logger.error(f"Not a number: {token!r}")
                return EXIT_WITH_FILE_ERRORS
            if not 0 <= idx < len(matches):
                logger.error(f"Choice out of range: {token}")
                return EXIT_WITH_FILE_ERRORS
            chosen.append(matches[idx])
        if not chosen:
            logger.warning("Nothing selected")
            return EXIT_OK
        if not _confirm(f"Delete {len(chosen)} track(s) and their files?"):
            logger.warning("Remove cancelled by user")
            return EXIT_OK
        for record in chosen:
            _remove(db, record)
        return EXIT_OK
    finally:
        db.close()


def cmd_edit(cfg: MusicManagerSettings) -> int:
    from music_manager.tui import run_editor

    try:
        run_editor(cfg)
    except MusicManagerError as e:
        # The TUI sinks replaced the console one
        configure_logging(cfg.log_level, cfg.log_json)
        logger.error(str(e))
        return EXIT_WITH_FILE_ERRORS
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(prog="music-manager")
    # Config/Logging options (defaults resolved via MusicManagerSettings)
    p.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to TOML config (default: ~/.config/music-manager/config.toml)",
    )
    p.add_argument(
        "--write-config",
        action="store_true",
        help="Write current effective settings to the config file and exit",
    )
    p.add_argument(
        "--log-level",
        default=None,
        help="Console log level (DEBUG, INFO, WARNING, ERROR)",
    )
    p.add_argument(
        "--log-json",
        dest="log_json",
        default=None,
        help="Path to write JSON lines log (structured events)",
    )
    p.add_argument(
        "--music-dir",
        dest="music_dir",
        default=None,
        help="Music library directory (default from settings: ~/Music)",
    )
    p.add_argument(
        "--db",
        dest="db_path",
        default=None,
        help="Track database path (default: <music dir>/database.sqlite)",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    sub.add_parser("preflight", help="Check ffmpeg and yt-dlp availability")

    p_dl = sub.add_parser("download", help="Search, download and convert songs to FLAC")
    p_dl.add_argument("titles", nargs="+", help="Song titles to search for")
    p_dl.add_argument("--search-only", action="store_true", help="Only print the search results")
    p_dl.add_argument("--audio-format", dest="audio_format", default=None, help="Format extracted before conversion")

    sub.add_parser("edit", help="Browse the music directory and edit tags in a terminal UI")
    sub.add_parser("list", help="List every track in the database")

    p_rm = sub.add_parser("remove", help="Remove tracks from the database and delete their files")
    rm_group = p_rm.add_mutually_exclusive_group(required=True)
    rm_group.add_argument("-i", "--id", dest="track_id", type=int, help="Database id of the track")
    rm_group.add_argument("-t", "--title", dest="title", help="Search text to pick tracks from")

    p_search = sub.add_parser("search", help="Search tracks by title, artist or album")
    p_search.add_argument("term", help="Text to search for")

    args = p.parse_args(argv)
    # Load settings: defaults + TOML + env + CLI overrides
    overrides = cli_overrides_from_args(args)
    cfg = MusicManagerSettings.load(
        config_path=Path(args.config_path).expanduser() if args.config_path else None, overrides=overrides
    )

    # Write config and exit if requested
    if args.write_config:
        written = cfg.write(Path(args.config_path).expanduser() if args.config_path else None)
        print(f"Config written to: {written}")
        return EXIT_OK

    configure_logging(cfg.log_level, cfg.log_json)
    bind_run()
    try:
        if args.cmd == "preflight":
            return cmd_preflight()
        if args.cmd == "download":
            return cmd_download(args.titles, cfg, search_only=args.search_only)
        if args.cmd == "edit":
            return cmd_edit(cfg)
        if args.cmd == "list":
            return cmd_list(cfg)
        if args.cmd == "remove":
            return cmd_remove(cfg, track_id=args.track_id, title=args.title)
        if args.cmd == "search":
            return cmd_search(args.term, cfg)
    except MusicManagerError as e:
        logger.error(str(e))
        return EXIT_WITH_FILE_ERRORS
    p.error("unknown command")
    return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
