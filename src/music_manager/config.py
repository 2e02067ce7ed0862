from __future__ import annotations

from contextvars import ContextVar
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, Optional, Tuple, Type

import tomllib
from pydantic import Field
from pydantic.fields import FieldInfo
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict
from tomlkit import dumps as toml_dumps


DEFAULT_CONFIG_PATH = Path("~/.config/music-manager/config.toml").expanduser()
ENV_PREFIX = "MUSIC_MANAGER_"
DB_FILENAME = "database.sqlite"

AudioFormat = Literal["opus", "vorbis", "m4a", "mp3", "flac", "wav"]

# Config file seen by TomlFileSource while `MusicManagerSettings.load` runs
_config_file: ContextVar[Optional[Path]] = ContextVar("config_file", default=None)


def read_toml(path: Optional[Path]) -> Dict[str, Any]:
    """Top-level table of a TOML file; {} when the file is missing."""
    if path is None or not path.is_file():
        return {}
    with path.open("rb") as fh:
        data = tomllib.load(fh)
    return dict(data) if isinstance(data, dict) else {}


class TomlFileSource(PydanticBaseSettingsSource):
    """Settings layer backed by the config file; unknown keys are dropped."""

    def __init__(self, settings_cls: Type[BaseSettings], path: Optional[Path] = None):
        super().__init__(settings_cls)
        self.data = read_toml(path)

    def get_field_value(self, field: FieldInfo, field_name: str) -> Tuple[Any, str, bool]:
        return self.data.get(field_name), field_name, False

    def __call__(self) -> Dict[str, Any]:
        return {k: v for k, v in self.data.items() if k in self.settings_cls.model_fields}


class MusicManagerSettings(BaseSettings):
    """Settings shared by the CLI commands and the editor.

    Values are layered, later layers winning:
    defaults, the TOML config file, MUSIC_MANAGER_* environment variables,
    then command-line flags handed to `load(overrides=...)`.
    """

    log_level: str = Field(default="INFO", description="Console log level")
    log_json: Optional[str] = Field(default=None, description="JSON lines log file, one event per line")
    log_file: str = Field(default="/tmp/music-manager.log", description="Plain log file used while the TUI runs")

    music_dir: str = Field(default="~/Music", description="Directory holding the FLAC library")
    db_path: Optional[str] = Field(
        default=None, description="Track database; <music_dir>/database.sqlite when unset"
    )
    browse_suffixes: List[str] = Field(default_factory=lambda: [".flac"], description="File suffixes listed by the editor")

    tick_interval_ms: int = Field(default=200, description="Directory refresh interval of the editor")

    search_count: int = Field(default=5, description="Number of search results offered")
    socket_timeout: int = Field(default=10, description="Network timeout in seconds")
    audio_format: AudioFormat = Field(default="opus", description="Audio format extracted before conversion")
    flac_compression_level: int = Field(default=12, description="ffmpeg FLAC compression level 0..12")
    cover_art_max_size: int = Field(default=1000, description="Largest side of embedded cover art, in pixels")

    # Where the settings came from; never written back
    config_path: Path = Field(default=DEFAULT_CONFIG_PATH, exclude=True)

    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX, extra="ignore")

    @property
    def music_path(self) -> Path:
        return Path(self.music_dir).expanduser()

    @property
    def database_path(self) -> Path:
        if self.db_path:
            return Path(self.db_path).expanduser()
        return self.music_path / DB_FILENAME

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        # Earlier sources win: CLI overrides (init kwargs), env, config file
        return init_settings, env_settings, TomlFileSource(settings_cls, _config_file.get())

    @classmethod
    def load(
        cls,
        *,
        config_path: Optional[Path] = None,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> "MusicManagerSettings":
        source = config_path or DEFAULT_CONFIG_PATH
        cli_values = {k: v for k, v in (overrides or {}).items() if v is not None}
        token = _config_file.set(source)
        try:
            settings = cls(**cli_values)
        finally:
            _config_file.reset(token)
        settings.config_path = source
        return settings

    def to_toml(self) -> str:
        """Effective settings as TOML; unset optional values are left out."""
        return toml_dumps(self.model_dump(exclude={"config_path"}, exclude_none=True))

    def write(self, path: Optional[Path] = None) -> Path:
        target = Path(path or self.config_path or DEFAULT_CONFIG_PATH)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.to_toml(), encoding="utf-8")
        return target


# argparse dests that map onto a settings field
_OVERRIDABLE = (
    "log_level",
    "log_json",
    "log_file",
    "music_dir",
    "db_path",
    "tick_interval_ms",
    "search_count",
    "socket_timeout",
    "audio_format",
    "flac_compression_level",
    "cover_art_max_size",
)


def cli_overrides_from_args(args: Any) -> Dict[str, Any]:
    """Pick the settings fields present on an argparse Namespace.

    Flags the user didn't pass stay None; `load()` skips those.
    """
    return {name: getattr(args, name) for name in _OVERRIDABLE if hasattr(args, name)}
