"""Configuration loading for the Google Photos uploader."""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.json"

# Album naming policies for make_albums.use
ALBUM_FROM_FOLDER_NAME = "folderName"
ALBUM_FROM_FOLDER_PATH = "folderPath"


class ConfigError(Exception):
    """Raised when the configuration is missing or invalid."""

    pass


@dataclass(frozen=True)
class AppCredentials:
    """OAuth client registered for the application."""

    client_id: str
    client_secret: str

    def __post_init__(self) -> None:
        if not self.client_id or not self.client_secret:
            raise ValueError("Both client_id and client_secret are required")


@dataclass(frozen=True)
class AlbumPolicy:
    """How uploaded files are grouped into albums."""

    enabled: bool = False
    use: str = ALBUM_FROM_FOLDER_NAME

    def __post_init__(self) -> None:
        if self.use not in (ALBUM_FROM_FOLDER_NAME, ALBUM_FROM_FOLDER_PATH):
            raise ValueError(
                f"make_albums.use must be '{ALBUM_FROM_FOLDER_NAME}' or "
                f"'{ALBUM_FROM_FOLDER_PATH}', got '{self.use}'"
            )


@dataclass(frozen=True)
class SyncTarget:
    """One local folder synchronised to one account."""

    account: str
    source_folder: Path
    make_albums: AlbumPolicy = field(default_factory=AlbumPolicy)
    delete_after_upload: bool = False
    upload_videos: bool = True
    include_patterns: tuple[str, ...] = ()
    exclude_patterns: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        """Validate sync target."""
        if not self.account:
            raise ValueError("Job account cannot be empty")


@dataclass(frozen=True)
class Config:
    """Resolved configuration of every sync target."""

    credentials: AppCredentials
    jobs: tuple[SyncTarget, ...]
    config_dir: Path = Path(".")

    def __post_init__(self) -> None:
        if not self.jobs:
            raise ValueError("At least one job must be configured")

    @property
    def accounts(self) -> list[str]:
        """Distinct accounts, in configuration order."""
        return list(dict.fromkeys(job.account for job in self.jobs))


def _parse_target(data: dict[str, Any]) -> SyncTarget:
    albums = data.get("make_albums") or {}
    source_folder = data.get("source_folder") or ""
    if not source_folder:
        raise ValueError("Job source_folder cannot be empty")
    return SyncTarget(
        account=data.get("account", ""),
        source_folder=Path(source_folder).expanduser(),
        make_albums=AlbumPolicy(
            enabled=bool(albums.get("enabled", False)),
            use=albums.get("use", ALBUM_FROM_FOLDER_NAME),
        ),
        delete_after_upload=bool(data.get("delete_after_upload", False)),
        upload_videos=bool(data.get("upload_videos", True)),
        include_patterns=tuple(data.get("include_patterns") or ()),
        exclude_patterns=tuple(data.get("exclude_patterns") or ()),
    )


def load_config(config_dir: Path) -> Config:
    """Load and validate ``config.json`` from a configuration directory.

    Args:
        config_dir: Directory holding the configuration file

    Returns:
        The parsed configuration

    Raises:
        ConfigError: If the file is missing, is not valid JSON or holds
            invalid values
    """
    config_file = config_dir / CONFIG_FILENAME
    if not config_file.is_file():
        raise ConfigError(f"Configuration file not found: {config_file}")

    try:
        data = json.loads(config_file.read_text(encoding="utf-8"))
    except ValueError as e:
        raise ConfigError(f"Invalid JSON in {config_file}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Configuration in {config_file} must be a JSON object")

    try:
        credentials = data.get("api_app_credentials") or {}
        config = Config(
            credentials=AppCredentials(
                client_id=credentials.get("client_id", ""),
                client_secret=credentials.get("client_secret", ""),
            ),
            jobs=tuple(_parse_target(job) for job in data.get("jobs") or ()),
            config_dir=config_dir,
        )
    except (ValueError, TypeError, AttributeError) as e:
        raise ConfigError(f"Invalid configuration in {config_file}: {e}") from e

    logger.debug(f"Loaded {len(config.jobs)} job(s) from {config_file}")
    return config
