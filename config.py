"""
Configuration for the clipdrop bot.

All settings are read once from the environment (after load_dotenv) into
frozen dataclasses that are handed to each component's constructor.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional


DEFAULT_OUTPUT_DIR = "/app/videos"
DEFAULT_EXECUTABLE = "yt-dlp"
DEFAULT_MAX_FILESIZE_MB = 40


class ConfigError(ValueError):
    """Raised when required configuration is missing or malformed."""


@dataclass(frozen=True)
class DownloaderConfig:
    """Settings for the yt-dlp subprocess downloader."""
    output_dir: Path = Path(DEFAULT_OUTPUT_DIR)
    executable: str = DEFAULT_EXECUTABLE
    max_filesize_mb: int = DEFAULT_MAX_FILESIZE_MB
    # 0 means no limit on simultaneous yt-dlp processes
    max_concurrent_downloads: int = 0
    timeout_seconds: Optional[float] = None
    disabled_services: frozenset = frozenset()


@dataclass(frozen=True)
class BotConfig:
    """
    Top-level bot settings.

    Attributes:
        token: Telegram bot API token
        downloader: Downloader settings
        log_level: Name of the root logging level
        enable_health_check: Start the aiohttp health server alongside polling
        port: Health server port
        environ: Snapshot of the environment, used for per-handler overrides
    """
    token: str
    downloader: DownloaderConfig = field(default_factory=DownloaderConfig)
    log_level: str = "INFO"
    enable_health_check: bool = True
    port: int = 8080
    environ: Mapping[str, str] = field(default_factory=dict)

    def get_env(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.environ.get(name, default)


def parse_bool(value: Optional[str], default: bool) -> bool:
    """Interpret 1/true/yes/on (any case) as True; empty falls back to default."""
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")
    if value < 0:
        raise ConfigError(f"{name} must not be negative, got {value}")
    return value


def _parse_timeout(environ: Mapping[str, str]) -> Optional[float]:
    raw = environ.get("DOWNLOAD_TIMEOUT_SECONDS")
    if raw is None or raw.strip() == "":
        return None
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"DOWNLOAD_TIMEOUT_SECONDS must be a number, got {raw!r}")
    return value if value > 0 else None


def load_config(environ: Optional[Mapping[str, str]] = None) -> BotConfig:
    """
    Build a BotConfig from environment variables.

    Args:
        environ: Mapping to read from (defaults to os.environ)

    Returns:
        Populated BotConfig

    Raises:
        ConfigError: If TELEGRAM_BOT_TOKEN is missing or a value is malformed
    """
    if environ is None:
        environ = os.environ
    environ = dict(environ)

    token = (environ.get("TELEGRAM_BOT_TOKEN") or "").strip()
    if not token:
        raise ConfigError("TELEGRAM_BOT_TOKEN is not set in environment or .env file")

    disabled = frozenset(
        key[: -len("_ENABLED")]
        for key, value in environ.items()
        if key.endswith("_ENABLED") and not parse_bool(value, True)
    )

    downloader = DownloaderConfig(
        output_dir=Path(environ.get("VIDEO_OUTPUT_DIR") or DEFAULT_OUTPUT_DIR),
        executable=environ.get("YTDLP_EXECUTABLE") or DEFAULT_EXECUTABLE,
        max_filesize_mb=_parse_int(environ, "MAX_FILESIZE_MB", DEFAULT_MAX_FILESIZE_MB),
        max_concurrent_downloads=_parse_int(environ, "MAX_CONCURRENT_DOWNLOADS", 0),
        timeout_seconds=_parse_timeout(environ),
        disabled_services=disabled,
    )

    return BotConfig(
        token=token,
        downloader=downloader,
        log_level=(environ.get("LOG_LEVEL") or "INFO").upper(),
        enable_health_check=parse_bool(environ.get("ENABLE_HEALTH_CHECK"), True),
        port=_parse_int(environ, "PORT", 8080),
        environ=environ,
    )


__all__ = ['BotConfig', 'ConfigError', 'DownloaderConfig', 'load_config', 'parse_bool']
