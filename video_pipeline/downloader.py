"""
Video downloader module for the clipdrop bot.

Runs yt-dlp as a child process and hands back the path of the
downloaded file wrapped in a DownloadResult.
"""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional

from config import DownloaderConfig
from video_pipeline.router import ServiceRouter, parse_host
from video_pipeline.services import load_services

logger = logging.getLogger(__name__)

# Length of the random hex id used for output file names
FILE_ID_LENGTH = 12


class FailureReason(str, Enum):
    """Why a download did not produce a file."""
    INVALID_URL = "invalid_url"
    UNSUPPORTED_HOST = "unsupported_host"
    PROCESS_FAILED = "process_failed"
    EMPTY_OUTPUT = "empty_output"
    TIMEOUT = "timeout"
    ERROR = "error"


@dataclass(frozen=True)
class DownloadResult:
    """
    Outcome of a single download attempt.

    Exactly one of path / reason is set.
    """
    path: Optional[Path] = None
    reason: Optional[FailureReason] = None
    detail: str = ""
    service_name: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.path is not None

    @classmethod
    def success(cls, path: Path, service_name: Optional[str] = None) -> "DownloadResult":
        return cls(path=path, service_name=service_name)

    @classmethod
    def failure(cls, reason: FailureReason, detail: str = "",
                service_name: Optional[str] = None) -> "DownloadResult":
        return cls(reason=reason, detail=detail, service_name=service_name)


def normalize_url(url: Optional[str]) -> str:
    """Trim whitespace and drop a single trailing slash."""
    url = (url or "").strip()
    if url.endswith("/"):
        url = url[:-1]
    return url


def build_command(executable: str, format_expr: str, output_path: Path, url: str) -> List[str]:
    """Assemble the yt-dlp argument vector."""
    return [
        executable,
        "--format", format_expr,
        "--no-warnings",
        "--quiet",
        "--no-playlist",
        "--output", str(output_path),
        url,
    ]


def remove_download(path: Path) -> None:
    """
    Delete a download and any yt-dlp leftovers sharing its id.

    yt-dlp writes <id>.mp4.part while downloading and <id>.fNNN.* streams
    before merging; a killed or failed run leaves those behind.
    """
    for candidate in [path, *path.parent.glob(f"{path.stem}.*")]:
        try:
            candidate.unlink()
            logger.debug(f"[DOWNLOAD] Removed file: {candidate}")
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(f"[DOWNLOAD] Could not remove {candidate}: {e}")


def _decode(output: Optional[bytes]) -> str:
    return (output or b"").decode("utf-8", errors="replace").strip()


class VideoDownloader:
    """
    Downloads a video for a supported URL by shelling out to yt-dlp.

    One attempt per call, no retries. Every failure is returned as a
    DownloadResult instead of being raised.
    """

    def __init__(self, config: DownloaderConfig, router: Optional[ServiceRouter] = None):
        """
        Initialize the downloader.

        Args:
            config: Downloader settings
            router: Service router; built from discovered services if omitted
        """
        self.config = config
        self.router = router or ServiceRouter(load_services(config.disabled_services))
        self.output_dir = Path(config.output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

        self._slots: Optional[asyncio.Semaphore] = None
        if config.max_concurrent_downloads > 0:
            self._slots = asyncio.Semaphore(config.max_concurrent_downloads)

    def new_output_path(self) -> Path:
        """Unique destination for one download."""
        return self.output_dir / f"{uuid.uuid4().hex[:FILE_ID_LENGTH]}.mp4"

    @asynccontextmanager
    async def _download_slot(self):
        if self._slots is None:
            yield
            return
        async with self._slots:
            yield

    async def fetch(self, url: str) -> DownloadResult:
        """
        Download the video behind url.

        Args:
            url: Raw URL text from the chat message

        Returns:
            DownloadResult with the file path on success, or a failure reason

        Raises:
            asyncio.CancelledError: If the calling task is cancelled; the
                child process is killed and partial output removed first
        """
        url = normalize_url(url)

        if parse_host(url) is None:
            logger.warning(f"[DOWNLOAD] Invalid URL: {url[:200]!r}")
            return DownloadResult.failure(FailureReason.INVALID_URL, "not an absolute http(s) URL")

        service = self.router.match(url)
        if service is None:
            logger.warning(f"[DOWNLOAD] Unsupported host: {url}")
            return DownloadResult.failure(FailureReason.UNSUPPORTED_HOST, "host is not in the allow-list")

        output_path = self.new_output_path()
        format_expr = service.format_selector(self.config)
        command = build_command(self.config.executable, format_expr, output_path, url)

        logger.info(f"[DOWNLOAD] Downloading: {url} (service={service.SERVICE_NAME}, format={format_expr})")

        try:
            async with self._download_slot():
                return await self._run(command, output_path, url, service.SERVICE_NAME)
        except asyncio.CancelledError:
            remove_download(output_path)
            raise
        except Exception as e:
            logger.error(f"[DOWNLOAD] Exception during download of {url}: {type(e).__name__}: {e}", exc_info=True)
            remove_download(output_path)
            return DownloadResult.failure(FailureReason.ERROR, f"{type(e).__name__}: {e}", service.SERVICE_NAME)

    async def _run(self, command: List[str], output_path: Path, url: str, service_name: str) -> DownloadResult:
        self.output_dir.mkdir(parents=True, exist_ok=True)

        process = await asyncio.create_subprocess_exec(
            *command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.config.timeout_seconds)
        except asyncio.TimeoutError:
            logger.error(f"[DOWNLOAD] yt-dlp timed out after {self.config.timeout_seconds}s for {url}")
            await self._kill(process)
            remove_download(output_path)
            return DownloadResult.failure(FailureReason.TIMEOUT, "download timed out", service_name)
        except asyncio.CancelledError:
            logger.warning(f"[DOWNLOAD] Cancelled, killing yt-dlp (pid={process.pid}) for {url}")
            await self._kill(process)
            raise

        logger.info(f"[DOWNLOAD] yt-dlp exited with code {process.returncode}")

        if process.returncode != 0:
            logger.error(f"[DOWNLOAD] yt-dlp STDERR: {_decode(stderr)}")
            logger.error(f"[DOWNLOAD] yt-dlp STDOUT: {_decode(stdout)}")
            remove_download(output_path)
            return DownloadResult.failure(
                FailureReason.PROCESS_FAILED,
                f"yt-dlp exited with code {process.returncode}",
                service_name,
            )

        if not output_path.is_file() or output_path.stat().st_size == 0:
            logger.error(f"[DOWNLOAD] ✗ Download produced no output for {url}")
            remove_download(output_path)
            return DownloadResult.failure(FailureReason.EMPTY_OUTPUT, "output file missing or empty", service_name)

        logger.info(f"[DOWNLOAD] ✓ Downloaded: {output_path} ({output_path.stat().st_size} bytes)")
        return DownloadResult.success(output_path, service_name)

    @staticmethod
    async def _kill(process: asyncio.subprocess.Process) -> None:
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
        await process.wait()
