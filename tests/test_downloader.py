import asyncio
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from config import DownloaderConfig
from video_pipeline.downloader import (
    DownloadResult,
    FailureReason,
    VideoDownloader,
    build_command,
    normalize_url,
    remove_download,
)


def leftover_files(output_dir: Path):
    return sorted(output_dir.iterdir()) if output_dir.exists() else []


class TestNormalizeUrl:

    def test_trims_whitespace_and_one_trailing_slash(self):
        assert normalize_url("  https://pin.it/abc123/ \n") == "https://pin.it/abc123"

    def test_only_one_slash_is_removed(self):
        assert normalize_url("https://www.tiktok.com/@user//") == "https://www.tiktok.com/@user/"

    def test_none_becomes_empty(self):
        assert normalize_url(None) == ""


def test_build_command_argument_order():
    command = build_command("yt-dlp", "best[filesize<40M]", Path("/app/videos/abc.mp4"), "https://tiktok.com/x")
    assert command == [
        "yt-dlp",
        "--format", "best[filesize<40M]",
        "--no-warnings",
        "--quiet",
        "--no-playlist",
        "--output", "/app/videos/abc.mp4",
        "https://tiktok.com/x",
    ]


def test_output_dir_created_on_init(tmp_path):
    target = tmp_path / "nested" / "videos"
    VideoDownloader(DownloaderConfig(output_dir=target))
    assert target.is_dir()


def test_output_paths_are_unique_and_under_output_dir(output_dir):
    downloader = VideoDownloader(DownloaderConfig(output_dir=output_dir))
    paths = {downloader.new_output_path() for _ in range(50)}
    assert len(paths) == 50
    for path in paths:
        assert path.parent == output_dir
        assert len(path.stem) == 12
        int(path.stem, 16)


@pytest.mark.parametrize("url, reason", [
    ("not a url", FailureReason.INVALID_URL),
    ("", FailureReason.INVALID_URL),
    ("ftp://tiktok.com/video", FailureReason.INVALID_URL),
    ("tiktok.com/@user/video/1", FailureReason.INVALID_URL),
    ("https://youtube.com/watch?v=abc", FailureReason.UNSUPPORTED_HOST),
    ("https://tiktok.com.evil.example/video", FailureReason.UNSUPPORTED_HOST),
    ("https://notpinterest.com/pin/1", FailureReason.UNSUPPORTED_HOST),
])
def test_rejected_urls_never_spawn_a_process(output_dir, url, reason):
    downloader = VideoDownloader(DownloaderConfig(output_dir=output_dir))

    with patch("video_pipeline.downloader.asyncio.create_subprocess_exec") as spawn:
        result = asyncio.run(downloader.fetch(url))

    spawn.assert_not_called()
    assert not result.ok
    assert result.reason is reason
    assert leftover_files(output_dir) == []


def test_successful_fetch_returns_nonempty_file_under_output_dir(downloader_config, output_dir):
    downloader = VideoDownloader(downloader_config("ok"))

    result = asyncio.run(downloader.fetch("https://www.tiktok.com/@user/video/123"))

    assert result.ok
    assert result.reason is None
    assert result.service_name == "TIKTOK"
    assert result.path.exists()
    assert result.path.stat().st_size > 0
    assert result.path.parent == output_dir


def test_pin_it_short_link_uses_unrestricted_profile(downloader_config, tmp_path):
    downloader = VideoDownloader(downloader_config("ok"))

    result = asyncio.run(downloader.fetch("https://pin.it/abc123/"))

    assert result.ok
    assert result.service_name == "PINTEREST"
    argv = (tmp_path / "argv.txt").read_text().splitlines()
    assert argv[argv.index("--format") + 1] == "bestvideo+bestaudio"
    assert argv[-1] == "https://pin.it/abc123"


def test_generic_profile_uses_size_ceiling(downloader_config, tmp_path):
    downloader = VideoDownloader(downloader_config("ok", max_filesize_mb=25))

    asyncio.run(downloader.fetch("https://vm.tiktok.com/ZMabc/"))

    argv = (tmp_path / "argv.txt").read_text().splitlines()
    assert argv[argv.index("--format") + 1] == "best[filesize<25M]"
    for flag in ("--no-warnings", "--quiet", "--no-playlist"):
        assert flag in argv


def test_nonzero_exit_deletes_written_bytes(downloader_config, output_dir):
    downloader = VideoDownloader(downloader_config("fail"))

    result = asyncio.run(downloader.fetch("https://www.pinterest.com/pin/12345/"))

    assert not result.ok
    assert result.reason is FailureReason.PROCESS_FAILED
    assert "code 1" in result.detail
    assert leftover_files(output_dir) == []


@pytest.mark.parametrize("mode", ["empty", "no_output"])
def test_missing_or_empty_output_is_failure(downloader_config, output_dir, mode):
    downloader = VideoDownloader(downloader_config(mode))

    result = asyncio.run(downloader.fetch("https://www.tiktok.com/@user/video/123"))

    assert result.reason is FailureReason.EMPTY_OUTPUT
    assert leftover_files(output_dir) == []


def test_missing_executable_is_reported_not_raised(output_dir, tmp_path):
    config = DownloaderConfig(output_dir=output_dir, executable=str(tmp_path / "no-such-yt-dlp"))
    downloader = VideoDownloader(config)

    result = asyncio.run(downloader.fetch("https://www.tiktok.com/@user/video/123"))

    assert result.reason is FailureReason.ERROR
    assert "FileNotFoundError" in result.detail
    assert leftover_files(output_dir) == []


def test_timeout_kills_process_and_cleans_up(downloader_config, output_dir):
    downloader = VideoDownloader(downloader_config("hang", timeout_seconds=1.0))

    result = asyncio.run(downloader.fetch("https://www.tiktok.com/@user/video/123"))

    assert result.reason is FailureReason.TIMEOUT
    assert leftover_files(output_dir) == []


def test_cancellation_kills_child_process(downloader_config, output_dir, tmp_path):
    downloader = VideoDownloader(downloader_config("hang"))
    pid_file = tmp_path / "pid.txt"

    async def scenario():
        task = asyncio.create_task(downloader.fetch("https://www.tiktok.com/@user/video/123"))
        for _ in range(200):
            if pid_file.exists() and pid_file.read_text():
                break
            await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(scenario())

    pid = int(pid_file.read_text())
    with pytest.raises(ProcessLookupError):
        os.kill(pid, 0)
    assert leftover_files(output_dir) == []


def test_concurrency_limit_bounds_simultaneous_processes(output_dir):
    config = DownloaderConfig(output_dir=output_dir, max_concurrent_downloads=2)
    downloader = VideoDownloader(config)
    running = 0
    peak = 0

    async def fake_run(command, output_path, url, service_name):
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        await asyncio.sleep(0.05)
        running -= 1
        return DownloadResult.failure(FailureReason.PROCESS_FAILED)

    async def scenario():
        with patch.object(downloader, "_run", side_effect=fake_run):
            await asyncio.gather(*(downloader.fetch("https://tiktok.com/v/1") for _ in range(6)))

    asyncio.run(scenario())
    assert peak == 2


def test_download_result_constructors():
    ok = DownloadResult.success(Path("/tmp/a.mp4"), "TIKTOK")
    failed = DownloadResult.failure(FailureReason.TIMEOUT, "slow")

    assert ok.ok and ok.reason is None
    assert not failed.ok and failed.path is None and failed.detail == "slow"


def test_remove_download_clears_ytdlp_leftovers(tmp_path):
    target = tmp_path / "0123456789ab.mp4"
    leftovers = [
        target,
        tmp_path / "0123456789ab.mp4.part",
        tmp_path / "0123456789ab.f137.mp4",
        tmp_path / "0123456789ab.f140.m4a.part",
    ]
    for path in leftovers:
        path.write_bytes(b"x")
    unrelated = tmp_path / "ffffffffffff.mp4"
    unrelated.write_bytes(b"keep")

    remove_download(target)

    assert sorted(tmp_path.iterdir()) == [unrelated]


def test_remove_download_tolerates_missing_files(tmp_path):
    remove_download(tmp_path / "0123456789ab.mp4")
    assert list(tmp_path.iterdir()) == []
