import sys
import textwrap
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from config import BotConfig, DownloaderConfig

# Stand-in for yt-dlp: parses --output and behaves according to MODE
FAKE_YTDLP = textwrap.dedent('''\
    #!{python}
    import os
    import sys
    import time

    MODE = {mode!r}
    args = sys.argv[1:]
    output = args[args.index("--output") + 1]

    with open(os.path.join(os.path.dirname(output), "..", "argv.txt"), "w") as f:
        f.write("\\n".join(args))

    if MODE == "ok":
        with open(output, "wb") as f:
            f.write(b"fake video bytes")
    elif MODE == "empty":
        open(output, "wb").close()
    elif MODE == "no_output":
        pass
    elif MODE == "fail":
        with open(output, "wb") as f:
            f.write(b"partial")
        with open(output + ".part", "wb") as f:
            f.write(b"more partial")
        sys.stderr.write("ERROR: Unsupported URL\\n")
        sys.exit(1)
    elif MODE == "hang":
        # yt-dlp streams into .part files and per-format intermediates
        with open(output + ".part", "wb") as f:
            f.write(b"partial")
        with open(output[: -len(".mp4")] + ".f137.mp4", "wb") as f:
            f.write(b"video stream")
        with open(os.path.join(os.path.dirname(output), "..", "pid.txt"), "w") as f:
            f.write(str(os.getpid()))
        time.sleep(60)
''')


@pytest.fixture
def output_dir(tmp_path):
    return tmp_path / "videos"


@pytest.fixture
def fake_ytdlp(tmp_path):
    """Factory writing an executable fake yt-dlp for the given mode."""
    def _make(mode: str) -> Path:
        script = tmp_path / f"yt-dlp-{mode}"
        script.write_text(FAKE_YTDLP.format(python=sys.executable, mode=mode))
        script.chmod(0o755)
        return script
    return _make


@pytest.fixture
def downloader_config(output_dir, fake_ytdlp):
    def _make(mode: str = "ok", **kwargs) -> DownloaderConfig:
        return DownloaderConfig(output_dir=output_dir, executable=str(fake_ytdlp(mode)), **kwargs)
    return _make


@pytest.fixture
def bot_config(output_dir):
    return BotConfig(
        token="123:test-token",
        downloader=DownloaderConfig(output_dir=output_dir),
        environ={},
    )


def make_update(text, chat_id=42):
    """Telegram Update double with an async reply API."""
    update = MagicMock()
    if text is None:
        update.message = None
        return update
    update.message.text = text
    update.message.chat_id = chat_id
    update.message.message_id = 1
    update.message.reply_text = AsyncMock()
    update.message.reply_video = AsyncMock()
    return update


def make_context():
    context = MagicMock()
    context.bot.send_chat_action = AsyncMock()
    return context
