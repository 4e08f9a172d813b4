"""Video download handler for the pipeline."""

import logging
from typing import Optional

from config import BotConfig
from pipeline import PipelineHandler, PipelineContext
from video_pipeline import VideoDownloader, VideoDownloadHandler as VideoHandler

logger = logging.getLogger(__name__)


class VideoDownloadHandler(PipelineHandler):
    """
    Auto-discovered video download handler.

    Wraps the VideoDownloadHandler from video_pipeline module.
    """

    HANDLER_NAME = "VIDEO_DOWNLOAD"
    DEFAULT_PRIORITY = 50

    def __init__(self, config: BotConfig, downloader: Optional[VideoDownloader] = None):
        super().__init__(config)
        self._video_handler = VideoHandler(config, downloader=downloader)

    async def process(self, ctx: PipelineContext) -> None:
        """Delegate to the video pipeline handler."""
        await self._video_handler.process(ctx)
