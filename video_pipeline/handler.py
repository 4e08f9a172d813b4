"""
VideoDownloadHandler - Downloads videos from supported platforms.

This handler treats the message text as a video link, downloads it with
yt-dlp and replies with the video. The downloaded file is always removed.
"""

import logging
from typing import Optional

from telegram.constants import ChatAction

from config import BotConfig
from pipeline import PipelineContext, PipelineHandler
from video_pipeline.downloader import VideoDownloader, remove_download

logger = logging.getLogger(__name__)

VIDEO_CAPTION = "✅ Here is your video!"
DOWNLOAD_FAILED_TEXT = (
    "❌ Couldn't download the video. Check the link or try a shorter video (<50 MB)."
)
SEND_FAILED_TEXT = "😿 Oops! Something went wrong while sending the video. Please try again later."


class VideoDownloadHandler(PipelineHandler):
    """
    Handler that downloads videos from supported platforms.

    On success, replies to the message with the downloaded video.
    On failure, replies with a generic error; details go to the log only.
    """

    def __init__(self, config: BotConfig, downloader: Optional[VideoDownloader] = None):
        """
        Initialize the VideoDownloadHandler.

        Args:
            config: Bot configuration
            downloader: Shared downloader (built from config.downloader if omitted)
        """
        super().__init__(config, "VideoDownloadHandler")
        self.downloader = downloader or VideoDownloader(config.downloader)

    async def process(self, ctx: PipelineContext) -> None:
        """Download the linked video and send it back to the chat."""
        message = ctx.message
        text = ctx.message_text

        if not message or not text:
            return

        chat_id = message.chat_id
        logger.info(f"[VIDEO] START msg={message.message_id} chat={chat_id} text='{text}'")

        try:
            await ctx.context.bot.send_chat_action(chat_id=chat_id, action=ChatAction.UPLOAD_VIDEO)
        except Exception as e:
            logger.warning(f"[VIDEO] Could not send chat action: {type(e).__name__}: {e}")

        result = await self.downloader.fetch(text)
        ctx.data['download_result'] = result

        if not result.ok:
            logger.warning(f"[VIDEO] Download failed for chat={chat_id}: {result.reason.value} ({result.detail})")
            await message.reply_text(DOWNLOAD_FAILED_TEXT)
            ctx.stop()
            return

        try:
            logger.info(f"[VIDEO] Sending {result.path} to chat={chat_id}...")
            with result.path.open("rb") as video_file:
                await message.reply_video(
                    video=video_file,
                    caption=VIDEO_CAPTION,
                    read_timeout=120,
                    write_timeout=120,
                    connect_timeout=30
                )
            ctx.data['video_sent'] = True
            logger.info(f"[VIDEO] ✓ Video sent to chat={chat_id} (service: {result.service_name})")

        except Exception as e:
            logger.error(f"[VIDEO] Error sending video: {type(e).__name__}: {e}", exc_info=True)
            ctx.data['video_error'] = str(e)
            await message.reply_text(SEND_FAILED_TEXT)

        finally:
            remove_download(result.path)
            ctx.stop()

        logger.info(f"[VIDEO] ========== VIDEO HANDLER END ==========")
