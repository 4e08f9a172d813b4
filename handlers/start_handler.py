"""Greeting reply for the /start command."""

import logging

from pipeline import PipelineHandler, PipelineContext

logger = logging.getLogger(__name__)

START_COMMAND = "/start"
GREETING_TEXT = "Hi! Send me a TikTok or Pinterest link and I'll send the video back."


class StartCommandHandler(PipelineHandler):
    """Reply to /start with a greeting and stop the pipeline."""

    HANDLER_NAME = "START_COMMAND"
    DEFAULT_PRIORITY = 100  # Must run before the download handler

    async def should_process(self, ctx: PipelineContext) -> bool:
        """Check if message starts with /start (any case)."""
        text = ctx.message_text
        if not text:
            return False
        return text.strip().lower().startswith(START_COMMAND)

    async def process(self, ctx: PipelineContext) -> None:
        logger.info(f"[START] Greeting chat={ctx.message.chat_id}")
        await ctx.message.reply_text(GREETING_TEXT)
        ctx.stop()
