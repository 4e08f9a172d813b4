#!/usr/bin/env python3
"""
clipdrop - Telegram bot that relays TikTok and Pinterest videos
Send a link, get the video back. Downloads are done by yt-dlp.
"""

import asyncio
import logging
import os
from typing import Optional

from dotenv import load_dotenv
from telegram import Update
from telegram.error import TelegramError
from telegram.ext import Application, ContextTypes, MessageHandler, filters
from aiohttp import web

from config import BotConfig, load_config
from pipeline import MessagePipeline, load_handlers
from video_pipeline import VideoDownloader

# Load environment variables early for logging configuration
load_dotenv()

LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()
logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=getattr(logging, LOG_LEVEL, logging.INFO)
)
logger = logging.getLogger(__name__)

# Suppress verbose logging from external libraries
logging.getLogger('httpx').setLevel(logging.WARNING)
logging.getLogger('httpcore').setLevel(logging.WARNING)
logging.getLogger('telegram').setLevel(logging.WARNING)
logging.getLogger('telegram.ext').setLevel(logging.WARNING)


def describe_polling_error(error: BaseException) -> str:
    """Format a transport error for the log."""
    if isinstance(error, TelegramError):
        return f"Telegram API Error:\n[{type(error).__name__}]\n{error.message}"
    return repr(error)


def handle_polling_error(error: TelegramError) -> None:
    """
    Updater error_callback for getUpdates failures.

    There is no chat to answer here, so the error is only logged.
    """
    logger.error(f"[POLLING] Polling error: {describe_polling_error(error)}")


async def handle_application_error(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Log errors that escaped the update handlers."""
    logger.error(f"[BOT] Unhandled error while processing update: {describe_polling_error(context.error)}",
                 exc_info=context.error)


def build_pipeline(config: BotConfig, downloader: Optional[VideoDownloader] = None) -> MessagePipeline:
    """Create the message pipeline with all discovered handlers."""
    downloader = downloader or VideoDownloader(config.downloader)
    pipeline = MessagePipeline()
    for handler in load_handlers(config, downloader=downloader):
        pipeline.add_handler(handler)
    return pipeline


def build_application(config: BotConfig, pipeline: MessagePipeline) -> Application:
    """Create the Telegram application and register the pipeline."""
    application = (
        Application.builder()
        .token(config.token)
        .concurrent_updates(True)
        .build()
    )

    async def handle_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await pipeline.run(update, context)

    application.add_handler(MessageHandler(filters.TEXT, handle_message))
    application.add_error_handler(handle_application_error)
    return application


def create_health_app(downloader: VideoDownloader) -> web.Application:
    """
    Build the aiohttp health check application.

    Endpoints:
        GET /        : Returns 200 OK with bot status
        GET /health  : Returns 200 OK with detailed health info
    """

    async def handle_root(request):
        return web.Response(text="clipdrop bot is running!", status=200)

    async def handle_health(request):
        health_data = {
            "status": "healthy",
            "service": "clipdrop-bot",
            "services": downloader.router.get_services(),
            "output_dir": str(downloader.output_dir),
        }
        return web.json_response(health_data, status=200)

    app = web.Application()
    app.router.add_get('/', handle_root)
    app.router.add_get('/health', handle_health)
    return app


async def health_check_server(config: BotConfig, downloader: VideoDownloader):
    """Serve the health check endpoints until cancelled."""
    logger.info("[HEALTH] Starting health check server...")

    runner = web.AppRunner(create_health_app(downloader))
    await runner.setup()
    site = web.TCPSite(runner, '0.0.0.0', config.port)
    await site.start()

    logger.info(f"[HEALTH] ✓ Health check server started on http://0.0.0.0:{config.port}")

    try:
        await asyncio.Event().wait()
    except asyncio.CancelledError:
        logger.info("[HEALTH] Health check server shutting down...")
        raise
    finally:
        await runner.cleanup()


async def run_bot(config: BotConfig, downloader: VideoDownloader):
    """Run the Telegram bot with long polling until cancelled."""
    logger.info("Starting clipdrop bot...")

    pipeline = build_pipeline(config, downloader)
    application = build_application(config, pipeline)

    await application.initialize()
    me = await application.bot.get_me()
    logger.info(f"Bot started: @{me.username}")

    await application.start()
    await application.updater.start_polling(
        allowed_updates=[Update.MESSAGE],
        error_callback=handle_polling_error,
    )

    try:
        await asyncio.Event().wait()
    except asyncio.CancelledError:
        logger.info("Bot shutting down...")
        raise
    finally:
        await application.updater.stop()
        await application.stop()
        await application.shutdown()


def main() -> None:
    """
    Main entry point - runs bot and health check server concurrently.

    A missing TELEGRAM_BOT_TOKEN raises ConfigError before anything starts.
    """
    config = load_config()
    logging.getLogger().setLevel(getattr(logging, config.log_level, logging.INFO))

    downloader = VideoDownloader(config.downloader)

    async def run_all():
        tasks = [run_bot(config, downloader)]

        if config.enable_health_check:
            logger.info("[MAIN] Health check server enabled")
            tasks.append(health_check_server(config, downloader))
        else:
            logger.info("[MAIN] Health check server disabled (set ENABLE_HEALTH_CHECK=true to enable)")

        await asyncio.gather(*tasks)

    try:
        asyncio.run(run_all())
    except KeyboardInterrupt:
        logger.info("Received exit signal, shutting down...")


if __name__ == '__main__':
    main()
