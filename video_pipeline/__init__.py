"""
Video download feature module.

This module contains everything related to video downloading:
- Host allow-list and service routing
- Video services (TikTok, Pinterest)
- yt-dlp subprocess download logic
- Pipeline handler for Telegram integration
"""

from video_pipeline.downloader import DownloadResult, FailureReason, VideoDownloader
from video_pipeline.handler import VideoDownloadHandler

# For extending with new services
from video_pipeline.services import BaseService

__all__ = [
    'BaseService',
    'DownloadResult',
    'FailureReason',
    'VideoDownloader',
    'VideoDownloadHandler',
]
