"""
Pinterest Service
Handles Pinterest pins and pin.it short links
"""

from config import DownloaderConfig
from video_pipeline.services import BaseService


class PinterestService(BaseService):
    """Service for downloading Pinterest videos."""

    SERVICE_NAME = "PINTEREST"
    DOMAINS = ("pinterest.com", "pin.it")
    DEFAULT_PRIORITY = 80

    def format_selector(self, config: DownloaderConfig) -> str:
        # Pin videos are small; take the best merged video+audio with no size cap
        return "bestvideo+bestaudio"


__all__ = ['PinterestService']
