"""
TikTok Service
Handles TikTok video links, including vm./vt. short links
"""

from video_pipeline.services import BaseService


class TikTokService(BaseService):
    """Service for downloading TikTok videos."""

    SERVICE_NAME = "TIKTOK"
    DOMAINS = ("tiktok.com",)
    DEFAULT_PRIORITY = 70


__all__ = ['TikTokService']
