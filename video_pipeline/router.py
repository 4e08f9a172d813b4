"""
Service Router for the video downloader
Validates URLs and routes them to the service whose domain allow-list they match
"""

import logging
from typing import List, Optional
from urllib.parse import urlsplit

from video_pipeline.services import BaseService

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = ("http", "https")


def parse_host(url: str) -> Optional[str]:
    """
    Return the lower-cased host of an absolute http(s) URL.

    Args:
        url: Candidate URL

    Returns:
        Host without port, or None if url is not an absolute http(s) URL
    """
    if not url or any(ch.isspace() for ch in url):
        return None
    try:
        parts = urlsplit(url)
        host = parts.hostname
    except ValueError:
        return None
    if parts.scheme.lower() not in ALLOWED_SCHEMES or not host:
        return None
    return host.lower()


class ServiceRouter:
    """
    Routes video URLs to the service that owns their host.

    Services are checked in priority order; the first whose DOMAINS
    contain the URL host wins.
    """

    def __init__(self, services: List[BaseService]):
        """
        Initialize service router.

        Args:
            services: List of service instances in priority order
        """
        if not services:
            raise ValueError("At least one service must be configured")

        self.services = services
        logger.info(f"ServiceRouter initialized with {len(services)} service(s): {self.get_services()}")

    def match(self, url: str) -> Optional[BaseService]:
        """
        Find the service responsible for a URL.

        Args:
            url: Normalized URL

        Returns:
            Matching service, or None if the URL is invalid or the host is not allowed
        """
        host = parse_host(url)
        if host is None:
            logger.info(f"[ROUTER] Not an absolute http(s) URL: {url[:200]!r}")
            return None

        for service in self.services:
            if service.matches_host(host):
                logger.info(f"[ROUTER] ✓ Host {host} matched service: {service.SERVICE_NAME}")
                return service

        logger.info(f"[ROUTER] ✗ Host {host} is not in the allow-list")
        return None

    def get_services(self) -> List[str]:
        """
        Get list of configured service names.

        Returns:
            List of service names in priority order
        """
        return [service.SERVICE_NAME for service in self.services]
