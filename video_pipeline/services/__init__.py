"""
Video Services Auto-Discovery System
Each service declares the hosts it accepts and the yt-dlp format it wants
"""

import importlib
import inspect
import logging
from pathlib import Path
from typing import Iterable, List, Optional, Type

from config import DownloaderConfig

logger = logging.getLogger(__name__)


def host_matches(host: str, domain: str) -> bool:
    """Return True if host is the domain itself or one of its subdomains."""
    host = host.lower().rstrip(".")
    domain = domain.lower()
    return host == domain or host.endswith("." + domain)


class BaseService:
    """Base class for all video services."""

    # Subclasses MUST define these
    SERVICE_NAME = None           # e.g., "TIKTOK"
    DOMAINS: tuple = ()           # Hosts (and their subdomains) handled by this service
    DEFAULT_PRIORITY = 50         # Service priority (0-100)

    def __init__(self):
        self.priority = self.DEFAULT_PRIORITY

    def matches_host(self, host: str) -> bool:
        """
        Check if a URL host belongs to this service.

        Args:
            host: Lower-cased host name without port

        Returns:
            True if host matches one of DOMAINS
        """
        if not host:
            return False
        return any(host_matches(host, domain) for domain in self.DOMAINS)

    def format_selector(self, config: DownloaderConfig) -> str:
        """
        yt-dlp --format expression for this service.

        The generic profile picks the best single stream under the size
        ceiling so the result fits into a Telegram attachment.
        """
        return f"best[filesize<{config.max_filesize_mb}M]"

    def __str__(self) -> str:
        return self.SERVICE_NAME or self.__class__.__name__


def discover_services() -> List[Type[BaseService]]:
    """
    Automatically discover all service classes in the services folder.

    Returns:
        List of service classes (not instances)
    """
    services = []
    current_dir = Path(__file__).parent

    for service_dir in sorted(current_dir.iterdir()):
        if not service_dir.is_dir() or service_dir.name.startswith("_"):
            continue

        if not (service_dir / "__init__.py").exists():
            continue

        service_name = service_dir.name
        try:
            module = importlib.import_module(f"{__name__}.{service_name}")

            for name, obj in inspect.getmembers(module, inspect.isclass):
                if (issubclass(obj, BaseService) and
                        obj is not BaseService and
                        obj.__module__ == module.__name__):
                    services.append(obj)

        except Exception as e:
            logger.error(f"Could not load service from {service_name}: {e}")

    return services


def load_services(disabled: Optional[Iterable[str]] = None) -> List[BaseService]:
    """
    Instantiate discovered services, skipping disabled ones.

    Args:
        disabled: SERVICE_NAMEs switched off via {SERVICE_NAME}_ENABLED=false

    Returns:
        List of service instances (sorted by priority, highest first)

    Raises:
        ValueError: If no service is left enabled
    """
    disabled = set(disabled or ())
    service_classes = discover_services()

    if not service_classes:
        raise ValueError("No services found in video_pipeline/services folder!")

    initialized_services = []
    for service_class in service_classes:
        if service_class.SERVICE_NAME in disabled:
            logger.info(f"  ⊘ Skipping {service_class.SERVICE_NAME} (disabled)")
            continue
        service = service_class()
        initialized_services.append(service)
        logger.info(f"  ✓ Loaded service: {service.SERVICE_NAME} domains={list(service.DOMAINS)}")

    if not initialized_services:
        raise ValueError("All services are disabled! Check your *_ENABLED environment variables.")

    initialized_services.sort(key=lambda s: s.priority, reverse=True)
    return initialized_services


__all__ = ['BaseService', 'discover_services', 'host_matches', 'load_services']
