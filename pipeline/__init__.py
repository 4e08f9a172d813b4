"""
Pipeline architecture for message processing.

This module provides a flexible pipeline system where messages flow through
a series of handlers. Each handler can process the message and optionally
stop further processing.

Usage:
    from pipeline import MessagePipeline, load_handlers

    pipeline = MessagePipeline()
    for handler in load_handlers(config):
        pipeline.add_handler(handler)

    # In your message handler:
    await pipeline.run(update, context)
"""

import importlib
import inspect
import logging
import pkgutil
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from telegram import Update
from telegram.ext import ContextTypes

from config import BotConfig, parse_bool

logger = logging.getLogger(__name__)


@dataclass
class PipelineContext:
    """
    Context object that flows through the pipeline.

    Attributes:
        update: Telegram Update object
        context: Telegram callback context
        should_continue: If False, pipeline stops after current handler
        data: Shared dictionary for handlers to pass data to each other
    """
    update: Update
    context: ContextTypes.DEFAULT_TYPE
    should_continue: bool = True
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def message(self):
        """Convenience property to access the message."""
        return self.update.message

    @property
    def message_text(self) -> Optional[str]:
        """Convenience property to access message text."""
        if self.message:
            return self.message.text
        return None

    def stop(self) -> None:
        """Stop the pipeline after current handler."""
        self.should_continue = False


class PipelineHandler(ABC):
    """
    Abstract base class for pipeline handlers.

    Each handler processes the message and can optionally stop the pipeline
    by calling ctx.stop() or setting ctx.should_continue = False.

    Subclasses must implement the process() method.
    """

    # Default priority (0-100, higher runs first)
    DEFAULT_PRIORITY = 50

    # Handler name for env var generation (e.g., "VIDEO_DOWNLOAD")
    HANDLER_NAME = None

    def __init__(self, config: BotConfig, name: Optional[str] = None):
        """
        Initialize the handler.

        Args:
            config: Bot configuration
            name: Optional handler name for logging (defaults to class name)
        """
        self.config = config
        self.name = name or self.__class__.__name__
        self.priority = self.DEFAULT_PRIORITY

    @abstractmethod
    async def process(self, ctx: PipelineContext) -> None:
        """
        Process the message.

        Args:
            ctx: Pipeline context containing update, message, and shared data.
                 Call ctx.stop() to prevent further handlers from running.
        """
        pass

    async def should_process(self, ctx: PipelineContext) -> bool:
        """
        Optional hook to determine if this handler should process the message.

        Default implementation accepts any text message.

        Args:
            ctx: Pipeline context

        Returns:
            True if handler should process, False to skip
        """
        return ctx.message_text is not None


class MessagePipeline:
    """
    Manages the message processing pipeline.

    Handlers are executed in the order they were added. If any handler
    sets ctx.should_continue = False or calls ctx.stop(), the pipeline
    stops and remaining handlers are not executed.
    """

    def __init__(self, stop_on_error: bool = True):
        """
        Initialize the pipeline.

        Args:
            stop_on_error: If True, stop pipeline when a handler raises an exception.
                          If False, log the error and continue to next handler.
        """
        self.handlers: list[PipelineHandler] = []
        self.stop_on_error = stop_on_error

    def add_handler(self, handler: PipelineHandler) -> "MessagePipeline":
        """
        Add a handler to the pipeline.

        Args:
            handler: Handler to add

        Returns:
            Self for method chaining
        """
        self.handlers.append(handler)
        logger.debug(f"[PIPELINE] Added handler: {handler.name}")
        return self

    async def run(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> PipelineContext:
        """
        Run the pipeline for a message.

        Args:
            update: Telegram Update object
            context: Telegram callback context

        Returns:
            The PipelineContext after all handlers have run (or pipeline stopped)
        """
        ctx = PipelineContext(update=update, context=context)

        if ctx.message_text is None:
            logger.debug("[PIPELINE] Update has no text message, ignoring")
            return ctx

        logger.info(f"[PIPELINE] ========== PIPELINE START chat={ctx.message.chat_id} ==========")

        for i, handler in enumerate(self.handlers, 1):
            if not ctx.should_continue:
                logger.info(f"[PIPELINE] Pipeline stopped before handler {i}/{len(self.handlers)}: {handler.name}")
                break

            try:
                if not await handler.should_process(ctx):
                    logger.debug(f"[PIPELINE] Handler {handler.name} skipped (should_process=False)")
                    continue
            except Exception as e:
                logger.error(f"[PIPELINE] Error in {handler.name}.should_process(): {e}", exc_info=True)
                if self.stop_on_error:
                    break
                continue

            logger.info(f"[PIPELINE] Running handler {i}/{len(self.handlers)}: {handler.name}")
            try:
                await handler.process(ctx)
                logger.debug(f"[PIPELINE] Handler {handler.name} completed, should_continue={ctx.should_continue}")
            except Exception as e:
                logger.error(f"[PIPELINE] Error in {handler.name}.process(): {e}", exc_info=True)
                if self.stop_on_error:
                    ctx.stop()
                    break

        logger.info(f"[PIPELINE] ========== PIPELINE END ==========")
        return ctx


def discover_handlers(package: str = "handlers") -> list[type[PipelineHandler]]:
    """
    Automatically discover all handler classes in the given package.

    Args:
        package: Importable package to scan for handler modules

    Returns:
        List of handler classes (not instances)
    """
    handlers = []

    try:
        pkg = importlib.import_module(package)
    except ImportError as e:
        logger.warning(f"Handlers package not found: {package} ({e})")
        return handlers

    for module_info in pkgutil.iter_modules(pkg.__path__):
        if module_info.name.startswith("_"):
            continue

        try:
            module = importlib.import_module(f"{package}.{module_info.name}")

            for name, obj in inspect.getmembers(module, inspect.isclass):
                if (issubclass(obj, PipelineHandler) and
                        not inspect.isabstract(obj) and
                        obj.__module__ == module.__name__):
                    handlers.append(obj)
                    logger.debug(f"Discovered handler: {obj.__name__} from {module_info.name}")

        except Exception as e:
            logger.error(f"Could not load handler from {module_info.name}: {e}")

    return handlers


def load_handlers(config: BotConfig, downloader=None, package: str = "handlers") -> list[PipelineHandler]:
    """
    Load and initialize handlers with priority sorting.

    Each handler can optionally define:
    - HANDLER_NAME: For env var generation (e.g., "VIDEO_DOWNLOAD")
    - DEFAULT_PRIORITY: Priority value (0-100, higher runs first)

    Environment variables (read from config.environ):
    - {HANDLER_NAME}_PRIORITY: Override handler priority
    - {HANDLER_NAME}_ENABLED: Set to "false" (or 0/no/off) to disable handler

    Args:
        config: Bot configuration passed to every handler
        downloader: Shared VideoDownloader, for handlers that accept one
        package: Package to scan for handlers

    Returns:
        List of initialized handler instances (sorted by priority, highest first)
    """
    handler_classes = discover_handlers(package)

    if not handler_classes:
        logger.warning(f"No handlers found in {package}/")
        return []

    initialized_handlers = []

    logger.info("=" * 60)
    logger.info("Auto-discovering pipeline handlers...")
    logger.info("=" * 60)

    for handler_class in handler_classes:
        handler_name = handler_class.HANDLER_NAME

        if handler_name:
            enabled_env = f"{handler_name}_ENABLED"
            if not parse_bool(config.get_env(enabled_env), True):
                logger.info(f"  ⊘ Skipping {handler_class.__name__} (disabled via {enabled_env})")
                continue

        try:
            if "downloader" in inspect.signature(handler_class.__init__).parameters:
                handler = handler_class(config, downloader=downloader)
            else:
                handler = handler_class(config)
        except Exception as e:
            logger.error(f"  ✗ Failed to initialize {handler_class.__name__}: {e}")
            continue

        if handler_name:
            priority_env = f"{handler_name}_PRIORITY"
            priority_str = config.get_env(priority_env)
            if priority_str:
                try:
                    handler.priority = max(0, min(100, int(priority_str)))
                    logger.debug(f"  Set priority for {handler.name}: {handler.priority}")
                except ValueError:
                    logger.warning(f"  Invalid priority for {handler.name}: {priority_str}")

        initialized_handlers.append(handler)
        logger.info(f"  ✓ Loaded {handler.name} (priority: {handler.priority})")

    initialized_handlers.sort(key=lambda h: h.priority, reverse=True)

    logger.info("=" * 60)
    logger.info(f"Total handlers loaded: {len(initialized_handlers)}")
    logger.info("=" * 60)

    return initialized_handlers


__all__ = [
    'PipelineContext',
    'PipelineHandler',
    'MessagePipeline',
    'discover_handlers',
    'load_handlers'
]
