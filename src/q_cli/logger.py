#!/usr/bin/env python

import logging
from typing import Optional
from rich.console import Console
from rich.logging import RichHandler

from .constants import LOGS_DIR, LOG_FORMAT, LOG_DATE_FORMAT


class QLogger:
    """Centralized logging system for q"""

    _instance: Optional['QLogger'] = None

    def __new__(cls) -> 'QLogger':
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if hasattr(self, '_initialized'):
            return

        self._initialized = True
        self.console = Console(stderr=True)
        self.logger = logging.getLogger("q-cli")
        self.console_handler: Optional[RichHandler] = None
        self._setup_logging()

    def _setup_logging(self):
        """Setup logging configuration"""
        self.logger.setLevel(logging.DEBUG)

        # File handler is best effort: a read-only home must not break queries
        try:
            LOGS_DIR.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(LOGS_DIR / "q-cli.log")
        except OSError:
            file_handler = None

        if file_handler is not None:
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT))
            self.logger.addHandler(file_handler)

        # Console handler with Rich, on stderr so stdout carries only the response
        self.console_handler = RichHandler(
            console=self.console,
            show_time=False,
            show_path=False,
            markup=False
        )
        self.console_handler.setLevel(logging.WARNING)
        self.logger.addHandler(self.console_handler)

        # Prevent propagation to root logger
        self.logger.propagate = False

    def set_console_level(self, level: int):
        """Change how much reaches the terminal (DEBUG with --debug)"""
        if self.console_handler is not None:
            self.console_handler.setLevel(level)

    def debug(self, message: str, **kwargs):
        """Log debug message"""
        self.logger.debug(message, **kwargs)

    def info(self, message: str, **kwargs):
        """Log info message"""
        self.logger.info(message, **kwargs)

    def warning(self, message: str, **kwargs):
        """Log warning message"""
        self.logger.warning(message, **kwargs)

    def error(self, message: str, **kwargs):
        """Log error message"""
        self.logger.error(message, **kwargs)

    def log_api_request(self, model: str, prompt_length: int, response_length: int):
        """Log API request details"""
        self.debug(f"API Request - Model: {model}, Prompt: {prompt_length} chars, Response: {response_length} chars")

    def log_retry(self, attempt: int, delay: float, error: Exception):
        """Log a transient failure that will be retried"""
        self.warning(f"Attempt {attempt} failed ({error}); retrying in {delay:.2f}s")

    def log_cache_event(self, event: str, prompt: str):
        """Log cache hits, misses and stores"""
        self.debug(f"Cache {event} - Prompt: {len(prompt)} chars")


# Global logger instance
logger = QLogger()
