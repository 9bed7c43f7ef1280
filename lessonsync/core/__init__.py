"""
lessonsync - Core Module

This module contains configuration, logging and HTTP client setup.
"""

from lessonsync.core.config import get_settings, settings
from lessonsync.core.http_client import close_http_client, create_http_client
from lessonsync.core.logging import setup_logging

__all__ = ["settings", "get_settings", "create_http_client", "close_http_client", "setup_logging"]
