"""Core utilities for configuration, logging, and dependency wiring."""

from .config import AppSettings, BackendSettings, SmtpSettings, load_app_settings
from .container import ServiceContainer
from .interfaces import BackingStore, BackingStoreError
from .logging import configure_logging

__all__ = [
    "AppSettings",
    "BackendSettings",
    "BackingStore",
    "BackingStoreError",
    "ServiceContainer",
    "SmtpSettings",
    "configure_logging",
    "load_app_settings",
]
