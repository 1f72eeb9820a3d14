"""Build the service graph from settings."""

from __future__ import annotations

import logging

from mail_nexus.core.config import AppSettings
from mail_nexus.core.container import ServiceContainer
from mail_nexus.core.datetime_utils import resolve_timezone
from mail_nexus.storage import MockDataProvider, SupabaseStore

from .email_service import EmailService

LOGGER = logging.getLogger(__name__)


def build_container(settings: AppSettings) -> ServiceContainer:
    """Register settings, the store (``None`` when unconfigured) and services."""
    container = ServiceContainer()
    container.register_instance("settings", settings)
    container.register("store", _build_store)
    container.register("mock", lambda _container: MockDataProvider())
    container.register("email_service", _build_email_service)
    return container


def _build_store(container: ServiceContainer) -> SupabaseStore | None:
    settings: AppSettings = container.resolve("settings")
    if not settings.backend.is_configured:
        LOGGER.warning("Backend not configured; serving demo data")
        return None
    return SupabaseStore(settings.backend)


def _build_email_service(container: ServiceContainer) -> EmailService:
    settings: AppSettings = container.resolve("settings")
    return EmailService(
        container.resolve("store"),
        mock=container.resolve("mock"),
        tz=resolve_timezone(settings.timezone),
        stats_function=settings.backend.stats_function,
        send_function=settings.backend.send_function,
    )


__all__ = ["build_container"]
