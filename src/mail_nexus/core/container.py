"""Service registry wiring the store, mock dataset and email service."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from typing import Any, TypeVar

T = TypeVar("T")
Factory = Callable[["ServiceContainer"], Any]

LOGGER = logging.getLogger(__name__)


class ServiceContainer:
    """Lazy singleton registry with ordered asynchronous shutdown.

    Services are built on first ``resolve``. ``aclose`` releases them in
    reverse order of construction, so a service is closed before the store
    it was built on.
    """

    def __init__(self) -> None:
        self._factories: dict[str, Factory] = {}
        self._instances: dict[str, Any] = {}

    def register(self, key: str, factory: Callable[[ServiceContainer], T]) -> None:
        """Register ``factory`` under ``key``, dropping any cached instance."""
        self._factories[key] = factory
        self._instances.pop(key, None)

    def register_instance(self, key: str, instance: Any) -> None:
        """Register an already built value under ``key``."""
        self._factories[key] = lambda _container: instance
        self._instances[key] = instance

    def resolve(self, key: str) -> Any:
        if key in self._instances:
            return self._instances[key]
        try:
            factory = self._factories[key]
        except KeyError:
            raise KeyError(f"Service '{key}' is not registered") from None
        instance = factory(self)
        self._instances[key] = instance
        return instance

    def try_resolve(self, key: str) -> Any | None:
        """Resolve ``key``, or return ``None`` when it is not registered."""
        if key not in self._factories and key not in self._instances:
            return None
        return self.resolve(key)

    async def aclose(self) -> None:
        """Close built services newest first and forget them.

        ``close`` may be a plain or a coroutine method. A failing close is
        logged and the remaining services are still closed.
        """
        built = list(self._instances.items())
        self._instances.clear()
        for key, instance in reversed(built):
            closer = getattr(instance, "close", None)
            if not callable(closer):
                continue
            try:
                result = closer()
                if inspect.isawaitable(result):
                    await result
            except Exception:  # pylint: disable=broad-except
                LOGGER.exception("Failed to close service '%s'", key)
                continue
            LOGGER.debug("Closed service '%s'", key)


__all__ = ["ServiceContainer"]
