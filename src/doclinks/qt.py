"""Qt adapters for hosts built on PySide6."""

from __future__ import annotations

import logging
from typing import Any, Callable, Hashable

from .events import EventBus, IdleTick

try:  # pragma: no cover - Qt imports are optional during tests
    from PySide6.QtCore import QTimer, QUrl
    from PySide6.QtGui import QDesktopServices
except Exception:  # pragma: no cover - PySide6 not available
    QTimer = None  # type: ignore[assignment,misc]
    QUrl = None  # type: ignore[assignment,misc]
    QDesktopServices = None  # type: ignore[assignment,misc]

__all__ = ["QtResourceOpener", "IdleRefreshTicker"]

LOGGER = logging.getLogger(__name__)


class QtResourceOpener:
    """Opens resources with the desktop's default handler."""

    def open(self, uri: str) -> bool:
        if QDesktopServices is None or QUrl is None:
            LOGGER.warning("Cannot open %s: PySide6 is not available", uri)
            return False
        opened = bool(QDesktopServices.openUrl(QUrl(uri)))
        if not opened:
            LOGGER.warning("Desktop services could not open %s", uri)
        return opened


class IdleRefreshTicker:
    """Publishes :class:`IdleTick` on a fixed interval while started.

    Hosts without an editor-native idle signal can use this to trigger link
    refreshes; ``interval_ms`` usually comes from
    ``LinkSettings.idle_refresh_interval_ms``.
    """

    def __init__(
        self,
        event_bus: EventBus,
        interval_ms: int,
        *,
        document_provider: Callable[[], Hashable | None] | None = None,
        parent: Any = None,
    ) -> None:
        self._bus = event_bus
        self._interval_ms = max(0, int(interval_ms))
        self._document_provider = document_provider
        self._timer: Any = None
        if QTimer is not None:
            self._timer = QTimer(parent)
            self._timer.setInterval(self._interval_ms)
            self._timer.timeout.connect(self._on_timeout)

    @property
    def interval_ms(self) -> int:
        return self._interval_ms

    def set_interval(self, interval_ms: int) -> None:
        self._interval_ms = max(0, int(interval_ms))
        if self._timer is None:
            return
        self._timer.setInterval(self._interval_ms)
        if self._interval_ms == 0:
            self.stop()

    def start(self) -> bool:
        """Start ticking; returns ``False`` when disabled or Qt is missing."""

        if self._timer is None or self._interval_ms <= 0:
            return False
        self._timer.start()
        return True

    def stop(self) -> None:
        if self._timer is not None:
            self._timer.stop()

    def is_active(self) -> bool:
        return bool(self._timer is not None and self._timer.isActive())

    def _on_timeout(self) -> None:
        document_id = self._document_provider() if self._document_provider is not None else None
        self._bus.publish(IdleTick(document_id=document_id))
