from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional, Protocol

from .host import HostDocument, Observation

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 1.0


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """The part of asyncio.AbstractEventLoop the watcher uses."""

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle: ...


class ChangeWatcher:
    """
    Debounced structural-change trigger.

    Every change signal cancels the pending timer and starts a new one, so a
    burst of signals produces a single on_change call `delay` seconds after the
    last of them.
    """

    def __init__(
        self,
        document: HostDocument,
        on_change: Callable[[], None],
        delay: float = DEFAULT_DEBOUNCE_SECONDS,
        loop: Optional[Scheduler] = None,
    ) -> None:
        self.document = document
        self.on_change = on_change
        self.delay = delay
        self._loop = loop
        self._observation: Optional[Observation] = None
        self._timer: Optional[TimerHandle] = None

    @property
    def is_watching(self) -> bool:
        return self._observation is not None

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def start(self) -> bool:
        if self._observation is not None:
            return True
        if self._loop is None:
            try:
                self._loop = asyncio.get_running_loop()
            except RuntimeError:
                logger.warning("change_watcher_disabled reason=no_running_loop")
                return False
        self._observation = self.document.observe(self.notify)
        return True

    def notify(self) -> None:
        if self._observation is None:
            return
        if self._timer is not None:
            self._timer.cancel()
        self._timer = self._loop.call_later(self.delay, self._fire)

    def _fire(self) -> None:
        self._timer = None
        if self._observation is None:
            return
        self.on_change()

    def stop(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._observation is not None:
            self._observation.disconnect()
            self._observation = None
