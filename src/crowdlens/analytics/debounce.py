"""Trailing debounce on top of the asyncio event loop.

Only the last call within the quiet window fires; each new call restarts
the timer.  :meth:`Debouncer.cancel` drops a pending call so nothing
fires after the owning view is torn down.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class Debouncer:
    def __init__(
        self,
        delay_seconds: float,
        callback: Callable[..., Any],
        *,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self.delay_seconds = max(float(delay_seconds), 0.0)
        self.callback = callback
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None
        self._pending: Optional[Tuple[Tuple[Any, ...], Dict[str, Any]]] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        """Schedule *callback* with these arguments, replacing any pending call.

        Must be called from a thread running the event loop (or with an
        explicit ``loop``).
        """
        self.cancel()
        loop = self._loop or asyncio.get_running_loop()
        self._pending = (args, kwargs)
        self._handle = loop.call_later(self.delay_seconds, self._fire)

    def cancel(self) -> bool:
        if self._handle is None:
            return False
        self._handle.cancel()
        self._handle = None
        self._pending = None
        return True

    def flush(self) -> bool:
        """Run the pending call now instead of waiting for the timer."""
        if self._handle is None:
            return False
        self._handle.cancel()
        self._fire()
        return True

    def _fire(self) -> None:
        pending = self._pending
        self._handle = None
        self._pending = None
        if pending is None:
            return
        args, kwargs = pending
        try:
            self.callback(*args, **kwargs)
        except Exception:
            logger.exception("Debounced callback %r failed", self.callback)
