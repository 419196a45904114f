"""Explicit shutdown hook registry."""

from __future__ import annotations

import atexit
import logging
from collections.abc import Callable

logger = logging.getLogger("queued_rate_limit")


class ShutdownHooks:
    """Cleanup callbacks the host application runs at shutdown.

    Rate-limited functions register their ``close`` here when given a registry,
    and deregister it once closed. Nothing runs unless the application calls
    :meth:`run` or opts in with :meth:`install_atexit`.
    """

    def __init__(self) -> None:
        self._callbacks: list[Callable[[], object]] = []
        self._atexit_installed = False

    def __len__(self) -> int:
        return len(self._callbacks)

    def __contains__(self, callback: object) -> bool:
        return callback in self._callbacks

    def register(self, callback: Callable[[], object]) -> None:
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def unregister(self, callback: Callable[[], object]) -> None:
        try:
            self._callbacks.remove(callback)
        except ValueError:
            return

    def run(self) -> None:
        """Run every registered callback, most recent first.

        A failing callback is logged and does not prevent the others from
        running.
        """

        for callback in reversed(list(self._callbacks)):
            try:
                callback()
            except Exception as exc:
                logger.warning(
                    "shutdown hook failed callback=%r error=%s",
                    callback,
                    exc.__class__.__name__,
                )

    def install_atexit(self) -> None:
        if self._atexit_installed:
            return
        atexit.register(self.run)
        self._atexit_installed = True

    def uninstall_atexit(self) -> None:
        if not self._atexit_installed:
            return
        atexit.unregister(self.run)
        self._atexit_installed = False


__all__ = [
    "ShutdownHooks",
]
