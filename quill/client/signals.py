"""Forced sign-out signal: emitted by the refresh coordinator, observed by the session context."""

from __future__ import annotations

import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)

SignOutListener = Callable[[str], None]


class SignOutSignal:
    def __init__(self) -> None:
        self._listeners: list[SignOutListener] = []

    def subscribe(self, listener: SignOutListener) -> Callable[[], None]:
        """Register listener(reason); returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def emit(self, reason: str) -> None:
        logger.info("Forced sign-out: %s", reason)
        for listener in list(self._listeners):
            listener(reason)
