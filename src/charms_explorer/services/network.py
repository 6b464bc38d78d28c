"""Active Bitcoin network selection with change subscriptions."""

from __future__ import annotations

import logging
from typing import Callable, List

from charms_explorer.settings.config import SUPPORTED_NETWORKS

LOGGER = logging.getLogger(__name__)

NetworkListener = Callable[[str], None]


class NetworkSelection:
    """Hold the selected network and notify subscribers when it changes.

    Components that keep per-network state (the reference cache) subscribe
    here instead of being reached through module globals.
    """

    def __init__(self, initial: str = "mainnet") -> None:
        self._current = self._validate(initial)
        self._listeners: List[NetworkListener] = []

    @staticmethod
    def _validate(network: str) -> str:
        normalized = (network or "").strip().lower()
        if normalized not in SUPPORTED_NETWORKS:
            raise ValueError(f"Unsupported network '{network}'; expected one of {', '.join(SUPPORTED_NETWORKS)}")
        return normalized

    @property
    def current(self) -> str:
        return self._current

    def set(self, network: str) -> bool:
        """Switch to ``network``.

        Returns:
            ``True`` when the selection changed and subscribers were notified.

        Raises:
            ValueError: If ``network`` is not a supported network name.
        """

        normalized = self._validate(network)
        if normalized == self._current:
            return False
        previous, self._current = self._current, normalized
        LOGGER.info("Network changed from %s to %s", previous, normalized)
        for listener in list(self._listeners):
            try:
                listener(normalized)
            except Exception:
                LOGGER.exception("Network change listener %r failed", listener)
        return True

    def subscribe(self, listener: NetworkListener) -> Callable[[], None]:
        """Register ``listener`` and return a callable that removes it."""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe


__all__ = ["NetworkListener", "NetworkSelection"]
