from __future__ import annotations

import threading

from .settings import settings


class ProviderToggle:
    """Process-wide switch for the real directions provider.

    Reads and writes are serialised so a toggle issued from the HTTP layer
    is seen atomically by in-flight requests.
    """

    def __init__(self, enabled: bool = True) -> None:
        self._lock = threading.Lock()
        self._enabled = bool(enabled)

    def is_enabled(self) -> bool:
        with self._lock:
            return self._enabled

    def set_enabled(self, enabled: bool) -> bool:
        """Set the flag and return the previous value."""
        with self._lock:
            previous = self._enabled
            self._enabled = bool(enabled)
            return previous

    def resolve(self, override: bool | None) -> bool:
        if override is not None:
            return bool(override)
        return self.is_enabled()


PROVIDER_TOGGLE = ProviderToggle(settings.use_real_provider)
