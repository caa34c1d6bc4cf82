"""Per-provider API key pools with rotation on rate limiting."""

from __future__ import annotations

import logging
import threading
from typing import Protocol

from decision_assistant.config import Settings
from decision_assistant.models import ProviderKind

logger = logging.getLogger(__name__)

# Base slot plus numbered alternates _2 .. _5
MAX_KEY_SLOTS = 5


class CredentialSource(Protocol):
    """Host capability that supplies the ordered API keys of a provider."""

    def keys_for(self, kind: ProviderKind) -> list[str]: ...


class SettingsCredentialSource:
    """Read ``<KIND>_API_KEY`` and ``<KIND>_API_KEY_2`` .. ``_5`` from settings."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def keys_for(self, kind: ProviderKind) -> list[str]:
        keys: list[str] = []
        for slot in range(1, MAX_KEY_SLOTS + 1):
            attr = f"{kind.value}_api_key" if slot == 1 else f"{kind.value}_api_key_{slot}"
            value = getattr(self._settings, attr, "") or ""
            if value.strip():
                keys.append(value.strip())
        return keys


class CredentialPool:
    """Ordered, immutable list of keys with a rotating cursor.

    The cursor is only ever advanced under a lock, so concurrent requests may
    observe a different "next" key but never an out-of-range index.
    """

    def __init__(self, provider: str, keys: list[str] | tuple[str, ...]) -> None:
        self.provider = provider
        self._keys: tuple[str, ...] = tuple(k for k in keys if k)
        self._index = 0
        self._lock = threading.Lock()

    @property
    def size(self) -> int:
        return len(self._keys)

    @property
    def is_configured(self) -> bool:
        return bool(self._keys)

    @property
    def index(self) -> int:
        return self._index

    def current(self) -> str:
        """Return the key under the cursor.

        Raises:
            LookupError: The pool is empty.
        """
        if not self._keys:
            raise LookupError(f"No API keys configured for {self.provider}")
        return self._keys[self._index % len(self._keys)]

    def rotate(self) -> bool:
        """Advance to the next key.

        Returns:
            True if the cursor moved; False when the pool has fewer than two
            keys and the caller must back off instead.
        """
        if len(self._keys) < 2:
            return False
        with self._lock:
            self._index = (self._index + 1) % len(self._keys)
            position = self._index
        logger.info("Switched to %s API key %d/%d", self.provider, position + 1, len(self._keys))
        return True

    def describe(self) -> str:
        """Cursor position for log lines; never exposes key material."""
        return f"key {self._index + 1}/{len(self._keys)}" if self._keys else "no keys"
