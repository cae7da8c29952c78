"""Single Alpha Vantage API key kept in the key-value store."""
from __future__ import annotations

from typing import Optional

from stockscan.domain.errors import MissingCredentialError
from stockscan.infrastructure.db.base import KeyValueStore

API_KEY_STORAGE_KEY = "alphaVantageApiKey"


class CredentialStore:
    """Read the stored key, falling back to the environment-provided one."""

    def __init__(self, store: KeyValueStore, *, fallback: Optional[str] = None) -> None:
        self._store = store
        self._fallback = (fallback or "").strip() or None

    def get(self) -> Optional[str]:
        stored = (self._store.get(API_KEY_STORAGE_KEY) or "").strip()
        return stored or self._fallback

    def require(self) -> str:
        key = self.get()
        if not key:
            raise MissingCredentialError()
        return key

    def set(self, api_key: str) -> None:
        cleaned = api_key.strip()
        if not cleaned:
            raise ValueError("API key must not be blank.")
        self._store.set(API_KEY_STORAGE_KEY, cleaned)

    def clear(self) -> None:
        self._store.delete(API_KEY_STORAGE_KEY)

    @property
    def source(self) -> Optional[str]:
        """Where the active key comes from: "store", "env" or None."""
        if (self._store.get(API_KEY_STORAGE_KEY) or "").strip():
            return "store"
        return "env" if self._fallback else None
