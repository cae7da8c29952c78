"""Key-value storage capability shared by the credential and cache layers."""
from __future__ import annotations

from typing import List, Optional, Protocol


class KeyValueStore(Protocol):
    """String-to-string storage with get/set/delete and prefix listing."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def keys(self, prefix: str = "") -> List[str]:
        ...
