"""
Key/value storage backend interface for the local entity cache.

Values are opaque strings (JSON documents written by the entity store).
"""

from typing import List, Optional, Protocol


class IStorageBackend(Protocol):
    def get(self, key: str) -> Optional[str]:
        """Return stored value or None when the key is absent"""
        ...

    def set(self, key: str, value: str) -> None:
        """
        Store value under key

        Raises:
            PersistenceError: write could not be completed
        """
        ...

    def remove(self, key: str) -> None:
        """Delete key. Missing keys are ignored."""
        ...

    def keys(self) -> List[str]:
        """All keys currently stored, in no particular order"""
        ...
