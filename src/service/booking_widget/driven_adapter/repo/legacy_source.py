"""
Legacy candidate sources for the entity store read path.

Each source yields batches of raw records found under pre-envelope storage
keys. The store takes the first batch that normalizes to at least one valid
entity, in the order the sources were given.
"""

from typing import Any, Iterator, List, Protocol

import orjson

from src.platform.state.i_storage_backend import IStorageBackend


def parse_records(raw: str | None) -> List[dict]:
    """Flat JSON array or envelope document → list of record dicts"""
    if raw is None:
        return []
    try:
        document: Any = orjson.loads(raw)
    except orjson.JSONDecodeError:
        return []
    if isinstance(document, dict):
        document = document.get('items')
    if not isinstance(document, list):
        return []
    return [item for item in document if isinstance(item, dict)]


class ILegacySource(Protocol):
    def candidates(self, storage: IStorageBackend) -> Iterator[List[dict]]:
        """Yield candidate record batches, most preferred first"""
        ...

    def matches(self, key: str) -> bool:
        """Whether a change to storage key concerns this source"""
        ...


class FlatArrayKeySource:
    """Single key holding a bare JSON array (or an older envelope)"""

    def __init__(self, key: str) -> None:
        self.key = key

    def candidates(self, storage: IStorageBackend) -> Iterator[List[dict]]:
        records = parse_records(storage.get(self.key))
        if records:
            yield records

    def matches(self, key: str) -> bool:
        return key == self.key

    def __repr__(self) -> str:
        return f'FlatArrayKeySource({self.key!r})'


class PrefixedKeySource:
    """Scope-prefixed keys such as `bookingtms_games_<org id>`, scanned in key order"""

    def __init__(self, prefix: str) -> None:
        self.prefix = prefix

    def candidates(self, storage: IStorageBackend) -> Iterator[List[dict]]:
        for key in sorted(k for k in storage.keys() if self.matches(k)):
            records = parse_records(storage.get(key))
            if records:
                yield records

    def matches(self, key: str) -> bool:
        return key.startswith(self.prefix)

    def __repr__(self) -> str:
        return f'PrefixedKeySource({self.prefix!r})'
