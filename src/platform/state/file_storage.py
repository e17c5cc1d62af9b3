import os
from pathlib import Path
import tempfile
from typing import List, Optional
from urllib.parse import quote, unquote

from src.platform.exception.exceptions import PersistenceError
from src.platform.logging.loguru_io import Logger


_SUFFIX = '.json'


class FileStorageBackend:
    """
    One file per key under `directory`.

    Writes go to a temp file in the same directory and are renamed into
    place, so a concurrent reader in another process never sees a torn value.
    """

    def __init__(self, *, directory: Path | str) -> None:
        self._directory = Path(directory)

    def _path_for(self, key: str) -> Path:
        return self._directory / f'{quote(key, safe="")}{_SUFFIX}'

    def get(self, key: str) -> Optional[str]:
        try:
            return self._path_for(key).read_text(encoding='utf-8')
        except FileNotFoundError:
            return None
        except OSError as e:
            Logger.base.warning(f'⚠️ [FILE_STORAGE] Failed to read {key}: {e}')
            return None

    def set(self, key: str, value: str) -> None:
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self._directory, suffix='.tmp')
            with os.fdopen(fd, 'w', encoding='utf-8') as fh:
                fh.write(value)
            os.replace(tmp_path, self._path_for(key))
        except OSError as e:
            raise PersistenceError(f'Failed to write {key}: {e}') from e

    def remove(self, key: str) -> None:
        try:
            self._path_for(key).unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(f'Failed to remove {key}: {e}') from e

    def keys(self) -> List[str]:
        if not self._directory.is_dir():
            return []
        return [
            unquote(path.name[: -len(_SUFFIX)])
            for path in self._directory.iterdir()
            if path.name.endswith(_SUFFIX)
        ]
