from __future__ import annotations
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from config import CACHE_PREFIX

logger = logging.getLogger(__name__)


class LocalCache:
    """Synchronous JSON-file store; every key is namespaced by `prefix`.

    Several caches with different prefixes may share one file. With
    `path=None` the values live in memory only.
    """

    def __init__(self, path: Optional[str] = None, prefix: str = CACHE_PREFIX):
        self.path = Path(path) if path else None
        self.prefix = prefix
        self._memory: Dict[str, Any] = {}

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def _load(self) -> Dict[str, Any]:
        if self.path is None:
            return self._memory
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning("Unreadable cache file %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _dump(self, data: Dict[str, Any]) -> None:
        if self.path is None:
            self._memory = data
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False)
        tmp.replace(self.path)

    def get(self, key: str, default: Any = None) -> Any:
        return self._load().get(self._key(key), default)

    def set(self, key: str, value: Any) -> None:
        data = self._load()
        data[self._key(key)] = value
        self._dump(data)

    def delete(self, key: str) -> None:
        data = self._load()
        if data.pop(self._key(key), None) is not None:
            self._dump(data)

    def __contains__(self, key: str) -> bool:
        return self._key(key) in self._load()
