"""
Client-side persistence: a string key/value store with same-process change events, and the
versioned section cache built on top of it.
"""

from __future__ import annotations

import json
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from src.news.cache import now_ms
from src.news.types import Section

LOGGER = logging.getLogger(__name__)

Listener = Callable[[Any], None]
STORAGE_EVT = "storage"


class LocalStore:
    """Last-write-wins string store, optionally mirrored to a JSON file.

    Every write publishes the key as an event; `reload()` re-reads the file and publishes
    `storage` so listeners can pick up writes made by another process.
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = path
        self._values: Dict[str, str] = {}
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)
        if path is not None:
            self._values = self._read_file()

    def _read_file(self) -> Dict[str, str]:
        if self.path is None or not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (OSError, json.JSONDecodeError):
            LOGGER.warning("Failed to read client store %s; starting empty.", self.path, exc_info=True)
            return {}
        if not isinstance(payload, dict):
            return {}
        return {str(key): str(value) for key, value in payload.items()}

    def _flush(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as handle:
            json.dump(self._values, handle, indent=2, ensure_ascii=False)
        tmp_path.replace(self.path)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = str(value)
        self._flush()

    def remove(self, key: str) -> None:
        if self._values.pop(key, None) is not None:
            self._flush()

    def keys(self, prefix: str = "") -> List[str]:
        return [key for key in self._values if key.startswith(prefix)]

    def get_json(self, key: str, default: Any = None) -> Any:
        raw = self._values.get(key)
        if not raw:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            LOGGER.debug("Ignoring malformed JSON under %s", key)
            return default

    def set_json(self, key: str, value: Any) -> None:
        self.set(key, json.dumps(value, ensure_ascii=False))

    def subscribe(self, event: str, listener: Listener) -> Callable[[], None]:
        self._listeners[event].append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners[event]:
                self._listeners[event].remove(listener)

        return unsubscribe

    def publish(self, event: str, detail: Any = None) -> None:
        for listener in list(self._listeners.get(event, ())):
            listener(detail)

    def reload(self) -> None:
        if self.path is None:
            return
        self._values = self._read_file()
        self.publish(STORAGE_EVT)


@dataclass
class CachedSections:
    sections: List[Section] = field(default_factory=list)
    version: int = 0
    saved_at: int = 0


def _as_int(value: Any) -> int:
    try:
        return int(float(value or 0))
    except (TypeError, ValueError):
        return 0


class VersionedCache:
    """Prefixed section cache whose entries expire by TTL or a global reset timestamp.

    Versions are the server's `meta.fetchedAt`. `accept()` tracks the newest version applied per
    key and refuses anything that is not strictly newer.
    """

    def __init__(
        self,
        store: LocalStore,
        prefix: str,
        ttl_ms: int,
        reset_key: Optional[str] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.store = store
        self.prefix = prefix
        self.ttl_ms = ttl_ms
        self.reset_key = reset_key
        self._clock = clock
        self._applied: Dict[str, int] = {}

    def storage_key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def read(self, key: str) -> Optional[CachedSections]:
        parsed = self.store.get_json(self.storage_key(key))
        if not isinstance(parsed, dict) or not isinstance(parsed.get("sections"), list):
            return None
        saved_at = _as_int(parsed.get("savedAt"))
        if self.reset_key:
            reset_at = _as_int(self.store.get(self.reset_key))
            if reset_at and reset_at > saved_at:
                return None
        if self._clock() - saved_at > self.ttl_ms:
            return None
        return CachedSections(
            sections=[Section.from_dict(item) for item in parsed["sections"] if isinstance(item, dict)],
            version=_as_int(parsed.get("version")),
            saved_at=saved_at,
        )

    def write(self, key: str, sections: List[Section], version: int) -> bool:
        if not key or not sections:
            return False
        existing = self.store.get_json(self.storage_key(key))
        if isinstance(existing, dict):
            stored_version = _as_int(existing.get("version"))
            if version and stored_version > version:
                LOGGER.debug("Not overwriting %s v%s with older v%s", key, stored_version, version)
                return False
        self.store.set_json(
            self.storage_key(key),
            {
                "savedAt": self._clock(),
                "version": int(version or 0),
                "sections": [section.to_serializable() for section in sections],
            },
        )
        return True

    def applied_version(self, key: str) -> int:
        return self._applied.get(key, 0)

    def is_newer(self, key: str, version: int) -> bool:
        current = self._applied.get(key, 0)
        return not (current and version and version <= current)

    def accept(self, key: str, version: int) -> bool:
        """Record `version` as applied for `key` unless it is stale."""
        if not self.is_newer(key, version):
            LOGGER.debug("Skipping stale version %s for %s (applied %s)", version, key, self._applied.get(key))
            return False
        self._applied[key] = int(version or 0)
        return True

    def set_applied(self, key: str, version: int) -> None:
        self._applied[key] = int(version or 0)

    def forget(self, key: Optional[str] = None) -> None:
        if key is None:
            self._applied.clear()
        else:
            self._applied.pop(key, None)

    def purge(self) -> int:
        keys = self.store.keys(self.prefix)
        for key in keys:
            self.store.remove(key)
        return len(keys)
