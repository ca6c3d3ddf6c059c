"""
LocalStorage - a synchronous string key/value store persisted as one JSON file.

Mirrors browser local storage: values are strings, reads and writes are
immediate, and a missing or unreadable file reads as empty.
"""

import json

from .config import log, STORAGE_FILE


class LocalStorage:
    def __init__(self, path=STORAGE_FILE):
        self._path = path

    def _read_all(self):
        try:
            if not self._path.exists():
                return {}
            data = json.loads(self._path.read_text(encoding="utf-8"))
            return data if isinstance(data, dict) else {}
        except (json.JSONDecodeError, OSError) as e:
            log.warning("Storage file unreadable, treating as empty: %s", e)
            return {}

    def _write_all(self, data):
        self._path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")

    def get_item(self, key):
        value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def set_item(self, key, value):
        data = self._read_all()
        data[key] = str(value)
        self._write_all(data)

    def remove_item(self, key):
        data = self._read_all()
        if key in data:
            del data[key]
            self._write_all(data)


class MemoryStorage:
    """In-process stand-in with the same interface (no persistence)."""

    def __init__(self):
        self._data = {}

    def get_item(self, key):
        return self._data.get(key)

    def set_item(self, key, value):
        self._data[key] = str(value)

    def remove_item(self, key):
        self._data.pop(key, None)
