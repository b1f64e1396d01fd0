"""
Small key/value stores standing in for browser local storage.

Keys used by the ordering core: ``device_id`` and ``table_number``.
"""

from abc import ABC, abstractmethod

DEVICE_ID_KEY = "device_id"
TABLE_NUMBER_KEY = "table_number"


class LocalStorage(ABC):
    @abstractmethod
    def get(self, key: str) -> str | None: ...

    @abstractmethod
    def set(self, key: str, value: str) -> None: ...

    @abstractmethod
    def remove(self, key: str) -> None: ...


class MemoryStorage(LocalStorage):
    """Session-only storage. Values are lost when the process exits."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def remove(self, key: str) -> None:
        self._values.pop(key, None)
