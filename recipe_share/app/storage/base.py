from abc import ABC, abstractmethod


class StorageProvider(ABC):
    @abstractmethod
    def save_bytes(self, key: str, data: bytes, content_type: str) -> str:  # pragma: no cover - interface
        """Persist ``data`` under ``key`` and return a URL clients can load."""
        raise NotImplementedError
