from pathlib import Path

from recipe_share.app.storage.base import StorageProvider


class LocalStorageProvider(StorageProvider):
    """Writes under the media root, which the app serves at ``/media``."""

    def __init__(self, media_root: Path):
        self.media_root = media_root
        self.media_root.mkdir(parents=True, exist_ok=True)

    def _path_for(self, key: str) -> Path:
        path = (self.media_root / key).resolve()
        if self.media_root.resolve() not in path.parents:
            raise ValueError(f"Storage key escapes media root: {key}")
        return path

    def save_bytes(self, key: str, data: bytes, content_type: str) -> str:
        destination = self._path_for(key)
        destination.parent.mkdir(parents=True, exist_ok=True)
        with destination.open("wb") as buffer:
            buffer.write(data)
        return f"/media/{key}"
