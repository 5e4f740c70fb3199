from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from bgremover.config import settings


class LocalObjectStorage:
    """Key/value store of result files under a root directory."""

    def __init__(self, root: str | Path | None = None) -> None:
        self._root = Path(root or settings.output_dir).resolve()

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, key: str) -> Path:
        path = (self._root / key).resolve()
        if path != self._root and self._root not in path.parents:
            raise ValueError(f"Key escapes storage root: {key}")
        return path

    def put_bytes(self, key: str, data: bytes) -> Path:
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return path

    def get_bytes(self, key: str) -> bytes:
        return self.path_for(key).read_bytes()

    def delete_object(self, key: str) -> None:
        self.path_for(key).unlink(missing_ok=True)

    def iter_job_objects(self, prefix: str = "jobs/") -> list[dict[str, datetime | str]]:
        base = self.path_for(prefix)
        if not base.is_dir():
            return []

        items: list[dict[str, datetime | str]] = []
        for path in sorted(base.rglob("*")):
            if not path.is_file():
                continue
            modified = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
            items.append({"key": path.relative_to(self._root).as_posix(), "last_modified": modified})
        return items
