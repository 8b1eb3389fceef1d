from __future__ import annotations

from pathlib import Path
from urllib.parse import quote

BUCKET = "delivery-proofs"


class ObjectExistsError(FileExistsError):
    """Raised when an upload would replace an existing object."""


class LocalObjectStorage:
    """Bucket directories on local disk served under a public base URL."""

    def __init__(self, root: str | Path, public_base_url: str) -> None:
        self.root = Path(root).expanduser()
        self.public_base_url = public_base_url.rstrip("/")

    def _object_path(self, bucket: str, name: str) -> Path:
        if not name or "/" in name or "\\" in name or name in {".", ".."}:
            raise ValueError(f"invalid object name: {name!r}")
        return self.root / bucket / name

    def upload(self, bucket: str, name: str, data: bytes) -> Path:
        path = self._object_path(bucket, name)
        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with path.open("xb") as handle:
                handle.write(data)
        except FileExistsError as exc:
            raise ObjectExistsError(f"{bucket}/{name} already exists") from exc
        return path

    def public_url(self, bucket: str, name: str) -> str:
        return f"{self.public_base_url}/{quote(bucket)}/{quote(name)}"

    def remove(self, bucket: str, name: str) -> None:
        self._object_path(bucket, name).unlink(missing_ok=True)
