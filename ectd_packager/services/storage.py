"""
Path-addressable byte store for uploaded study documents.

All paths handed to the packaging core are relative to the store root;
`get_full_path` is the only place they are joined with the filesystem.
"""

import asyncio
import shutil
from functools import lru_cache
from pathlib import Path

from ectd_packager.config import get_settings


SUBDIRECTORIES = ("source", "processed")


class LocalStorage:
    """Filesystem-backed store rooted at a single directory."""

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def get_full_path(self, relative_path: str) -> Path:
        """Resolve a store-relative path to an absolute filesystem path."""
        return (self.root / relative_path).resolve()

    def ensure_dirs(self) -> None:
        for sub in SUBDIRECTORIES:
            (self.root / sub).mkdir(parents=True, exist_ok=True)

    def iter_chunks(self, relative_path: str, chunk_size: int = 64 * 1024):
        """Yield file content in fixed-size chunks."""
        with open(self.get_full_path(relative_path), "rb") as f:
            while chunk := f.read(chunk_size):
                yield chunk

    async def read_bytes(self, relative_path: str) -> bytes:
        return await asyncio.to_thread(self.get_full_path(relative_path).read_bytes)

    async def write_bytes(self, relative_path: str, data: bytes) -> Path:
        path = self.get_full_path(relative_path)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

        await asyncio.to_thread(_write)
        return path

    async def copy_to(self, relative_path: str, destination: str | Path) -> None:
        """Copy a stored file to an absolute destination outside the store."""
        source = self.get_full_path(relative_path)
        dest = Path(destination)

        def _copy() -> None:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, dest)

        await asyncio.to_thread(_copy)


@lru_cache
def get_storage() -> LocalStorage:
    """Get the cached upload store configured by settings."""
    return LocalStorage(get_settings().upload_dir)
