"""
MD5 checksums for eCTD leaf entries.

eCTD fixes the algorithm to MD5, lowercase hex. Paths are relative to the
upload store.
"""

import asyncio
import hashlib
import logging

from ectd_packager.config import get_settings
from ectd_packager.services.storage import LocalStorage, get_storage

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class ChecksumError(Exception):
    """Raised when a file cannot be hashed."""


def _md5_stream(storage: LocalStorage, file_path: str) -> str:
    digest = hashlib.md5()
    for chunk in storage.iter_chunks(file_path, CHUNK_SIZE):
        digest.update(chunk)
    return digest.hexdigest().lower()


async def calculate_md5(file_path: str, storage: LocalStorage | None = None) -> str:
    """
    Stream a stored file through MD5 without loading it into memory.

    Raises:
        ChecksumError: If the file cannot be read
    """
    storage = storage or get_storage()
    try:
        return await asyncio.to_thread(_md5_stream, storage, file_path)
    except OSError as e:
        raise ChecksumError(f"Failed to calculate checksum for {file_path}: {e}") from e


def calculate_md5_from_buffer(data: bytes) -> str:
    return hashlib.md5(data).hexdigest().lower()


async def calculate_checksums(
    file_paths: list[str],
    storage: LocalStorage | None = None,
    batch_size: int | None = None,
) -> dict[str, str]:
    """
    Hash many files, a fixed-size batch at a time.

    A file that fails is logged and left out of the result; the rest of the
    batch continues.

    Returns:
        Mapping of file path -> checksum
    """
    storage = storage or get_storage()
    batch_size = batch_size or get_settings().checksum_batch_size
    results: dict[str, str] = {}

    for start in range(0, len(file_paths), batch_size):
        batch = file_paths[start : start + batch_size]
        checksums = await asyncio.gather(
            *(calculate_md5(path, storage) for path in batch),
            return_exceptions=True,
        )
        for path, checksum in zip(batch, checksums):
            if isinstance(checksum, Exception):
                logger.error(f"[Checksum] {checksum}")
                continue
            results[path] = checksum

    return results


async def verify_checksum(
    file_path: str,
    expected_checksum: str,
    storage: LocalStorage | None = None,
) -> bool:
    """Compare a stored file against an expected MD5 (case-insensitive)."""
    try:
        actual = await calculate_md5(file_path, storage)
    except ChecksumError:
        return False
    return actual == expected_checksum.lower()
