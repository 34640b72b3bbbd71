"""Tests for the local upload store."""

import asyncio

from ectd_packager.services.storage import LocalStorage, get_storage


class TestLocalStorage:
    """Test the byte store used by the packaging core."""

    def test_paths_resolve_under_root(self, tmp_path):
        """Test relative paths are joined onto the store root."""
        store = LocalStorage(tmp_path / "uploads")
        assert store.get_full_path("source/a.pdf") == (tmp_path / "uploads" / "source" / "a.pdf").resolve()

    def test_ensure_dirs(self, tmp_path):
        """Test the source and processed folders are created."""
        store = LocalStorage(tmp_path)
        store.ensure_dirs()
        assert (tmp_path / "source").is_dir()
        assert (tmp_path / "processed").is_dir()

    def test_write_read_and_chunks(self, tmp_path):
        """Test written bytes read back whole and in chunks."""
        store = LocalStorage(tmp_path)
        data = b"0123456789" * 10

        path = asyncio.run(store.write_bytes("processed/nested/data.bin", data))

        assert path.is_file()
        assert asyncio.run(store.read_bytes("processed/nested/data.bin")) == data
        chunks = list(store.iter_chunks("processed/nested/data.bin", chunk_size=32))
        assert [len(chunk) for chunk in chunks] == [32, 32, 32, 4]
        assert b"".join(chunks) == data

    def test_copy_to_outside_store(self, tmp_path):
        """Test a stored file is copied to a new directory tree."""
        store = LocalStorage(tmp_path / "uploads")
        asyncio.run(store.write_bytes("source/a.pdf", b"%PDF-1.7"))

        destination = tmp_path / "export" / "m5" / "a.pdf"
        asyncio.run(store.copy_to("source/a.pdf", destination))

        assert destination.read_bytes() == b"%PDF-1.7"

    def test_get_storage_follows_settings(self, app_settings):
        """Test the cached store is rooted at the configured upload dir."""
        assert get_storage().root == LocalStorage(app_settings.upload_dir).root
        assert get_storage() is get_storage()
