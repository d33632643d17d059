# tests/test_native_isolated_store.py
"""
Tests for the native isolated store.
"""
import asyncio

import pytest

from portable_fs.errors import QuotaExceededError, StoreClosedError
from portable_fs.file_access.native.isolated_store import IsolatedStore


class TestIsolatedStore:

    @pytest.fixture
    def store(self, tmp_path):
        return IsolatedStore(tmp_path / "store")

    def test_layout(self, store, tmp_path):
        assert (tmp_path / "store" / "files").is_dir()
        assert store.quota is None
        assert store.available_free_space is None

    def test_user_store_scope(self, test_settings):
        store = IsolatedStore.get_user_store_for_application("local", test_settings)
        expected = test_settings.data_root() / "portable_fs" / "isolated" / "tester" / "local"
        assert store.root == expected

    def test_files_and_directories(self, store):
        store.create_directory("a/b")
        store.create_file("a/one.txt")
        store.create_file("a/two.csv")

        assert store.directory_exists("a/b") is True
        assert store.file_exists("a/one.txt") is True
        assert store.file_exists("a/b") is False
        assert sorted(store.get_file_names("a/*")) == ["one.txt", "two.csv"]
        assert store.get_file_names("a/*.csv") == ["two.csv"]
        assert store.get_directory_names("a/*") == ["b"]
        assert store.get_directory_names() == ["a"]

    def test_list_missing_directory(self, store):
        with pytest.raises(FileNotFoundError):
            store.get_file_names("missing/*")

    def test_create_file_collision(self, store):
        store.create_file("x")
        with pytest.raises(FileExistsError):
            store.create_file("x")
        store.create_file("x", overwrite=True)

    def test_move_and_copy(self, store):
        store.create_file("src")
        store.copy_file("src", "copy")
        store.move_file("src", "moved")

        assert store.file_exists("src") is False
        assert store.file_exists("copy") is True
        assert store.file_exists("moved") is True

        with pytest.raises(FileExistsError):
            store.move_file("copy", "moved")
        with pytest.raises(FileExistsError):
            store.copy_file("copy", "moved")

    def test_delete_directory(self, store):
        store.create_directory("d/e")

        with pytest.raises(OSError):
            store.delete_directory("d")
        store.delete_directory("d", recursive=True)
        assert store.directory_exists("d") is False

    def test_root_cannot_be_deleted(self, store):
        with pytest.raises(PermissionError):
            store.delete_directory("", recursive=True)

    def test_escape_denied(self, store):
        with pytest.raises(PermissionError):
            store.file_exists("../outside")

    def test_close(self, store):
        store.close()
        assert store.closed is True
        with pytest.raises(StoreClosedError):
            store.file_exists("x")

    def test_remove(self, store, tmp_path):
        store.create_file("x")
        store.remove()

        assert store.closed is True
        assert not (tmp_path / "store" / "files").exists()


class TestIsolatedStoreQuota:

    @pytest.fixture
    def store(self, tmp_path):
        return IsolatedStore(tmp_path / "store", quota=8)

    def test_increase_quota(self, store):
        with pytest.raises(ValueError):
            store.increase_quota_to(8)

        assert store.increase_quota_to(32) is True
        assert store.quota == 32

    def test_increase_unlimited_quota(self, tmp_path):
        unlimited = IsolatedStore(tmp_path / "unlimited")
        assert unlimited.increase_quota_to(100) is False

    @pytest.mark.asyncio
    async def test_stream_quota(self, store):
        store.create_file("f")
        stream = await store.open_file("f", "r+b")
        try:
            await stream.write(b"12345678")
            with pytest.raises(QuotaExceededError):
                await stream.write(b"9")
            # Overwriting in place does not grow the file
            await stream.seek(0)
            await stream.write(b"abcd")
        finally:
            await stream.close()

        assert store.used_size == 8
        assert store.available_free_space == 0

    @pytest.mark.asyncio
    async def test_concurrent_stream_writes_respect_quota(self, tmp_path):
        store = IsolatedStore(tmp_path / "shared", quota=1000)
        streams = []
        for index in range(4):
            store.create_file(f"part{index}")
            streams.append(await store.open_file(f"part{index}", "r+b"))

        try:
            results = await asyncio.gather(
                *(stream.write(b"x" * 400) for stream in streams),
                return_exceptions=True
            )
        finally:
            for stream in streams:
                await stream.close()

        failures = [r for r in results if isinstance(r, QuotaExceededError)]
        assert len(failures) == 2
        assert store.used_size == 800

    @pytest.mark.asyncio
    async def test_stream_context_manager(self, store):
        store.create_file("f")
        async with await store.open_file("f", "r+b") as stream:
            await stream.write(b"ok")
        assert store.used_size == 2

    @pytest.mark.asyncio
    async def test_open_directory(self, store):
        store.create_directory("d")
        with pytest.raises(IsADirectoryError):
            await store.open_file("d")
