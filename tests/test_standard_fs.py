# tests/test_standard_fs.py
"""
Tests for the standard filesystem backend.
"""
import os
import stat
from datetime import datetime
from pathlib import Path
from unittest.mock import patch

import pytest

from portable_fs.errors import (
    AlreadyExistsError,
    InvalidNameError,
    NotFoundError,
    PartialMoveError,
    UnsupportedOperationError,
)
from portable_fs.file_access.backends.standard_fs import (
    HAS_FILE_ATTRIBUTES,
    StandardFile,
    StandardFileSystemProvider,
    StandardFolder,
)
from portable_fs.file_access.base import Capability

from conftest import read_bytes, write_bytes


class TestStandardFileSystemProvider:
    """Tests for StandardFileSystemProvider."""

    @pytest.fixture
    def provider(self, test_settings):
        return StandardFileSystemProvider(test_settings)

    @pytest.mark.asyncio
    async def test_get_file_by_absolute_path(self, provider, tmp_path):
        path = tmp_path / "hello.txt"
        path.write_bytes(b"hello")

        file = await provider.get_file(str(path))
        assert isinstance(file, StandardFile)
        assert file.full_path == str(path)
        assert await read_bytes(file) == b"hello"

    @pytest.mark.asyncio
    async def test_get_file_accepts_pathlike_and_uri(self, provider, tmp_path):
        path = tmp_path / "with space.txt"
        path.write_bytes(b"")

        by_pathlike = await provider.get_file(path)
        by_uri = await provider.get_file(path.as_uri())
        assert by_pathlike.full_path == str(path)
        assert by_uri.full_path == str(path)

    @pytest.mark.asyncio
    async def test_get_missing_entries(self, provider, tmp_path):
        with pytest.raises(NotFoundError):
            await provider.get_file(str(tmp_path / "nope.txt"))
        with pytest.raises(NotFoundError):
            await provider.get_folder(str(tmp_path / "nope"))

    @pytest.mark.asyncio
    async def test_relative_and_empty_paths_rejected(self, provider):
        with pytest.raises(InvalidNameError):
            await provider.get_file("relative/file.txt")
        with pytest.raises(InvalidNameError):
            await provider.get_folder("")

    @pytest.mark.asyncio
    async def test_folder_is_not_a_file(self, provider, tmp_path):
        with pytest.raises(NotFoundError):
            await provider.get_file(str(tmp_path))

    def test_storage_roots_created_on_access(self, provider, test_settings):
        temporary = provider.temporary_storage
        local = provider.local_storage

        assert Path(temporary.full_path) == test_settings.temp_root() / "portable_fs"
        assert Path(local.full_path) == test_settings.data_root() / "portable_fs" / "local"
        assert Path(temporary.full_path).is_dir()
        assert Path(local.full_path).is_dir()

        # Idempotent
        assert provider.temporary_storage.full_path == temporary.full_path

    @pytest.mark.asyncio
    async def test_entities_use_provider_settings(self, test_settings, tmp_path):
        config = test_settings.model_copy(update={"COPY_CHUNK_SIZE": 3})
        provider = StandardFileSystemProvider(config)
        folder = await provider.get_folder(tmp_path)

        source = await folder.create_file("chunked.bin")
        await write_bytes(source, b"0123456789")
        target = await folder.create_folder("out")
        copy = await source.copy(target)

        assert folder.settings is config
        assert source.settings is config
        assert copy.settings is config
        assert copy.settings.COPY_CHUNK_SIZE == 3
        assert await read_bytes(copy) == b"0123456789"


class TestStandardFile:
    """Tests for StandardFile attributes and operations."""

    @pytest.fixture
    def folder(self, tmp_path):
        return StandardFolder(tmp_path)

    @pytest.mark.asyncio
    async def test_attributes(self, folder, tmp_path):
        file = await folder.create_file("notes.md")

        assert file.name == "notes.md"
        assert file.extension == ".md"
        assert file.full_path == str(tmp_path / "notes.md")
        assert isinstance(file.date_created, datetime)
        assert file.date_created.tzinfo is not None
        assert file.is_read_only is False

    @pytest.mark.asyncio
    async def test_no_extension(self, folder):
        file = await folder.create_file("Makefile")
        assert file.extension == ""

    @pytest.mark.skipif(os.name == "nt" or os.geteuid() == 0,
                        reason="permission bits are not enforced for this user")
    @pytest.mark.asyncio
    async def test_read_only_from_permissions(self, folder, tmp_path):
        file = await folder.create_file("locked.txt")
        os.chmod(tmp_path / "locked.txt", stat.S_IRUSR)
        try:
            file.refresh()
            assert file.is_read_only is True
        finally:
            os.chmod(tmp_path / "locked.txt", stat.S_IRUSR | stat.S_IWUSR)

    @pytest.mark.skipif(HAS_FILE_ATTRIBUTES, reason="archive attribute exists on this platform")
    @pytest.mark.asyncio
    async def test_archive_and_temporary_unsupported_without_attributes(self, folder):
        file = await folder.create_file("plain.txt")

        assert file.supports(Capability.ARCHIVE_ATTRIBUTE) is False
        with pytest.raises(UnsupportedOperationError):
            file.is_archive
        with pytest.raises(UnsupportedOperationError):
            file.is_temporary

    @pytest.mark.asyncio
    async def test_copy_is_independent(self, folder):
        source = await folder.create_file("a.txt")
        await write_bytes(source, b"original")

        copy = await source.copy(folder, "b.txt")
        await write_bytes(copy, b"CHANGED!")

        assert await read_bytes(source) == b"original"

    @pytest.mark.asyncio
    async def test_copy_onto_itself(self, folder):
        source = await folder.create_file("self.txt")
        await write_bytes(source, b"keep")

        with pytest.raises(AlreadyExistsError):
            await source.copy(folder)

        same = await source.copy(folder, can_replace=True)
        assert same.full_path == source.full_path
        assert await read_bytes(source) == b"keep"

    @pytest.mark.asyncio
    async def test_copy_into_missing_folder(self, folder, tmp_path):
        source = await folder.create_file("a.txt")
        missing = StandardFolder(tmp_path / "missing")

        with pytest.raises(NotFoundError):
            await source.copy(missing)

    @pytest.mark.asyncio
    async def test_move_reports_partial_failure(self, folder, tmp_path):
        target = await folder.create_folder("target")
        source = await folder.create_file("stuck.txt")
        await write_bytes(source, b"both")

        with patch("portable_fs.file_access.backends.standard_fs.aiofiles.os.remove",
                   side_effect=PermissionError("denied")):
            with pytest.raises(PartialMoveError) as exc_info:
                await source.move(target)

        assert exc_info.value.destination.full_path == str(tmp_path / "target" / "stuck.txt")
        assert (tmp_path / "stuck.txt").exists()
        assert (tmp_path / "target" / "stuck.txt").read_bytes() == b"both"
        # Source instance was not rebound
        assert source.full_path == str(tmp_path / "stuck.txt")

    @pytest.mark.asyncio
    async def test_rename_to_existing_folder_name(self, folder):
        file = await folder.create_file("x")
        await folder.create_folder("y")

        with pytest.raises(AlreadyExistsError):
            await file.rename("y")

    @pytest.mark.asyncio
    async def test_delete_missing(self, tmp_path):
        with pytest.raises(NotFoundError):
            await StandardFile(tmp_path / "ghost.txt").delete()

    @pytest.mark.asyncio
    async def test_open_for_writing_starts_at_zero(self, folder):
        file = await folder.create_file("pos.bin")
        await write_bytes(file, b"abcdef")

        stream = await file.open(for_writing=True)
        try:
            assert await stream.tell() == 0
            await stream.write(b"XY")
        finally:
            await stream.close()

        assert await read_bytes(file) == b"XYcdef"


class TestStandardFolder:
    """Tests for StandardFolder operations."""

    @pytest.fixture
    def folder(self, tmp_path):
        return StandardFolder(tmp_path)

    @pytest.mark.asyncio
    async def test_get_files_deep(self, folder):
        a = await folder.create_folder("a")
        b = await a.create_folder("b")
        await folder.create_file("top.txt")
        await a.create_file("mid.txt")
        await b.create_file("bottom.txt")

        names = sorted(f.name for f in await folder.get_files_deep())
        assert names == ["bottom.txt", "mid.txt", "top.txt"]

    @pytest.mark.asyncio
    async def test_enumerate_missing_folder(self, tmp_path):
        missing = StandardFolder(tmp_path / "missing")

        with pytest.raises(NotFoundError):
            await missing.get_files()
        with pytest.raises(NotFoundError):
            await missing.get_files_deep()

    @pytest.mark.asyncio
    async def test_create_file_over_folder(self, folder):
        await folder.create_folder("taken")

        with pytest.raises(AlreadyExistsError):
            await folder.create_file("taken", can_replace=True)
        with pytest.raises(AlreadyExistsError):
            await folder.get_or_create_file("taken")

    @pytest.mark.asyncio
    async def test_get_or_create_folder_over_file(self, folder):
        await folder.create_file("taken")

        with pytest.raises(AlreadyExistsError):
            await folder.get_or_create_folder("taken")

    @pytest.mark.asyncio
    async def test_create_folder_in_deleted_parent(self, folder):
        parent = await folder.create_folder("parent")
        await parent.delete()

        with pytest.raises(NotFoundError):
            await parent.create_folder("child")
        with pytest.raises(NotFoundError):
            await parent.create_file("child.txt")

    @pytest.mark.asyncio
    async def test_rename_folder_taken(self, folder):
        a = await folder.create_folder("a")
        await folder.create_folder("b")

        with pytest.raises(AlreadyExistsError):
            await a.rename("b")
        assert a.name == "a"
