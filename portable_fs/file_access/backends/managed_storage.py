# portable_fs/file_access/backends/managed_storage.py
"""
Managed storage backend.

Wraps StorageFile/StorageFolder handles from the managed storage API.
Collisions are never pre-checked here: can_replace is translated into a
collision option and the native call resolves the collision itself.
"""
import os
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import structlog

from portable_fs.config import Settings, settings as default_settings
from portable_fs.errors import InvalidNameError, translate_os_errors
from portable_fs.file_access.base import File, FileSystemProvider, Folder, validate_name
from portable_fs.file_access.native.managed_api import (
    ApplicationData,
    CreationCollisionOption,
    FileAccessMode,
    FileAttributes,
    NameCollisionOption,
    StorageFile,
    StorageFolder,
)

logger = structlog.get_logger()


def _creation_option(can_replace: bool) -> CreationCollisionOption:
    if can_replace:
        return CreationCollisionOption.REPLACE_EXISTING
    return CreationCollisionOption.FAIL_IF_EXISTS


def _name_option(can_replace: bool) -> NameCollisionOption:
    if can_replace:
        return NameCollisionOption.REPLACE_EXISTING
    return NameCollisionOption.FAIL_IF_EXISTS


async def _storage_folder_of(folder: Folder) -> StorageFolder:
    """Native handle for a destination folder, fetched by path if it belongs to another backend."""
    if isinstance(folder, ManagedFolder):
        return folder._folder
    with translate_os_errors(folder.full_path):
        return await StorageFolder.get_folder_from_path(folder.full_path)


class _ManagedEntryMixin:
    """Attributes read from the snapshot carried by the native handle."""

    @property
    def name(self) -> str:
        return self._item.name

    @property
    def full_path(self) -> str:
        return str(self._item.path)

    @property
    def is_read_only(self) -> bool:
        return FileAttributes.READ_ONLY in self._item.attributes

    @property
    def is_archive(self) -> bool:
        return FileAttributes.ARCHIVE in self._item.attributes

    @property
    def is_temporary(self) -> bool:
        return FileAttributes.TEMPORARY in self._item.attributes

    @property
    def date_created(self) -> datetime:
        return self._item.date_created

    async def exists(self) -> bool:
        try:
            await self._item.get_basic_properties()
            return True
        except OSError:
            return False


class ManagedFile(_ManagedEntryMixin, File):
    """A file behind a managed StorageFile handle."""

    def __init__(self, file: StorageFile):
        self._file = file

    @property
    def _item(self) -> StorageFile:
        return self._file

    @property
    def extension(self) -> str:
        return self._file.file_type

    async def copy(
        self,
        destination: Folder,
        new_name: Optional[str] = None,
        can_replace: bool = False
    ) -> "ManagedFile":
        name = self.name if new_name is None else validate_name(new_name)
        folder = await _storage_folder_of(destination)

        with translate_os_errors(self.full_path):
            copied = await self._file.copy(folder, name, _name_option(can_replace))
        return ManagedFile(copied)

    async def move(
        self,
        destination: Folder,
        new_name: Optional[str] = None,
        can_replace: bool = False
    ) -> "ManagedFile":
        name = self.name if new_name is None else validate_name(new_name)
        folder = await _storage_folder_of(destination)

        with translate_os_errors(self.full_path):
            await self._file.move(folder, name, _name_option(can_replace))
            self._file = await folder.get_file(name)
            moved = await folder.get_file(name)
        return ManagedFile(moved)

    async def rename(self, new_name: str) -> None:
        validate_name(new_name)
        new_path = os.path.join(os.path.dirname(self.full_path), new_name)

        with translate_os_errors(self.full_path):
            await self._file.rename(new_name, NameCollisionOption.FAIL_IF_EXISTS)
            self._file = await StorageFile.get_file_from_path(new_path)

    async def delete(self) -> None:
        with translate_os_errors(self.full_path):
            await self._file.delete()

    async def open(self, for_writing: bool = False):
        mode = FileAccessMode.READ_WRITE if for_writing else FileAccessMode.READ
        with translate_os_errors(self.full_path):
            return await self._file.open(mode)

    async def open_sequential_read(self):
        with translate_os_errors(self.full_path):
            return await self._file.open_sequential_read()


class ManagedFolder(_ManagedEntryMixin, Folder):
    """A folder behind a managed StorageFolder handle."""

    def __init__(self, folder: StorageFolder):
        self._folder = folder

    @property
    def _item(self) -> StorageFolder:
        return self._folder

    async def create_file(self, name: str, can_replace: bool = False) -> ManagedFile:
        validate_name(name)
        with translate_os_errors(self.full_path):
            return ManagedFile(await self._folder.create_file(name, _creation_option(can_replace)))

    async def get_or_create_file(self, name: str) -> ManagedFile:
        validate_name(name)
        with translate_os_errors(self.full_path):
            return ManagedFile(
                await self._folder.create_file(name, CreationCollisionOption.OPEN_IF_EXISTS)
            )

    async def get_file(self, name: str) -> ManagedFile:
        validate_name(name)
        with translate_os_errors(os.path.join(self.full_path, name)):
            return ManagedFile(await self._folder.get_file(name))

    async def get_files(self) -> List[ManagedFile]:
        with translate_os_errors(self.full_path):
            return [ManagedFile(f) for f in await self._folder.get_files()]

    async def get_files_deep(self) -> List[ManagedFile]:
        with translate_os_errors(self.full_path):
            return [ManagedFile(f) for f in await self._folder.get_files(deep=True)]

    async def create_folder(self, name: str, can_replace: bool = False) -> "ManagedFolder":
        validate_name(name)
        with translate_os_errors(self.full_path):
            return ManagedFolder(await self._folder.create_folder(name, _creation_option(can_replace)))

    async def get_or_create_folder(self, name: str) -> "ManagedFolder":
        validate_name(name)
        with translate_os_errors(self.full_path):
            return ManagedFolder(
                await self._folder.create_folder(name, CreationCollisionOption.OPEN_IF_EXISTS)
            )

    async def get_folder(self, name: str) -> "ManagedFolder":
        validate_name(name)
        with translate_os_errors(os.path.join(self.full_path, name)):
            return ManagedFolder(await self._folder.get_folder(name))

    async def get_folders(self) -> List["ManagedFolder"]:
        with translate_os_errors(self.full_path):
            return [ManagedFolder(f) for f in await self._folder.get_folders()]

    async def rename(self, new_name: str) -> None:
        validate_name(new_name)
        new_path = os.path.join(os.path.dirname(self.full_path), new_name)

        with translate_os_errors(self.full_path):
            await self._folder.rename(new_name, NameCollisionOption.FAIL_IF_EXISTS)
            self._folder = await StorageFolder.get_folder_from_path(new_path)

    async def delete(self) -> None:
        with translate_os_errors(self.full_path):
            await self._folder.delete()


class ManagedStorageProvider(FileSystemProvider):
    """
    Managed storage provider.

    Absolute paths are resolved through the managed API; local and temporary
    storage are the LocalState and TempState folders of the application.
    """

    kind = "managed_storage"

    def __init__(self, config: Optional[Settings] = None):
        self.settings = config or default_settings
        self.application_data = ApplicationData.for_application(self.settings)
        logger.info("managed_provider_initialized", root=str(self.application_data.root))

    @staticmethod
    def _absolute(full_path: str) -> str:
        if not Path(full_path).is_absolute():
            raise InvalidNameError(f"Path must be absolute: {full_path!r}")
        return full_path

    async def get_file_core(self, full_path: str) -> ManagedFile:
        path = self._absolute(full_path)
        with translate_os_errors(path):
            return ManagedFile(await StorageFile.get_file_from_path(path))

    async def get_folder_core(self, full_path: str) -> ManagedFolder:
        path = self._absolute(full_path)
        with translate_os_errors(path):
            return ManagedFolder(await StorageFolder.get_folder_from_path(path))

    @property
    def local_storage(self) -> ManagedFolder:
        return ManagedFolder(self.application_data.local_folder)

    @property
    def temporary_storage(self) -> ManagedFolder:
        return ManagedFolder(self.application_data.temporary_folder)
