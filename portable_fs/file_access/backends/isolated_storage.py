# portable_fs/file_access/backends/isolated_storage.py
"""
Isolated storage backend.

Wraps an IsolatedStore. Entities address store-relative paths ("reports/q1.csv");
the store root itself is represented by IsolatedFolderRoot, which has no
name, path or timestamp and can be neither renamed nor deleted.

The store exposes no attribute flags and no recursive enumeration, so
read-only/archive/temporary queries and get_files_deep raise
UnsupportedOperationError.
"""
import asyncio
import functools
import posixpath
from abc import abstractmethod
from datetime import datetime
from typing import List, Optional

import structlog

from portable_fs.config import Settings, settings as default_settings
from portable_fs.errors import (
    AlreadyExistsError,
    NotFoundError,
    StorageError,
    UnsupportedOperationError,
    translate_os_errors,
)
from portable_fs.file_access.base import (
    ALL_CAPABILITIES,
    Capability,
    File,
    FileSystemProvider,
    Folder,
    validate_name,
)
from portable_fs.file_access.native.isolated_store import IsolatedStore

logger = structlog.get_logger()


ISOLATED_CAPABILITIES = ALL_CAPABILITIES - {
    Capability.READ_ONLY_ATTRIBUTE,
    Capability.ARCHIVE_ATTRIBUTE,
    Capability.TEMPORARY_ATTRIBUTE,
    Capability.DEEP_ENUMERATION,
}

ROOT_CAPABILITIES = ISOLATED_CAPABILITIES - {
    Capability.NAME,
    Capability.FULL_PATH,
    Capability.DATE_CREATED,
    Capability.RENAME,
    Capability.DELETE,
}


async def _call(func, *args):
    """Run a blocking store call in the default executor."""
    loop = asyncio.get_event_loop()
    return await loop.run_in_executor(None, functools.partial(func, *args))


def _folder_path_in(store: IsolatedStore, folder: Folder) -> str:
    """Store path of a destination folder, which must belong to the same store."""
    if isinstance(folder, IsolatedFolderRoot) and folder._store is store:
        return ""
    if isinstance(folder, IsolatedFolder) and folder._store is store:
        return folder._path
    raise UnsupportedOperationError(
        f"Destination {folder!r} is not a folder of the same isolated store"
    )


class _IsolatedEntryMixin:
    """Store-relative path identity shared by non-root files and folders."""

    capabilities = ISOLATED_CAPABILITIES

    def __init__(self, store: IsolatedStore, path: str):
        self._store = store
        self._path = path

    @property
    def name(self) -> str:
        return posixpath.basename(self._path)

    @property
    def full_path(self) -> str:
        return self._path

    @property
    def is_read_only(self) -> bool:
        raise UnsupportedOperationError("Isolated storage has no read-only attribute")

    @property
    def is_archive(self) -> bool:
        raise UnsupportedOperationError("Isolated storage has no archive attribute")

    @property
    def is_temporary(self) -> bool:
        raise UnsupportedOperationError("Isolated storage has no temporary attribute")

    @property
    def date_created(self) -> datetime:
        with translate_os_errors(self._path):
            return self._store.get_creation_time(self._path)

    def _sibling(self, new_name: str) -> str:
        return posixpath.join(posixpath.dirname(self._path), validate_name(new_name))


class IsolatedFile(_IsolatedEntryMixin, File):
    """A file inside an isolated store."""

    @property
    def extension(self) -> str:
        return posixpath.splitext(self._path)[1]

    async def copy(
        self,
        destination: Folder,
        new_name: Optional[str] = None,
        can_replace: bool = False
    ) -> "IsolatedFile":
        target_name = self.name if new_name is None else validate_name(new_name)
        target = posixpath.join(_folder_path_in(self._store, destination), target_name)

        if target == self._path:
            if not can_replace:
                raise AlreadyExistsError(f"Already exists: {target}")
            return IsolatedFile(self._store, target)

        with translate_os_errors():
            await _call(self._store.copy_file, self._path, target, can_replace)

        logger.debug("isolated_file_copied", source=self._path, destination=target)
        return IsolatedFile(self._store, target)

    async def move(
        self,
        destination: Folder,
        new_name: Optional[str] = None,
        can_replace: bool = False
    ) -> "IsolatedFile":
        target_name = self.name if new_name is None else validate_name(new_name)
        target = posixpath.join(_folder_path_in(self._store, destination), target_name)

        if target == self._path:
            if not can_replace:
                raise AlreadyExistsError(f"Already exists: {target}")
            return IsolatedFile(self._store, target)

        with translate_os_errors():
            if not await _call(self._store.file_exists, self._path):
                raise NotFoundError(f"File not found: {self._path}")
            if can_replace and await _call(self._store.file_exists, target):
                await _call(self._store.delete_file, target)
            await _call(self._store.move_file, self._path, target)

        logger.debug("isolated_file_moved", source=self._path, destination=target)
        self._path = target
        return IsolatedFile(self._store, target)

    async def exists(self) -> bool:
        try:
            return await _call(self._store.file_exists, self._path)
        except (OSError, StorageError) as exc:
            logger.debug("isolated_exists_failed", path=self._path, error=str(exc))
            return False

    async def rename(self, new_name: str) -> None:
        target = self._sibling(new_name)

        with translate_os_errors():
            await _call(self._store.move_file, self._path, target)

        logger.debug("isolated_file_renamed", source=self._path, destination=target)
        self._path = target

    async def delete(self) -> None:
        with translate_os_errors(self._path):
            await _call(self._store.delete_file, self._path)

    async def open(self, for_writing: bool = False):
        with translate_os_errors(self._path):
            return await self._store.open_file(self._path, "r+b" if for_writing else "rb")

    async def open_sequential_read(self):
        return await self.open(for_writing=False)


class _IsolatedFolderBase(Folder):
    """Child operations shared by IsolatedFolder and IsolatedFolderRoot."""

    _store: IsolatedStore

    @property
    @abstractmethod
    def _prefix(self) -> str:
        """Store path of this folder, empty for the store root."""

    def _child(self, name: str) -> str:
        return posixpath.join(self._prefix, validate_name(name))

    async def _ensure_exists(self) -> None:
        if not await self.exists():
            raise NotFoundError(f"Folder not found: {self._prefix or '/'}")

    async def create_file(self, name: str, can_replace: bool = False) -> IsolatedFile:
        path = self._child(name)
        if await _call(self._store.directory_exists, path):
            raise AlreadyExistsError(f"A folder named {name!r} already exists: {path}")
        with translate_os_errors(path):
            await _call(self._store.create_file, path, can_replace)
        return IsolatedFile(self._store, path)

    async def get_or_create_file(self, name: str) -> IsolatedFile:
        path = self._child(name)
        if await _call(self._store.directory_exists, path):
            raise AlreadyExistsError(f"A folder named {name!r} already exists: {path}")
        with translate_os_errors(path):
            await _call(self._store.open_or_create_file, path)
        return IsolatedFile(self._store, path)

    async def get_file(self, name: str) -> IsolatedFile:
        path = self._child(name)
        if not await _call(self._store.file_exists, path):
            raise NotFoundError(f"File not found: {path}")
        return IsolatedFile(self._store, path)

    async def get_files(self) -> List[IsolatedFile]:
        with translate_os_errors(self._prefix or "/"):
            names = await _call(self._store.get_file_names, posixpath.join(self._prefix, "*"))
        return [IsolatedFile(self._store, posixpath.join(self._prefix, name)) for name in names]

    async def get_files_deep(self) -> List[IsolatedFile]:
        raise UnsupportedOperationError("Isolated storage cannot enumerate descendant files")

    async def create_folder(self, name: str, can_replace: bool = False) -> "IsolatedFolder":
        path = self._child(name)
        await self._ensure_exists()

        with translate_os_errors(path):
            if await _call(self._store.directory_exists, path):
                if not can_replace:
                    raise AlreadyExistsError(f"Folder already exists: {path}")
                logger.info("isolated_folder_replaced", path=path)
                await _call(self._store.delete_directory, path, True)
            elif await _call(self._store.file_exists, path):
                raise AlreadyExistsError(f"A file named {name!r} already exists: {path}")
            await _call(self._store.create_directory, path)
        return IsolatedFolder(self._store, path)

    async def get_or_create_folder(self, name: str) -> "IsolatedFolder":
        path = self._child(name)
        await self._ensure_exists()

        if await _call(self._store.file_exists, path):
            raise AlreadyExistsError(f"A file named {name!r} already exists: {path}")
        with translate_os_errors(path):
            await _call(self._store.create_directory, path)
        return IsolatedFolder(self._store, path)

    async def get_folder(self, name: str) -> "IsolatedFolder":
        path = self._child(name)
        if not await _call(self._store.directory_exists, path):
            raise NotFoundError(f"Folder not found: {path}")
        return IsolatedFolder(self._store, path)

    async def get_folders(self) -> List["IsolatedFolder"]:
        with translate_os_errors(self._prefix or "/"):
            names = await _call(self._store.get_directory_names, posixpath.join(self._prefix, "*"))
        return [IsolatedFolder(self._store, posixpath.join(self._prefix, name)) for name in names]


class IsolatedFolder(_IsolatedEntryMixin, _IsolatedFolderBase):
    """A folder inside an isolated store."""

    @property
    def _prefix(self) -> str:
        return self._path

    async def exists(self) -> bool:
        try:
            return await _call(self._store.directory_exists, self._path)
        except (OSError, StorageError) as exc:
            logger.debug("isolated_exists_failed", path=self._path, error=str(exc))
            return False

    async def rename(self, new_name: str) -> None:
        target = self._sibling(new_name)

        with translate_os_errors():
            await _call(self._store.move_directory, self._path, target)

        logger.debug("isolated_folder_renamed", source=self._path, destination=target)
        self._path = target

    async def delete(self) -> None:
        with translate_os_errors(self._path):
            await _call(self._store.delete_directory, self._path, True)


class IsolatedFolderRoot(_IsolatedFolderBase):
    """
    The top level of an isolated store.

    Only child operations are available; the root has no name, path,
    creation time or attributes and cannot be renamed or deleted.
    """

    capabilities = ROOT_CAPABILITIES

    def __init__(self, store: IsolatedStore):
        self._store = store

    @property
    def _prefix(self) -> str:
        return ""

    @property
    def name(self) -> str:
        raise UnsupportedOperationError("The isolated store root has no name")

    @property
    def full_path(self) -> str:
        raise UnsupportedOperationError("The isolated store root has no path")

    @property
    def is_read_only(self) -> bool:
        raise UnsupportedOperationError("Isolated storage has no read-only attribute")

    @property
    def is_archive(self) -> bool:
        raise UnsupportedOperationError("Isolated storage has no archive attribute")

    @property
    def is_temporary(self) -> bool:
        raise UnsupportedOperationError("Isolated storage has no temporary attribute")

    @property
    def date_created(self) -> datetime:
        raise UnsupportedOperationError("The isolated store root has no creation time")

    async def exists(self) -> bool:
        return not self._store.closed

    async def rename(self, new_name: str) -> None:
        raise UnsupportedOperationError("The isolated store root cannot be renamed")

    async def delete(self) -> None:
        raise UnsupportedOperationError("The isolated store root cannot be deleted")


class IsolatedStorageProvider(FileSystemProvider):
    """
    Isolated storage provider.

    Opens two stores for the current application and user: "local" backs
    local storage and "temporary" backs temporary storage. Paths passed to
    get_file/get_folder are store paths inside local storage ("/" is the root).
    """

    kind = "isolated_storage"

    def __init__(self, config: Optional[Settings] = None):
        self.settings = config or default_settings
        self.local_store = IsolatedStore.get_user_store_for_application("local", self.settings)
        self.temporary_store = IsolatedStore.get_user_store_for_application("temporary", self.settings)

        logger.info(
            "isolated_provider_initialized",
            local=str(self.local_store.root),
            temporary=str(self.temporary_store.root)
        )

    @staticmethod
    def _store_path(full_path: str) -> str:
        return full_path.replace("\\", "/").strip("/")

    async def get_file_core(self, full_path: str) -> IsolatedFile:
        path = self._store_path(full_path)
        if not path or not await _call(self.local_store.file_exists, path):
            raise NotFoundError(f"File not found: {full_path}")
        return IsolatedFile(self.local_store, path)

    async def get_folder_core(self, full_path: str) -> Folder:
        path = self._store_path(full_path)
        if not path:
            return self.local_storage
        if not await _call(self.local_store.directory_exists, path):
            raise NotFoundError(f"Folder not found: {full_path}")
        return IsolatedFolder(self.local_store, path)

    @property
    def local_storage(self) -> IsolatedFolderRoot:
        return IsolatedFolderRoot(self.local_store)

    @property
    def temporary_storage(self) -> IsolatedFolderRoot:
        return IsolatedFolderRoot(self.temporary_store)

    def close(self) -> None:
        """End the session of both stores."""
        self.local_store.close()
        self.temporary_store.close()
