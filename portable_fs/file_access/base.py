# portable_fs/file_access/base.py
"""
Entity contracts for files and folders, and the base backend provider.

Every backend (standard filesystem, isolated storage, managed storage) must
implement these interfaces with identical semantics. Operations that touch
storage are async; attribute getters are plain properties.
"""
import os
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Any, FrozenSet, List, Optional, Union
from urllib.parse import unquote, urlparse
from urllib.request import url2pathname

from portable_fs.errors import InvalidNameError, UnsupportedOperationError


PathInput = Union[str, "os.PathLike[str]"]

# Rejected on every backend so names are portable between them
PATH_SEPARATORS = ("/", "\\")


class Capability(Enum):
    """Optional capabilities an entity may or may not support."""
    NAME = "name"
    FULL_PATH = "full_path"
    DATE_CREATED = "date_created"
    READ_ONLY_ATTRIBUTE = "is_read_only"
    ARCHIVE_ATTRIBUTE = "is_archive"
    TEMPORARY_ATTRIBUTE = "is_temporary"
    ENUMERATE = "enumerate"
    DEEP_ENUMERATION = "deep_enumeration"
    RENAME = "rename"
    DELETE = "delete"


ALL_CAPABILITIES: FrozenSet[Capability] = frozenset(Capability)


def validate_name(name: str) -> str:
    """
    Validate a single file or folder name.

    Args:
        name: Name of a direct child, without any directory component

    Returns:
        The name, unchanged

    Raises:
        InvalidNameError: If the name is empty, whitespace, "." or "..",
            or contains a path separator
    """
    if not isinstance(name, str) or not name.strip():
        raise InvalidNameError("Name must be a non-empty string")
    if any(sep in name for sep in PATH_SEPARATORS):
        raise InvalidNameError(f"Name must not contain a path separator: {name!r}")
    if name in (".", ".."):
        raise InvalidNameError(f"Name must not be a relative path marker: {name!r}")
    return name


def coerce_path(path: PathInput) -> str:
    """
    Turn a path argument into a plain string path.

    Accepts strings, ``os.PathLike`` objects and ``file://`` URIs.

    Raises:
        InvalidNameError: If the path is empty or whitespace
    """
    if isinstance(path, os.PathLike):
        path = os.fspath(path)
    if not isinstance(path, str) or not path.strip():
        raise InvalidNameError("Path must be a non-empty string")
    if path.startswith("file:"):
        parsed = urlparse(path)
        path = url2pathname(unquote(parsed.path))
        if parsed.netloc and parsed.netloc != "localhost":
            path = f"//{parsed.netloc}{path}"
    return path


class StorageEntity(ABC):
    """
    Attributes and operations shared by files and folders.

    The address of an entity is its one mutable field: ``rename`` (and
    ``move`` for files) rebinds the instance to the new location. Other
    instances created earlier keep their own address.
    """

    capabilities: FrozenSet[Capability] = ALL_CAPABILITIES

    def supports(self, capability: Capability) -> bool:
        """Return True if this entity supports the given capability."""
        return capability in self.capabilities

    def _require(self, capability: Capability) -> None:
        if capability not in self.capabilities:
            raise UnsupportedOperationError(
                f"{self.__class__.__name__} does not support {capability.value}"
            )

    @property
    @abstractmethod
    def name(self) -> str:
        """Name of the entry, including any extension."""

    @property
    @abstractmethod
    def full_path(self) -> str:
        """Full path of the entry within its backend."""

    @property
    @abstractmethod
    def is_read_only(self) -> bool:
        pass

    @property
    @abstractmethod
    def is_archive(self) -> bool:
        pass

    @property
    @abstractmethod
    def is_temporary(self) -> bool:
        pass

    @property
    @abstractmethod
    def date_created(self) -> datetime:
        """Creation time as a timezone-aware datetime."""

    @abstractmethod
    async def exists(self) -> bool:
        """
        Check whether the entry currently exists.

        Never raises; any native failure is reported as False.
        """

    @abstractmethod
    async def rename(self, new_name: str) -> None:
        """
        Rename the entry and rebind this instance to the new name.

        Raises:
            InvalidNameError: If new_name is not a valid name
            AlreadyExistsError: If an entry named new_name already exists
            NotFoundError: If this entry does not exist
        """

    @abstractmethod
    async def delete(self) -> None:
        """
        Delete the entry (recursively for folders).

        Raises:
            NotFoundError: If the entry does not exist
        """

    def __repr__(self) -> str:
        try:
            where = self.full_path
        except UnsupportedOperationError:
            where = "<root>"
        return f"<{self.__class__.__name__} path={where!r}>"


class File(StorageEntity):
    """A file on any backend."""

    @property
    @abstractmethod
    def extension(self) -> str:
        """Extension including the leading period, or "" if there is none."""

    @abstractmethod
    async def copy(
        self,
        destination: "Folder",
        new_name: Optional[str] = None,
        can_replace: bool = False
    ) -> "File":
        """
        Copy the file into another folder.

        Args:
            destination: Folder receiving the copy
            new_name: Name of the copy; defaults to this file's name
            can_replace: Replace an existing file of the same name

        Returns:
            A new File bound to the copy

        Raises:
            AlreadyExistsError: If the target exists and can_replace is False
            NotFoundError: If this file or the destination does not exist
        """

    @abstractmethod
    async def move(
        self,
        destination: "Folder",
        new_name: Optional[str] = None,
        can_replace: bool = False
    ) -> "File":
        """
        Move the file into another folder.

        This instance is rebound to the new location, and a new File bound to
        it is returned as well.

        Raises:
            AlreadyExistsError: If the target exists and can_replace is False;
                the source is left untouched
            PartialMoveError: If the copy succeeded but the source could not
                be deleted (backends without a native move)
        """

    @abstractmethod
    async def open(self, for_writing: bool = False) -> Any:
        """
        Open the file as an async binary stream positioned at the start.

        The stream grants exclusive access by contract; close it before any
        other operation on the same file.

        Args:
            for_writing: Open for reading and writing instead of reading only

        Returns:
            An aiofiles-style async file object

        Raises:
            NotFoundError: If the file does not exist
        """

    @abstractmethod
    async def open_sequential_read(self) -> Any:
        """Open the file read-only for sequential reading."""


class Folder(StorageEntity):
    """A folder on any backend."""

    @abstractmethod
    async def create_file(self, name: str, can_replace: bool = False) -> File:
        """
        Create an empty file in this folder.

        Raises:
            InvalidNameError: If name is not a valid name
            AlreadyExistsError: If the file exists and can_replace is False
        """

    @abstractmethod
    async def get_or_create_file(self, name: str) -> File:
        pass

    @abstractmethod
    async def get_file(self, name: str) -> File:
        """
        Get an existing file in this folder.

        Raises:
            InvalidNameError: If name is not a valid name
            NotFoundError: If no such file exists
        """

    @abstractmethod
    async def get_files(self) -> List[File]:
        """Files directly inside this folder, in no particular order."""

    @abstractmethod
    async def get_files_deep(self) -> List[File]:
        """
        Files inside this folder at any depth, in no particular order.

        Raises:
            UnsupportedOperationError: If the backend cannot enumerate descendants
        """

    @abstractmethod
    async def create_folder(self, name: str, can_replace: bool = False) -> "Folder":
        """
        Create a subfolder.

        With can_replace, an existing subfolder is deleted recursively first.

        Raises:
            InvalidNameError: If name is not a valid name
            AlreadyExistsError: If the subfolder exists and can_replace is False
        """

    @abstractmethod
    async def get_or_create_folder(self, name: str) -> "Folder":
        pass

    @abstractmethod
    async def get_folder(self, name: str) -> "Folder":
        """
        Get an existing subfolder.

        Raises:
            InvalidNameError: If name is not a valid name
            NotFoundError: If no such subfolder exists
        """

    @abstractmethod
    async def get_folders(self) -> List["Folder"]:
        """Subfolders directly inside this folder, in no particular order."""


class FileSystemProvider(ABC):
    """
    Abstract base class for storage backends.

    A backend resolves absolute paths to entities and supplies the two
    process-wide storage roots. Concrete backends are instantiated with no
    arguments by the resolver in ``portable_fs.file_access.registry``.
    """

    kind: str = "unknown"

    @abstractmethod
    async def get_file_core(self, full_path: str) -> File:
        """
        Get the file at the given path.

        Raises:
            NotFoundError: If the file does not exist
        """

    @abstractmethod
    async def get_folder_core(self, full_path: str) -> Folder:
        """
        Get the folder at the given path.

        Raises:
            NotFoundError: If the folder does not exist
        """

    @property
    @abstractmethod
    def local_storage(self) -> Folder:
        """Folder for persistent data of the current application and user."""

    @property
    @abstractmethod
    def temporary_storage(self) -> Folder:
        """Folder for temporary files of the current application and user."""

    async def get_file(self, full_path: PathInput) -> File:
        return await self.get_file_core(coerce_path(full_path))

    async def get_folder(self, full_path: PathInput) -> Folder:
        return await self.get_folder_core(coerce_path(full_path))

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} kind={self.kind}>"
