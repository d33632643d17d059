# portable_fs/file_access/native/managed_api.py
"""
Managed storage API: asynchronous, handle-based storage driven by collision options.

Callers never pre-check for existence. Each create/copy/move/rename call
carries a collision option and the API resolves the collision atomically
where the host allows it:
- FAIL_IF_EXISTS file creation uses O_EXCL, folder creation uses mkdir
- FAIL_IF_EXISTS file rename/move links the new name then unlinks the old one,
  falling back to check-then-rename where hard links are unavailable
- GENERATE_UNIQUE_NAME retries "name (2).ext", "name (3).ext", ...

Failures surface as builtin OSError subclasses (FileNotFoundError,
FileExistsError, ...). Handles snapshot their attributes when fetched.
"""
import asyncio
import errno
import functools
import os
import shutil
import stat
from dataclasses import dataclass
from datetime import datetime
from enum import Enum, IntFlag
from itertools import count
from pathlib import Path
from typing import Callable, List, Optional

import aiofiles
import structlog

from portable_fs.config import Settings, settings as default_settings

logger = structlog.get_logger()


class CreationCollisionOption(Enum):
    GENERATE_UNIQUE_NAME = "generate_unique_name"
    REPLACE_EXISTING = "replace_existing"
    FAIL_IF_EXISTS = "fail_if_exists"
    OPEN_IF_EXISTS = "open_if_exists"


class NameCollisionOption(Enum):
    GENERATE_UNIQUE_NAME = "generate_unique_name"
    REPLACE_EXISTING = "replace_existing"
    FAIL_IF_EXISTS = "fail_if_exists"


class FileAccessMode(Enum):
    READ = "rb"
    READ_WRITE = "r+b"


class FileAttributes(IntFlag):
    NORMAL = 0
    READ_ONLY = 0x1
    DIRECTORY = 0x10
    ARCHIVE = 0x20
    TEMPORARY = 0x100


@dataclass(frozen=True)
class BasicProperties:
    size: int
    date_modified: datetime
    item_date: datetime


# Errors that mean "hard links are not available here", not "the rename failed"
_NO_LINK_ERRNOS = {errno.EXDEV, errno.EPERM, errno.EMLINK, errno.ENOTSUP, errno.EOPNOTSUPP}


async def _run(func: Callable, *args):
    loop = asyncio.get_event_loop()
    return await loop.run_in_executor(None, functools.partial(func, *args))


def _check_name(name: str) -> str:
    if not name or "/" in name or "\\" in name or name in (".", ".."):
        raise ValueError(f"Invalid storage item name: {name!r}")
    return name


def _exists_error(path: Path) -> FileExistsError:
    return FileExistsError(errno.EEXIST, "An item with this name already exists", str(path))


def _to_datetime(timestamp: float) -> datetime:
    return datetime.fromtimestamp(timestamp).astimezone()


def _attributes_of(st: os.stat_result) -> FileAttributes:
    attrs = FileAttributes.NORMAL
    native = getattr(st, "st_file_attributes", None)
    if native is not None:
        # Windows reports the same bit values
        for flag in (FileAttributes.READ_ONLY, FileAttributes.ARCHIVE, FileAttributes.TEMPORARY):
            if native & flag:
                attrs |= flag
    elif not st.st_mode & stat.S_IWUSR:
        attrs |= FileAttributes.READ_ONLY
    if stat.S_ISDIR(st.st_mode):
        attrs |= FileAttributes.DIRECTORY
    return attrs


def _unique_path(folder: Path, name: str, attempt: int) -> Path:
    if attempt == 1:
        return folder / name
    if "." in name.lstrip("."):
        stem, ext = name.rsplit(".", 1)
        return folder / f"{stem} ({attempt}).{ext}"
    return folder / f"{name} ({attempt})"


def _claim_unique(folder: Path, name: str, claim: Callable[[Path], None]) -> Path:
    """Call claim() on "name", "name (2)", ... until one does not collide."""
    for attempt in count(1):
        candidate = _unique_path(folder, name, attempt)
        try:
            claim(candidate)
            return candidate
        except FileExistsError:
            continue


def _create_exclusive(path: Path) -> None:
    fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o666)
    os.close(fd)


def _copy_exclusive(source: Path, target: Path) -> None:
    with open(source, "rb") as src, open(target, "xb") as dst:
        shutil.copyfileobj(src, dst)


def _link_no_replace(source: Path, target: Path) -> None:
    """Rename a file, failing with FileExistsError if the target exists."""
    try:
        os.link(source, target)
    except OSError as exc:
        if exc.errno == errno.EXDEV:
            _copy_exclusive(source, target)
        elif exc.errno in _NO_LINK_ERRNOS:
            _rename_checked(source, target)
            return
        else:
            raise
    os.unlink(source)


def _rename_checked(source: Path, target: Path) -> None:
    if os.path.lexists(target):
        raise _exists_error(target)
    os.rename(source, target)


def _replace(source: Path, target: Path) -> None:
    if target.is_dir() and not source.is_dir():
        raise _exists_error(target)
    if source.is_dir() and target.is_dir():
        shutil.rmtree(target)
    try:
        os.replace(source, target)
    except OSError as exc:
        if exc.errno != errno.EXDEV:
            raise
        shutil.move(str(source), str(target))


class StorageItem:
    """Common handle state: the item path and an attribute snapshot."""

    _is_folder = False

    def __init__(self, path: Path, st: os.stat_result):
        self.path = Path(path)
        self._snapshot(st)

    def _snapshot(self, st: os.stat_result) -> None:
        self.attributes = _attributes_of(st)
        self.date_created = _to_datetime(getattr(st, "st_birthtime", None) or st.st_ctime)

    @property
    def name(self) -> str:
        return self.path.name

    @classmethod
    def _stat_kind(cls, path: Path) -> os.stat_result:
        """Stat a path, treating an item of the other kind as missing."""
        st = path.stat()
        if stat.S_ISDIR(st.st_mode) != cls._is_folder:
            kind = "folder" if cls._is_folder else "file"
            raise FileNotFoundError(errno.ENOENT, f"No such {kind}", str(path))
        return st

    @classmethod
    def _from_path(cls, path: Path):
        return cls(path, cls._stat_kind(path))

    def _stat_checked(self) -> os.stat_result:
        return self._stat_kind(self.path)

    async def get_basic_properties(self) -> BasicProperties:
        st = await _run(self._stat_checked)
        return BasicProperties(
            size=st.st_size,
            date_modified=_to_datetime(st.st_mtime),
            item_date=_to_datetime(getattr(st, "st_birthtime", None) or st.st_ctime),
        )

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.path}>"


class StorageFile(StorageItem):
    """Handle to a managed file."""

    @property
    def file_type(self) -> str:
        return self.path.suffix

    @classmethod
    async def get_file_from_path(cls, path: str) -> "StorageFile":
        resolved = Path(path)
        if not resolved.is_absolute():
            raise ValueError(f"Path must be absolute: {path!r}")
        return await _run(cls._from_path, resolved)

    async def copy(
        self,
        destination: "StorageFolder",
        new_name: Optional[str] = None,
        option: NameCollisionOption = NameCollisionOption.FAIL_IF_EXISTS
    ) -> "StorageFile":
        name = _check_name(new_name or self.name)

        def _copy() -> Path:
            if not self.path.is_file():
                raise FileNotFoundError(errno.ENOENT, "File not found", str(self.path))
            target = destination.path / name
            if option is NameCollisionOption.REPLACE_EXISTING:
                if target.is_dir():
                    raise _exists_error(target)
                if target != self.path:
                    shutil.copyfile(self.path, target)
                return target
            if option is NameCollisionOption.GENERATE_UNIQUE_NAME:
                return _claim_unique(destination.path, name, lambda p: _copy_exclusive(self.path, p))
            _copy_exclusive(self.path, target)
            return target

        target = await _run(_copy)
        logger.debug("managed_file_copied", source=str(self.path), destination=str(target))
        return await _run(StorageFile._from_path, target)

    async def move(
        self,
        destination: "StorageFolder",
        new_name: Optional[str] = None,
        option: NameCollisionOption = NameCollisionOption.FAIL_IF_EXISTS
    ) -> None:
        """Move the file; this handle is updated to the new location."""
        name = _check_name(new_name or self.name)

        def _move() -> Path:
            if not self.path.is_file():
                raise FileNotFoundError(errno.ENOENT, "File not found", str(self.path))
            target = destination.path / name
            if target == self.path:
                if option is NameCollisionOption.FAIL_IF_EXISTS:
                    raise _exists_error(target)
                return target
            if option is NameCollisionOption.REPLACE_EXISTING:
                _replace(self.path, target)
                return target
            if option is NameCollisionOption.GENERATE_UNIQUE_NAME:
                return _claim_unique(destination.path, name, lambda p: _link_no_replace(self.path, p))
            _link_no_replace(self.path, target)
            return target

        target = await _run(_move)
        logger.debug("managed_file_moved", source=str(self.path), destination=str(target))
        self.path = target

    async def rename(
        self,
        new_name: str,
        option: NameCollisionOption = NameCollisionOption.FAIL_IF_EXISTS
    ) -> None:
        """Rename the file in place; this handle is updated to the new name."""
        parent = await _run(StorageFolder._from_path, self.path.parent)
        await self.move(parent, new_name, option)

    async def delete(self) -> None:
        def _delete() -> None:
            if self.path.is_dir():
                raise FileNotFoundError(errno.ENOENT, "File not found", str(self.path))
            os.unlink(self.path)

        await _run(_delete)
        logger.debug("managed_file_deleted", path=str(self.path))

    async def open(self, mode: FileAccessMode = FileAccessMode.READ):
        if await _run(self.path.is_dir):
            raise FileNotFoundError(errno.ENOENT, "File not found", str(self.path))
        return await aiofiles.open(self.path, mode.value)

    async def open_sequential_read(self):
        return await self.open(FileAccessMode.READ)


class StorageFolder(StorageItem):
    """Handle to a managed folder."""

    _is_folder = True

    @classmethod
    async def get_folder_from_path(cls, path: str) -> "StorageFolder":
        resolved = Path(path)
        if not resolved.is_absolute():
            raise ValueError(f"Path must be absolute: {path!r}")
        return await _run(cls._from_path, resolved)

    async def create_file(
        self,
        name: str,
        option: CreationCollisionOption = CreationCollisionOption.FAIL_IF_EXISTS
    ) -> StorageFile:
        _check_name(name)

        def _create() -> Path:
            target = self.path / name
            if option is CreationCollisionOption.GENERATE_UNIQUE_NAME:
                return _claim_unique(self.path, name, _create_exclusive)
            if option is CreationCollisionOption.FAIL_IF_EXISTS:
                _create_exclusive(target)
                return target
            if target.is_dir():
                raise _exists_error(target)
            mode = "wb" if option is CreationCollisionOption.REPLACE_EXISTING else "ab"
            with open(target, mode):
                pass
            return target

        target = await _run(_create)
        logger.debug("managed_file_created", path=str(target), option=option.value)
        return await _run(StorageFile._from_path, target)

    async def create_folder(
        self,
        name: str,
        option: CreationCollisionOption = CreationCollisionOption.FAIL_IF_EXISTS
    ) -> "StorageFolder":
        _check_name(name)

        def _create() -> Path:
            target = self.path / name
            if option is CreationCollisionOption.GENERATE_UNIQUE_NAME:
                return _claim_unique(self.path, name, os.mkdir)
            if option is CreationCollisionOption.FAIL_IF_EXISTS:
                os.mkdir(target)
                return target
            if option is CreationCollisionOption.REPLACE_EXISTING and target.is_dir():
                shutil.rmtree(target)
            try:
                os.mkdir(target)
            except FileExistsError:
                if not target.is_dir():
                    raise
            return target

        target = await _run(_create)
        logger.debug("managed_folder_created", path=str(target), option=option.value)
        return await _run(StorageFolder._from_path, target)

    async def get_file(self, name: str) -> StorageFile:
        return await _run(StorageFile._from_path, self.path / _check_name(name))

    async def get_folder(self, name: str) -> "StorageFolder":
        return await _run(StorageFolder._from_path, self.path / _check_name(name))

    async def get_files(self, deep: bool = False) -> List[StorageFile]:
        def _collect() -> List[StorageFile]:
            if not deep:
                with os.scandir(self.path) as it:
                    return [StorageFile(Path(e.path), e.stat()) for e in it if e.is_file()]

            def _raise(exc: OSError) -> None:
                raise exc

            found = []
            for dirpath, _dirnames, filenames in os.walk(self.path, onerror=_raise):
                for filename in filenames:
                    path = Path(dirpath) / filename
                    found.append(StorageFile(path, path.stat()))
            return found

        return await _run(_collect)

    async def get_folders(self) -> List["StorageFolder"]:
        def _collect() -> List[StorageFolder]:
            with os.scandir(self.path) as it:
                return [StorageFolder(Path(e.path), e.stat()) for e in it if e.is_dir()]

        return await _run(_collect)

    async def rename(
        self,
        new_name: str,
        option: NameCollisionOption = NameCollisionOption.FAIL_IF_EXISTS
    ) -> None:
        """Rename the folder in place; this handle is updated to the new name."""
        _check_name(new_name)

        def _rename() -> Path:
            if not self.path.is_dir():
                raise FileNotFoundError(errno.ENOENT, "Folder not found", str(self.path))
            parent = self.path.parent
            if option is NameCollisionOption.GENERATE_UNIQUE_NAME:
                return _claim_unique(parent, new_name, lambda p: _rename_checked(self.path, p))
            target = parent / new_name
            if option is NameCollisionOption.REPLACE_EXISTING:
                _replace(self.path, target)
            else:
                # Directories cannot be hard-linked
                _rename_checked(self.path, target)
            return target

        target = await _run(_rename)
        logger.debug("managed_folder_renamed", source=str(self.path), destination=str(target))
        self.path = target

    async def delete(self) -> None:
        def _delete() -> None:
            if not self.path.is_dir():
                raise FileNotFoundError(errno.ENOENT, "Folder not found", str(self.path))
            shutil.rmtree(self.path)

        await _run(_delete)
        logger.debug("managed_folder_deleted", path=str(self.path))


class ApplicationData:
    """
    Per-application storage roots.

    Layout:
        <DATA_ROOT>/<APP_NAME>/managed/LocalState
        <DATA_ROOT>/<APP_NAME>/managed/TempState
    """

    def __init__(self, root: Path):
        self.root = Path(root)

    @classmethod
    def for_application(cls, config: Optional[Settings] = None) -> "ApplicationData":
        config = config or default_settings
        return cls(config.data_root() / config.APP_NAME / "managed")

    def _folder(self, name: str) -> StorageFolder:
        path = self.root / name
        path.mkdir(parents=True, exist_ok=True)
        return StorageFolder._from_path(path)

    @property
    def local_folder(self) -> StorageFolder:
        return self._folder("LocalState")

    @property
    def temporary_folder(self) -> StorageFolder:
        return self._folder("TempState")
