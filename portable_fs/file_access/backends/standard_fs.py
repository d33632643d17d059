# portable_fs/file_access/backends/standard_fs.py
"""
Standard filesystem backend.

Works with any path reachable through ordinary OS file operations:
- Local directories
- Network-mounted shares (NFS, SMB/CIFS, etc.)
- Removable media
"""
import asyncio
import os
import shutil
import stat
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple

import aiofiles
import aiofiles.os

from portable_fs.config import Settings, settings as default_settings
from portable_fs.errors import (
    AlreadyExistsError,
    InvalidNameError,
    NotFoundError,
    PartialMoveError,
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
from portable_fs.monitoring.logger import log


# Archive/temporary bits only exist where the OS reports file attributes (Windows)
HAS_FILE_ATTRIBUTES = hasattr(os.stat_result, "st_file_attributes")

if HAS_FILE_ATTRIBUTES:
    STANDARD_CAPABILITIES = ALL_CAPABILITIES
else:
    STANDARD_CAPABILITIES = ALL_CAPABILITIES - {
        Capability.ARCHIVE_ATTRIBUTE,
        Capability.TEMPORARY_ATTRIBUTE,
    }


async def _run_blocking(func, *args):
    """Run a blocking filesystem call in the default executor."""
    loop = asyncio.get_event_loop()
    return await loop.run_in_executor(None, func, *args)


def _scan_dir(path: Path) -> List[Tuple[Path, bool]]:
    """List (path, is_dir) pairs for the files and folders directly in path."""
    entries = []
    with os.scandir(path) as it:
        for entry in it:
            if entry.is_dir():
                entries.append((Path(entry.path), True))
            elif entry.is_file():
                entries.append((Path(entry.path), False))
    return entries


def _raise_walk_error(exc: OSError) -> None:
    raise exc


def _walk_files(path: Path) -> List[Path]:
    found = []
    for dirpath, _dirnames, filenames in os.walk(path, onerror=_raise_walk_error):
        found.extend(Path(dirpath) / filename for filename in filenames)
    return found


class _StandardEntryMixin:
    """Path identity and cached stat metadata shared by files and folders."""

    capabilities = STANDARD_CAPABILITIES

    def __init__(self, path: Path, config: Optional[Settings] = None):
        self._path = Path(path)
        self.settings = config or default_settings
        self._stat_result: Optional[os.stat_result] = None

    def _stat(self) -> os.stat_result:
        if self._stat_result is None:
            with translate_os_errors(str(self._path)):
                self._stat_result = self._path.stat()
        return self._stat_result

    def _rebind(self, path: Path) -> None:
        self._path = Path(path)
        self.refresh()

    def refresh(self) -> None:
        """Drop cached metadata so the next attribute read hits the disk."""
        self._stat_result = None

    @property
    def name(self) -> str:
        return self._path.name

    @property
    def full_path(self) -> str:
        return str(self._path)

    @property
    def is_read_only(self) -> bool:
        st = self._stat()
        if HAS_FILE_ATTRIBUTES:
            return bool(st.st_file_attributes & stat.FILE_ATTRIBUTE_READONLY)
        return not st.st_mode & stat.S_IWUSR

    @property
    def is_archive(self) -> bool:
        self._require(Capability.ARCHIVE_ATTRIBUTE)
        return bool(self._stat().st_file_attributes & stat.FILE_ATTRIBUTE_ARCHIVE)

    @property
    def is_temporary(self) -> bool:
        self._require(Capability.TEMPORARY_ATTRIBUTE)
        return bool(self._stat().st_file_attributes & stat.FILE_ATTRIBUTE_TEMPORARY)

    @property
    def date_created(self) -> datetime:
        st = self._stat()
        timestamp = getattr(st, "st_birthtime", None) or st.st_ctime
        return datetime.fromtimestamp(timestamp).astimezone()

    async def _ensure_target_free(self, target: Path) -> None:
        if await aiofiles.os.path.exists(target):
            raise AlreadyExistsError(f"Already exists: {target}")


class StandardFile(_StandardEntryMixin, File):
    """
    A file addressed by a host filesystem path.

    Copy is a chunked stream-to-stream copy rather than a native copy call,
    so the copy carries fresh attributes on every platform.
    """

    @property
    def extension(self) -> str:
        return self._path.suffix

    async def exists(self) -> bool:
        self.refresh()
        return await aiofiles.os.path.isfile(self._path)

    async def copy(
        self,
        destination: Folder,
        new_name: Optional[str] = None,
        can_replace: bool = False
    ) -> "StandardFile":
        target_name = self.name if new_name is None else validate_name(new_name)
        target = StandardFile(Path(destination.full_path) / target_name, self.settings)

        if target._path == self._path:
            if not can_replace:
                raise AlreadyExistsError(f"Already exists: {target.full_path}")
            return target

        chunk_size = self.settings.COPY_CHUNK_SIZE
        with translate_os_errors():
            async with aiofiles.open(self._path, "rb") as source:
                async with aiofiles.open(target._path, "wb" if can_replace else "xb") as sink:
                    while True:
                        chunk = await source.read(chunk_size)
                        if not chunk:
                            break
                        await sink.write(chunk)

        log("DEBUG", f"Copied {self._path} to {target._path}", component="standard_fs")
        return target

    async def move(
        self,
        destination: Folder,
        new_name: Optional[str] = None,
        can_replace: bool = False
    ) -> "StandardFile":
        result = await self.copy(destination, new_name, can_replace)
        if result._path == self._path:
            return result

        try:
            await aiofiles.os.remove(self._path)
        except OSError as exc:
            log("ERROR", f"Move left both copies: {self._path} -> {result._path}: {exc}",
                component="standard_fs")
            raise PartialMoveError(
                f"Copied {self.full_path} to {result.full_path} but could not delete the source: {exc}",
                destination=result
            ) from exc

        self._rebind(result._path)
        return result

    async def rename(self, new_name: str) -> None:
        target = self._path.with_name(validate_name(new_name))
        await self._ensure_target_free(target)

        with translate_os_errors(self.full_path):
            await aiofiles.os.rename(self._path, target)

        log("DEBUG", f"Renamed {self._path} to {target}", component="standard_fs")
        self._rebind(target)

    async def delete(self) -> None:
        if not await aiofiles.os.path.isfile(self._path):
            raise NotFoundError(f"File not found: {self._path}")

        with translate_os_errors(self.full_path):
            await aiofiles.os.remove(self._path)
        self.refresh()

    async def open(self, for_writing: bool = False):
        with translate_os_errors(self.full_path):
            return await aiofiles.open(self._path, "r+b" if for_writing else "rb")

    async def open_sequential_read(self):
        with translate_os_errors(self.full_path):
            stream = await aiofiles.open(self._path, "rb")

        if hasattr(os, "posix_fadvise"):
            try:
                os.posix_fadvise(stream.fileno(), 0, 0, os.POSIX_FADV_SEQUENTIAL)
            except OSError:
                # Advisory only
                pass
        return stream


class StandardFolder(_StandardEntryMixin, Folder):
    """A directory addressed by a host filesystem path."""

    def _child(self, name: str) -> Path:
        return self._path / validate_name(name)

    async def create_file(self, name: str, can_replace: bool = False) -> StandardFile:
        path = self._child(name)

        # Opening a folder for truncation would report it as missing
        if can_replace and await aiofiles.os.path.isdir(path):
            raise AlreadyExistsError(f"A folder named {name!r} exists in {self._path}")

        with translate_os_errors(str(path)):
            async with aiofiles.open(path, "wb" if can_replace else "xb"):
                pass

        log("DEBUG", f"Created file {path}", component="standard_fs")
        return StandardFile(path, self.settings)

    async def get_or_create_file(self, name: str) -> StandardFile:
        path = self._child(name)

        if await aiofiles.os.path.isdir(path):
            raise AlreadyExistsError(f"A folder named {name!r} exists in {self._path}")

        with translate_os_errors(str(path)):
            async with aiofiles.open(path, "ab"):
                pass
        return StandardFile(path, self.settings)

    async def get_file(self, name: str) -> StandardFile:
        path = self._child(name)
        if not await aiofiles.os.path.isfile(path):
            raise NotFoundError(f"File not found: {path}")
        return StandardFile(path, self.settings)

    async def get_files(self) -> List[StandardFile]:
        with translate_os_errors(self.full_path):
            entries = await _run_blocking(_scan_dir, self._path)
        return [StandardFile(path, self.settings) for path, is_dir in entries if not is_dir]

    async def get_files_deep(self) -> List[StandardFile]:
        with translate_os_errors(self.full_path):
            paths = await _run_blocking(_walk_files, self._path)
        return [StandardFile(path, self.settings) for path in paths]

    async def create_folder(self, name: str, can_replace: bool = False) -> "StandardFolder":
        path = self._child(name)

        if can_replace and await aiofiles.os.path.isdir(path):
            log("INFO", f"Replacing folder {path}", component="standard_fs")
            with translate_os_errors(str(path)):
                await _run_blocking(shutil.rmtree, path)

        with translate_os_errors(str(path)):
            await aiofiles.os.mkdir(path)
        return StandardFolder(path, self.settings)

    async def get_or_create_folder(self, name: str) -> "StandardFolder":
        path = self._child(name)

        with translate_os_errors(str(path)):
            try:
                await aiofiles.os.mkdir(path)
            except FileExistsError:
                if not await aiofiles.os.path.isdir(path):
                    raise
        return StandardFolder(path, self.settings)

    async def get_folder(self, name: str) -> "StandardFolder":
        path = self._child(name)
        if not await aiofiles.os.path.isdir(path):
            raise NotFoundError(f"Folder not found: {path}")
        return StandardFolder(path, self.settings)

    async def get_folders(self) -> List["StandardFolder"]:
        with translate_os_errors(self.full_path):
            entries = await _run_blocking(_scan_dir, self._path)
        return [StandardFolder(path, self.settings) for path, is_dir in entries if is_dir]

    async def exists(self) -> bool:
        self.refresh()
        return await aiofiles.os.path.isdir(self._path)

    async def rename(self, new_name: str) -> None:
        target = self._path.with_name(validate_name(new_name))
        await self._ensure_target_free(target)

        with translate_os_errors(self.full_path):
            await aiofiles.os.rename(self._path, target)

        log("DEBUG", f"Renamed {self._path} to {target}", component="standard_fs")
        self._rebind(target)

    async def delete(self) -> None:
        if not await aiofiles.os.path.isdir(self._path):
            raise NotFoundError(f"Folder not found: {self._path}")

        with translate_os_errors(self.full_path):
            await _run_blocking(shutil.rmtree, self._path)
        self.refresh()


class StandardFileSystemProvider(FileSystemProvider):
    """
    Standard filesystem provider.

    Absolute paths map directly onto host paths. Storage roots:
    - local storage: <DATA_ROOT>/<APP_NAME>/local
    - temporary storage: <TEMP_ROOT>/<APP_NAME>
    Both are created on first access if missing.
    """

    kind = "standard_fs"

    def __init__(self, config: Optional[Settings] = None):
        self.settings = config or default_settings
        log("INFO", f"StandardFileSystemProvider initialized with data_root={self.settings.data_root()}",
            component="standard_fs")

    def _absolute(self, full_path: str) -> Path:
        path = Path(full_path)
        if not path.is_absolute():
            raise InvalidNameError(f"Path must be absolute: {full_path!r}")
        return path

    async def get_file_core(self, full_path: str) -> StandardFile:
        path = self._absolute(full_path)
        if not await aiofiles.os.path.isfile(path):
            raise NotFoundError(f"File not found: {full_path}")
        return StandardFile(path, self.settings)

    async def get_folder_core(self, full_path: str) -> StandardFolder:
        path = self._absolute(full_path)
        if not await aiofiles.os.path.isdir(path):
            raise NotFoundError(f"Folder not found: {full_path}")
        return StandardFolder(path, self.settings)

    @property
    def local_storage(self) -> StandardFolder:
        path = self.settings.data_root() / self.settings.APP_NAME / "local"
        path.mkdir(parents=True, exist_ok=True)
        return StandardFolder(path, self.settings)

    @property
    def temporary_storage(self) -> StandardFolder:
        path = self.settings.temp_root() / self.settings.APP_NAME
        path.mkdir(parents=True, exist_ok=True)
        return StandardFolder(path, self.settings)
