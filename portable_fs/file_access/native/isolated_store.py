# portable_fs/file_access/native/isolated_store.py
"""
Isolated store: quota-scoped virtual storage per application and user.

Each store lives in its own directory and exposes only store-relative paths,
so callers never see (or escape to) the host location. A store is a session:
once closed or removed, every call fails with StoreClosedError.

Layout on disk:
    <DATA_ROOT>/<APP_NAME>/isolated/<user>/<store_name>/
        .store.lock     inter-process lock guarding quota-sensitive writes
        files/          store content
"""
import asyncio
import fnmatch
import os
import posixpath
import shutil
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import aiofiles
import structlog
from filelock import FileLock

from portable_fs.config import Settings, settings as default_settings
from portable_fs.errors import QuotaExceededError, StoreClosedError

logger = structlog.get_logger()


class IsolatedStore:
    """
    A single isolated store.

    All File/Folder instances of an isolated backend share one store object,
    which carries the quota and session state.

    Args:
        root: Directory holding the store
        quota: Maximum total size of stored files in bytes, None for unlimited
        lock_timeout: Seconds to wait for the store lock
    """

    def __init__(self, root: Path, quota: Optional[int] = None, lock_timeout: float = 30):
        self.root = Path(root)
        self._files = self.root / "files"
        self._files.mkdir(parents=True, exist_ok=True)
        self._files_resolved = self._files.resolve()
        self.lock = FileLock(str(self.root / ".store.lock"), timeout=lock_timeout)
        self.write_lock = asyncio.Lock()
        self._quota = quota
        self._closed = False

        logger.info("isolated_store_opened", root=str(self.root), quota=quota)

    @classmethod
    def get_user_store_for_application(
        cls,
        store_name: str = "local",
        config: Optional[Settings] = None
    ) -> "IsolatedStore":
        """
        Open the store scoped to the current application and user.

        Args:
            store_name: Name of the store within that scope
            config: Settings to read roots and quota from
        """
        config = config or default_settings
        root = config.data_root() / config.APP_NAME / "isolated" / config.user_scope() / store_name
        return cls(root, quota=config.ISOLATED_QUOTA_BYTES)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            logger.info("isolated_store_closed", root=str(self.root))

    def remove(self) -> None:
        """Delete all content of the store and close it."""
        self._check_open()
        with self.lock:
            shutil.rmtree(self._files, ignore_errors=False)
        logger.info("isolated_store_removed", root=str(self.root))
        self.close()

    def _check_open(self) -> None:
        if self._closed:
            raise StoreClosedError(f"Isolated store is closed: {self.root}")

    def _resolve(self, path: str) -> Path:
        """Resolve a store-relative path to a host path inside the store."""
        self._check_open()
        resolved = (self._files / path.replace("\\", "/")).resolve()

        try:
            resolved.relative_to(self._files_resolved)
        except ValueError:
            raise PermissionError(f"Access denied: path '{path}' is outside the isolated store")

        return resolved

    @property
    def quota(self) -> Optional[int]:
        return self._quota

    @property
    def used_size(self) -> int:
        self._check_open()
        total = 0
        for dirpath, _dirnames, filenames in os.walk(self._files):
            for filename in filenames:
                try:
                    total += os.stat(os.path.join(dirpath, filename)).st_size
                except FileNotFoundError:
                    # Deleted while walking
                    continue
        return total

    @property
    def available_free_space(self) -> Optional[int]:
        if self._quota is None:
            return None
        return max(0, self._quota - self.used_size)

    def increase_quota_to(self, new_quota: int) -> bool:
        """
        Raise the store quota.

        Returns:
            False if the store is unlimited (nothing to raise), True otherwise

        Raises:
            ValueError: If new_quota is not larger than the current quota
        """
        self._check_open()
        if self._quota is None:
            return False
        if new_quota <= self._quota:
            raise ValueError(f"New quota {new_quota} must exceed current quota {self._quota}")
        logger.info("isolated_store_quota_increased", old=self._quota, new=new_quota)
        self._quota = new_quota
        return True

    def check_quota(self, growth: int) -> None:
        """Raise QuotaExceededError if growing by `growth` bytes would pass the quota."""
        if self._quota is None or growth <= 0:
            return
        used = self.used_size
        if used + growth > self._quota:
            logger.warning("isolated_store_quota_exceeded", used=used, growth=growth, quota=self._quota)
            raise QuotaExceededError(
                f"Isolated store quota exceeded: {used} + {growth} bytes > {self._quota}"
            )

    def file_exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    def directory_exists(self, path: str) -> bool:
        return self._resolve(path).is_dir()

    def get_creation_time(self, path: str) -> datetime:
        st = self._resolve(path).stat()
        timestamp = getattr(st, "st_birthtime", None) or st.st_ctime
        return datetime.fromtimestamp(timestamp).astimezone()

    def _list(self, pattern: str, want_dirs: bool) -> List[str]:
        directory, name_pattern = posixpath.split(pattern.replace("\\", "/"))
        base = self._resolve(directory)
        if not base.is_dir():
            raise FileNotFoundError(f"Directory not found in isolated store: {directory or '/'}")

        names = []
        with os.scandir(base) as it:
            for entry in it:
                if want_dirs != entry.is_dir():
                    continue
                if fnmatch.fnmatchcase(entry.name, name_pattern or "*"):
                    names.append(entry.name)
        return names

    def get_file_names(self, pattern: str = "*") -> List[str]:
        """
        Names of files matching a pattern.

        The pattern may carry a directory prefix ("reports/*.csv"); wildcards
        apply to the last component only. Names are returned without the prefix.
        """
        return self._list(pattern, want_dirs=False)

    def get_directory_names(self, pattern: str = "*") -> List[str]:
        return self._list(pattern, want_dirs=True)

    def create_directory(self, path: str) -> None:
        """Create a directory and any missing parents; existing directories are kept."""
        self._resolve(path).mkdir(parents=True, exist_ok=True)

    def delete_directory(self, path: str, recursive: bool = False) -> None:
        resolved = self._resolve(path)
        if resolved == self._files_resolved:
            raise PermissionError("The isolated store root cannot be deleted")
        if not resolved.is_dir():
            raise FileNotFoundError(f"Directory not found in isolated store: {path}")

        if recursive:
            shutil.rmtree(resolved)
        else:
            resolved.rmdir()

    def create_file(self, path: str, overwrite: bool = False) -> None:
        """Create an empty file; with overwrite an existing file is truncated."""
        resolved = self._resolve(path)
        with open(resolved, "wb" if overwrite else "xb"):
            pass

    def open_or_create_file(self, path: str) -> None:
        resolved = self._resolve(path)
        with open(resolved, "ab"):
            pass

    def delete_file(self, path: str) -> None:
        resolved = self._resolve(path)
        if not resolved.is_file():
            raise FileNotFoundError(f"File not found in isolated store: {path}")
        resolved.unlink()

    def copy_file(self, source: str, destination: str, overwrite: bool = False) -> None:
        src = self._resolve(source)
        dst = self._resolve(destination)
        if not src.is_file():
            raise FileNotFoundError(f"File not found in isolated store: {source}")
        if src == dst:
            raise FileExistsError(f"Source and destination are the same file: {destination}")

        with self.lock:
            existing = dst.stat().st_size if dst.is_file() else 0
            if dst.exists() and not overwrite:
                raise FileExistsError(f"File already exists in isolated store: {destination}")
            self.check_quota(src.stat().st_size - existing)
            shutil.copyfile(src, dst)

        logger.debug("isolated_store_copy", source=source, destination=destination)

    def move_file(self, source: str, destination: str) -> None:
        src = self._resolve(source)
        dst = self._resolve(destination)
        if not src.is_file():
            raise FileNotFoundError(f"File not found in isolated store: {source}")
        if dst.exists():
            raise FileExistsError(f"File already exists in isolated store: {destination}")
        os.rename(src, dst)

    def move_directory(self, source: str, destination: str) -> None:
        src = self._resolve(source)
        dst = self._resolve(destination)
        if not src.is_dir():
            raise FileNotFoundError(f"Directory not found in isolated store: {source}")
        if dst.exists():
            raise FileExistsError(f"Directory already exists in isolated store: {destination}")
        os.rename(src, dst)

    async def open_file(self, path: str, mode: str = "rb") -> "IsolatedStorageStream":
        """
        Open a store file as an async binary stream.

        Args:
            path: Store-relative file path
            mode: Binary open mode ("rb", "r+b", "wb", "xb", "ab")
        """
        resolved = self._resolve(path)
        if resolved.is_dir():
            raise IsADirectoryError(f"Is a directory in isolated store: {path}")
        handle = await aiofiles.open(resolved, mode)
        return IsolatedStorageStream(self, handle)

    def __repr__(self) -> str:
        return f"<IsolatedStore root={self.root} quota={self._quota} closed={self._closed}>"


class IsolatedStorageStream:
    """
    Async binary stream over a store file.

    Delegates to the underlying aiofiles handle and enforces the store quota
    on every operation that can grow the file.
    """

    def __init__(self, store: IsolatedStore, handle):
        self._store = store
        self._handle = handle

    def _growth(self, end: int) -> int:
        size = os.fstat(self._handle.fileno()).st_size
        return max(0, end - size)

    async def _check_growth(self, end: int) -> None:
        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, self._store.check_quota, self._growth(end))

    async def write(self, data: bytes) -> int:
        if self._store.quota is None:
            return await self._handle.write(data)

        # One quota-checked write per store at a time, checked and landed
        # before the next one measures the store
        async with self._store.write_lock:
            with self._store.lock:
                # Buffered data has not reached the file yet
                await self._handle.flush()
                await self._check_growth(await self._handle.tell() + len(data))
                written = await self._handle.write(data)
                await self._handle.flush()
                return written

    async def truncate(self, size: Optional[int] = None) -> int:
        if self._store.quota is None:
            return await self._handle.truncate(size)

        async with self._store.write_lock:
            with self._store.lock:
                await self._handle.flush()
                await self._check_growth(size if size is not None else await self._handle.tell())
                return await self._handle.truncate(size)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self._handle.close()
        return False

    def __getattr__(self, name):
        # read, seek, tell, flush, close, closed, fileno, ...
        return getattr(self._handle, name)
