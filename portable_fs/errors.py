# portable_fs/errors.py
"""
Error taxonomy shared by every storage backend.

Adapters translate native failures into these types so callers never have to
know which backend is active. Each error also derives from the closest
builtin exception, so ``except FileNotFoundError`` keeps working.
"""
from contextlib import contextmanager
from typing import Any, Iterator, Optional


class StorageError(Exception):
    """Base class for all portable_fs errors."""


class InvalidNameError(StorageError, ValueError):
    """A name is empty, whitespace, a relative marker or contains a path separator."""


class NotFoundError(StorageError, FileNotFoundError):
    """The requested file, folder or parent does not exist."""


class AlreadyExistsError(StorageError, FileExistsError):
    """A create/rename/copy/move collided with an existing entry."""


class UnsupportedOperationError(StorageError, NotImplementedError):
    """The operation or attribute has no meaning on the active backend."""


class ProviderNotFoundError(StorageError, RuntimeError):
    """No backend implementation could be located at resolution time."""


class PartialMoveError(StorageError):
    """
    A move copied the file but could not delete the source.

    Both the source and the destination exist afterwards. The destination
    file is available as ``destination``.
    """

    def __init__(self, message: str, destination: Any = None):
        super().__init__(message)
        self.destination = destination


class QuotaExceededError(StorageError, OSError):
    """A write would grow an isolated store beyond its quota."""


class StoreClosedError(StorageError):
    """The isolated store session has been closed or removed."""


@contextmanager
def translate_os_errors(path: Optional[str] = None) -> Iterator[None]:
    """
    Map native ``OSError`` subclasses onto the storage taxonomy.

    A directory where a file was expected (or the reverse) counts as not
    found. Errors that already belong to the taxonomy pass through untouched,
    as do native errors with no closer equivalent (``PermissionError`` etc.).

    Args:
        path: Path included in the translated error message
    """
    try:
        yield
    except StorageError:
        raise
    except (FileNotFoundError, NotADirectoryError, IsADirectoryError) as exc:
        raise NotFoundError(f"Not found: {path or exc.filename}") from exc
    except FileExistsError as exc:
        raise AlreadyExistsError(f"Already exists: {path or exc.filename}") from exc
