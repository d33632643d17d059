# portable_fs/__init__.py

"""
portable_fs: one File/Folder interface over interchangeable storage backends.

Calling code imports the entry points from here and never names a backend:

    import portable_fs

    portable_fs.configure("isolated_storage")   # optional, at startup
    folder = await portable_fs.temporary_storage().create_folder("reports")

The package version is read from the top-level `VERSION` file when it is
available, so releases can be bumped by editing a single file.
"""

from pathlib import Path

from portable_fs.errors import (
	AlreadyExistsError,
	InvalidNameError,
	NotFoundError,
	PartialMoveError,
	ProviderNotFoundError,
	QuotaExceededError,
	StorageError,
	StoreClosedError,
	UnsupportedOperationError,
)
from portable_fs.file_access import (
	BackendKind,
	Capability,
	File,
	FileSystemProvider,
	Folder,
	configure,
	ensure_initialized,
	get_file,
	get_folder,
	get_provider,
	local_storage,
	temporary_storage,
)

_root = Path(__file__).resolve().parents[1]
_version_file = _root / "VERSION"
if _version_file.exists():
	__version__ = _version_file.read_text(encoding="utf-8").strip()
else:
	__version__ = "0.0.0"

__all__ = [
	"AlreadyExistsError",
	"BackendKind",
	"Capability",
	"File",
	"FileSystemProvider",
	"Folder",
	"InvalidNameError",
	"NotFoundError",
	"PartialMoveError",
	"ProviderNotFoundError",
	"QuotaExceededError",
	"StorageError",
	"StoreClosedError",
	"UnsupportedOperationError",
	"configure",
	"ensure_initialized",
	"get_file",
	"get_folder",
	"get_provider",
	"local_storage",
	"temporary_storage",
]
