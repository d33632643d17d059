"""
File access layer.

Unified File/Folder interface over the storage backends:
- Standard filesystem (host paths)
- Isolated storage (quota-scoped per-user stores)
- Managed storage (handle-based API with collision options)
"""

from portable_fs.file_access.base import Capability, File, FileSystemProvider, Folder
from portable_fs.file_access.registry import (
    BackendKind,
    configure,
    ensure_initialized,
    get_file,
    get_folder,
    get_provider,
    local_storage,
    temporary_storage,
)

__all__ = [
    "BackendKind",
    "Capability",
    "File",
    "FileSystemProvider",
    "Folder",
    "configure",
    "ensure_initialized",
    "get_file",
    "get_folder",
    "get_provider",
    "local_storage",
    "temporary_storage",
]
