# portable_fs/file_access/registry.py
"""
Backend registry and provider resolver.

Exactly one backend is active per process. It is chosen at startup with
configure() (or settings.BACKEND), resolved lazily by the first entry point
call, and never changes afterwards.
"""
import importlib
import threading
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from portable_fs.config import settings
from portable_fs.errors import ProviderNotFoundError, StorageError
from portable_fs.file_access.base import File, FileSystemProvider, Folder, PathInput
from portable_fs.monitoring.logger import log


class BackendKind(str, Enum):
    STANDARD_FS = "standard_fs"
    ISOLATED_STORAGE = "isolated_storage"
    MANAGED_STORAGE = "managed_storage"


# Companion modules are imported only when their backend is resolved
BACKEND_REGISTRY: Dict[BackendKind, Union[str, type]] = {
    BackendKind.STANDARD_FS:
        "portable_fs.file_access.backends.standard_fs:StandardFileSystemProvider",
    BackendKind.ISOLATED_STORAGE:
        "portable_fs.file_access.backends.isolated_storage:IsolatedStorageProvider",
    BackendKind.MANAGED_STORAGE:
        "portable_fs.file_access.backends.managed_storage:ManagedStorageProvider",
}

_DEFAULT_REGISTRY = dict(BACKEND_REGISTRY)

_lock = threading.Lock()
_provider: Optional[FileSystemProvider] = None
_configured_kind: Optional[BackendKind] = None


def _coerce_kind(kind: Union[str, BackendKind]) -> BackendKind:
    try:
        return BackendKind(kind.strip().lower() if isinstance(kind, str) else kind)
    except ValueError:
        raise ProviderNotFoundError(
            f"Unknown storage backend: '{kind}'. "
            f"Available backends: {list_backends()}"
        )


def register_backend(kind: Union[str, BackendKind], provider_class: type) -> None:
    """
    Register the implementation for a backend kind.

    Only the three backend kinds exist; this replaces the class used for one
    of them (e.g. a test double). It must be called before resolution.

    Args:
        kind: Backend kind to bind
        provider_class: Class implementing FileSystemProvider

    Raises:
        ValueError: If provider_class doesn't implement FileSystemProvider
    """
    if not isinstance(provider_class, type) or not issubclass(provider_class, FileSystemProvider):
        raise ValueError(
            f"Provider class must inherit from FileSystemProvider, "
            f"got {provider_class}"
        )

    backend = _coerce_kind(kind)
    BACKEND_REGISTRY[backend] = provider_class
    log("INFO", f"Registered storage backend: {backend.value}", component="registry")


def list_backends() -> List[str]:
    return [kind.value for kind in BackendKind]


def get_backend_info(kind: Union[str, BackendKind]) -> Dict[str, Any]:
    """
    Get information about a backend without resolving it.

    Raises:
        ProviderNotFoundError: If the kind is unknown
    """
    backend = _coerce_kind(kind)
    target = BACKEND_REGISTRY[backend]

    if isinstance(target, str):
        module, _, cls_name = target.partition(":")
    else:
        module, cls_name = target.__module__, target.__name__

    return {
        "name": backend.value,
        "class": cls_name,
        "module": module,
        "active": _provider is not None and _provider.kind == backend.value,
    }


def _load_backend_class(backend: BackendKind) -> type:
    target = BACKEND_REGISTRY[backend]
    if not isinstance(target, str):
        return target

    module_name, _, cls_name = target.partition(":")
    try:
        module = importlib.import_module(module_name)
        return getattr(module, cls_name)
    except (ImportError, AttributeError) as exc:
        log("ERROR", f"Storage backend {backend.value} could not be located: {exc}",
            component="registry")
        raise ProviderNotFoundError(
            f"Storage backend '{backend.value}' is not available: {exc}"
        ) from exc


def configure(kind: Union[str, BackendKind]) -> None:
    """
    Choose the backend before first use.

    Calling it again with the same kind is harmless.

    Raises:
        ProviderNotFoundError: If the kind is unknown
        StorageError: If a different backend has already been resolved
    """
    global _configured_kind

    backend = _coerce_kind(kind)
    with _lock:
        if _provider is not None and _provider.kind != backend.value:
            raise StorageError(
                f"Storage backend already resolved to '{_provider.kind}'; "
                f"cannot switch to '{backend.value}'"
            )
        _configured_kind = backend


def get_provider() -> FileSystemProvider:
    """
    Get the active provider, resolving it on first call.

    Safe under concurrent callers: resolution happens exactly once and
    everyone observes the same instance.

    Raises:
        ProviderNotFoundError: If the configured backend cannot be located
    """
    global _provider

    provider = _provider
    if provider is not None:
        return provider

    with _lock:
        if _provider is None:
            backend = _configured_kind or _coerce_kind(settings.BACKEND)
            provider_class = _load_backend_class(backend)
            _provider = provider_class()
            log("INFO", f"Resolved storage backend: {backend.value}", component="registry")
        return _provider


def ensure_initialized() -> None:
    """Resolve the backend eagerly instead of on first use."""
    get_provider()


def is_initialized() -> bool:
    return _provider is not None


async def get_file(full_path: PathInput) -> File:
    """
    Get an existing file through the active backend.

    Args:
        full_path: Absolute path, os.PathLike or file:// URI
            (a store path on isolated storage)

    Raises:
        InvalidNameError: If the path is empty
        NotFoundError: If the file does not exist
    """
    return await get_provider().get_file(full_path)


async def get_folder(full_path: PathInput) -> Folder:
    """Get an existing folder through the active backend."""
    return await get_provider().get_folder(full_path)


def local_storage() -> Folder:
    return get_provider().local_storage


def temporary_storage() -> Folder:
    return get_provider().temporary_storage


def _reset_provider() -> None:
    """Forget the resolved backend and registrations. Test helper only."""
    global _provider, _configured_kind

    with _lock:
        BACKEND_REGISTRY.clear()
        BACKEND_REGISTRY.update(_DEFAULT_REGISTRY)
        _provider = None
        _configured_kind = None
