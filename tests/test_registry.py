# tests/test_registry.py
"""
Tests for backend registration and provider resolution.
"""
import asyncio
import threading
from unittest.mock import patch

import pytest

import portable_fs
from portable_fs.errors import NotFoundError, ProviderNotFoundError, StorageError
from portable_fs.file_access import registry
from portable_fs.file_access.backends.standard_fs import StandardFileSystemProvider
from portable_fs.file_access.registry import (
    BACKEND_REGISTRY,
    BackendKind,
    configure,
    ensure_initialized,
    get_backend_info,
    get_provider,
    is_initialized,
    list_backends,
    register_backend,
)


class CountingProvider(StandardFileSystemProvider):
    instances = 0

    def __init__(self):
        type(self).instances += 1
        super().__init__()


class TestBackendCatalogue:

    def test_list_backends(self):
        assert list_backends() == ["standard_fs", "isolated_storage", "managed_storage"]

    def test_backend_info_does_not_import(self):
        info = get_backend_info("managed_storage")
        assert info["class"] == "ManagedStorageProvider"
        assert info["module"] == "portable_fs.file_access.backends.managed_storage"
        assert info["active"] is False

    def test_unknown_backend(self):
        with pytest.raises(ProviderNotFoundError):
            get_backend_info("s3")
        with pytest.raises(ProviderNotFoundError):
            configure("s3")

    def test_register_backend_validates_class(self):
        with pytest.raises(ValueError):
            register_backend(BackendKind.STANDARD_FS, dict)

    def test_register_backend_replaces_kind(self):
        register_backend("standard_fs", CountingProvider)
        assert BACKEND_REGISTRY[BackendKind.STANDARD_FS] is CountingProvider
        assert get_backend_info("standard_fs")["class"] == "CountingProvider"


class TestResolution:

    def test_lazy_until_first_use(self):
        assert is_initialized() is False
        ensure_initialized()
        assert is_initialized() is True

    def test_default_from_settings(self, test_settings, monkeypatch):
        monkeypatch.setattr(test_settings, "BACKEND", "managed_storage")
        assert get_provider().kind == "managed_storage"

    def test_configure_wins_over_settings(self, test_settings, monkeypatch):
        monkeypatch.setattr(test_settings, "BACKEND", "managed_storage")
        configure(BackendKind.ISOLATED_STORAGE)
        assert get_provider().kind == "isolated_storage"

    def test_backend_is_immutable_once_resolved(self):
        configure("standard_fs")
        provider = get_provider()

        configure("standard_fs")
        with pytest.raises(StorageError):
            configure("managed_storage")
        assert get_provider() is provider

    def test_import_failure_is_fatal(self):
        BACKEND_REGISTRY[BackendKind.MANAGED_STORAGE] = "portable_fs.no_such_module:Provider"
        configure("managed_storage")

        with pytest.raises(ProviderNotFoundError):
            get_provider()
        assert is_initialized() is False

    def test_missing_class_is_fatal(self):
        BACKEND_REGISTRY[BackendKind.STANDARD_FS] = \
            "portable_fs.file_access.backends.standard_fs:NoSuchProvider"

        with pytest.raises(ProviderNotFoundError):
            get_provider()

    def test_concurrent_resolution_happens_once(self):
        CountingProvider.instances = 0
        register_backend("standard_fs", CountingProvider)
        results = []
        barrier = threading.Barrier(8)

        def resolve():
            barrier.wait()
            results.append(get_provider())

        threads = [threading.Thread(target=resolve) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert CountingProvider.instances == 1
        assert len({id(provider) for provider in results}) == 1

    def test_resolution_logged(self):
        with patch("portable_fs.file_access.registry.log") as mock_log:
            ensure_initialized()
        messages = [call.args[1] for call in mock_log.call_args_list]
        assert "Resolved storage backend: standard_fs" in messages


class TestEntryPoints:

    @pytest.mark.asyncio
    async def test_entry_points_forward(self, tmp_path):
        (tmp_path / "doc.txt").write_bytes(b"")

        file = await portable_fs.get_file(str(tmp_path / "doc.txt"))
        folder = await portable_fs.get_folder(tmp_path)

        assert file.name == "doc.txt"
        assert folder.full_path == str(tmp_path)
        assert await portable_fs.local_storage().exists() is True
        assert await portable_fs.temporary_storage().exists() is True

    @pytest.mark.asyncio
    async def test_entry_points_require_existing_targets(self, tmp_path):
        with pytest.raises(NotFoundError):
            await portable_fs.get_file(str(tmp_path / "absent.txt"))

    @pytest.mark.asyncio
    async def test_concurrent_async_callers_share_provider(self):
        async def resolve():
            return registry.get_provider()

        providers = await asyncio.gather(*(resolve() for _ in range(10)))
        assert all(provider is providers[0] for provider in providers)

    def test_version(self):
        assert isinstance(portable_fs.__version__, str)
