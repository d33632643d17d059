# tests/conftest.py
import pytest

from portable_fs.config import settings
from portable_fs.file_access import registry


BACKEND_KINDS = ["standard_fs", "isolated_storage", "managed_storage"]


@pytest.fixture(autouse=True)
def test_settings(tmp_path, monkeypatch):
    """Point every storage root at a per-test temporary directory."""
    monkeypatch.setattr(settings, "DATA_ROOT", str(tmp_path / "data"))
    monkeypatch.setattr(settings, "TEMP_ROOT", str(tmp_path / "tmp"))
    monkeypatch.setattr(settings, "USER_SCOPE", "tester")
    monkeypatch.setattr(settings, "ISOLATED_QUOTA_BYTES", None)
    registry._reset_provider()
    yield settings
    registry._reset_provider()


@pytest.fixture(params=BACKEND_KINDS)
def provider(request, test_settings):
    """The resolved provider, once per backend kind."""
    registry.configure(request.param)
    active = registry.get_provider()
    yield active
    close = getattr(active, "close", None)
    if close is not None:
        close()


async def write_bytes(file, data: bytes) -> None:
    stream = await file.open(for_writing=True)
    try:
        await stream.write(data)
    finally:
        await stream.close()


async def read_bytes(file) -> bytes:
    stream = await file.open_sequential_read()
    try:
        return await stream.read()
    finally:
        await stream.close()
