# portable_fs/config.py
"""
Configuration management using Pydantic Settings.

Every field can be set through a ``PORTABLE_FS_``-prefixed environment
variable or a local ``.env`` file.
"""
import getpass
import tempfile
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="PORTABLE_FS_", extra="ignore")
    # Backend selected at startup: standard_fs, isolated_storage or managed_storage
    BACKEND: str = "standard_fs"
    APP_NAME: str = "portable_fs"
    LOG_LEVEL: str = "INFO"
    # Root for persistent application data (isolated stores, managed app data, local storage)
    DATA_ROOT: Optional[str] = None
    # Root for temporary storage on the standard filesystem backend
    TEMP_ROOT: Optional[str] = None
    # User scope of isolated stores; defaults to the login name
    USER_SCOPE: Optional[str] = None
    # Quota of each isolated store in bytes; None means unlimited
    ISOLATED_QUOTA_BYTES: Optional[int] = Field(None, ge=0)
    COPY_CHUNK_SIZE: int = Field(64 * 1024, gt=0)

    def data_root(self) -> Path:
        if self.DATA_ROOT:
            return Path(self.DATA_ROOT).expanduser()
        return Path.home() / ".portable_fs"

    def temp_root(self) -> Path:
        if self.TEMP_ROOT:
            return Path(self.TEMP_ROOT).expanduser()
        return Path(tempfile.gettempdir())

    def user_scope(self) -> str:
        if self.USER_SCOPE:
            return self.USER_SCOPE
        try:
            return getpass.getuser()
        except (KeyError, OSError):
            # No login name in some containers
            return "default"


settings = Settings()
