"""Application settings using Pydantic.

Provides configuration management for storage, CORS, upload limits and
deployment settings. Values come from the environment (a local .env file is
loaded first when present).
"""
import os
from typing import List
from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()

_BOOL_FIELDS = ('DEV_MODE', 'RUN_MIGRATIONS')
_INT_FIELDS = ('MAX_UPLOAD_MB', 'RETENTION_DAYS')


class Settings(BaseModel):
    """Application settings with validation."""

    DEV_MODE: bool = True

    # CORS settings - the editor is served from arbitrary hosts by default
    ALLOWED_ORIGINS: List[str] = ["*"]

    # Storage / database
    STORAGE_PATH: str = "storage"
    DATABASE_URL: str = ""
    LOG_FILE: str = ""
    RUN_MIGRATIONS: bool = False

    # Uploads
    MAX_UPLOAD_MB: int = 10
    RETENTION_DAYS: int = 30

    def __init__(self, **data):
        # Load from environment variables
        env_data = {}
        for field_name in type(self).model_fields:
            env_value = os.getenv(field_name)
            if env_value is not None:
                if field_name in _BOOL_FIELDS:
                    env_data[field_name] = env_value.lower() in ('true', '1', 'yes')
                elif field_name == 'ALLOWED_ORIGINS':
                    env_data[field_name] = [origin.strip() for origin in env_value.split(',') if origin.strip()]
                elif field_name in _INT_FIELDS:
                    env_data[field_name] = int(env_value)
                else:
                    env_data[field_name] = env_value

        # Merge environment data with provided data
        merged_data = {**env_data, **data}
        super().__init__(**merged_data)

        if not self.DATABASE_URL:
            self.DATABASE_URL = f"sqlite:///{os.path.join(self.STORAGE_PATH, 'app.db')}"
        if not self.LOG_FILE:
            self.LOG_FILE = os.path.join(self.STORAGE_PATH, 'app.log')
        if self.MAX_UPLOAD_MB <= 0 or self.RETENTION_DAYS <= 0:
            raise ValueError("MAX_UPLOAD_MB and RETENTION_DAYS must be positive")

    @property
    def max_upload_bytes(self) -> int:
        return self.MAX_UPLOAD_MB * 1024 * 1024


# Global settings instance
settings = Settings()
