"""Configuration from environment variables with defaults and validation."""

import os


class ConfigError(Exception):
    pass


class Config:
    def __init__(self):
        # Required
        self.db_path = self._require("EVALUATIONS_DB_PATH")

        # Optional
        self.uploads_dir = os.environ.get("UPLOADS_DIR", "uploads")
        self.max_upload_size_mb = self._parse_int("MAX_UPLOAD_SIZE_MB", "10")
        self.repair_trigger_secret = os.environ.get("REPAIR_TRIGGER_SECRET", "")
        self.log_level = os.environ.get("LOG_LEVEL", "INFO").upper()

    def _require(self, name: str) -> str:
        value = os.environ.get(name)
        if not value:
            raise ConfigError(f"Required environment variable {name} is not set")
        return value

    def _parse_int(self, name: str, default: str) -> int:
        value = os.environ.get(name, default)
        try:
            return int(value)
        except ValueError:
            raise ConfigError(f"Environment variable {name} must be an integer, got {value!r}")

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024


_config = None


def get_config() -> Config:
    global _config
    if _config is None:
        _config = Config()
    return _config


def reset_config():
    """Reset cached config (for testing)."""
    global _config
    _config = None
