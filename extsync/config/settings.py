"""
External Sync Service Configuration Settings
"""
import os
from typing import List, Optional
from dataclasses import dataclass, field

from dotenv import load_dotenv


def get_env(key: str, default: str = "") -> str:
    """Get environment variable with default value"""
    return os.getenv(key, default)


def get_env_int(key: str, default: int = 0) -> int:
    """Get environment variable as integer"""
    try:
        return int(os.getenv(key, str(default)))
    except ValueError:
        return default


def get_env_float(key: str, default: float = 0.0) -> float:
    """Get environment variable as float"""
    try:
        return float(os.getenv(key, str(default)))
    except ValueError:
        return default


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get environment variable as boolean"""
    value = os.getenv(key, str(default)).lower()
    return value in ('true', '1', 'yes', 'on')


def get_env_list(key: str, default: str = "") -> List[str]:
    """Get comma-separated environment variable as a list"""
    return [item.strip() for item in os.getenv(key, default).split(",") if item.strip()]


@dataclass
class SourceStoreSettings:
    """Source store (internal database) settings"""

    backend: str = field(default_factory=lambda: get_env("SOURCE_BACKEND", "postgrest"))
    url: str = field(default_factory=lambda: get_env("SOURCE_URL") or get_env("SUPABASE_URL"))
    api_key: Optional[str] = field(
        default_factory=lambda: get_env("SOURCE_API_KEY") or get_env("SUPABASE_SERVICE_ROLE_KEY") or None
    )
    schema: str = field(default_factory=lambda: get_env("SOURCE_SCHEMA", "public"))
    timeout: float = field(default_factory=lambda: get_env_float("SOURCE_TIMEOUT", 60.0))


@dataclass
class DestinationStoreSettings:
    """Destination store (external database) settings"""

    backend: str = field(default_factory=lambda: get_env("DESTINATION_BACKEND", "postgrest"))
    url: str = field(default_factory=lambda: get_env("DESTINATION_URL") or get_env("EXTERNAL_SUPABASE_URL"))
    api_key: Optional[str] = field(
        default_factory=lambda: get_env("DESTINATION_API_KEY") or get_env("EXTERNAL_SUPABASE_SERVICE_KEY") or None
    )
    schema: str = field(default_factory=lambda: get_env("DESTINATION_SCHEMA", "public"))
    timeout: float = field(default_factory=lambda: get_env_float("DESTINATION_TIMEOUT", 60.0))


@dataclass
class SyncSettings:
    """Replication engine settings"""

    # Capped at the PostgREST max-rows limit (1000 on Supabase) for that backend
    page_size: int = field(default_factory=lambda: get_env_int("SYNC_PAGE_SIZE", 1000))
    batch_size: int = field(default_factory=lambda: get_env_int("SYNC_BATCH_SIZE", 1000))
    status_sample_size: int = field(default_factory=lambda: get_env_int("SYNC_STATUS_SAMPLE_SIZE", 10))

    # Fail the table when clearing the destination fails instead of inserting anyway
    strict_delete: bool = field(default_factory=lambda: get_env_bool("SYNC_STRICT_DELETE", False))

    # YAML catalog file; the built-in catalog is used when empty
    catalog_file: str = field(default_factory=lambda: get_env("SYNC_CATALOG_FILE", ""))


@dataclass
class AppSettings:
    """Application configuration settings"""

    app_name: str = field(default_factory=lambda: get_env("APP_NAME", "External Sync Service"))
    app_version: str = field(default_factory=lambda: get_env("APP_VERSION", "1.0.0"))
    debug: bool = field(default_factory=lambda: get_env_bool("DEBUG", False))
    log_level: str = field(default_factory=lambda: get_env("LOG_LEVEL", "INFO"))
    log_dir: str = field(default_factory=lambda: get_env("LOG_DIR", ""))

    # HTTP surface
    api_prefix: str = field(default_factory=lambda: get_env("API_PREFIX", ""))
    cors_origins: List[str] = field(default_factory=lambda: get_env_list("CORS_ORIGINS", "*"))
    api_host: str = field(default_factory=lambda: get_env("API_HOST", "0.0.0.0"))
    api_port: int = field(default_factory=lambda: get_env_int("API_PORT", 8000))


@dataclass
class Settings:
    """Main settings class that combines all configuration sections"""

    source: SourceStoreSettings = field(default_factory=SourceStoreSettings)
    destination: DestinationStoreSettings = field(default_factory=DestinationStoreSettings)
    sync: SyncSettings = field(default_factory=SyncSettings)
    app: AppSettings = field(default_factory=AppSettings)


# Load .env file if it exists
load_dotenv()

# Global settings instance
settings = Settings()
