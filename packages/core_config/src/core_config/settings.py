from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from typing import Literal, Optional
from core_config.constants import (
    DEFAULT_POLL_INTERVAL_S,
    DEFAULT_TYPE_RETRY_MAX,
    DEFAULT_TYPE_RETRY_BACKOFF_S,
    DEFAULT_PERSISTENT_FAILURE_THRESHOLD,
    DEFAULT_COLLECTION_ID,
    DEFAULT_USER_ID,
    EMBEDDED_SUFFIX,
    HTTP_TIMEOUT_S,
)

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore", populate_by_name=True)

    environment: str = Field(default="dev", alias="ENVIRONMENT")
    service_log_level: str = Field(default="INFO", alias="SERVICE_LOG_LEVEL")

    # Directory input
    sync_directory: Optional[str] = Field(default=None, alias="FOLDER_SYNC_DIRECTORY")
    poll_interval_seconds: float = Field(default=DEFAULT_POLL_INTERVAL_S, alias="FOLDER_SYNC_POLL_INTERVAL")
    qualified_name_prefix: str = Field(default="", alias="FOLDER_SYNC_QUALIFIED_NAME_PREFIX")

    # Type resolution
    type_retry_max: int = Field(default=DEFAULT_TYPE_RETRY_MAX, alias="FOLDER_SYNC_TYPE_RETRY_MAX")
    type_retry_backoff_seconds: float = Field(
        default=DEFAULT_TYPE_RETRY_BACKOFF_S, alias="FOLDER_SYNC_TYPE_RETRY_BACKOFF"
    )
    schema_provider_url: Optional[str] = Field(default=None, alias="FOLDER_SYNC_SCHEMA_URL")

    # Failure containment
    persistent_failure_threshold: int = Field(
        default=DEFAULT_PERSISTENT_FAILURE_THRESHOLD, alias="FOLDER_SYNC_PERSISTENT_FAILURE_THRESHOLD"
    )
    stop_on_persistent_failure: bool = Field(default=False, alias="FOLDER_SYNC_STOP_ON_PERSISTENT_FAILURE")

    # Collection identity (outer façade + embedded store)
    collection_id: str = Field(default=DEFAULT_COLLECTION_ID, alias="FOLDER_SYNC_COLLECTION_ID")
    collection_name: str = Field(default="folder-sync", alias="FOLDER_SYNC_COLLECTION_NAME")
    embedded_collection_id_raw: Optional[str] = Field(default=None, alias="FOLDER_SYNC_EMBEDDED_COLLECTION_ID")
    embedded_store: Literal["memory", "arango"] = Field(default="memory", alias="FOLDER_SYNC_EMBEDDED_STORE")

    @property
    def embedded_collection_id(self) -> str:  # noqa: D401
        """Embedded identity; defaults to the outer id plus ``-embedded``."""
        return self.embedded_collection_id_raw or f"{self.collection_id}{EMBEDDED_SUFFIX}"

    # Event publishing
    server_name: str = Field(default="folder-sync-server", alias="FOLDER_SYNC_SERVER_NAME")
    server_type: str = Field(default="FolderGraphRepository", alias="FOLDER_SYNC_SERVER_TYPE")
    org_name: str = Field(default="", alias="FOLDER_SYNC_ORG_NAME")
    user_id: str = Field(default=DEFAULT_USER_ID, alias="FOLDER_SYNC_USER_ID")
    event_sink_url: Optional[str] = Field(default=None, alias="FOLDER_SYNC_EVENT_SINK_URL")
    http_timeout_seconds: float = Field(default=HTTP_TIMEOUT_S, alias="FOLDER_SYNC_HTTP_TIMEOUT")

    # Service
    autostart: bool = Field(default=False, alias="FOLDER_SYNC_AUTOSTART")

    # Arango
    arango_url: str = Field(default="http://arangodb:8529", alias="ARANGO_URL")
    arango_db: str = Field(default="folder_sync", alias="ARANGO_DB")
    arango_root_user: str = Field(default="root", alias="ARANGO_ROOT_USER")
    arango_root_password: str = Field(default="", alias="ARANGO_ROOT_PASSWORD")
    arango_graph_name: str = Field(default="folder_sync_graph", alias="ARANGO_GRAPH_NAME")

    @property
    def arango_username(self) -> str:  # noqa: D401
        """Return the configured root user (alias)."""
        return self.arango_root_user

    @property
    def arango_password(self) -> str:  # noqa: D401
        """Return the configured root password (alias)."""
        return self.arango_root_password

    @field_validator("poll_interval_seconds", "type_retry_backoff_seconds", "http_timeout_seconds")
    @classmethod
    def _non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    @field_validator("type_retry_max", "persistent_failure_threshold")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v

def get_settings() -> "Settings":
    return Settings()
