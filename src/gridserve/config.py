from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="GRIDSERVE_", env_file=".env", extra="ignore", populate_by_name=True
    )

    app_name: str = "gridserve"
    env: str = "dev"
    host: str = "0.0.0.0"  # nosec B104 - intentional for container deployments
    port: int = 8080
    log_level: str = "INFO"

    # Capability signing. Empty means an ephemeral key is generated at startup,
    # which invalidates every issued URL on restart.
    secret_key: str = Field(default="", validation_alias="GRIDSERVE_SECRET_KEY")

    # Storage engine
    storage_backend: str = Field(default="gridfs", validation_alias="STORAGE_BACKEND")
    local_storage_path: str = Field(
        default="/var/lib/gridserve/blobs", validation_alias="LOCAL_STORAGE_PATH"
    )

    # GridFS (when storage_backend="gridfs")
    mongo_uri: str = Field(default="mongodb://localhost:27017", validation_alias="MONGODB_URI")
    mongo_database: str = Field(default="gridserve", validation_alias="MONGODB_DATABASE")
    gridfs_bucket: str = Field(default="fs", validation_alias="GRIDFS_BUCKET")

    # Response defaults when a capability carries no type/disposition
    default_content_type: str = Field(
        default="application/octet-stream", validation_alias="DEFAULT_CONTENT_TYPE"
    )
    default_disposition: str = Field(default="inline", validation_alias="DEFAULT_DISPOSITION")

    # URL issuance
    base_url: str = Field(default="http://localhost:8080", validation_alias="BASE_URL")
    route_prefix: str = Field(default="/storage/gridfs", validation_alias="ROUTE_PREFIX")
    public_urls: bool = Field(default=False, validation_alias="PUBLIC_URLS")
    url_expires_in: int = Field(default=300, validation_alias="URL_EXPIRES_IN")  # 5 minutes

    # Streaming
    stream_chunk_size: int = Field(
        default=5 * 1024 * 1024, validation_alias="STREAM_CHUNK_SIZE"
    )  # 5MiB


settings = Settings()
