"""Application settings and configuration."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: Optional[str] = None
    postgres_user: str = "ccpp"
    postgres_password: str = "ccpp_dev_password"
    postgres_db: str = "ccpp"
    postgres_port: int = 5432

    # Redis
    redis_url: str = "redis://localhost:6379/0"

    # MinIO / S3 (document images)
    minio_endpoint: str = "localhost:9000"
    minio_access_key: Optional[str] = None  # Required in non-dev
    minio_secret_key: Optional[str] = None  # Required in non-dev
    minio_bucket: str = "ccpp-documents"
    minio_use_ssl: bool = False

    # API
    api_port: int = 8000
    api_host: str = "0.0.0.0"
    environment: str = "development"

    # Storage backend: "local" (embedded SQL store) or "remote" (HTTP API)
    storage_backend: str = "local"
    remote_api_url: str = "http://localhost:8000"
    remote_timeout_seconds: float = 10.0

    # Ledger
    ledger_append_retries: int = 3
    ledger_verify_interval_seconds: int = 3600  # worker beat schedule

    # Perceptual hashing
    phash_size: int = 8  # 8x8 difference grid -> 64 bits
    phash_amplification: float = 1.5
    phash_similarity_threshold: float = 75.0
    phash_match_workers: int = 1
    phash_partition_size: int = 5000

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"

    # CORS
    cors_origins: list[str] = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]

    @property
    def database_url_computed(self) -> str:
        """Compute database URL if not explicitly set."""
        if self.database_url:
            return self.database_url
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@localhost:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development."""
        return self.environment.lower() == "development"

    def validate_production_settings(self):
        """Validate settings for production environment."""
        if self.storage_backend not in ("local", "remote"):
            raise ValueError(
                f"STORAGE_BACKEND must be 'local' or 'remote', got '{self.storage_backend}'"
            )
        if self.phash_size < 2 or self.phash_size % 2:
            raise ValueError("PHASH_SIZE must be an even number >= 2")
        env = self.environment.lower()
        if env not in ("development", "test", "dev"):
            if not self.minio_access_key or not self.minio_secret_key:
                raise ValueError(
                    "MINIO_ACCESS_KEY and MINIO_SECRET_KEY are required in production. "
                    "Do not use default credentials."
                )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
