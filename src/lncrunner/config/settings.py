"""
LncRunner Configuration Settings.

Clean, validated configuration using pydantic-settings.
"""

from pathlib import Path
from typing import Annotated, Literal

from pydantic import BeforeValidator, ConfigDict, Field
from pydantic_settings import BaseSettings


def parse_cors_origins(v):
    """Parse CORS origins from comma-separated string or list."""
    if isinstance(v, str):
        return [origin.strip() for origin in v.split(",") if origin.strip()]
    return v


CorsOriginsList = Annotated[list[str], BeforeValidator(parse_cors_origins)]


class StorageSettings(BaseSettings):
    """File storage configuration."""

    # Per-job directory trees live under jobs_dir/<job_id>
    jobs_dir: Path = Field(default=Path("jobs"))
    # Uploads are spooled here until the job's task stages them
    upload_dir: Path = Field(default=Path("uploads"))

    max_file_size: int = Field(
        default=10 * 1024 * 1024 * 1024,  # 10GB
        description="Maximum upload file size in bytes",
    )

    def ensure_directories(self) -> None:
        """Create all directories if they don't exist."""
        for attr in ["jobs_dir", "upload_dir"]:
            path = getattr(self, attr)
            path.mkdir(parents=True, exist_ok=True)

    model_config = ConfigDict(env_prefix="STORAGE_")


class PipelineSettings(BaseSettings):
    """External LncRAnalyzer container configuration."""

    container_engine: str = Field(default="docker")
    image: str = Field(default="nikhilshinde0909/lncranalyzer:latest")
    threads: int = Field(default=4, ge=1, le=64)

    # Paths inside the container
    entrypoint: str = Field(default="/pipeline/LncRAnalyzer/Main.groovy")
    input_mount: str = Field(default="/input")
    output_mount: str = Field(default="/pipeline/LncRAnalyzer-summary")
    manifest_name: str = Field(default="data.groovy")
    summary_name: str = Field(default="LncRAnalyzer-summary")

    # Scheduling
    max_concurrent_jobs: int = Field(
        default=4,
        ge=0,
        description="Jobs allowed past the queue at once (0 = unlimited)",
    )
    timeout_seconds: int | None = Field(
        default=None,
        ge=1,
        description="Wall-clock limit per pipeline run (None = unbounded)",
    )
    terminate_grace_seconds: int = Field(default=30, ge=0)
    log_tail_lines: int = Field(default=50, ge=0)
    # Level for relayed container output (None = same as root)
    output_log_level: str | None = Field(default=None)

    model_config = ConfigDict(env_prefix="PIPELINE_")


class SecuritySettings(BaseSettings):
    """Security configuration."""

    cors_origins: CorsOriginsList = Field(
        default=["http://localhost:5000", "http://localhost:5173"]
    )
    cors_allow_credentials: bool = False

    model_config = ConfigDict(env_prefix="SECURITY_")


class Settings(BaseSettings):
    """Main application settings."""

    # Environment
    env: Literal["development", "testing", "staging", "production"] = Field(
        default="development"
    )
    debug: bool = Field(default=True)

    # App info
    app_name: str = Field(default="LncRunner")
    app_version: str = Field(default="1.0.0")

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=5000)

    # Subsettings
    storage: StorageSettings = Field(default_factory=StorageSettings)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)

    def is_production(self) -> bool:
        return self.env == "production"

    def is_development(self) -> bool:
        return self.env == "development"

    def setup(self) -> None:
        """Setup environment."""
        self.storage.ensure_directories()

        if self.is_production():
            self.debug = False

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


# Global instance
settings = Settings()


def get_settings() -> Settings:
    """Get settings instance (for dependency injection)."""
    return settings
