from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings pulled from environment variables."""

    model_config = SettingsConfigDict(env_prefix="NOISE3D_", env_file=".env", extra="ignore")

    # API Configuration
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Logging format (e.g., console, json)")

    # Output Configuration
    output_folder: str = Field(default="./generated", description="Folder for exported volume assets")

    # Bake Configuration
    default_size: int = Field(default=64, description="Default grid edge length")
    max_volume_size: int = Field(default=256, description="Max allowed grid edge length")
    max_bake_bytes: int = Field(default=4 * 1024 ** 3, description="Memory budget for one bake")
    bake_workers: int = Field(default=1, ge=1, description="Threads per bake for slice evaluation")
    noise_kernel: str = Field(default="folded", description="Noise kernel (folded, gradient3d)")

    # Job Configuration
    max_retained_jobs: int = Field(default=16, ge=1, description="Max bake jobs (and results) kept in memory")


settings = Settings()
