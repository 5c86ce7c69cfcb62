from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    db_host: str = "host.docker.internal"
    db_port: int = 5432
    db_database: str = "provenance"
    db_username: str = "provenance"
    db_password: str = "secret"
    db_pool_max_size: int = 10

    queue_backend: str = "redis"
    redis_url: str = ""
    queue_name: str = "verification"

    worker_concurrency: int = 3
    max_job_attempts: int = 3
    retry_backoff_base_seconds: float = 5.0
    retry_backoff_max_seconds: float = 300.0
    job_poll_interval_seconds: int = 5
    job_timeout_seconds: int = 120

    manifest_fetch_timeout_seconds: int = 15
    ipfs_gateway_url: str = "https://ipfs.io/ipfs/"

    rpc_timeout_seconds: int = 20
    default_chain_id: int = 84532
    chain_ids: list[int] = [84532]
    registry_addresses: dict[int, str] = {}
    rpc_urls: dict[int, str] = {}
    registry_start_block: int | None = None
    signer_private_key: str = ""

    upload_dir: str = "/tmp/provenance-uploads"
    api_host: str = "0.0.0.0"
    api_port: int = 3001

    @field_validator("queue_backend")
    @classmethod
    def _check_queue_backend(cls, value: str) -> str:
        backend = value.strip().lower()
        if backend not in {"redis", "memory", "none"}:
            raise ValueError(
                f"Unknown queue backend '{value}'. Choose from: ['memory', 'none', 'redis']"
            )
        return backend

    @field_validator("worker_concurrency", "max_job_attempts")
    @classmethod
    def _check_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    @model_validator(mode="after")
    def _check_timeouts(self) -> "Settings":
        budget = self.job_timeout_seconds
        if self.manifest_fetch_timeout_seconds >= budget or self.rpc_timeout_seconds >= budget:
            raise ValueError(
                "manifest_fetch_timeout_seconds and rpc_timeout_seconds must be "
                "shorter than job_timeout_seconds"
            )
        return self
