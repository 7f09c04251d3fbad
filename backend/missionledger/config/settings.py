"""Application Settings - Central Configuration"""
from functools import lru_cache
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # MongoDB
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db: str = "mission_ledger_dev"

    # Identity (tokens are issued by the auth collaborator)
    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    jwt_audience: str = ""

    # Logging
    logs_path: str = "./logs"
    log_level: str = "INFO"

    # CORS - set to "*" to allow all origins
    cors_origins: str = "*"

    # Audit / telemetry read windows
    audit_default_window: int = 100
    audit_max_window: int = 1000
    telemetry_recent_limit: int = 20
    telemetry_max_window: int = 500

    # Outbox relay
    outbox_relay_interval_seconds: int = 10
    outbox_relay_batch_size: int = 200

    # Evidence hashing: "canonical" or "legacy"
    evidence_hash_scheme: str = "canonical"
    # Attempts at claiming the next evidence number under contention
    evidence_append_attempts: int = 10

    # Role that holds the transition-guard override capability
    admin_role: str = "admin"

    # Environment
    environment: str = "development"
    debug: bool = True

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins string to list"""
        return [origin.strip() for origin in self.cors_origins.split(",")]


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
