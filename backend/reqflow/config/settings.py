"""Application Settings - Central Configuration"""
from functools import lru_cache
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_JWT_SECRET = "change-me"


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # MongoDB (transactions need a replica set, e.g. ?replicaSet=rs0)
    mongo_uri: str = "mongodb://localhost:27017/?replicaSet=rs0"
    mongo_db: str = "reqflow_dev"

    # Storage backend: "mongo" or "memory"
    storage_backend: str = "mongo"

    # Bearer token validation
    jwt_secret: str = DEFAULT_JWT_SECRET
    jwt_algorithm: str = "HS256"
    jwt_audience: str = ""
    jwt_issuer: str = ""

    # Logging
    logs_path: str = "./logs"
    log_level: str = "INFO"
    log_to_file: bool = True

    # CORS - set to "*" to allow all origins
    cors_origins: str = "*"

    # Workflow policy
    allow_direct_review: bool = True  # approve/reject straight from SUBMITTED
    reject_reason_required: bool = True
    title_max_length: int = 200
    description_max_length: int = 5000

    # Notification feed
    notification_feed_max_limit: int = 100

    # Environment; local runs set ENVIRONMENT=development explicitly
    environment: str = "production"
    debug: bool = False

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins string to list"""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.environment.lower() == "production"

    @property
    def verify_token_signature(self) -> bool:
        """Signatures are only skipped for local development"""
        return self.environment.lower() not in ["development", "dev", "local"]


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
