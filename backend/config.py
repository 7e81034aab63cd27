# File: backend/config.py

import os
from typing import List

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

load_dotenv()


def _env_list(name: str, default: str) -> List[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings(BaseModel):
    # In-memory SQLite unless told otherwise. Nothing survives a restart.
    database_url: str = Field(default=os.getenv("DATABASE_URL", "sqlite://"))
    seed_on_startup: bool = Field(
        default=os.getenv("SEED_ON_STARTUP", "true").lower() in {"1", "true", "yes", "on"}
    )

    # JWT settings
    jwt_secret: str = Field(
        default=os.getenv(
            "JWT_SECRET",
            "8146f8c693b0ac9364d6c17e1f7bcd1022c818c069ac9baf223a4b966360070d",
        )
    )
    jwt_algorithm: str = Field(default=os.getenv("JWT_ALGORITHM", "HS256"))
    access_token_expire_minutes: int = Field(
        default=int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))
    )

    # Demo accounts created by the seed step
    admin_password: str = Field(default=os.getenv("ADMIN_PASSWORD", "admin123"))
    user_password: str = Field(default=os.getenv("USER_PASSWORD", "user123"))

    cors_origins: List[str] = Field(
        default=_env_list("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173")
    )

    # Delay between validation and commit for every mutating endpoint
    simulated_latency_seconds: float = Field(
        default=float(os.getenv("SIMULATED_LATENCY_SECONDS", "0")),
        validate_default=True,
    )

    default_issue_location_id: str = Field(
        default=os.getenv("DEFAULT_ISSUE_LOCATION_ID", "main-archive")
    )
    intake_location_id: str = Field(default=os.getenv("INTAKE_LOCATION_ID", "main-archive"))

    # Empty means uploads are kept in memory
    blob_store_dir: str = Field(default=os.getenv("BLOB_STORE_DIR", ""))

    log_level: str = Field(default=os.getenv("LOG_LEVEL", "INFO"))

    @field_validator("simulated_latency_seconds")
    @classmethod
    def _non_negative_latency(cls, value: float) -> float:
        if value < 0:
            raise ValueError("simulated latency cannot be negative")
        return value


settings = Settings()
