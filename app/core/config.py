import os
import logging
from pydantic import BaseModel, Field
from typing import List
from dotenv import load_dotenv

load_dotenv()


def _env_list(name: str, default: str) -> List[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


class AbsencePolicySettings(BaseModel):
    # Absences of this many days or more always require a medical note
    documentation_threshold_days: int = Field(default=int(os.getenv("DOCUMENTATION_THRESHOLD_DAYS", "5")))
    bradford_medium_threshold: int = Field(default=int(os.getenv("BRADFORD_MEDIUM_THRESHOLD", "50")))
    bradford_high_threshold: int = Field(default=int(os.getenv("BRADFORD_HIGH_THRESHOLD", "200")))
    approver_roles: List[str] = Field(
        default_factory=lambda: _env_list("ABSENCE_APPROVER_ROLES", "admin,super-admin,hr,manager")
    )
    allow_admin_overlap_override: bool = Field(
        default=os.getenv("ALLOW_ADMIN_OVERLAP_OVERRIDE", "false").lower() == "true"
    )


class Config(BaseModel):
    app_name: str = "HR Absence Platform"
    environment: str = os.getenv("APP_ENV", "development")
    api_prefix: str = "/api"
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./database.db")

    # Auth (tokens are issued by the identity provider, we only verify them)
    secret_key: str = os.getenv("SECRET_KEY", "dev-only-insecure-key-DO-NOT-USE-IN-PROD")
    jwt_algorithm: str = os.getenv("JWT_ALGORITHM", "HS256")
    access_token_expire_minutes: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24)))

    version: str = "1.0.0"
    request_id_header: str = "X-Request-ID"

    cors_origins: List[str] = Field(
        default_factory=lambda: _env_list(
            "CORS_ORIGINS",
            "http://localhost:3000,http://localhost:3001,"
            "http://127.0.0.1:3000,http://127.0.0.1:3001",
        )
    )

    rate_limit_per_minute: int = int(os.getenv("RATE_LIMIT_PER_MINUTE", "60"))
    rate_limit_enabled: bool = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"

    absence: AbsencePolicySettings = AbsencePolicySettings()


settings = Config()

# --- Startup Validation for Production ---
_logger = logging.getLogger(__name__)
if settings.environment not in ("development", "testing"):
    if "dev-only" in settings.secret_key:
        raise RuntimeError(
            "FATAL: SECRET_KEY must be set for non-development environments. "
            "Set it as an environment variable."
        )
elif "dev-only" in settings.secret_key:
    _logger.warning("⚠ Using insecure default SECRET_KEY, only acceptable in development.")
