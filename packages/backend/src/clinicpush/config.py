"""Application configuration via environment variables.

Uses pydantic-settings to load config from env vars with CLINICPUSH_ prefix.
No YAML files, no file-based config — just env vars (12-factor app style).

Learn: Every handler invocation is stateless, so everything a handler
needs (Redis URL, JWT secret, gateway endpoint) must come from here
rather than from something an earlier request left in memory.
"""

from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All app configuration. Set via CLINICPUSH_* env vars."""

    # Connection store (Redis)
    redis_url: str = "redis://localhost:6379/0"
    key_prefix: str = "clinicpush"
    connection_ttl_seconds: int = 3 * 60 * 60  # orphaned records expire after 3h

    # Auth (tokens are issued by the clinic API, verified here)
    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60

    # Push gateway (empty endpoint disables delivery)
    gateway_endpoint: str = ""
    gateway_api_key: str = ""
    gateway_timeout_seconds: float = 10.0
    gateway_integration_secret: str = ""  # required in X-Gateway-Secret if set

    # Routing
    doctor_scoped_routing: bool = True

    # Server
    environment: str = "development"
    host: str = "0.0.0.0"
    port: int = 8000

    # CORS
    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]

    model_config = {"env_prefix": "CLINICPUSH_"}

    @property
    def realtime_enabled(self) -> bool:
        return bool(self.gateway_endpoint)

    @model_validator(mode="after")
    def validate_production_settings(self):
        """Ensure sensitive defaults are changed in non-development environments."""
        if (
            self.environment != "development"
            and self.jwt_secret == "change-me-in-production"
        ):
            raise ValueError(
                "CLINICPUSH_JWT_SECRET must be set to a secure value in "
                "non-development environments. It must match the secret "
                "the clinic API signs access tokens with."
            )
        return self


# Singleton, import this everywhere
settings = Settings()
