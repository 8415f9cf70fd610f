"""
Name: Application Configuration (Settings)

Responsibilities:
  - Centralized, typed configuration using pydantic-settings
  - Validate environment variables at startup
  - Provide defaults that match the browser storefront's behavior

Collaborators:
  - container.py: reads settings to wire storage, HTTP client and stores
  - infrastructure.services.retry: retry attempts/delays
  - identity.tokens: JWT verification options
  - logger.py: log level and format

Constraints:
  - No business logic, configuration only
  - Every field overridable via environment variable

Notes:
  - Singleton via lru_cache; tests call get_settings.cache_clear()
  - storage_path empty means in-memory local storage (nothing survives restart)
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MERGE_FAILURE_POLICIES = {"discard", "retain"}


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes:
        app_env: Application environment (development/test/production)
        api_base_url: REST backend base URL (env: STOREFRONT_API_URL)
        request_timeout_seconds: Per-request timeout (default: 10s)
        storage_path: JSON file backing local storage (empty -> in-memory)
        jwt_verify_signature: Verify token signatures client-side (default: off)
        jwt_secret: Secret used when signature verification is on
        jwt_algorithm: Accepted signing algorithm
        retry_max_attempts: Attempts for idempotent GETs
        retry_base_delay_seconds: Initial backoff delay
        retry_max_delay_seconds: Backoff ceiling
        track_interactions: Send cart_add interaction events
        merge_failure_policy: discard|retain unmerged guest items
        serialize_cart_mutations: Per-product mutation lock
        log_level: Logger level
        log_json: JSON log lines (False -> plain text)
    """

    model_config = SettingsConfigDict(
        env_file=".env", extra="ignore", populate_by_name=True
    )

    app_env: str = "development"

    # Remote API
    api_base_url: str = Field(
        default="http://localhost:5000/api", validation_alias="STOREFRONT_API_URL"
    )
    request_timeout_seconds: float = 10.0

    # Local persistent storage
    storage_path: str = ""

    # Credentials
    jwt_verify_signature: bool = False
    jwt_secret: str = ""
    jwt_algorithm: str = "HS256"

    # Retry/Resilience
    retry_max_attempts: int = 3
    retry_base_delay_seconds: float = 0.2
    retry_max_delay_seconds: float = 5.0

    # Cart behavior
    track_interactions: bool = True
    merge_failure_policy: str = "discard"
    serialize_cart_mutations: bool = True

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    @field_validator("api_base_url")
    @classmethod
    def api_base_url_must_be_http(cls, v: str) -> str:
        value = (v or "").strip().rstrip("/")
        if not value.startswith(("http://", "https://")):
            raise ValueError("api_base_url must start with http:// or https://")
        return value

    @field_validator("request_timeout_seconds")
    @classmethod
    def timeout_must_be_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("request_timeout_seconds must be greater than 0")
        return v

    @field_validator("retry_max_attempts")
    @classmethod
    def retry_attempts_must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("retry_max_attempts must be greater than 0")
        return v

    @field_validator("merge_failure_policy")
    @classmethod
    def merge_failure_policy_valid(cls, v: str) -> str:
        policy = (v or "discard").strip().lower()
        if policy not in MERGE_FAILURE_POLICIES:
            raise ValueError("merge_failure_policy must be discard or retain")
        return policy

    def validate_jwt_params(self) -> None:
        """
        Cross-field validation: verification needs a secret.
        Called explicitly after instantiation.
        """
        if self.jwt_verify_signature and not self.jwt_secret:
            raise ValueError("jwt_secret is required when jwt_verify_signature is on")

    @property
    def retains_failed_merges(self) -> bool:
        return self.merge_failure_policy == "retain"


@lru_cache
def get_settings() -> Settings:
    """R: Load and validate settings once per process."""
    settings = Settings()
    settings.validate_jwt_params()
    return settings
