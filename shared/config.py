"""
Configuration for OIDC discovery metadata caching.
"""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

WELL_KNOWN_PATH = "/.well-known/openid-configuration"


def ensure_discovery_path(endpoint: str) -> str:
    """Append the well-known discovery path to a bare authority URL."""
    endpoint = endpoint.strip()
    if endpoint.endswith(WELL_KNOWN_PATH):
        return endpoint
    return endpoint.rstrip("/") + WELL_KNOWN_PATH


class DiscoverySettings(BaseSettings):
    """Settings for one discovery endpoint, read from OIDC_* variables."""

    model_config = SettingsConfigDict(
        env_prefix="OIDC_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Discovery endpoint
    discovery_endpoint: str = Field(min_length=1)

    # Refresh policy
    refresh_interval: float = Field(default=1800.0, gt=0)
    delay_load_metadata: bool = False
    serve_stale_on_error: bool = False

    # Back channel
    http_timeout: float = Field(default=10.0, gt=0)
    verify_tls: bool = True
    ca_bundle: Optional[str] = None

    # Observability
    log_level: str = "info"

    @field_validator("discovery_endpoint")
    @classmethod
    def _normalize_endpoint(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("discovery_endpoint must not be blank")
        return ensure_discovery_path(value)

    @property
    def verify(self):
        """TLS verification argument for the back channel client."""
        if not self.verify_tls:
            return False
        return self.ca_bundle or True


def get_settings(**overrides) -> DiscoverySettings:
    """Load discovery settings from the environment."""
    return DiscoverySettings(**overrides)
