"""
Configuration for the directory lookup core.

Search tunables come from AD_LOOKUP_* environment variables. Connection
settings are per domain, read from {DOMAIN}_AD_URL, {DOMAIN}_BASE_DN,
{DOMAIN}_USERNAME and {DOMAIN}_PASSWORD.
"""

import os
from typing import Dict, List, Optional

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict

from ad_lookup.errors import ConfigurationError

ALL_DOMAINS = "all"


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_prefix="AD_LOOKUP_")

    # Comma-separated domain keys, e.g. "lux,essilor"
    domains: str = "lux,essilor"

    # Search tiers
    exact_timeout_seconds: float = 3.0
    broad_timeout_seconds: float = 30.0
    size_limit: int = 10
    min_term_length: int = 2

    # Policy default when the directory does not compute the expiry itself
    password_max_age_days: int = 90

    # Connections
    connect_timeout_seconds: int = 10
    max_workers: int = 8

    # Logging
    log_level: str = "INFO"

    def domain_keys(self) -> List[str]:
        keys = [d.strip().lower() for d in self.domains.split(",") if d.strip()]
        return [k for k in keys if k != ALL_DOMAINS]


class DomainSettings(BaseModel):
    """Connection settings for one directory domain."""
    domain: str
    url: str
    base_dn: str
    username: str = ""
    password: str = ""
    verify_certificate: bool = True
    ca_certificate: Optional[str] = None

    @property
    def anonymous(self) -> bool:
        return not self.username


def load_domain_settings(domain: str, environ: Optional[Dict[str, str]] = None) -> DomainSettings:
    """
    Read connection settings for a domain from the environment.

    Raises:
        ConfigurationError: if the URL or base DN is missing
    """
    env = os.environ if environ is None else environ
    prefix = domain.upper()
    url = env.get(f"{prefix}_AD_URL", "").strip()
    base_dn = env.get(f"{prefix}_BASE_DN", "").strip()

    if not url or not base_dn:
        raise ConfigurationError(f"Missing required {prefix} AD configuration")

    return DomainSettings(
        domain=domain.lower(),
        url=url,
        base_dn=base_dn,
        username=env.get(f"{prefix}_USERNAME", ""),
        password=env.get(f"{prefix}_PASSWORD", ""),
        verify_certificate=env.get(f"{prefix}_VERIFY_CERT", "true").lower() == "true",
        ca_certificate=env.get(f"{prefix}_CA_CERT") or None,
    )


def load_all_domain_settings(settings: Settings, environ: Optional[Dict[str, str]] = None) -> Dict[str, DomainSettings]:
    return {key: load_domain_settings(key, environ) for key in settings.domain_keys()}
