"""
core/config.py -- psst settings, read from PSST_* variables with pydantic-settings.

All environment variable reads for psst happen here. No module should call
os.getenv() or os.environ.get() directly -- import get_settings() instead.
(The NO_COLOR / FORCE_COLOR checks in core/formatter.py are the exception:
they follow a cross-tool convention, not psst configuration.)

get_settings() builds Settings on first call and caches it (lru_cache), so
the environment and any .env file are read once per process. Field types and
validators reject a bad PSST_DEFAULT_FORMAT or PSST_TRUST_BUNDLE at startup.

Layer rule: core/ is the kernel. This module may not import from api/.
"""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.formatter import FORMATS
from core.models import DEFAULT_DNS_NAME_ANNOTATION

logger = logging.getLogger("psst.config")


class Settings(BaseSettings):
    """Settings loaded from PSST_* environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in tests
    without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="PSST_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    debug: bool = False

    # ------------------------------------------------------------------
    # Trust verification
    # ------------------------------------------------------------------

    # PEM bundle of trusted roots. Empty string means the certifi bundle.
    trust_bundle: str = ""
    # Annotation holding the DNS name the leaf certificate must match.
    dns_name_annotation: str = DEFAULT_DNS_NAME_ANNOTATION

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    default_format: str = "terminal"

    # ------------------------------------------------------------------
    # API
    # ------------------------------------------------------------------

    api_rate_limit: str = "30/minute"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("default_format")
    @classmethod
    def validate_format(cls, value: str) -> str:
        if value not in FORMATS:
            raise ValueError(f"default_format must be one of: {', '.join(FORMATS)}")
        return value

    @field_validator("trust_bundle")
    @classmethod
    def validate_trust_bundle(cls, value: str) -> str:
        """A configured bundle that does not exist is a startup failure.

        Silently falling back to the system roots would report a different
        trust verdict than the operator asked for.
        """
        if value and not Path(value).is_file():
            raise ValueError(f"PSST_TRUST_BUNDLE {value!r} is not a readable file")
        return value


@lru_cache
def get_settings() -> Settings:
    """Cached Settings. Tests clear the cache (see tests/conftest.py) after changing PSST_* variables."""
    settings = Settings()
    logger.debug("Settings loaded (trust_bundle=%r)", settings.trust_bundle or "certifi")
    return settings
