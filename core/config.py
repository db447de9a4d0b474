"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for SteamSignIn happen here, with one exception:
the standalone CLI in main.py reads STEAM_API_KEY directly so it can run
without a SECRET_KEY. Everything else imports get_settings().

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. steam_api_key -> STEAM_API_KEY).

  @model_validator(mode="after"): Cross-field validation once all fields are
      resolved. DEBUG decides whether a missing SECRET_KEY / STEAM_API_KEY is a
      warning or a hard startup failure.

Security notes:
  [M6] SECRET_KEY shorter than 32 chars is rejected outright. It signs the
       session cookie that carries the SessionRecord.

  [M7] In production mode a missing SECRET_KEY or STEAM_API_KEY is a hard
       startup failure. Without the API key every sign-in would end in
       profile_unavailable.

  [M8] persist_credential_in_session defaults to False. Starlette's cookie
       session is signed, not encrypted -- writing the API key into it would
       hand the key to every signed-in browser.

Layer rule: core/ is the kernel. This module may not import from api/, web/,
or auth/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("steamsignin.config")

STEAM_OPENID_URL = "https://steamcommunity.com/openid"
PLAYER_SUMMARIES_API = "https://api.steampowered.com/ISteamUser/GetPlayerSummaries/v0002/"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces
    production-safety rules at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""

    # ------------------------------------------------------------------
    # Session cookie
    # ------------------------------------------------------------------

    secure_cookies: bool = False
    session_max_age: int = 14 * 24 * 60 * 60
    persist_credential_in_session: bool = False  # [M8]

    # ------------------------------------------------------------------
    # Steam OpenID / Web API
    # ------------------------------------------------------------------

    steam_api_key: str = ""
    openid_provider_url: str = STEAM_OPENID_URL
    # Set to the OP endpoint (e.g. https://steamcommunity.com/openid/login) to
    # skip Yadis discovery when building the login URL.
    openid_endpoint_url: str = ""
    openid_return_path: str = "/login/return"
    verify_assertion_signature: bool = False
    profile_api_url: str = PLAYER_SUMMARIES_API
    profile_api_timeout: float = 10.0

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    reload_rate_limit: str = "30/minute"
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secrets(self) -> "Settings":
        """Enforce SECRET_KEY and STEAM_API_KEY policy [M6] [M7].

        Dev mode (DEBUG=true): auto-generate a random SECRET_KEY with a warning;
            a missing STEAM_API_KEY only logs a warning.

        Production mode: refuse to start if either is missing.

        Both modes: reject SECRET_KEY values shorter than 32 characters.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning(
                    "WARNING: Using auto-generated SECRET_KEY. " "Sessions will not persist across restarts."
                )
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")

        if not self.steam_api_key:
            if self.debug:
                logger.warning("WARNING: STEAM_API_KEY is not set. Every sign-in will fail profile lookup.")
            else:
                raise ValueError(
                    "STEAM_API_KEY is required in production mode. "
                    "Get a key at https://steamcommunity.com/dev/apikey"
                )
        if self.profile_api_timeout <= 0:
            raise ValueError("PROFILE_API_TIMEOUT must be a positive number of seconds.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
