"""Settings for the authorization server.

Values come from the environment (optionally via a .env file loaded by
python-dotenv); Settings wraps them in typed properties with defaults.
"""
import os
from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit

from dotenv import load_dotenv

from oauth.grant import ACCESS_TOKEN_TTL_SECONDS, REFRESH_TOKEN_TTL_SECONDS
from oauth.session import SESSION_TTL_SECONDS
from oauth.stores import CODE_TTL_SECONDS
from oauth.tickets import get_or_create_secret


CONFIG_DIR = Path.home() / ".code-grant-server"
SECRET_FILE = CONFIG_DIR / "ticket_secret"

ENV_KEYS = (
    "ISSUER",
    "HOST",
    "PORT",
    "SECRET_KEY",
    "CLIENTS_FILE",
    "CODE_TTL_SECONDS",
    "ACCESS_TOKEN_TTL_SECONDS",
    "REFRESH_TOKEN_TTL_SECONDS",
    "SESSION_TTL_SECONDS",
    "ALLOW_INSECURE_HTTP",
    "SCOPES_SUPPORTED",
    "LOG_FORMAT",
    "LOG_LEVEL",
)


def _as_bool(value, default: bool = False) -> bool:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Configuration container."""

    def __init__(self, data: dict = None):
        self.data = data or {}

    def _int(self, key: str, default: int) -> int:
        value = self.data.get(key)
        if value is None or value == "":
            return default
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ValueError(f"{key} must be an integer, got {value!r}")

    @property
    def issuer(self) -> str:
        return (self.data.get("ISSUER") or f"http://localhost:{self.port}").rstrip("/")

    @property
    def host(self) -> str:
        return self.data.get("HOST") or "127.0.0.1"

    @property
    def port(self) -> int:
        return self._int("PORT", 8000)

    @property
    def clients_file(self) -> Optional[Path]:
        value = self.data.get("CLIENTS_FILE")
        return Path(value) if value else None

    @property
    def code_ttl(self) -> int:
        return self._int("CODE_TTL_SECONDS", CODE_TTL_SECONDS)

    @property
    def access_token_ttl(self) -> int:
        return self._int("ACCESS_TOKEN_TTL_SECONDS", ACCESS_TOKEN_TTL_SECONDS)

    @property
    def refresh_token_ttl(self) -> int:
        return self._int("REFRESH_TOKEN_TTL_SECONDS", REFRESH_TOKEN_TTL_SECONDS)

    @property
    def session_ttl(self) -> int:
        return self._int("SESSION_TTL_SECONDS", SESSION_TTL_SECONDS)

    @property
    def allow_insecure_http(self) -> bool:
        return _as_bool(self.data.get("ALLOW_INSECURE_HTTP"))

    @property
    def secure_cookies(self) -> bool:
        """Session cookies are marked Secure whenever the issuer is https."""
        return urlsplit(self.issuer).scheme == "https"

    @property
    def scopes_supported(self) -> list[str]:
        return (self.data.get("SCOPES_SUPPORTED") or "").split()

    @property
    def log_format(self) -> str:
        return (self.data.get("LOG_FORMAT") or "plain").lower()

    @property
    def log_level(self) -> str:
        return (self.data.get("LOG_LEVEL") or "INFO").upper()

    @property
    def secret_key(self) -> str:
        """SECRET_KEY from the environment, else a secret persisted on disk."""
        secret = self.data.get("SECRET_KEY")
        if secret:
            return secret
        secret = get_or_create_secret(SECRET_FILE)
        self.data["SECRET_KEY"] = secret
        return secret


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """Load settings from the environment, reading .env first if present."""
    env_file = env_file or Path(".env")
    if env_file.exists():
        load_dotenv(env_file)

    return Settings({key: os.environ[key] for key in ENV_KEYS if key in os.environ})
