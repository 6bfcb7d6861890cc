"""Provider configuration with validation.

Options are resolved from explicit values first and fall back to
environment variables of fixed names. All credentials are optional at the
type level; authentication fails later if the combination is incomplete.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from .backoff import LOGIN_TIMEOUT_SECONDS, PROVISIONING_TIMEOUT_SECONDS


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    pass


DEFAULT_BASE_URL = "https://confluent.cloud"
DEFAULT_API_KEYS_URL = "https://api.confluent.cloud"
DEFAULT_REQUEST_TIMEOUT_SECONDS = 30

# Environment variable names
ENV_USERNAME = "CONFLUENT_CLOUD_USERNAME"
ENV_PASSWORD = "CONFLUENT_CLOUD_PASSWORD"
ENV_API_KEY = "CONFLUENT_CLOUD_API_KEY"
ENV_API_SECRET = "CONFLUENT_CLOUD_API_SECRET"
ENV_BASE_URL = "CONFLUENT_CLOUD_URL"
ENV_API_KEYS_URL = "CONFLUENT_CLOUD_API_URL"
ENV_REQUEST_TIMEOUT = "CONFLUENT_CLOUD_REQUEST_TIMEOUT"
ENV_LOGIN_TIMEOUT = "CONFLUENT_CLOUD_LOGIN_TIMEOUT"
ENV_CREATE_TIMEOUT = "CONFLUENT_CLOUD_CREATE_TIMEOUT"
ENV_DIFF_RULES_FILE = "CONFLUENT_CLOUD_DIFF_RULES_FILE"

VALID_URL_SCHEMES = ("https://", "http://")


@dataclass(frozen=True)
class ProviderConfig:
    """Provider options.

    Credentials are excluded from repr so a logged config never leaks them.
    """

    username: str = ""
    password: str = field(default="", repr=False)
    cloud_api_key: str = field(default="", repr=False)
    cloud_api_secret: str = field(default="", repr=False)

    base_url: str = DEFAULT_BASE_URL
    api_keys_url: str = DEFAULT_API_KEYS_URL

    # Timing
    request_timeout_seconds: int = DEFAULT_REQUEST_TIMEOUT_SECONDS
    login_timeout_seconds: int = LOGIN_TIMEOUT_SECONDS
    create_timeout_seconds: int = PROVISIONING_TIMEOUT_SECONDS

    # YAML file extending the connector config diff suppression rules
    diff_rules_file: str = ""

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        errors: list[str] = []

        if bool(self.username) != bool(self.password):
            errors.append(f"{ENV_USERNAME} and {ENV_PASSWORD} must be set together")

        if bool(self.cloud_api_key) != bool(self.cloud_api_secret):
            errors.append(f"{ENV_API_KEY} and {ENV_API_SECRET} must be set together")

        for name, url in (("base_url", self.base_url), ("api_keys_url", self.api_keys_url)):
            if not url.startswith(VALID_URL_SCHEMES):
                errors.append(f"{name} must be an http(s) URL: {url}")

        for name, value in (
            ("request_timeout_seconds", self.request_timeout_seconds),
            ("login_timeout_seconds", self.login_timeout_seconds),
            ("create_timeout_seconds", self.create_timeout_seconds),
        ):
            if value <= 0:
                errors.append(f"{name} must be positive: {value}")

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    @property
    def has_login_credentials(self) -> bool:
        return bool(self.username and self.password)

    @property
    def has_api_key(self) -> bool:
        return bool(self.cloud_api_key and self.cloud_api_secret)

    @classmethod
    def from_env(cls, **overrides: str | int | None) -> ProviderConfig:
        """Load configuration, preferring explicit overrides over the environment.

        Environment Variables:
            CONFLUENT_CLOUD_USERNAME: Login email.
            CONFLUENT_CLOUD_PASSWORD: Login password.
            CONFLUENT_CLOUD_API_KEY: Cloud API key for the API keys endpoint.
            CONFLUENT_CLOUD_API_SECRET: Cloud API secret.
            CONFLUENT_CLOUD_URL: Control-plane base URL (default: https://confluent.cloud)
            CONFLUENT_CLOUD_API_URL: API keys endpoint base URL
                (default: https://api.confluent.cloud)
            CONFLUENT_CLOUD_REQUEST_TIMEOUT: Per-request timeout in seconds (default: 30)
            CONFLUENT_CLOUD_LOGIN_TIMEOUT: Login retry deadline in seconds (default: 1800)
            CONFLUENT_CLOUD_CREATE_TIMEOUT: Create retry deadline in seconds (default: 1200)
            CONFLUENT_CLOUD_DIFF_RULES_FILE: Extra diff suppression rules (optional)

        Args:
            **overrides: Field values that take precedence when not None or empty.
        """

        def get_str(name: str, key: str, default: str = "") -> str:
            value = overrides.get(name)
            if value:
                return str(value)
            return os.environ.get(key, default) or default

        def get_int(name: str, key: str, default: int) -> int:
            value = overrides.get(name)
            if value is not None:
                return int(value)
            raw = os.environ.get(key)
            if raw is None or raw == "":
                return default
            try:
                return int(raw)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be an integer: {raw}") from e

        return cls(
            username=get_str("username", ENV_USERNAME),
            password=get_str("password", ENV_PASSWORD),
            cloud_api_key=get_str("cloud_api_key", ENV_API_KEY),
            cloud_api_secret=get_str("cloud_api_secret", ENV_API_SECRET),
            base_url=get_str("base_url", ENV_BASE_URL, DEFAULT_BASE_URL),
            api_keys_url=get_str("api_keys_url", ENV_API_KEYS_URL, DEFAULT_API_KEYS_URL),
            request_timeout_seconds=get_int(
                "request_timeout_seconds", ENV_REQUEST_TIMEOUT, DEFAULT_REQUEST_TIMEOUT_SECONDS
            ),
            login_timeout_seconds=get_int(
                "login_timeout_seconds", ENV_LOGIN_TIMEOUT, LOGIN_TIMEOUT_SECONDS
            ),
            create_timeout_seconds=get_int(
                "create_timeout_seconds", ENV_CREATE_TIMEOUT, PROVISIONING_TIMEOUT_SECONDS
            ),
            diff_rules_file=get_str("diff_rules_file", ENV_DIFF_RULES_FILE),
        )
