"""Authenticated session bootstrap.

A Session is established once per provider configuration and then shared
read-only by every reconciler call. Login is attempted immediately; only a
rate-limited failure is retried, with doubling backoff and jitter, until the
login deadline. Any other failure is terminal on the spot.
"""

from __future__ import annotations

import logging
import random
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from .backoff import (
    LOGIN_RETRY_POLICY,
    RetryCancelledError,
    RetryTimeoutError,
    retry_with_deadline,
)
from .client import ApiKeysClient, ControlPlaneClient
from .config import ENV_PASSWORD, ENV_USERNAME, ProviderConfig
from .errors import AuthError, is_rate_limited

logger = logging.getLogger(__name__)

ControlPlaneFactory = Callable[[ProviderConfig], ControlPlaneClient]
ApiKeysFactory = Callable[[ProviderConfig], ApiKeysClient]


def default_control_plane_factory(config: ProviderConfig) -> ControlPlaneClient:
    return ControlPlaneClient(
        config.username,
        config.password,
        base_url=config.base_url,
        timeout=config.request_timeout_seconds,
    )


def default_api_keys_factory(config: ProviderConfig) -> ApiKeysClient:
    return ApiKeysClient(
        config.cloud_api_key,
        config.cloud_api_secret,
        base_url=config.api_keys_url,
        timeout=config.request_timeout_seconds,
    )


@dataclass(frozen=True)
class Session:
    """Authenticated handles to the remote APIs.

    Attributes:
        client: Logged-in control-plane client.
        api_keys: API keys client using cloud API key/secret basic auth.
    """

    client: ControlPlaneClient
    api_keys: ApiKeysClient

    def close(self) -> None:
        self.client.close()
        self.api_keys.close()


def establish_session(
    config: ProviderConfig,
    *,
    client_factory: ControlPlaneFactory = default_control_plane_factory,
    api_keys_factory: ApiKeysFactory = default_api_keys_factory,
    cancel: threading.Event | None = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], bool] | None = None,
    rng: random.Random | None = None,
) -> Session:
    """Log in and return an authenticated Session.

    Args:
        config: Provider configuration holding the credentials.
        client_factory: Builds the control-plane client.
        api_keys_factory: Builds the API keys client.
        cancel: Optional cancellation signal for the retry loop.
        clock: Monotonic clock, injectable for tests.
        sleep: Interruptible sleep, injectable for tests.
        rng: Jitter source, injectable for tests.

    Returns:
        Session whose control-plane client is logged in.

    Raises:
        AuthError: Login failed with a non-rate-limit error, or the rate limit
            persisted past the login deadline, or the wait was cancelled.
            Also raised before any request when no login credentials are set.
    """
    if not config.has_login_credentials:
        raise AuthError(f"no login credentials configured: set {ENV_USERNAME} and {ENV_PASSWORD}")
    if not config.has_api_key:
        logger.warning(
            "Cloud API key not configured, api_key resources will be rejected",
            extra={"api_keys_url": config.api_keys_url},
        )

    logger.info("Initializing Confluent Cloud client")
    client = client_factory(config)

    try:
        client.login()
    except Exception as first_error:
        if not is_rate_limited(first_error):
            client.close()
            logger.error("Confluent Cloud login failed", extra={"error": str(first_error)})
            raise AuthError(f"login failed: {first_error}") from first_error
        _login_with_backoff(client, config, first_error, cancel, clock, sleep, rng)

    logger.info("Confluent Cloud login succeeded")
    return Session(client=client, api_keys=api_keys_factory(config))


def _log_rate_limited(attempt: int, wait_seconds: float, error: BaseException) -> None:
    logger.info(
        f"Confluent Cloud API rate limit exceeded, retrying in {wait_seconds:.3f}s",
        extra={"attempt": attempt, "wait_seconds": wait_seconds},
    )


def _login_with_backoff(
    client: ControlPlaneClient,
    config: ProviderConfig,
    first_error: BaseException,
    cancel: threading.Event | None,
    clock: Callable[[], float],
    sleep: Callable[[float], bool] | None,
    rng: random.Random | None,
) -> None:
    """Retry login while the API reports its rate limit as exceeded.

    Closes the client before raising so a failed bootstrap leaks no connections.
    """
    policy = LOGIN_RETRY_POLICY.with_timeout(config.login_timeout_seconds)
    try:
        retry_with_deadline(
            client.login,
            policy,
            is_retryable=is_rate_limited,
            description="Confluent Cloud login",
            prior_error=first_error,
            cancel=cancel,
            clock=clock,
            sleep=sleep,
            rng=rng,
            on_retry=_log_rate_limited,
        )
    except RetryCancelledError as e:
        client.close()
        cause = e.last_error or first_error
        raise AuthError(f"login cancelled: {cause}") from cause
    except RetryTimeoutError as e:
        client.close()
        cause = e.last_error or first_error
        raise AuthError(
            f"login still rate limited after {config.login_timeout_seconds}s: {cause}"
        ) from cause
    except Exception as e:
        client.close()
        logger.error("Confluent Cloud login failed", extra={"error": str(e)})
        raise AuthError(f"login failed: {e}") from e
