"""Provider: configuration, shared session and resource kind registry.

A Provider is created from a ProviderConfig and establishes its Session on
first use. Reconcilers and data sources are bound to that Session.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

from .api_key import ApiKeyReconciler
from .backoff import PROVISIONING_RETRY_POLICY
from .cluster import KafkaClusterReconciler
from .config import ENV_DIFF_RULES_FILE, ConfigurationError, ProviderConfig
from .connector import ConnectorReconciler
from .diff_suppress import DEFAULT_SUPPRESSOR, DiffSuppressError, DiffSuppressor
from .environment import EnvironmentDataSource, EnvironmentReconciler
from .reconciler import ResourceReconciler
from .schema_registry import SchemaRegistryReconciler
from .service_account import ServiceAccountDataSource, ServiceAccountReconciler
from .session import (
    ApiKeysFactory,
    ControlPlaneFactory,
    Session,
    default_api_keys_factory,
    default_control_plane_factory,
    establish_session,
)

logger = logging.getLogger(__name__)

TYPE_PREFIX = "confluentcloud_"

RESOURCES: dict[str, type[ResourceReconciler[Any]]] = {
    "environment": EnvironmentReconciler,
    "connector": ConnectorReconciler,
    "kafka_cluster": KafkaClusterReconciler,
    "api_key": ApiKeyReconciler,
    "schema_registry": SchemaRegistryReconciler,
    "service_account": ServiceAccountReconciler,
}

DATA_SOURCES: dict[str, Callable[[Session], Any]] = {
    "environment": EnvironmentDataSource,
    "service_account": ServiceAccountDataSource,
}


def normalize_kind(kind: str) -> str:
    """Accept both 'connector' and 'confluentcloud_connector'."""
    return kind.removeprefix(TYPE_PREFIX)


def load_suppressor(config: ProviderConfig) -> DiffSuppressor:
    """Connector diff suppressor, extended from the configured rules file if any.

    Raises:
        ConfigurationError: If the rules file cannot be read or parsed.
    """
    if not config.diff_rules_file:
        return DEFAULT_SUPPRESSOR
    try:
        return DiffSuppressor.from_file(config.diff_rules_file)
    except DiffSuppressError as e:
        raise ConfigurationError(f"{ENV_DIFF_RULES_FILE}: {e}") from e


class Provider:
    """Entry point handed to the host.

    Example:
        provider = Provider(ProviderConfig.from_env())
        connector = provider.resource("confluentcloud_connector")
        connector.create(data)
    """

    def __init__(
        self,
        config: ProviderConfig,
        *,
        client_factory: ControlPlaneFactory = default_control_plane_factory,
        api_keys_factory: ApiKeysFactory = default_api_keys_factory,
        cancel: threading.Event | None = None,
    ) -> None:
        self.config = config
        self._client_factory = client_factory
        self._api_keys_factory = api_keys_factory
        self._cancel = cancel
        self._session: Session | None = None
        self._lock = threading.Lock()
        self._suppressor = load_suppressor(config)

    @property
    def is_configured(self) -> bool:
        return self._session is not None

    def configure(self) -> Session:
        """Establish the Session on first call and return the cached one after."""
        with self._lock:
            if self._session is None:
                self._session = establish_session(
                    self.config,
                    client_factory=self._client_factory,
                    api_keys_factory=self._api_keys_factory,
                    cancel=self._cancel,
                )
            return self._session

    def resource(self, kind: str) -> ResourceReconciler[Any]:
        """Reconciler for a resource kind, bound to the configured Session.

        Raises:
            ValueError: If the kind is not registered.
        """
        name = normalize_kind(kind)
        if name not in RESOURCES:
            raise ValueError(f"Unknown resource kind '{kind}'. Valid kinds: {_kinds(RESOURCES)}")

        session = self.configure()
        if name == "connector":
            return ConnectorReconciler(
                session,
                create_policy=PROVISIONING_RETRY_POLICY.with_timeout(
                    self.config.create_timeout_seconds
                ),
                suppressor=self._suppressor,
            )
        return RESOURCES[name](session)

    def data_source(self, kind: str) -> Any:
        """Data source for a kind, bound to the configured Session.

        Raises:
            ValueError: If the kind has no data source.
        """
        name = normalize_kind(kind)
        if name not in DATA_SOURCES:
            raise ValueError(
                f"Unknown data source kind '{kind}'. Valid kinds: {_kinds(DATA_SOURCES)}"
            )
        return DATA_SOURCES[name](self.configure())

    def close(self) -> None:
        with self._lock:
            if self._session is not None:
                self._session.close()
                self._session = None
                logger.debug("Provider session closed")

    def __enter__(self) -> Provider:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


def _kinds(registry: dict[str, Any]) -> str:
    return ", ".join(f"{TYPE_PREFIX}{k}" for k in sorted(registry))
