"""Schema registry resource.

Each environment has at most one schema registry. Every declared field
forces replacement, and the control plane offers no way to remove a
registry, so delete only drops it from state.
"""

from __future__ import annotations

import logging
import threading
from typing import ClassVar

from .errors import ApiError, CreateError, UpdateError
from .import_key import SCHEMA_REGISTRY_IMPORT_FIELDS, parse_import_key
from .models import SchemaRegistrySpec
from .reconciler import ResourceData, ResourceReconciler

logger = logging.getLogger(__name__)


class SchemaRegistryReconciler(ResourceReconciler[SchemaRegistrySpec]):
    kind: ClassVar[str] = "schema_registry"
    spec_model = SchemaRegistrySpec
    force_new = frozenset({"environment_id", "service_provider", "region"})

    def create(self, data: ResourceData, *, cancel: threading.Event | None = None) -> None:
        spec: SchemaRegistrySpec = self.parse_spec(data.values)

        logger.info("Creating schema registry", extra={"environment_id": spec.environment_id})
        try:
            registry = self.session.client.create_schema_registry(
                spec.environment_id, spec.region, spec.service_provider
            )
        except ApiError as e:
            raise CreateError(self.kind, str(e), environment_id=spec.environment_id) from e

        data.set_id(registry.id)
        data.set("endpoint", registry.endpoint)

    def read(self, data: ResourceData, *, cancel: threading.Event | None = None) -> None:
        registry_id = self._require_id(data)
        env_id = self._require(data, "environment_id")

        try:
            registry = self.session.client.get_schema_registry(env_id)
        except ApiError as e:
            raise self._read_failed(e, registry_id=registry_id, environment_id=env_id) from e

        data.set_id(registry.id)
        data.set("endpoint", registry.endpoint)

    def update(self, data: ResourceData, *, cancel: threading.Event | None = None) -> None:
        # All declared fields are ForceNew; the host never plans an in-place update
        raise UpdateError(
            self.kind,
            "schema registries cannot be updated in place",
            registry_id=data.id,
            environment_id=data.get("environment_id"),
        )

    def delete(self, data: ResourceData, *, cancel: threading.Event | None = None) -> None:
        logger.warning(
            "Schema registry cannot be deleted remotely, removing from state only",
            extra={"registry_id": data.id, "environment_id": data.get("environment_id")},
        )

    def import_state(self, key: str) -> ResourceData:
        """Import from '<env ID>/<registry ID>'."""
        fields = parse_import_key(key, SCHEMA_REGISTRY_IMPORT_FIELDS, kind=self.kind)
        return ResourceData(id=fields["id"], values={"environment_id": fields["environment_id"]})
