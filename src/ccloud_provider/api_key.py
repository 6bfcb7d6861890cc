"""API key resource.

API keys go through a separate endpoint authenticated with the cloud API
key and secret rather than the login session. The secret is only returned
by create, so read never touches it.
"""

from __future__ import annotations

import logging
import threading
from typing import ClassVar

from .errors import ApiError, CreateError, DeleteError, UpdateError
from .models import ApiKeySpec
from .reconciler import ResourceData, ResourceReconciler

logger = logging.getLogger(__name__)


class ApiKeyReconciler(ResourceReconciler[ApiKeySpec]):
    """API key owned by a user or service account."""

    kind: ClassVar[str] = "api_key"
    spec_model = ApiKeySpec
    force_new = frozenset({"owner_id", "cluster_id"})

    def create(self, data: ResourceData, *, cancel: threading.Event | None = None) -> None:
        spec: ApiKeySpec = self.parse_spec(data.values)

        logger.info(
            "Creating API key", extra={"owner_id": spec.owner_id, "cluster_id": spec.cluster_id}
        )
        try:
            key = self.session.api_keys.create_api_key(
                spec.owner_id, spec.cluster_id, spec.display_name, spec.description
            )
        except ApiError as e:
            raise CreateError(
                self.kind, str(e), owner_id=spec.owner_id, cluster_id=spec.cluster_id
            ) from e

        data.set_id(key.id)
        data.set("key", key.id)
        data.set("secret", key.secret)

    def read(self, data: ResourceData, *, cancel: threading.Event | None = None) -> None:
        key_id = self._require_id(data)

        try:
            key = self.session.api_keys.get_api_key(key_id)
        except ApiError as e:
            raise self._read_failed(e, key_id=key_id) from e

        data.set("key", key.id)
        data.set("owner_id", key.owner_id)
        data.set("cluster_id", key.resource_id)
        data.set("display_name", key.display_name)
        data.set("description", key.description)

    def update(self, data: ResourceData, *, cancel: threading.Event | None = None) -> None:
        key_id = self._require_id(data)
        spec: ApiKeySpec = self.parse_spec(data.values)

        try:
            key = self.session.api_keys.update_api_key(key_id, spec.display_name, spec.description)
        except ApiError as e:
            raise UpdateError(self.kind, str(e), key_id=key_id) from e

        data.set("display_name", key.display_name)
        data.set("description", key.description)

    def delete(self, data: ResourceData, *, cancel: threading.Event | None = None) -> None:
        key_id = self._require_id(data)

        logger.info("Deleting API key", extra={"key_id": key_id})
        try:
            self.session.api_keys.delete_api_key(key_id)
        except ApiError as e:
            raise DeleteError(self.kind, str(e), key_id=key_id) from e
