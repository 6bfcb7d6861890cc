"""Environment resource and data source."""

from __future__ import annotations

import logging
import threading
from typing import ClassVar

from .client import ControlPlaneClient
from .errors import ApiError, CreateError, DeleteError, NotFoundError, ReadError, UpdateError
from .models import EnvironmentSpec
from .reconciler import ResourceData, ResourceReconciler
from .session import Session

logger = logging.getLogger(__name__)


def get_organization_id(client: ControlPlaneClient) -> int:
    """Resolve the organization of the logged-in user."""
    return client.me().organization_id


class EnvironmentReconciler(ResourceReconciler[EnvironmentSpec]):
    """Environments are renamed in place; import is identifier passthrough."""

    kind: ClassVar[str] = "environment"
    spec_model = EnvironmentSpec

    def create(self, data: ResourceData, *, cancel: threading.Event | None = None) -> None:
        spec: EnvironmentSpec = self.parse_spec(data.values)
        client = self.session.client

        logger.info("Creating environment", extra={"environment_name": spec.name})
        try:
            org_id = get_organization_id(client)
        except ApiError as e:
            raise CreateError(self.kind, f"organization lookup failed: {e}", name=spec.name) from e

        try:
            env = client.create_environment(spec.name, org_id)
        except ApiError as e:
            raise CreateError(self.kind, str(e), name=spec.name) from e

        data.set_id(env.id)
        data.set("name", env.name)

    def read(self, data: ResourceData, *, cancel: threading.Event | None = None) -> None:
        env_id = self._require_id(data)

        logger.info("Reading environment", extra={"environment_id": env_id})
        try:
            env = self.session.client.get_environment(env_id)
        except ApiError as e:
            raise self._read_failed(e, environment_id=env_id) from e

        data.set("name", env.name)

    def update(self, data: ResourceData, *, cancel: threading.Event | None = None) -> None:
        env_id = self._require_id(data)
        spec: EnvironmentSpec = self.parse_spec(data.values)
        client = self.session.client

        logger.info("Updating environment", extra={"environment_id": env_id})
        # No update is attempted unless the organization resolves
        try:
            org_id = get_organization_id(client)
        except ApiError as e:
            raise UpdateError(
                self.kind, f"organization lookup failed: {e}", environment_id=env_id
            ) from e

        try:
            env = client.update_environment(env_id, spec.name, org_id)
        except ApiError as e:
            raise UpdateError(self.kind, str(e), environment_id=env_id, name=spec.name) from e

        data.set_id(env.id)
        data.set("name", env.name)

    def delete(self, data: ResourceData, *, cancel: threading.Event | None = None) -> None:
        env_id = self._require_id(data)

        logger.info("Deleting environment", extra={"environment_id": env_id})
        try:
            self.session.client.delete_environment(env_id)
        except ApiError as e:
            raise DeleteError(self.kind, str(e), environment_id=env_id) from e


class EnvironmentDataSource:
    """Looks up an existing environment by name."""

    kind: ClassVar[str] = "environment"

    def __init__(self, session: Session) -> None:
        self._session = session

    def read(self, name: str) -> ResourceData:
        logger.info("Looking up environment", extra={"environment_name": name})
        try:
            environments = self._session.client.list_environments()
        except ApiError as e:
            raise ReadError(self.kind, str(e), name=name) from e

        for env in environments:
            if env.name == name:
                return ResourceData(id=env.id, values={"name": env.name})

        raise NotFoundError(self.kind, f"no environment named '{name}'", name=name)
