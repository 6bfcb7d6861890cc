"""Service account resource and data source."""

from __future__ import annotations

import logging
import threading
from typing import ClassVar

from .errors import (
    ApiError,
    CreateError,
    DeleteError,
    InvalidResourceError,
    NotFoundError,
    ReadError,
    UpdateError,
)
from .models import ServiceAccountSpec
from .reconciler import ResourceData, ResourceReconciler
from .session import Session

logger = logging.getLogger(__name__)


def _numeric_id(kind: str, data: ResourceData) -> int:
    try:
        return int(data.id or "")
    except ValueError as e:
        raise InvalidResourceError(f"{kind} identifier must be numeric, got '{data.id}'") from e


class ServiceAccountReconciler(ResourceReconciler[ServiceAccountSpec]):
    """Service accounts cannot be changed after creation."""

    kind: ClassVar[str] = "service_account"
    spec_model = ServiceAccountSpec
    force_new = frozenset({"name", "description"})

    def create(self, data: ResourceData, *, cancel: threading.Event | None = None) -> None:
        spec: ServiceAccountSpec = self.parse_spec(data.values)

        logger.info("Creating service account", extra={"service_account": spec.name})
        try:
            account = self.session.client.create_service_account(spec.name, spec.description)
        except ApiError as e:
            raise CreateError(self.kind, str(e), name=spec.name) from e

        data.set_id(str(account.id))
        data.set("name", account.name)
        data.set("description", account.description)

    def read(self, data: ResourceData, *, cancel: threading.Event | None = None) -> None:
        account_id = _numeric_id(self.kind, data)

        try:
            accounts = self.session.client.list_service_accounts()
        except ApiError as e:
            raise ReadError(self.kind, str(e), service_account_id=data.id) from e

        for account in accounts:
            if account.id == account_id:
                data.set("name", account.name)
                data.set("description", account.description)
                return

        logger.warning(
            "service_account not found, removing from state",
            extra={"service_account_id": data.id},
        )
        raise NotFoundError(self.kind, "no such service account", service_account_id=data.id)

    def update(self, data: ResourceData, *, cancel: threading.Event | None = None) -> None:
        raise UpdateError(
            self.kind, "service accounts cannot be updated in place", service_account_id=data.id
        )

    def delete(self, data: ResourceData, *, cancel: threading.Event | None = None) -> None:
        account_id = _numeric_id(self.kind, data)

        logger.info("Deleting service account", extra={"service_account_id": data.id})
        try:
            self.session.client.delete_service_account(account_id)
        except ApiError as e:
            raise DeleteError(self.kind, str(e), service_account_id=data.id) from e


class ServiceAccountDataSource:
    """Looks up an existing service account by name."""

    kind: ClassVar[str] = "service_account"

    def __init__(self, session: Session) -> None:
        self._session = session

    def read(self, name: str) -> ResourceData:
        try:
            accounts = self._session.client.list_service_accounts()
        except ApiError as e:
            raise ReadError(self.kind, str(e), name=name) from e

        for account in accounts:
            if account.name == name:
                return ResourceData(
                    id=str(account.id),
                    values={"name": account.name, "description": account.description},
                )

        raise NotFoundError(self.kind, f"no service account named '{name}'", name=name)
