"""Generic CRUD contract for managed resources.

The host (the declarative-state orchestrator) owns planning and state
storage. For each resource instance it calls one of the lifecycle operations
below with a ResourceData descriptor and persists whatever the operation
leaves on it:

- create(data): assign the identifier and computed attributes
- read(data): refresh attributes from the remote object
- update(data): push declared changes; the identifier never changes
- delete(data): remove the remote object
- import_state(key): build a descriptor from an external key

Errors are raised, never returned. A Create that succeeded remotely assigns
the identifier before any later step can fail, so the host can still read or
delete the object.

Reconcilers hold only the shared, read-only Session and immutable settings,
so concurrent calls for different resource instances never interfere.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, ClassVar, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from .diff_suppress import ConfigDifference
from .errors import (
    InvalidResourceError,
    NotFoundError,
    ReadError,
    ResourceError,
    is_not_found,
)
from .session import Session

logger = logging.getLogger(__name__)

# LogRecord reserves "name"
_LOG_KEYS = {"name": "resource_name"}

SpecT = TypeVar("SpecT", bound=BaseModel)


@dataclass
class ResourceData:
    """Descriptor of one managed object, exchanged with the host.

    Attributes:
        id: Host-visible primary key; None until Create assigns it.
        values: Declared, optional and computed fields, flat by name.
    """

    id: str | None = None
    values: dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.values[key] = value

    def set_id(self, resource_id: str | None) -> None:
        self.id = resource_id

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, **self.values}


class ResourceReconciler(ABC, Generic[SpecT]):
    """Lifecycle operations for one resource kind.

    Subclasses set kind, spec_model and force_new, and implement the four
    CRUD operations. import_state defaults to passing the key through as the
    identifier.
    """

    kind: ClassVar[str]
    spec_model: ClassVar[type[BaseModel]]
    # Fields whose change requires destroy + recreate (handled by the host)
    force_new: ClassVar[frozenset[str]] = frozenset()
    # Fields never compared: sensitive inputs and computed outputs
    diff_excluded: ClassVar[frozenset[str]] = frozenset()

    def __init__(self, session: Session) -> None:
        self._session = session

    @property
    def session(self) -> Session:
        return self._session

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @abstractmethod
    def create(self, data: ResourceData, *, cancel: threading.Event | None = None) -> None:
        """Create the remote object and assign data.id."""

    @abstractmethod
    def read(self, data: ResourceData, *, cancel: threading.Event | None = None) -> None:
        """Refresh data from the remote object.

        Raises:
            NotFoundError: The remote object is gone; the host should prune it.
            ReadError: Any other failure.
        """

    @abstractmethod
    def update(self, data: ResourceData, *, cancel: threading.Event | None = None) -> None:
        """Push declared values in data to the remote object."""

    @abstractmethod
    def delete(self, data: ResourceData, *, cancel: threading.Event | None = None) -> None:
        """Delete the remote object. Never retried."""

    def import_state(self, key: str) -> ResourceData:
        """Build a descriptor from an import key (identifier passthrough)."""
        return ResourceData(id=key)

    # -------------------------------------------------------------------------
    # Drift
    # -------------------------------------------------------------------------

    def diff(self, data: ResourceData, declared: Mapping[str, Any]) -> list[ConfigDifference]:
        """Significant differences between recorded state and a declaration.

        Only declared fields are compared. Map fields are flattened to
        "<field>.<key>" entries.
        """
        spec = self.parse_spec(declared)
        differences: list[ConfigDifference] = []
        for name in sorted(spec.model_fields_set):
            if name in self.diff_excluded:
                continue
            differences.extend(self._diff_field(name, data.get(name), getattr(spec, name)))
        return differences

    def _diff_field(self, name: str, old: Any, new: Any) -> list[ConfigDifference]:
        if isinstance(new, dict) or isinstance(old, dict):
            old_map = old or {}
            new_map = new or {}
            return [
                ConfigDifference(key=f"{name}.{k}", old=_as_str(old_map.get(k)),
                                 new=_as_str(new_map.get(k)))
                for k in sorted(set(old_map) | set(new_map))
                if old_map.get(k) != new_map.get(k)
            ]
        if _as_str(old) == _as_str(new):
            return []
        return [ConfigDifference(key=name, old=_as_str(old), new=_as_str(new))]

    def requires_replacement(self, differences: list[ConfigDifference]) -> bool:
        """Check whether any difference touches a ForceNew field."""
        return any(d.key.split(".", 1)[0] in self.force_new for d in differences)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def parse_spec(self, values: Mapping[str, Any]) -> SpecT:
        """Validate declared values against this kind's model.

        Raises:
            InvalidResourceError: If validation fails.
        """
        try:
            return self.spec_model.model_validate(dict(values))  # type: ignore[return-value]
        except ValidationError as e:
            raise InvalidResourceError(f"invalid {self.kind} declaration: {e}") from e

    def _require_id(self, data: ResourceData) -> str:
        if not data.id:
            raise InvalidResourceError(f"{self.kind} has no identifier; create or import it first")
        return data.id

    def _require(self, data: ResourceData, key: str) -> str:
        """Locator field that must be in state before the remote object can be addressed."""
        value = data.get(key)
        if not value:
            raise InvalidResourceError(
                f"{self.kind} {data.id!r} has no {key} in state; import it to record one"
            )
        return str(value)

    def _read_failed(self, error: Exception, **identifiers: str | None) -> ResourceError:
        """Map a read failure to NotFoundError or ReadError."""
        if is_not_found(error):
            logger.warning(
                f"{self.kind} not found, removing from state",
                extra={
                    "kind": self.kind,
                    **{_LOG_KEYS.get(k, k): v for k, v in identifiers.items() if v},
                },
            )
            return NotFoundError(self.kind, str(error), **identifiers)
        return ReadError(self.kind, str(error), **identifiers)


def _as_str(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return str(value).lower()
    return str(value)
