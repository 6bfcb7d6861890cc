"""Composite import key parsing.

Some resources cannot be located by their own identifier alone. A connector,
for example, is addressed by environment, cluster and name, so it is imported
from a key of the form "<env ID>/<cluster ID>/<name>".
"""

from __future__ import annotations

from .errors import ImportFormatError

IMPORT_KEY_SEPARATOR = "/"

# Field order matches the positional order of the key parts
CONNECTOR_IMPORT_FIELDS: tuple[str, ...] = ("environment_id", "cluster_id", "name")
CLUSTER_IMPORT_FIELDS: tuple[str, ...] = ("environment_id", "id")
SCHEMA_REGISTRY_IMPORT_FIELDS: tuple[str, ...] = ("environment_id", "id")

_FIELD_LABELS = {
    "environment_id": "env ID",
    "cluster_id": "cluster ID",
    "name": "name",
    "id": "ID",
}


def expected_shape(fields: tuple[str, ...]) -> str:
    """Human-readable key shape, e.g. '<env ID>/<cluster ID>/<name>'."""
    return IMPORT_KEY_SEPARATOR.join(f"<{_FIELD_LABELS.get(f, f)}>" for f in fields)


def parse_import_key(key: str, fields: tuple[str, ...], kind: str = "resource") -> dict[str, str]:
    """Split a composite import key into named parts.

    Args:
        key: The composite key supplied by the host.
        fields: Field names, in the positional order of the key parts.
        kind: Resource kind, used in the error message.

    Returns:
        Mapping of field name to key part.

    Raises:
        ImportFormatError: If the key does not split into exactly len(fields)
            non-empty parts.
    """
    parts = key.split(IMPORT_KEY_SEPARATOR)
    if len(parts) != len(fields) or not all(parts):
        raise ImportFormatError(
            f"invalid format for {kind} import: expected '{expected_shape(fields)}', got '{key}'"
        )
    return dict(zip(fields, parts, strict=True))
