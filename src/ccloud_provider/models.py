"""Pydantic models for declared resource fields.

These models provide:
1. Type-safe parsing of declared values handed over by the host
2. Validation at the boundary (fail fast, fail loudly)
3. Conversion to remote client request parameters
"""

from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, Field, field_validator

from .client import ClusterRequest

VALID_SERVICE_PROVIDERS = {"aws", "gcp", "azure"}
VALID_AVAILABILITY = {"LOW", "HIGH"}


class BaseResourceSpec(BaseModel):
    """Base for declared resource fields."""

    model_config = {"extra": "ignore", "frozen": True}


class EnvironmentSpec(BaseResourceSpec):
    """Environment (called an account by the control plane)."""

    name: Annotated[str, Field(min_length=1)]


class ConnectorSpec(BaseResourceSpec):
    """Managed connector running in a Kafka cluster.

    config and config_sensitive share one key namespace when sent to the
    remote API; sensitive entries win on collision.
    """

    name: Annotated[str, Field(min_length=1)]
    environment_id: Annotated[str, Field(min_length=1)]
    cluster_id: Annotated[str, Field(min_length=1)]
    config: dict[str, str]
    config_sensitive: dict[str, str] = Field(default_factory=dict)

    @field_validator("config", "config_sensitive", mode="before")
    @classmethod
    def stringify_values(cls, v: object) -> object:
        # YAML happily yields ints and bools for connector settings like tasks.max
        if isinstance(v, dict):
            return {
                str(k): str(val).lower() if isinstance(val, bool) else str(val)
                for k, val in v.items()
            }
        return v

    def merged_config(self) -> dict[str, str]:
        """Flatten config and config_sensitive into one mapping."""
        merged = dict(self.config)
        merged.update(self.config_sensitive)
        return merged


class KafkaClusterSpec(BaseResourceSpec):
    """Kafka cluster inside an environment."""

    name: Annotated[str, Field(min_length=1)]
    environment_id: Annotated[str, Field(min_length=1)]
    service_provider: str
    region: Annotated[str, Field(min_length=1)]
    availability: str = "LOW"
    storage: Annotated[int, Field(gt=0)] = 5000
    network_ingress: Annotated[int, Field(gt=0)] = 100
    network_egress: Annotated[int, Field(gt=0)] = 100
    deployment: dict[str, str] = Field(default_factory=dict)
    cku: Annotated[int, Field(ge=0)] = 0

    @field_validator("service_provider")
    @classmethod
    def validate_service_provider(cls, v: str) -> str:
        v = v.lower()
        if v not in VALID_SERVICE_PROVIDERS:
            raise ValueError(f"service_provider must be one of {sorted(VALID_SERVICE_PROVIDERS)}")
        return v

    @field_validator("availability")
    @classmethod
    def validate_availability(cls, v: str) -> str:
        v = v.upper()
        if v not in VALID_AVAILABILITY:
            raise ValueError(f"availability must be one of {sorted(VALID_AVAILABILITY)}")
        return v

    def to_request(self) -> ClusterRequest:
        return ClusterRequest(
            name=self.name,
            environment_id=self.environment_id,
            service_provider=self.service_provider,
            region=self.region,
            availability=self.availability,
            storage=self.storage,
            network_ingress=self.network_ingress,
            network_egress=self.network_egress,
            deployment=dict(self.deployment),
            cku=self.cku,
        )


class ApiKeySpec(BaseResourceSpec):
    """API key owned by a user or service account.

    cluster_id scopes the key to a Kafka cluster; without it the key is a
    cloud (organization-level) key.
    """

    owner_id: Annotated[str, Field(min_length=1)]
    cluster_id: str = ""
    display_name: str = ""
    description: str = ""


class SchemaRegistrySpec(BaseResourceSpec):
    """Schema registry of an environment (one per environment)."""

    environment_id: Annotated[str, Field(min_length=1)]
    service_provider: str
    region: Annotated[str, Field(min_length=1)]

    @field_validator("service_provider")
    @classmethod
    def validate_service_provider(cls, v: str) -> str:
        v = v.lower()
        if v not in VALID_SERVICE_PROVIDERS:
            raise ValueError(f"service_provider must be one of {sorted(VALID_SERVICE_PROVIDERS)}")
        return v


class ServiceAccountSpec(BaseResourceSpec):
    """Service account used to own API keys."""

    name: Annotated[str, Field(min_length=1, max_length=64)]
    description: Annotated[str, Field(min_length=1)]
