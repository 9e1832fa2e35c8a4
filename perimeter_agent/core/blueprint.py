"""
Declarative blueprint describing one perimeter.
"""

import json
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel

from .objects import Tier
from .policy import PermissionStatement, TrustStatement
from .rules import Intent


class BlueprintMetadata(BaseModel):
    """Metadata for a blueprint."""

    name: str
    version: str = "1.0"
    description: Optional[str] = None
    author: Optional[str] = None
    tags: List[str] = []


class NetworkSpec(BaseModel):
    name: str
    cidr: Optional[str] = None
    gateway: Optional[str] = None


class AccessGroupSpec(BaseModel):
    name: str
    description: Optional[str] = None


class IdentitySpec(BaseModel):
    name: str
    trust: Optional[TrustStatement] = None
    statements: Dict[str, List[PermissionStatement]] = {}
    managed_policies: List[str] = []
    provider_managed_bootstrap: bool = False


class ComputeSpec(BaseModel):
    """
    A compute instance. Its subnet is named directly with ``subnet`` or
    located in the resolved topology by ``tier``/``zone``/``ordinal``.
    """

    name: str
    subnet: Optional[str] = None
    tier: Optional[Tier] = None
    zone: Optional[str] = None
    ordinal: int = 1
    access_groups: List[str] = []
    identity: Optional[str] = None
    binding: Optional[str] = None
    static_credentials: bool = False


class RecorderSpec(BaseModel):
    name: str
    identity: Optional[str] = None
    enabled: bool = True
    all_supported: bool = True
    include_global_resources: bool = True


class Blueprint(BaseModel):
    """
    Declarative input for one perimeter run: network, zones, subnet counts,
    access groups and intents, identities, computes and an optional recorder.
    """

    metadata: BlueprintMetadata
    network: NetworkSpec
    zones: List[str] = []
    public_subnets_per_zone: int = 1
    private_subnets_per_zone: int = 1
    subnet_prefix: Optional[int] = None
    access_groups: List[AccessGroupSpec] = []
    intents: List[Intent] = []
    identities: List[IdentitySpec] = []
    computes: List[ComputeSpec] = []
    recorder: Optional[RecorderSpec] = None

    def __init__(self, name: Optional[str] = None, **kwargs):
        if "metadata" not in kwargs:
            kwargs["metadata"] = BlueprintMetadata(name=name or "unnamed-blueprint")
        super().__init__(**kwargs)

    @property
    def name(self) -> str:
        return self.metadata.name

    def export_to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)

    def export_to_yaml(self) -> str:
        return yaml.safe_dump(self.export_to_dict(), default_flow_style=False, sort_keys=False)

    def export_to_json(self) -> str:
        return json.dumps(self.export_to_dict(), indent=2)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Blueprint":
        """Create a blueprint from a dictionary."""
        if not isinstance(data, dict):
            raise ValueError(f"Blueprint must be a mapping, got {type(data).__name__}")
        data_copy = dict(data)
        metadata = data_copy.pop("metadata", None) or {}
        name = metadata.get("name") or data_copy.pop("name", None) or "unnamed-blueprint"
        metadata = {**metadata, "name": name}
        return cls(metadata=BlueprintMetadata(**metadata), **data_copy)

    @classmethod
    def from_yaml(cls, yaml_content: str) -> "Blueprint":
        return cls.from_dict(yaml.safe_load(yaml_content) or {})

    @classmethod
    def from_json(cls, json_content: str) -> "Blueprint":
        return cls.from_dict(json.loads(json_content))
