"""
Artifact bundle and the interface of the external provisioning collaborator.

The core builds an ``ArtifactBundle`` and hands it to a
``ProvisioningProvider``. Turning artifacts into live resources, retrying
transient provider errors and persisting applied state all belong to the
provider.
"""

import datetime
import json
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class ArtifactBundle(BaseModel):
    """Resolved topology, compiled groups, identity documents and violations."""

    name: str
    topology: Dict[str, Any] = {}
    access_groups: Dict[str, Any] = {}
    identities: Dict[str, Any] = {}
    bindings: Dict[str, Any] = {}
    computes: Dict[str, Any] = {}
    recorders: Dict[str, Any] = {}
    violations: List[Dict[str, Any]] = []

    @property
    def is_compliant(self) -> bool:
        return not self.violations

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    def to_json(self) -> str:
        """Byte-stable JSON rendering (sorted keys, fixed indent)."""
        return json.dumps(self.to_dict(), indent=2, sort_keys=True)

    def to_yaml(self) -> str:
        import yaml

        return yaml.safe_dump(self.to_dict(), default_flow_style=False, sort_keys=True)


class ProvisioningResult(BaseModel):
    """What a provider reports back after applying a bundle."""

    provider: str
    bundle_name: str
    success: bool
    dry_run: bool
    applied: List[str] = []
    errors: List[str] = []
    timestamp: str = ""

    @classmethod
    def now(cls, **kwargs) -> "ProvisioningResult":
        return cls(timestamp=datetime.datetime.now().isoformat(), **kwargs)


class ProvisioningProvider(ABC):
    """
    Abstract base class for provisioning collaborators.

    Implementations talk to a cloud API; the core never does.
    """

    name: str = "provider"

    @abstractmethod
    async def apply(self, bundle: ArtifactBundle, dry_run: bool = False) -> ProvisioningResult:
        """Turn the bundle into live resources."""
        pass

    def __str__(self) -> str:
        return f"{self.__class__.__name__}({self.name})"

    def __repr__(self) -> str:
        return self.__str__()


class RecordingProvider(ProvisioningProvider):
    """In-memory provider that records every bundle it is handed."""

    name = "recording"

    def __init__(self):
        self.bundles: List[ArtifactBundle] = []

    async def apply(self, bundle: ArtifactBundle, dry_run: bool = False) -> ProvisioningResult:
        self.bundles.append(bundle)
        applied = (
            [f"network:{bundle.topology.get('network', {}).get('name', bundle.name)}"]
            + [f"subnet:{subnet['name']}" for subnet in bundle.topology.get("subnets", [])]
            + [f"access_group:{name}" for name in sorted(bundle.access_groups)]
            + [f"identity:{name}" for name in sorted(bundle.identities)]
            + [f"compute:{name}" for name in sorted(bundle.computes)]
        )
        return ProvisioningResult.now(
            provider=self.name,
            bundle_name=bundle.name,
            success=True,
            dry_run=dry_run,
            applied=[] if dry_run else applied,
        )

    @property
    def last_bundle(self) -> Optional[ArtifactBundle]:
        return self.bundles[-1] if self.bundles else None
