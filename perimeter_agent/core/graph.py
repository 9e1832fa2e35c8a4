"""
Resource graph: typed network and identity entities held in an arena indexed
by logical name.

Edges between entities are stored as names and resolved at lookup time, so
the graph never holds cyclic object references. Construction validates
references and identifiers only; topology and policy invariants are the
compliance checker's concern.
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Type

from pydantic import BaseModel, validator

from .errors import (
    CardinalityError,
    DanglingReferenceError,
    DuplicateIdentifierError,
    FrozenGraphError,
    MissingAttributeError,
)
from .logging_config import get_logger
from .objects import AddressBlock, Direction, Tier, validate_name
from .policy import IdentityDocument
from .rules import Rule

logger = get_logger(__name__)


class Entity(BaseModel):
    """Base class for all graph entities."""

    model_config = {"frozen": True}

    kind: str = "entity"
    name: str

    @validator("name")
    def validate_entity_name(cls, v):
        return validate_name(v)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude={"kind"})


class Network(Entity):
    """An isolated address space."""

    kind: str = "network"
    block: AddressBlock

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "cidr": self.block.cidr}


class Gateway(Entity):
    """The single chokepoint between a network and the outside."""

    kind: str = "gateway"
    network: str


class Route(BaseModel):
    """A route to a gateway."""

    model_config = {"frozen": True}

    destination: AddressBlock
    gateway: str

    def is_default(self) -> bool:
        return self.destination.is_unrestricted()

    def to_dict(self) -> Dict[str, Any]:
        return {"destination": self.destination.cidr, "gateway": self.gateway}


class RouteDomain(Entity):
    """A route table shared by subnets of one tier."""

    kind: str = "route_domain"
    network: str
    tier: Tier
    routes: Tuple[Route, ...] = ()

    def has_default_route(self) -> bool:
        return any(route.is_default() for route in self.routes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "network": self.network,
            "tier": self.tier.value,
            "routes": [route.to_dict() for route in self.routes],
        }


class Subnet(Entity):
    """A sub-range of a network bound to one zone and one route domain."""

    kind: str = "subnet"
    network: str
    block: AddressBlock
    tier: Tier
    zone: str
    route_domain: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "network": self.network,
            "cidr": self.block.cidr,
            "tier": self.tier.value,
            "zone": self.zone,
            "route_domain": self.route_domain,
        }


class AccessGroup(Entity):
    """A named, allow-only set of rules; empty directions deny everything."""

    kind: str = "access_group"
    network: str
    description: Optional[str] = None
    inbound: Tuple[Rule, ...] = ()
    outbound: Tuple[Rule, ...] = ()

    def rules(self, direction: Optional[Direction] = None) -> List[Rule]:
        if direction == Direction.INBOUND:
            return list(self.inbound)
        if direction == Direction.OUTBOUND:
            return list(self.outbound)
        return list(self.inbound) + list(self.outbound)

    def permits(self, direction: Direction) -> bool:
        return bool(self.rules(direction))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name, "network": self.network}
        if self.description:
            data["description"] = self.description
        data["inbound"] = [rule.to_dict() for rule in self.inbound]
        data["outbound"] = [rule.to_dict() for rule in self.outbound]
        return data


class Identity(Entity):
    """An assumable role carrying an assembled document."""

    kind: str = "identity"
    document: IdentityDocument

    def to_dict(self) -> Dict[str, Any]:
        return self.document.to_dict()


class Binding(Entity):
    """Delivers exactly one identity's temporary credentials to a compute."""

    kind: str = "binding"
    identity: str


class Compute(Entity):
    """A compute instance placed in one subnet."""

    kind: str = "compute"
    subnet: str
    access_groups: Tuple[str, ...]
    binding: Optional[str] = None
    static_credentials: bool = False


class Recorder(Entity):
    """Continuous configuration recorder watching one network."""

    kind: str = "recorder"
    network: str
    identity: str
    enabled: bool = True
    all_supported: bool = True
    include_global_resources: bool = True


ENTITY_TYPES: Dict[str, Type[Entity]] = {
    "network": Network,
    "gateway": Gateway,
    "route_domain": RouteDomain,
    "subnet": Subnet,
    "access_group": AccessGroup,
    "identity": Identity,
    "binding": Binding,
    "compute": Compute,
    "recorder": Recorder,
}

_LABELS = {
    "network": "Network",
    "gateway": "Gateway",
    "route_domain": "RouteDomain",
    "subnet": "Subnet",
    "access_group": "AccessGroup",
    "identity": "Identity",
    "binding": "Binding",
    "compute": "Compute",
    "recorder": "Recorder",
}


class ResourceGraph:
    """
    Arena of entities indexed by kind and logical name.

    One graph belongs to one resolution run. It is passed explicitly to every
    phase, so several independent topologies can be resolved in the same
    process. Once ``freeze()`` is called, any further construction raises
    ``FrozenGraphError``.
    """

    def __init__(self, name: str = "perimeter"):
        self.name = name
        self._entities: Dict[str, Dict[str, Entity]] = {kind: {} for kind in ENTITY_TYPES}
        self._frozen = False

    # -- lifecycle ---------------------------------------------------------

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> "ResourceGraph":
        """Seal the graph; it is immutable for the rest of the run."""
        self._frozen = True
        logger.debug("Froze resource graph '%s'", self.name)
        return self

    def _check_mutable(self) -> None:
        if self._frozen:
            raise FrozenGraphError(self.name)

    # -- generic access ----------------------------------------------------

    def _register(self, entity: Entity) -> Entity:
        self._check_mutable()
        table = self._entities[entity.kind]
        if entity.name in table:
            raise DuplicateIdentifierError(_LABELS[entity.kind], entity.name)
        table[entity.name] = entity
        logger.debug("Added %s '%s' to graph '%s'", _LABELS[entity.kind], entity.name, self.name)
        return entity

    def _replace(self, entity: Entity) -> Entity:
        self._check_mutable()
        self._entities[entity.kind][entity.name] = entity
        return entity

    def _require(self, kind: str, name: Optional[str], referenced_by: Optional[str] = None) -> Entity:
        entity = self._entities[kind].get(name) if name else None
        if entity is None:
            raise DanglingReferenceError(_LABELS[kind], str(name), referenced_by)
        return entity

    def get(self, kind: str, name: str) -> Entity:
        """Look up an entity, raising ``DanglingReferenceError`` if absent."""
        return self._require(kind, name)

    def contains(self, kind: str, name: str) -> bool:
        return name in self._entities[kind]

    def entities(self, kind: str) -> List[Entity]:
        """Entities of one kind in construction order."""
        return list(self._entities[kind].values())

    def __len__(self) -> int:
        return sum(len(table) for table in self._entities.values())

    # -- construction ------------------------------------------------------

    def add_network(self, name: str, cidr: Optional[str] = None) -> Network:
        if not cidr:
            raise MissingAttributeError("Network", name, "cidr")
        return self._register(Network(name=name, block=AddressBlock.parse(cidr)))

    def add_gateway(self, name: str, network: Optional[str] = None) -> Gateway:
        if not network:
            raise MissingAttributeError("Gateway", name, "network")
        self._require("network", network, f"Gateway '{name}'")
        existing = self.gateway_of(network)
        if existing is not None:
            raise CardinalityError(
                "Network", network, f"already has gateway '{existing.name}'"
            )
        return self._register(Gateway(name=name, network=network))

    def add_route_domain(
        self,
        name: str,
        network: Optional[str] = None,
        tier: Optional[Tier] = None,
        routes: Iterable[Route] = (),
    ) -> RouteDomain:
        if not network:
            raise MissingAttributeError("RouteDomain", name, "network")
        if tier is None:
            raise MissingAttributeError("RouteDomain", name, "tier")
        self._require("network", network, f"RouteDomain '{name}'")
        routes = tuple(routes)
        for route in routes:
            self._require("gateway", route.gateway, f"RouteDomain '{name}'")
        return self._register(
            RouteDomain(name=name, network=network, tier=Tier(tier), routes=routes)
        )

    def add_subnet(
        self,
        name: str,
        network: Optional[str] = None,
        cidr: Optional[str] = None,
        tier: Optional[Tier] = None,
        zone: Optional[str] = None,
        route_domain: Optional[str] = None,
    ) -> Subnet:
        for attribute, value in (
            ("network", network),
            ("cidr", cidr),
            ("tier", tier),
            ("zone", zone),
            ("route_domain", route_domain),
        ):
            if value is None or value == "":
                raise MissingAttributeError("Subnet", name, attribute)
        self._require("network", network, f"Subnet '{name}'")
        self._require("route_domain", route_domain, f"Subnet '{name}'")
        return self._register(
            Subnet(
                name=name,
                network=network,
                block=AddressBlock.parse(cidr),
                tier=Tier(tier),
                zone=zone,
                route_domain=route_domain,
            )
        )

    def add_access_group(
        self, name: str, network: Optional[str] = None, description: Optional[str] = None
    ) -> AccessGroup:
        if not network:
            raise MissingAttributeError("AccessGroup", name, "network")
        self._require("network", network, f"AccessGroup '{name}'")
        return self._register(AccessGroup(name=name, network=network, description=description))

    def attach_rules(
        self, group: str, inbound: Sequence[Rule] = (), outbound: Sequence[Rule] = ()
    ) -> AccessGroup:
        """Replace a group's rule sets with compiled ones."""
        current = self._require("access_group", group)
        referenced_by = f"AccessGroup '{group}'"
        for rule in list(inbound) + list(outbound):
            if rule.references_group():
                self._require("access_group", rule.peer.group, referenced_by)
        updated = current.model_copy(
            update={"inbound": tuple(inbound), "outbound": tuple(outbound)}
        )
        return self._replace(updated)

    def add_identity(self, document: IdentityDocument) -> Identity:
        return self._register(Identity(name=document.name, document=document))

    def add_binding(self, name: str, identity: Optional[str] = None) -> Binding:
        if not identity:
            raise MissingAttributeError("Binding", name, "identity")
        self._require("identity", identity, f"Binding '{name}'")
        return self._register(Binding(name=name, identity=identity))

    def add_compute(
        self,
        name: str,
        subnet: Optional[str] = None,
        access_groups: Optional[Sequence[str]] = None,
        binding: Optional[str] = None,
        static_credentials: bool = False,
    ) -> Compute:
        if not subnet:
            raise MissingAttributeError("Compute", name, "subnet")
        if not access_groups:
            raise MissingAttributeError("Compute", name, "access_groups")
        referenced_by = f"Compute '{name}'"
        self._require("subnet", subnet, referenced_by)
        for group in access_groups:
            self._require("access_group", group, referenced_by)
        if binding is not None:
            self._require("binding", binding, referenced_by)
        return self._register(
            Compute(
                name=name,
                subnet=subnet,
                access_groups=tuple(access_groups),
                binding=binding,
                static_credentials=static_credentials,
            )
        )

    def add_recorder(
        self,
        name: str,
        network: Optional[str] = None,
        identity: Optional[str] = None,
        enabled: bool = True,
        all_supported: bool = True,
        include_global_resources: bool = True,
    ) -> Recorder:
        if not network:
            raise MissingAttributeError("Recorder", name, "network")
        if not identity:
            raise MissingAttributeError("Recorder", name, "identity")
        referenced_by = f"Recorder '{name}'"
        self._require("network", network, referenced_by)
        self._require("identity", identity, referenced_by)
        return self._register(
            Recorder(
                name=name,
                network=network,
                identity=identity,
                enabled=enabled,
                all_supported=all_supported,
                include_global_resources=include_global_resources,
            )
        )

    # -- typed lookups -----------------------------------------------------

    def get_network(self, name: str) -> Network:
        return self._require("network", name)

    def get_subnet(self, name: str) -> Subnet:
        return self._require("subnet", name)

    def get_route_domain(self, name: str) -> RouteDomain:
        return self._require("route_domain", name)

    def get_access_group(self, name: str) -> AccessGroup:
        return self._require("access_group", name)

    def get_identity(self, name: str) -> Identity:
        return self._require("identity", name)

    def get_binding(self, name: str) -> Binding:
        return self._require("binding", name)

    def get_compute(self, name: str) -> Compute:
        return self._require("compute", name)

    def networks(self) -> List[Network]:
        return self.entities("network")

    def gateway_of(self, network: str) -> Optional[Gateway]:
        for gateway in self._entities["gateway"].values():
            if gateway.network == network:
                return gateway
        return None

    def subnets_of(self, network: Optional[str] = None) -> List[Subnet]:
        return [
            subnet
            for subnet in self._entities["subnet"].values()
            if network is None or subnet.network == network
        ]

    def route_domains_of(self, network: Optional[str] = None, tier: Optional[Tier] = None) -> List[RouteDomain]:
        return [
            domain
            for domain in self._entities["route_domain"].values()
            if (network is None or domain.network == network)
            and (tier is None or domain.tier == tier)
        ]

    def route_domain_of(self, subnet: str) -> RouteDomain:
        current = self.get_subnet(subnet)
        return self._require("route_domain", current.route_domain, f"Subnet '{subnet}'")

    def subnets_in_domain(self, route_domain: str) -> List[Subnet]:
        return [
            subnet
            for subnet in self._entities["subnet"].values()
            if subnet.route_domain == route_domain
        ]

    def access_groups(self, network: Optional[str] = None) -> List[AccessGroup]:
        return [
            group
            for group in self._entities["access_group"].values()
            if network is None or group.network == network
        ]

    def computes_in(self, subnet: str) -> List[Compute]:
        return [
            compute for compute in self._entities["compute"].values() if compute.subnet == subnet
        ]

    def computes_with_binding(self, binding: str) -> List[Compute]:
        return [
            compute for compute in self._entities["compute"].values() if compute.binding == binding
        ]

    def identity_of(self, binding: str) -> Identity:
        current = self.get_binding(binding)
        return self._require("identity", current.identity, f"Binding '{binding}'")

    def recorders_of(self, network: str) -> List[Recorder]:
        return [
            recorder
            for recorder in self._entities["recorder"].values()
            if recorder.network == network
        ]

    # -- export ------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Name-sorted snapshot of every entity."""
        return {
            kind: {name: table[name].to_dict() for name in sorted(table)}
            for kind, table in self._entities.items()
        }

    def __repr__(self) -> str:
        return f"ResourceGraph({self.name!r}, entities={len(self)})"
