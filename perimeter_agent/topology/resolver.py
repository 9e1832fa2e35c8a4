"""
Topology resolver: partitions a network's address block into tiered subnets
and assigns each subnet to a route domain of its tier.
"""

from itertools import islice
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel

from ..core.config import PerimeterConfig
from ..core.errors import AddressSpaceExhaustedError, DuplicateIdentifierError, MissingAttributeError
from ..core.graph import Gateway, Network, ResourceGraph, Route, RouteDomain, Subnet
from ..core.logging_config import get_logger
from ..core.objects import AddressBlock, IPNetwork, Tier

logger = get_logger(__name__)

DEFAULT_ROUTE = "0.0.0.0/0"
TIER_ORDER = (Tier.PUBLIC, Tier.PRIVATE)


class SubnetRequest(BaseModel):
    """One subnet slot to allocate, in allocation order."""

    model_config = {"frozen": True}

    tier: Tier
    zone: str
    zone_index: int
    ordinal: int


class ResolvedTopology(BaseModel):
    """Network, subnets and route domains produced by one resolution."""

    network: Network
    gateway: Optional[Gateway] = None
    subnets: List[Subnet] = []
    route_domains: List[RouteDomain] = []

    def subnets_by_tier(self, tier: Tier) -> List[Subnet]:
        return [subnet for subnet in self.subnets if subnet.tier == tier]

    def subnet_for(self, tier: Tier, zone: str, ordinal: int = 1) -> Optional[Subnet]:
        matches = [s for s in self.subnets if s.tier == tier and s.zone == zone]
        if 0 < ordinal <= len(matches):
            return matches[ordinal - 1]
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "network": self.network.to_dict(),
            "gateway": self.gateway.name if self.gateway else None,
            "subnets": [subnet.to_dict() for subnet in self.subnets],
            "route_domains": [domain.to_dict() for domain in self.route_domains],
        }


class TopologyResolver:
    """
    Deterministic subnet allocator.

    Blocks are taken in ascending order from the network's block, skipping the
    configured number of leading blocks and any block already used by a subnet
    in the graph. Slots are ordered tier first (public, then private), then by
    zone index, then by per-zone ordinal, so the same ordered input always
    yields the same blocks.
    """

    def __init__(self, config: Optional[PerimeterConfig] = None):
        self.config = config or PerimeterConfig()

    def plan(
        self, zones: Sequence[str], public_per_zone: int = 1, private_per_zone: int = 1
    ) -> List[SubnetRequest]:
        """Order the subnet slots that a resolution will allocate."""
        if not zones:
            raise MissingAttributeError("Topology", None, "zones")
        seen = set()
        for zone in zones:
            if zone in seen:
                raise DuplicateIdentifierError("Zone", zone)
            seen.add(zone)
        if public_per_zone < 0 or private_per_zone < 0:
            raise ValueError("Subnet counts per zone must not be negative")

        counts = {Tier.PUBLIC: public_per_zone, Tier.PRIVATE: private_per_zone}
        return [
            SubnetRequest(tier=tier, zone=zone, zone_index=index, ordinal=ordinal)
            for tier in TIER_ORDER
            for index, zone in enumerate(zones)
            for ordinal in range(1, counts[tier] + 1)
        ]

    def allocate(
        self,
        block: AddressBlock,
        count: int,
        prefix: int,
        occupied: Sequence[AddressBlock] = (),
        network_name: str = "",
    ) -> List[AddressBlock]:
        """Take ``count`` free /prefix blocks from ``block`` in ascending order."""
        parent = block.network
        if prefix < parent.prefixlen or prefix > parent.max_prefixlen:
            raise AddressSpaceExhaustedError(network_name, block.cidr, count, prefix, 0)

        total = 2 ** (prefix - parent.prefixlen)
        reserved = min(self.config.reserved_leading_blocks, total)
        if count > total - reserved:
            raise AddressSpaceExhaustedError(
                network_name, block.cidr, count, prefix, total - reserved
            )
        taken = [item.network for item in occupied]

        allocated: List[AddressBlock] = []
        candidates = islice(parent.subnets(new_prefix=prefix), reserved, None)
        for candidate in candidates:
            if len(allocated) == count:
                break
            if any(_overlaps(candidate, used) for used in taken):
                continue
            allocated.append(AddressBlock(cidr=str(candidate)))

        if len(allocated) < count:
            free = len(allocated)
            raise AddressSpaceExhaustedError(network_name, block.cidr, count, prefix, free)
        return allocated

    def resolve(
        self,
        graph: ResourceGraph,
        network: str,
        zones: Sequence[str],
        public_per_zone: int = 1,
        private_per_zone: int = 1,
        prefix: Optional[int] = None,
    ) -> ResolvedTopology:
        """
        Allocate subnets for ``network`` and register them in ``graph``.

        Every block is computed before anything is registered, so an
        ``AddressSpaceExhaustedError`` leaves the graph untouched.
        """
        target = graph.get_network(network)
        prefix = prefix if prefix is not None else self.config.subnet_prefix
        requests = self.plan(zones, public_per_zone, private_per_zone)

        occupied = [subnet.block for subnet in graph.subnets_of(network)]
        blocks = self.allocate(target.block, len(requests), prefix, occupied, network)

        gateway = graph.gateway_of(network)
        domains: Dict[Tier, RouteDomain] = {}
        for tier in TIER_ORDER:
            if any(request.tier == tier for request in requests):
                domains[tier] = self._route_domain_for(graph, target, tier, gateway)

        subnets = []
        for request, block in zip(requests, blocks):
            subnet = graph.add_subnet(
                name=self._subnet_name(network, request, public_per_zone, private_per_zone),
                network=network,
                cidr=block.cidr,
                tier=request.tier,
                zone=request.zone,
                route_domain=domains[request.tier].name,
            )
            logger.debug(
                "Allocated %s to %s subnet '%s' in zone %s",
                block.cidr,
                request.tier.value,
                subnet.name,
                request.zone,
            )
            subnets.append(subnet)

        logger.info(
            "Resolved network '%s' (%s) into %d subnets across %d zones",
            network,
            target.block.cidr,
            len(subnets),
            len(zones),
        )
        return ResolvedTopology(
            network=target,
            gateway=gateway,
            subnets=subnets,
            route_domains=[domains[tier] for tier in TIER_ORDER if tier in domains],
        )

    def _route_domain_for(
        self,
        graph: ResourceGraph,
        network: Network,
        tier: Tier,
        gateway: Optional[Gateway],
    ) -> RouteDomain:
        existing = graph.route_domains_of(network.name, tier)
        if existing:
            return existing[0]

        routes: Tuple[Route, ...] = ()
        if tier == Tier.PUBLIC:
            if gateway is None:
                raise MissingAttributeError("Network", network.name, "gateway")
            default = "::/0" if network.block.network.version == 6 else DEFAULT_ROUTE
            routes = (Route(destination=AddressBlock(cidr=default), gateway=gateway.name),)

        domain = graph.add_route_domain(
            name=f"{network.name}-{tier.value}-rt",
            network=network.name,
            tier=tier,
            routes=routes,
        )
        logger.debug("Created %s route domain '%s'", tier.value, domain.name)
        return domain

    @staticmethod
    def _subnet_name(
        network: str, request: SubnetRequest, public_per_zone: int, private_per_zone: int
    ) -> str:
        per_zone = public_per_zone if request.tier == Tier.PUBLIC else private_per_zone
        name = f"{network}-{request.tier.value}-{request.zone}"
        if per_zone > 1:
            name += f"-{request.ordinal}"
        return name


def _overlaps(candidate: IPNetwork, used: IPNetwork) -> bool:
    return candidate.version == used.version and candidate.overlaps(used)
