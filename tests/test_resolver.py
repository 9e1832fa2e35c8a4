"""
Tests for perimeter_agent.topology.resolver module.
"""

import pytest

from perimeter_agent.core.config import PerimeterConfig
from perimeter_agent.core.errors import (
    AddressSpaceExhaustedError,
    DuplicateIdentifierError,
    MissingAttributeError,
    ResolutionError,
)
from perimeter_agent.core.graph import ResourceGraph
from perimeter_agent.core.objects import AddressBlock, Tier
from perimeter_agent.topology.resolver import TopologyResolver


def _graph(cidr: str = "10.0.0.0/16", gateway: bool = True) -> ResourceGraph:
    graph = ResourceGraph("test")
    graph.add_network("main", cidr)
    if gateway:
        graph.add_gateway("main-igw", "main")
    return graph


class TestPlan:
    """Test cases for slot planning."""

    def test_tier_major_order(self):
        """Test that public slots come before private ones."""
        requests = TopologyResolver().plan(["zone-a", "zone-b"])
        assert [(r.tier, r.zone) for r in requests] == [
            (Tier.PUBLIC, "zone-a"),
            (Tier.PUBLIC, "zone-b"),
            (Tier.PRIVATE, "zone-a"),
            (Tier.PRIVATE, "zone-b"),
        ]

    def test_multiple_per_zone(self):
        """Test per-zone ordinals."""
        requests = TopologyResolver().plan(["zone-a"], public_per_zone=2, private_per_zone=0)
        assert [r.ordinal for r in requests] == [1, 2]
        assert all(r.tier == Tier.PUBLIC for r in requests)

    def test_empty_zones(self):
        """Test that at least one zone is required."""
        with pytest.raises(MissingAttributeError):
            TopologyResolver().plan([])

    def test_duplicate_zone(self):
        """Test that zones must be distinct."""
        with pytest.raises(DuplicateIdentifierError):
            TopologyResolver().plan(["zone-a", "zone-a"])


class TestAllocate:
    """Test cases for block allocation."""

    def test_leading_block_reserved(self):
        """Test that the first block is skipped."""
        blocks = TopologyResolver().allocate(AddressBlock(cidr="10.0.0.0/16"), 2, 24)
        assert [b.cidr for b in blocks] == ["10.0.1.0/24", "10.0.2.0/24"]

    def test_no_reserved_blocks(self):
        """Test allocation with no reserved leading blocks."""
        resolver = TopologyResolver(PerimeterConfig(reserved_leading_blocks=0))
        blocks = resolver.allocate(AddressBlock(cidr="10.0.0.0/16"), 1, 24)
        assert blocks[0].cidr == "10.0.0.0/24"

    def test_skips_occupied(self):
        """Test that blocks already in use are skipped."""
        blocks = TopologyResolver().allocate(
            AddressBlock(cidr="10.0.0.0/16"),
            2,
            24,
            occupied=[AddressBlock(cidr="10.0.1.0/24")],
        )
        assert [b.cidr for b in blocks] == ["10.0.2.0/24", "10.0.3.0/24"]

    def test_exhausted(self):
        """Test that too many subnets raise."""
        # a /24 holds four /26 blocks, one of which is reserved
        with pytest.raises(AddressSpaceExhaustedError) as exc_info:
            TopologyResolver().allocate(AddressBlock(cidr="10.0.0.0/24"), 4, 26, network_name="main")
        assert exc_info.value.available == 3
        assert isinstance(exc_info.value, ResolutionError)

    def test_prefix_shorter_than_network(self):
        """Test that a subnet prefix wider than the network is rejected."""
        with pytest.raises(AddressSpaceExhaustedError):
            TopologyResolver().allocate(AddressBlock(cidr="10.0.0.0/24"), 1, 16)

    def test_large_partition(self):
        """Test that allocating from a huge partition is immediate."""
        blocks = TopologyResolver().allocate(AddressBlock(cidr="10.0.0.0/8"), 1, 30)
        assert blocks[0].cidr == "10.0.0.4/30"


class TestResolve:
    """Test cases for full resolution."""

    def test_two_zone_scenario(self):
        """Test the canonical two-zone /16 resolution."""
        graph = _graph()
        topology = TopologyResolver().resolve(graph, "main", ["zone-a", "zone-b"])

        public = [(s.zone, s.block.cidr) for s in topology.subnets_by_tier(Tier.PUBLIC)]
        private = [(s.zone, s.block.cidr) for s in topology.subnets_by_tier(Tier.PRIVATE)]
        assert public == [("zone-a", "10.0.1.0/24"), ("zone-b", "10.0.2.0/24")]
        assert private == [("zone-a", "10.0.3.0/24"), ("zone-b", "10.0.4.0/24")]

        public_domain = graph.get_route_domain("main-public-rt")
        assert public_domain.tier == Tier.PUBLIC
        assert len(public_domain.routes) == 1
        assert public_domain.routes[0].is_default()
        assert public_domain.routes[0].gateway == "main-igw"

        private_domain = graph.get_route_domain("main-private-rt")
        assert private_domain.routes == ()

        for subnet in topology.subnets:
            expected = "main-public-rt" if subnet.tier == Tier.PUBLIC else "main-private-rt"
            assert subnet.route_domain == expected

    def test_subnet_names(self):
        """Test generated subnet names."""
        graph = _graph()
        topology = TopologyResolver().resolve(graph, "main", ["zone-a"], public_per_zone=2)
        assert [s.name for s in topology.subnets] == [
            "main-public-zone-a-1",
            "main-public-zone-a-2",
            "main-private-zone-a",
        ]
        assert topology.subnet_for(Tier.PUBLIC, "zone-a", 2).name == "main-public-zone-a-2"
        assert topology.subnet_for(Tier.PRIVATE, "zone-b") is None

    def test_deterministic(self):
        """Test that the same input yields the same blocks."""
        first = TopologyResolver().resolve(_graph(), "main", ["zone-a", "zone-b"])
        second = TopologyResolver().resolve(_graph(), "main", ["zone-a", "zone-b"])
        assert first.to_dict() == second.to_dict()

    def test_exhausted_leaves_graph_untouched(self):
        """Test that nothing is registered when allocation fails."""
        graph = _graph("10.0.0.0/23")
        with pytest.raises(AddressSpaceExhaustedError):
            TopologyResolver().resolve(graph, "main", ["zone-a", "zone-b"])
        assert graph.subnets_of() == []
        assert graph.route_domains_of() == []

    def test_public_tier_needs_gateway(self):
        """Test that a public tier without a gateway cannot be resolved."""
        graph = _graph(gateway=False)
        with pytest.raises(MissingAttributeError, match="gateway"):
            TopologyResolver().resolve(graph, "main", ["zone-a"])

    def test_private_only_without_gateway(self):
        """Test that a private-only topology needs no gateway."""
        graph = _graph(gateway=False)
        topology = TopologyResolver().resolve(
            graph, "main", ["zone-a"], public_per_zone=0, private_per_zone=1
        )
        assert [d.name for d in topology.route_domains] == ["main-private-rt"]

    def test_custom_prefix(self):
        """Test resolution with an explicit subnet prefix."""
        graph = _graph()
        topology = TopologyResolver().resolve(graph, "main", ["zone-a"], prefix=20)
        assert [s.block.cidr for s in topology.subnets] == ["10.0.16.0/20", "10.0.32.0/20"]

    def test_subnets_contained_and_disjoint(self):
        """Test that resolved subnets lie inside the network and do not overlap."""
        graph = _graph()
        topology = TopologyResolver().resolve(
            graph, "main", ["a", "b", "c"], public_per_zone=2, private_per_zone=2
        )
        network = graph.get_network("main").block
        blocks = [s.block for s in topology.subnets]
        assert all(network.contains(block) for block in blocks)
        for i, first in enumerate(blocks):
            for second in blocks[i + 1 :]:
                assert not first.overlaps(second)
