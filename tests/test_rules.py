"""
Tests for perimeter_agent.core.rules module.
"""

import pytest
from pydantic import TypeAdapter

from perimeter_agent.core.objects import Direction, PortRange, Protocol
from perimeter_agent.core.rules import (
    UNRESTRICTED_IPV4,
    AddressPeer,
    EgressIntent,
    GroupIntent,
    GroupPeer,
    IngressIntent,
    Intent,
    Rule,
)


class TestPeers:
    """Test cases for rule peers."""

    def test_address_peer(self):
        """Test address peer creation and normalisation."""
        peer = AddressPeer(cidr="10.0.1.5/24")
        assert peer.kind == "address"
        assert peer.cidr == "10.0.1.0/24"
        assert not peer.is_unrestricted()
        assert str(peer) == "10.0.1.0/24"

    def test_unrestricted_address_peer(self):
        """Test that 0.0.0.0/0 is unrestricted."""
        assert AddressPeer(cidr=UNRESTRICTED_IPV4).is_unrestricted()

    def test_invalid_address_peer(self):
        """Test that invalid CIDRs are rejected."""
        with pytest.raises(ValueError):
            AddressPeer(cidr="300.0.0.0/8")

    def test_group_peer(self):
        """Test group peer creation."""
        peer = GroupPeer(group="app")
        assert peer.kind == "group"
        assert not peer.is_unrestricted()
        assert str(peer) == "group:app"


class TestRule:
    """Test cases for Rule class."""

    def test_rule_creation(self):
        """Test basic rule creation."""
        rule = Rule(
            direction=Direction.INBOUND,
            ports=PortRange.single(443),
            peer=AddressPeer(cidr="0.0.0.0/0"),
        )
        assert rule.protocol == Protocol.TCP
        assert rule.is_unrestricted()
        assert not rule.references_group()
        assert not rule.placeholder

    def test_peer_discriminator(self):
        """Test that a dict peer is parsed by its kind tag."""
        rule = Rule(
            direction="outbound",
            ports={"start": 5432, "end": 5432},
            peer={"kind": "group", "group": "db"},
        )
        assert isinstance(rule.peer, GroupPeer)
        assert rule.references_group()

    def test_rules_are_hashable(self):
        """Test that identical rules collapse in a set."""
        first = Rule(
            direction=Direction.INBOUND,
            ports=PortRange.single(443),
            peer=AddressPeer(cidr="0.0.0.0/0"),
        )
        second = Rule(
            direction=Direction.INBOUND,
            ports=PortRange.single(443),
            peer=AddressPeer(cidr="0.0.0.0/0"),
        )
        assert len({first, second}) == 1

    def test_to_dict(self):
        """Test rule serialisation."""
        rule = Rule(
            direction=Direction.INBOUND,
            ports=PortRange.range(8000, 8080),
            peer=GroupPeer(group="web"),
            description="App traffic",
        )
        assert rule.to_dict() == {
            "direction": "inbound",
            "protocol": "tcp",
            "from_port": 8000,
            "to_port": 8080,
            "peer_group": "web",
            "description": "App traffic",
        }

    def test_to_dict_placeholder(self):
        """Test that placeholder rules are flagged."""
        rule = Rule(
            direction=Direction.INBOUND,
            ports=PortRange.single(22),
            peer=AddressPeer(cidr="0.0.0.0/0"),
            placeholder=True,
        )
        data = rule.to_dict()
        assert data["peer_cidr"] == "0.0.0.0/0"
        assert data["placeholder"] is True

    def test_str(self):
        """Test string representation."""
        rule = Rule(
            direction=Direction.OUTBOUND,
            protocol=Protocol.UDP,
            ports=PortRange.single(53),
            peer=AddressPeer(cidr="10.0.0.0/16"),
        )
        assert str(rule) == "outbound udp/53 10.0.0.0/16"


class TestIntents:
    """Test cases for access intents."""

    def test_ingress_builder(self):
        """Test the fluent ingress builder."""
        intent = IngressIntent(group="web").tcp().port(443).from_any()
        assert intent.kind == "ingress"
        assert intent.ports == PortRange.single(443)
        assert intent.source == AddressPeer(cidr=UNRESTRICTED_IPV4)

        intent.from_group("lb")
        assert intent.source == GroupPeer(group="lb")

    def test_egress_builder(self):
        """Test the fluent egress builder."""
        intent = EgressIntent(group="app").udp().port_range(1000, 2000).to_cidr("10.1.0.0/16")
        assert intent.protocol == Protocol.UDP
        assert intent.ports == PortRange.range(1000, 2000)
        assert intent.destination == AddressPeer(cidr="10.1.0.0/16")

        intent.to_group("db").any_protocol().all_ports()
        assert intent.destination == GroupPeer(group="db")
        assert intent.protocol == Protocol.ANY
        assert str(intent.ports) == "any"

    def test_group_intent(self):
        """Test group-to-group intents."""
        intent = GroupIntent(source_group="web", target_group="app").port(8443)
        assert intent.kind == "group"
        assert intent.ports.start == 8443

    def test_intent_union_parsing(self):
        """Test that intents are parsed by their kind tag."""
        adapter = TypeAdapter(Intent)
        parsed = adapter.validate_python(
            {
                "kind": "egress",
                "group": "app",
                "ports": {"start": 443, "end": 443},
                "destination": {"kind": "address", "cidr": "0.0.0.0/0"},
            }
        )
        assert isinstance(parsed, EgressIntent)
        assert parsed.destination.is_unrestricted()
