"""
Core rule definitions for access groups.

A Rule's peer is a tagged variant: either an address block or a reference to
another access group. Access intents are the high-level declarations the
access compiler turns into Rules.
"""

from typing import Annotated, Literal, Optional, Tuple, Union

from pydantic import BaseModel, Field, validator

from .objects import AddressBlock, Direction, PortRange, Protocol

UNRESTRICTED_IPV4 = "0.0.0.0/0"


class AddressPeer(BaseModel):
    """A rule peer given as a raw address block."""

    model_config = {"frozen": True}

    kind: Literal["address"] = "address"
    cidr: str

    @validator("cidr")
    def validate_cidr(cls, v):
        return AddressBlock(cidr=v).cidr

    @property
    def block(self) -> AddressBlock:
        return AddressBlock(cidr=self.cidr)

    def is_unrestricted(self) -> bool:
        return self.block.is_unrestricted()

    def __str__(self) -> str:
        return self.cidr


class GroupPeer(BaseModel):
    """A rule peer given as a reference to another access group."""

    model_config = {"frozen": True}

    kind: Literal["group"] = "group"
    group: str

    def is_unrestricted(self) -> bool:
        return False

    def __str__(self) -> str:
        return f"group:{self.group}"


Peer = Annotated[Union[AddressPeer, GroupPeer], Field(discriminator="kind")]


class Rule(BaseModel):
    """A single allow rule held by an access group."""

    model_config = {"frozen": True}

    direction: Direction
    protocol: Protocol = Protocol.TCP
    ports: PortRange
    peer: Peer
    description: Optional[str] = None
    placeholder: bool = False

    def is_unrestricted(self) -> bool:
        return self.peer.is_unrestricted()

    def references_group(self) -> bool:
        return isinstance(self.peer, GroupPeer)

    def sort_key(self) -> Tuple:
        peer_value = self.peer.group if isinstance(self.peer, GroupPeer) else self.peer.cidr
        return (
            self.direction.value,
            self.protocol.value,
            self.ports.start,
            self.ports.end,
            self.peer.kind,
            peer_value,
            self.description or "",
            self.placeholder,
        )

    def to_dict(self) -> dict:
        data = {
            "direction": self.direction.value,
            "protocol": self.protocol.value,
            "from_port": self.ports.start,
            "to_port": self.ports.end,
        }
        if isinstance(self.peer, GroupPeer):
            data["peer_group"] = self.peer.group
        else:
            data["peer_cidr"] = self.peer.cidr
        if self.description:
            data["description"] = self.description
        if self.placeholder:
            data["placeholder"] = True
        return data

    def __str__(self) -> str:
        return f"{self.direction.value} {self.protocol.value}/{self.ports} {self.peer}"


class AccessIntent(BaseModel):
    """Base class for declared access intents."""

    protocol: Protocol = Protocol.TCP
    ports: Optional[PortRange] = None
    description: Optional[str] = None
    placeholder: bool = False

    def tcp(self):
        """Set protocol to TCP."""
        self.protocol = Protocol.TCP
        return self

    def udp(self):
        """Set protocol to UDP."""
        self.protocol = Protocol.UDP
        return self

    def any_protocol(self):
        """Set protocol to any."""
        self.protocol = Protocol.ANY
        return self

    def port(self, port: int):
        """Set a single destination port."""
        self.ports = PortRange.single(port)
        return self

    def port_range(self, start: int, end: int):
        """Set a destination port range."""
        self.ports = PortRange.range(start, end)
        return self

    def all_ports(self):
        """Cover every port."""
        self.ports = PortRange.any_port()
        return self


class IngressIntent(AccessIntent):
    """Allow protocol P on port-range R from source S into group G."""

    kind: Literal["ingress"] = "ingress"
    group: str
    source: Optional[Peer] = None

    def from_cidr(self, cidr: str) -> "IngressIntent":
        self.source = AddressPeer(cidr=cidr)
        return self

    def from_any(self) -> "IngressIntent":
        """Allow from any source address."""
        self.source = AddressPeer(cidr=UNRESTRICTED_IPV4)
        return self

    def from_group(self, group: str) -> "IngressIntent":
        self.source = GroupPeer(group=group)
        return self


class GroupIntent(AccessIntent):
    """Allow group G1 to reach group G2 on port-range R."""

    kind: Literal["group"] = "group"
    source_group: str
    target_group: str


class EgressIntent(AccessIntent):
    """Allow group G to send traffic to destination D on port-range R."""

    kind: Literal["egress"] = "egress"
    group: str
    destination: Optional[Peer] = None

    def to_cidr(self, cidr: str) -> "EgressIntent":
        self.destination = AddressPeer(cidr=cidr)
        return self

    def to_any(self) -> "EgressIntent":
        """Allow to any destination address."""
        self.destination = AddressPeer(cidr=UNRESTRICTED_IPV4)
        return self

    def to_group(self, group: str) -> "EgressIntent":
        self.destination = GroupPeer(group=group)
        return self


Intent = Annotated[
    Union[IngressIntent, GroupIntent, EgressIntent], Field(discriminator="kind")
]
