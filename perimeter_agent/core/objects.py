"""
Core network objects for representing address blocks, ports, protocols and tiers.
"""

import re
from enum import Enum
from ipaddress import IPv4Network, IPv6Network, ip_network
from typing import Union

from pydantic import BaseModel, validator

IPNetwork = Union[IPv4Network, IPv6Network]

MIN_PORT = 0
MAX_PORT = 65535

_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_.:-]+$")


def validate_name(value: str) -> str:
    """Check that a logical name is usable as an identifier."""
    if not value or not _NAME_PATTERN.match(value):
        raise ValueError(
            "Name must contain only alphanumeric characters, dots, colons, "
            f"hyphens, and underscores: {value!r}"
        )
    return value


class Protocol(str, Enum):
    """Transport protocol a rule applies to."""

    TCP = "tcp"
    UDP = "udp"
    ICMP = "icmp"
    ANY = "any"


class Direction(str, Enum):
    """Traffic direction relative to an access group."""

    INBOUND = "inbound"
    OUTBOUND = "outbound"


class Tier(str, Enum):
    """Routing tier of a subnet or route domain."""

    PUBLIC = "public"
    PRIVATE = "private"


class AddressBlock(BaseModel):
    """Represents a CIDR block, normalised to its network address."""

    model_config = {"frozen": True}

    cidr: str

    @validator("cidr")
    def validate_cidr(cls, v):
        try:
            return str(ip_network(v, strict=False))
        except ValueError:
            raise ValueError(f"Invalid CIDR notation: {v}")

    @classmethod
    def parse(cls, value: Union[str, "AddressBlock"]) -> "AddressBlock":
        if isinstance(value, AddressBlock):
            return value
        return cls(cidr=value)

    @property
    def network(self) -> IPNetwork:
        return ip_network(self.cidr)

    @property
    def prefixlen(self) -> int:
        return self.network.prefixlen

    def is_unrestricted(self) -> bool:
        """A /0 block matches every address of its family."""
        return self.network.prefixlen == 0

    def contains(self, other: Union[str, "AddressBlock"]) -> bool:
        """Check if the other block lies entirely inside this one."""
        inner = AddressBlock.parse(other).network
        outer = self.network
        if inner.version != outer.version:
            return False
        return inner.subnet_of(outer)

    def overlaps(self, other: Union[str, "AddressBlock"]) -> bool:
        """Check if the two blocks share at least one address."""
        theirs = AddressBlock.parse(other).network
        ours = self.network
        if theirs.version != ours.version:
            return False
        return ours.overlaps(theirs)

    def __str__(self) -> str:
        return self.cidr


class PortRange(BaseModel):
    """Represents an inclusive port range; a single port has start == end."""

    model_config = {"frozen": True}

    start: int
    end: int

    @validator("start", "end")
    def validate_port(cls, v):
        if v < MIN_PORT or v > MAX_PORT:
            raise ValueError(f"Port must be between {MIN_PORT} and {MAX_PORT}, got {v}")
        return v

    @validator("end")
    def validate_order(cls, v, values):
        start = values.get("start")
        if start is not None and start > v:
            raise ValueError("start must be less than or equal to end")
        return v

    @classmethod
    def single(cls, port: int) -> "PortRange":
        """Create a single port."""
        return cls(start=port, end=port)

    @classmethod
    def range(cls, start: int, end: int) -> "PortRange":
        """Create a port range."""
        return cls(start=start, end=end)

    @classmethod
    def any_port(cls) -> "PortRange":
        """Create a range covering every port."""
        return cls(start=MIN_PORT, end=MAX_PORT)

    def is_single(self) -> bool:
        return self.start == self.end

    def contains(self, port: int) -> bool:
        return self.start <= port <= self.end

    def overlaps(self, other: "PortRange") -> bool:
        return self.start <= other.end and other.start <= self.end

    def within(self, ports) -> bool:
        """Check if every port in this range is one of the given ports."""
        allowed = set(ports)
        if self.end - self.start + 1 > len(allowed):
            return False
        return all(port in allowed for port in range(self.start, self.end + 1))

    def __str__(self) -> str:
        if self.is_single():
            return str(self.start)
        if self.start == MIN_PORT and self.end == MAX_PORT:
            return "any"
        return f"{self.start}-{self.end}"
