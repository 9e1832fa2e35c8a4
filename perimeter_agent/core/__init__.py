"""
Core module for PerimeterAgent framework.
"""

from .errors import (
    AddressSpaceExhaustedError,
    CardinalityError,
    DanglingReferenceError,
    DuplicateIdentifierError,
    EmptyTrustPolicyError,
    FrozenGraphError,
    MissingAttributeError,
    OverbroadPermissionError,
    PerimeterError,
    PlaintextIngressError,
    PolicyCompilationError,
    ResolutionError,
    StructuralError,
    UnrestrictedAdminAccessError,
)
from .graph import (
    AccessGroup,
    Binding,
    Compute,
    Gateway,
    Identity,
    Network,
    Recorder,
    ResourceGraph,
    Route,
    RouteDomain,
    Subnet,
)
from .objects import AddressBlock, Direction, PortRange, Protocol, Tier
from .policy import Effect, IdentityDocument, PermissionStatement, PrincipalType, TrustStatement
from .rules import AddressPeer, EgressIntent, GroupIntent, GroupPeer, IngressIntent, Rule

__all__ = [
    "ResourceGraph",
    "Network",
    "Gateway",
    "Route",
    "RouteDomain",
    "Subnet",
    "AccessGroup",
    "Identity",
    "Binding",
    "Compute",
    "Recorder",
    "AddressBlock",
    "PortRange",
    "Protocol",
    "Direction",
    "Tier",
    "Rule",
    "AddressPeer",
    "GroupPeer",
    "IngressIntent",
    "GroupIntent",
    "EgressIntent",
    "TrustStatement",
    "PermissionStatement",
    "IdentityDocument",
    "Effect",
    "PrincipalType",
    "PerimeterError",
    "StructuralError",
    "ResolutionError",
    "PolicyCompilationError",
    "DanglingReferenceError",
    "DuplicateIdentifierError",
    "MissingAttributeError",
    "CardinalityError",
    "FrozenGraphError",
    "AddressSpaceExhaustedError",
    "UnrestrictedAdminAccessError",
    "PlaintextIngressError",
    "EmptyTrustPolicyError",
    "OverbroadPermissionError",
]
