"""
PerimeterAgent - Hardened Cloud Network Perimeter Modeller & Compliance Checker

A Python framework for declaring an isolated network, tiered subnets,
micro-segmented access groups and least-privilege identities, and verifying
the resolved topology against compliance invariants before provisioning.
"""

__version__ = "0.1.0"

from .access.compiler import AccessControlCompiler, CompiledAccessGroup
from .audit.checker import ComplianceChecker, ComplianceReport, Violation
from .core.blueprint import Blueprint
from .core.config import PerimeterConfig
from .core.graph import ResourceGraph
from .core.objects import AddressBlock, Direction, PortRange, Protocol, Tier
from .core.rules import EgressIntent, GroupIntent, IngressIntent, Rule
from .identity.assembler import RoleAssembler
from .provisioning.pipeline import PerimeterPipeline, PipelineResult
from .topology.resolver import ResolvedTopology, TopologyResolver

__all__ = [
    "ResourceGraph",
    "Blueprint",
    "PerimeterConfig",
    "TopologyResolver",
    "ResolvedTopology",
    "AccessControlCompiler",
    "CompiledAccessGroup",
    "RoleAssembler",
    "ComplianceChecker",
    "ComplianceReport",
    "Violation",
    "PerimeterPipeline",
    "PipelineResult",
    "IngressIntent",
    "GroupIntent",
    "EgressIntent",
    "Rule",
    "AddressBlock",
    "PortRange",
    "Protocol",
    "Direction",
    "Tier",
]
