"""
Compliance invariant checker for resolved resource graphs.

Each invariant is an independent check. All violations are collected and
returned as data; the checker never raises for a non-compliant graph and
never mutates it.
"""

import datetime
import json
from collections import defaultdict
from typing import Callable, Dict, List, NamedTuple, Optional, Set, Tuple

from pydantic import BaseModel

from ..core.config import PerimeterConfig
from ..core.graph import AccessGroup, ResourceGraph
from ..core.logging_config import get_logger
from ..core.objects import Tier
from ..core.rules import AddressPeer, Rule

logger = get_logger(__name__)


class Violation(NamedTuple):
    """One ``(invariant_name, offending_entity_ids, message)`` finding."""

    invariant: str
    entity_ids: Tuple[str, ...]
    message: str


SEVERITIES: Dict[str, str] = {
    "subnet-containment": "critical",
    "subnet-disjoint": "critical",
    "private-route-isolation": "critical",
    "public-route-egress": "medium",
    "admin-port-restricted": "critical",
    "admin-source-unconfigured": "high",
    "unrestricted-ingress-encrypted-only": "high",
    "cross-group-reference": "medium",
    "identity-explicit-actions": "high",
    "identity-managed-full-access": "high",
    "compute-binding": "high",
    "compute-static-credentials": "critical",
    "monitoring-recorder": "medium",
}


class ComplianceReport(BaseModel):
    """Violations found in one graph, in check order."""

    graph_name: str
    violations: List[Violation] = []
    checks_run: List[str] = []
    checked_at: str

    @property
    def is_compliant(self) -> bool:
        return not self.violations

    def by_invariant(self, invariant: str) -> List[Violation]:
        return [v for v in self.violations if v.invariant == invariant]

    def by_severity(self, severity: str) -> List[Violation]:
        return [v for v in self.violations if SEVERITIES.get(v.invariant) == severity]

    def to_dict(self) -> Dict:
        return {
            "graph": self.graph_name,
            "compliant": self.is_compliant,
            "violations": [
                {
                    "invariant": v.invariant,
                    "severity": SEVERITIES.get(v.invariant, "info"),
                    "entities": list(v.entity_ids),
                    "message": v.message,
                }
                for v in self.violations
            ],
        }


class ComplianceChecker:
    """Runs every topology, access and identity invariant over a graph."""

    def __init__(self, config: Optional[PerimeterConfig] = None):
        self.config = config or PerimeterConfig()
        self.checks: List[Tuple[str, Callable[[ResourceGraph], List[Violation]]]] = [
            ("subnet-containment", self.check_subnet_containment),
            ("subnet-disjoint", self.check_subnet_disjoint),
            ("private-route-isolation", self.check_private_route_isolation),
            ("public-route-egress", self.check_public_route_egress),
            ("admin-port-restricted", self.check_admin_port_restricted),
            ("admin-source-unconfigured", self.check_admin_source_unconfigured),
            ("unrestricted-ingress-encrypted-only", self.check_unrestricted_ingress),
            ("cross-group-reference", self.check_cross_group_reference),
            ("identity-explicit-actions", self.check_identity_explicit_actions),
            ("identity-managed-full-access", self.check_identity_managed_full_access),
            ("compute-binding", self.check_compute_binding),
            ("compute-static-credentials", self.check_compute_static_credentials),
            ("monitoring-recorder", self.check_monitoring_recorder),
        ]

    def check(self, graph: ResourceGraph) -> List[Violation]:
        """Run every check and return all violations in check order."""
        violations: List[Violation] = []
        for name, check in self.checks:
            found = check(graph)
            logger.debug("Check %s: %d violation(s)", name, len(found))
            violations.extend(found)
        return violations

    def report(
        self, graph: ResourceGraph, violations: Optional[List[Violation]] = None
    ) -> ComplianceReport:
        """Build a report, reusing ``violations`` when they were already checked."""
        return ComplianceReport(
            graph_name=graph.name,
            violations=self.check(graph) if violations is None else violations,
            checks_run=[name for name, _ in self.checks],
            checked_at=datetime.datetime.now().isoformat(),
        )

    # -- topology ----------------------------------------------------------

    def check_subnet_containment(self, graph: ResourceGraph) -> List[Violation]:
        violations = []
        for subnet in graph.subnets_of():
            network = graph.get_network(subnet.network)
            if not network.block.contains(subnet.block):
                violations.append(
                    Violation(
                        "subnet-containment",
                        (subnet.name, network.name),
                        f"Subnet {subnet.block} is not contained in network "
                        f"'{network.name}' ({network.block})",
                    )
                )
        return violations

    def check_subnet_disjoint(self, graph: ResourceGraph) -> List[Violation]:
        violations = []
        for network in graph.networks():
            subnets = graph.subnets_of(network.name)
            for i, first in enumerate(subnets):
                for second in subnets[i + 1 :]:
                    if first.block.overlaps(second.block):
                        violations.append(
                            Violation(
                                "subnet-disjoint",
                                (first.name, second.name),
                                f"Subnets {first.block} and {second.block} overlap in "
                                f"network '{network.name}'",
                            )
                        )
        return violations

    def check_private_route_isolation(self, graph: ResourceGraph) -> List[Violation]:
        violations = []
        for domain in graph.route_domains_of(tier=Tier.PRIVATE):
            if domain.routes:
                gateways = sorted({route.gateway for route in domain.routes})
                violations.append(
                    Violation(
                        "private-route-isolation",
                        (domain.name,),
                        f"Private route domain '{domain.name}' routes to gateway(s) "
                        f"{', '.join(gateways)}",
                    )
                )
        for subnet in graph.subnets_of():
            if subnet.tier != Tier.PRIVATE:
                continue
            domain = graph.route_domain_of(subnet.name)
            if domain.tier == Tier.PUBLIC:
                violations.append(
                    Violation(
                        "private-route-isolation",
                        (subnet.name, domain.name),
                        f"Private subnet '{subnet.name}' is attached to public route "
                        f"domain '{domain.name}'",
                    )
                )
        return violations

    def check_public_route_egress(self, graph: ResourceGraph) -> List[Violation]:
        violations = []
        for domain in graph.route_domains_of(tier=Tier.PUBLIC):
            gateway = graph.gateway_of(domain.network)
            has_default = any(
                route.is_default() and gateway is not None and route.gateway == gateway.name
                for route in domain.routes
            )
            if not has_default:
                violations.append(
                    Violation(
                        "public-route-egress",
                        (domain.name,),
                        f"Public route domain '{domain.name}' has no default route to "
                        f"the gateway of network '{domain.network}'",
                    )
                )
        for subnet in graph.subnets_of():
            if subnet.tier != Tier.PUBLIC:
                continue
            domain = graph.route_domain_of(subnet.name)
            if domain.tier == Tier.PRIVATE:
                violations.append(
                    Violation(
                        "public-route-egress",
                        (subnet.name, domain.name),
                        f"Public subnet '{subnet.name}' is attached to private route "
                        f"domain '{domain.name}'",
                    )
                )
        return violations

    # -- access groups -----------------------------------------------------

    def _unrestricted_admin_rules(self, group: AccessGroup) -> List[Tuple[Rule, int]]:
        found = []
        for rule in group.inbound:
            if not isinstance(rule.peer, AddressPeer):
                continue
            if not self.config.is_unrestricted(rule.peer.cidr):
                continue
            ports = [port for port in sorted(self.config.admin_ports) if rule.ports.contains(port)]
            if ports:
                found.append((rule, ports[0]))
        return found

    def _is_unconfigured(self, rule: Rule) -> bool:
        return rule.placeholder and not self.config.placeholder_is_violation

    def check_admin_port_restricted(self, graph: ResourceGraph) -> List[Violation]:
        violations = []
        for group in graph.access_groups():
            for rule, port in self._unrestricted_admin_rules(group):
                if self._is_unconfigured(rule):
                    continue
                violations.append(
                    Violation(
                        "admin-port-restricted",
                        (group.name,),
                        f"Access group '{group.name}' allows administrative port {port} "
                        f"from unrestricted source {rule.peer}",
                    )
                )
        return violations

    def check_admin_source_unconfigured(self, graph: ResourceGraph) -> List[Violation]:
        violations = []
        for group in graph.access_groups():
            for rule, port in self._unrestricted_admin_rules(group):
                if not self._is_unconfigured(rule):
                    continue
                violations.append(
                    Violation(
                        "admin-source-unconfigured",
                        (group.name,),
                        f"Access group '{group.name}' still has the placeholder source "
                        f"{rule.peer} for administrative port {port}; set a restricted "
                        "source before provisioning",
                    )
                )
        return violations

    def check_unrestricted_ingress(self, graph: ResourceGraph) -> List[Violation]:
        violations = []
        for group in graph.access_groups():
            for rule in group.inbound:
                if not isinstance(rule.peer, AddressPeer):
                    continue
                if not self.config.is_unrestricted(rule.peer.cidr):
                    continue
                if any(rule.ports.contains(port) for port in self.config.admin_ports):
                    continue
                if rule.ports.within(self.config.encrypted_ports):
                    continue
                violations.append(
                    Violation(
                        "unrestricted-ingress-encrypted-only",
                        (group.name,),
                        f"Access group '{group.name}' allows port {rule.ports} from "
                        f"unrestricted source {rule.peer}; only encrypted ports "
                        f"{sorted(self.config.encrypted_ports)} may be public",
                    )
                )
        return violations

    def check_cross_group_reference(self, graph: ResourceGraph) -> List[Violation]:
        """Raw ranges must not stand in for a modeled group in another tier."""
        group_tiers: Dict[str, Set[Tier]] = defaultdict(set)
        hosted: Dict[str, Set[str]] = defaultdict(set)
        for compute in graph.entities("compute"):
            subnet = graph.get_subnet(compute.subnet)
            for group in compute.access_groups:
                group_tiers[group].add(subnet.tier)
                hosted[subnet.name].add(group)

        violations = []
        for group in graph.access_groups():
            tiers = group_tiers.get(group.name)
            if not tiers:
                continue
            for rule in group.rules():
                if not isinstance(rule.peer, AddressPeer):
                    continue
                if self.config.is_unrestricted(rule.peer.cidr):
                    continue
                peers: Set[str] = set()
                for subnet in graph.subnets_of(group.network):
                    if subnet.tier in tiers or not subnet.block.overlaps(rule.peer.block):
                        continue
                    peers.update(hosted.get(subnet.name, set()) - {group.name})
                if peers:
                    violations.append(
                        Violation(
                            "cross-group-reference",
                            (group.name,) + tuple(sorted(peers)),
                            f"Access group '{group.name}' reaches {rule.peer} by address; "
                            f"reference group(s) {', '.join(sorted(peers))} instead",
                        )
                    )
        return violations

    # -- identities --------------------------------------------------------

    def check_identity_explicit_actions(self, graph: ResourceGraph) -> List[Violation]:
        violations = []
        for identity in graph.entities("identity"):
            document = identity.document
            if document.provider_managed_bootstrap:
                continue
            for set_name, statement in document.permission_statements():
                wildcards = statement.wildcard_actions()
                if wildcards:
                    violations.append(
                        Violation(
                            "identity-explicit-actions",
                            (identity.name,),
                            f"Identity '{identity.name}' statement set '{set_name}' uses "
                            f"wildcard action(s) {', '.join(wildcards)}",
                        )
                    )
        return violations

    def check_identity_managed_full_access(self, graph: ResourceGraph) -> List[Violation]:
        violations = []
        for identity in graph.entities("identity"):
            document = identity.document
            if document.provider_managed_bootstrap:
                continue
            for policy in document.managed_policies:
                if any(marker in policy for marker in self.config.full_access_markers):
                    violations.append(
                        Violation(
                            "identity-managed-full-access",
                            (identity.name,),
                            f"Identity '{identity.name}' attaches full-access managed "
                            f"policy {policy}; use scoped statements instead",
                        )
                    )
        return violations

    # -- compute -----------------------------------------------------------

    def check_compute_binding(self, graph: ResourceGraph) -> List[Violation]:
        violations = []
        for compute in graph.entities("compute"):
            if compute.binding is None:
                violations.append(
                    Violation(
                        "compute-binding",
                        (compute.name,),
                        f"Compute '{compute.name}' has no binding and cannot receive "
                        "temporary credentials",
                    )
                )
        for binding in graph.entities("binding"):
            users = graph.computes_with_binding(binding.name)
            if len(users) > 1:
                violations.append(
                    Violation(
                        "compute-binding",
                        (binding.name,) + tuple(compute.name for compute in users),
                        f"Binding '{binding.name}' is shared by {len(users)} computes",
                    )
                )
        return violations

    def check_compute_static_credentials(self, graph: ResourceGraph) -> List[Violation]:
        return [
            Violation(
                "compute-static-credentials",
                (compute.name,),
                f"Compute '{compute.name}' carries static long-lived credentials",
            )
            for compute in graph.entities("compute")
            if compute.static_credentials
        ]

    def check_monitoring_recorder(self, graph: ResourceGraph) -> List[Violation]:
        if not self.config.require_recorder:
            return []
        violations = []
        for network in graph.networks():
            recorders = [r for r in graph.recorders_of(network.name) if r.enabled]
            if not recorders:
                violations.append(
                    Violation(
                        "monitoring-recorder",
                        (network.name,),
                        f"Network '{network.name}' has no enabled configuration recorder",
                    )
                )
        return violations

    # -- reporting ---------------------------------------------------------

    def generate_report(self, report: ComplianceReport, format: str = "text") -> str:
        """Render a compliance report as text or JSON."""
        if format == "json":
            return json.dumps(report.to_dict(), indent=2, sort_keys=True)
        if format != "text":
            raise ValueError(f"Unsupported report format: {format}")

        lines = []
        lines.append("=" * 80)
        lines.append("PERIMETER COMPLIANCE REPORT")
        lines.append("=" * 80)
        lines.append("")
        lines.append(f"Graph: {report.graph_name}")
        lines.append(f"Checked: {report.checked_at}")
        lines.append(f"Checks Run: {len(report.checks_run)}")
        lines.append(f"Violations: {len(report.violations)}")
        lines.append("")

        for severity in ("critical", "high", "medium", "low"):
            found = report.by_severity(severity)
            if not found:
                continue
            lines.append(f"{severity.upper()} VIOLATIONS:")
            lines.append("-" * 40)
            for i, violation in enumerate(found, 1):
                lines.append(f"{i}. [{violation.invariant}] {violation.message}")
                lines.append(f"   Entities: {', '.join(violation.entity_ids)}")
            lines.append("")

        if report.is_compliant:
            lines.append("All invariants hold.")
        return "\n".join(lines)
