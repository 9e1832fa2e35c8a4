"""
Perimeter pipeline: runs the build, resolve, compile, assemble and check
phases in order and hands the resulting artifacts to a provider.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from ..access.compiler import AccessControlCompiler, CompiledAccessGroup
from ..audit.checker import SEVERITIES, ComplianceChecker, Violation
from ..core.blueprint import Blueprint, ComputeSpec
from ..core.config import PerimeterConfig
from ..core.errors import MissingAttributeError, PolicyCompilationError
from ..core.graph import ResourceGraph
from ..core.logging_config import get_logger, log_success, log_violation
from ..core.policy import IdentityDocument
from ..identity.assembler import RoleAssembler
from ..topology.resolver import ResolvedTopology, TopologyResolver
from .base import ArtifactBundle, ProvisioningProvider, ProvisioningResult

logger = get_logger(__name__)


@dataclass
class PipelineResult:
    """Everything one run produced."""

    graph: ResourceGraph
    topology: ResolvedTopology
    access_groups: Dict[str, CompiledAccessGroup]
    identities: Dict[str, IdentityDocument]
    violations: List[Violation]
    errors: List[Tuple[str, PolicyCompilationError]] = field(default_factory=list)

    @property
    def is_compliant(self) -> bool:
        return not self.violations

    def to_bundle(self) -> ArtifactBundle:
        graph = self.graph.to_dict()
        return ArtifactBundle(
            name=self.graph.name,
            topology=self.topology.to_dict(),
            access_groups={
                name: group.to_dict() for name, group in sorted(self.access_groups.items())
            },
            identities={name: doc.to_dict() for name, doc in sorted(self.identities.items())},
            bindings=graph["binding"],
            computes=graph["compute"],
            recorders=graph["recorder"],
            violations=[
                {
                    "invariant": v.invariant,
                    "severity": SEVERITIES.get(v.invariant, "info"),
                    "entities": list(v.entity_ids),
                    "message": v.message,
                }
                for v in self.violations
            ],
        )


class PerimeterPipeline:
    """
    Sequential resolution-and-verification pipeline.

    Structural and resolution errors abort the run. Policy compilation
    errors abort it too unless ``continue_on_policy_error`` is set, in which
    case the failing group keeps no rules, the failing identity is skipped,
    and the error is recorded on the result. Compliance violations never
    abort: they are logged and returned with the artifacts.
    """

    def __init__(
        self,
        config: Optional[PerimeterConfig] = None,
        continue_on_policy_error: bool = False,
    ):
        self.config = config or PerimeterConfig()
        self.continue_on_policy_error = continue_on_policy_error
        self.resolver = TopologyResolver(self.config)
        self.compiler = AccessControlCompiler(self.config)
        self.assembler = RoleAssembler(self.config)
        self.checker = ComplianceChecker(self.config)

    def run(self, blueprint: Blueprint) -> PipelineResult:
        logger.info("Running perimeter pipeline for '%s'", blueprint.name)
        errors: List[Tuple[str, PolicyCompilationError]] = []

        graph = self.build_graph(blueprint)
        topology = self.resolver.resolve(
            graph,
            blueprint.network.name,
            blueprint.zones,
            blueprint.public_subnets_per_zone,
            blueprint.private_subnets_per_zone,
            blueprint.subnet_prefix,
        )

        access_groups = self._compile_access(blueprint, graph, errors)
        identities = self._assemble_identities(blueprint, graph, errors)
        failed = {name for name, _ in errors}
        self._place_computes(blueprint, graph, topology, identities, failed)
        recorder = blueprint.recorder
        if recorder is not None and recorder.identity in failed:
            logger.warning(
                "Recorder '%s' skipped: identity '%s' failed to assemble",
                recorder.name,
                recorder.identity,
            )
        elif recorder is not None:
            graph.add_recorder(
                recorder.name,
                network=blueprint.network.name,
                identity=recorder.identity,
                enabled=recorder.enabled,
                all_supported=recorder.all_supported,
                include_global_resources=recorder.include_global_resources,
            )
        graph.freeze()

        violations = self.checker.check(graph)
        for violation in violations:
            log_violation(
                violation.invariant,
                SEVERITIES.get(violation.invariant, "info"),
                violation.message,
                logger,
            )
        if not violations:
            log_success(f"Perimeter '{blueprint.name}' satisfies every invariant", logger)

        return PipelineResult(
            graph=graph,
            topology=topology,
            access_groups=access_groups,
            identities=identities,
            violations=violations,
            errors=errors,
        )

    def build_graph(self, blueprint: Blueprint) -> ResourceGraph:
        """Construct the network, gateway and access group entities."""
        graph = ResourceGraph(blueprint.name)
        network = blueprint.network
        graph.add_network(network.name, network.cidr)
        if network.gateway:
            graph.add_gateway(network.gateway, network.name)
        for group in blueprint.access_groups:
            graph.add_access_group(group.name, network.name, group.description)
        return graph

    async def provision(
        self,
        result: PipelineResult,
        provider: ProvisioningProvider,
        dry_run: bool = True,
        block_on_violations: bool = False,
    ) -> Optional[ProvisioningResult]:
        """Hand the artifacts to a provider; returns None if blocked."""
        bundle = result.to_bundle()
        if block_on_violations and not bundle.is_compliant:
            logger.error(
                "Not provisioning '%s': %d compliance violation(s)",
                bundle.name,
                len(bundle.violations),
            )
            return None
        logger.info("Handing '%s' to provider %s (dry_run=%s)", bundle.name, provider, dry_run)
        return await provider.apply(bundle, dry_run=dry_run)

    # -- phases ------------------------------------------------------------

    def _compile_access(
        self,
        blueprint: Blueprint,
        graph: ResourceGraph,
        errors: List[Tuple[str, PolicyCompilationError]],
    ) -> Dict[str, CompiledAccessGroup]:
        if self.continue_on_policy_error:
            compiled = self.compiler.compile_each(blueprint.intents, graph)
            errors.extend(sorted(compiled.errors.items()))
            groups = compiled.groups
        else:
            groups = self.compiler.compile(blueprint.intents, graph)
        for name, group in groups.items():
            graph.attach_rules(name, group.inbound, group.outbound)
        return groups

    def _assemble_identities(
        self,
        blueprint: Blueprint,
        graph: ResourceGraph,
        errors: List[Tuple[str, PolicyCompilationError]],
    ) -> Dict[str, IdentityDocument]:
        documents: Dict[str, IdentityDocument] = {}
        for spec in blueprint.identities:
            try:
                document = self.assembler.assemble(
                    spec.name,
                    spec.trust,
                    spec.statements,
                    spec.managed_policies,
                    spec.provider_managed_bootstrap,
                )
            except PolicyCompilationError as e:
                if not self.continue_on_policy_error:
                    raise
                logger.warning("Identity '%s' failed to assemble: %s", spec.name, e)
                errors.append((spec.name, e))
                continue
            graph.add_identity(document)
            documents[spec.name] = document
        return documents

    def _place_computes(
        self,
        blueprint: Blueprint,
        graph: ResourceGraph,
        topology: ResolvedTopology,
        identities: Dict[str, IdentityDocument],
        failed: Set[str],
    ) -> None:
        for spec in blueprint.computes:
            binding = None
            if spec.identity in identities:
                binding = spec.binding or f"{spec.name}-profile"
                graph.add_binding(binding, spec.identity)
            elif spec.identity and spec.identity not in failed:
                graph.get_identity(spec.identity)
            graph.add_compute(
                spec.name,
                subnet=self._subnet_for(spec, topology),
                access_groups=spec.access_groups,
                binding=binding,
                static_credentials=spec.static_credentials,
            )

    @staticmethod
    def _subnet_for(spec: ComputeSpec, topology: ResolvedTopology) -> str:
        if spec.subnet:
            return spec.subnet
        if spec.tier is None or spec.zone is None:
            raise MissingAttributeError("Compute", spec.name, "subnet")
        subnet = topology.subnet_for(spec.tier, spec.zone, spec.ordinal)
        if subnet is None:
            raise MissingAttributeError("Compute", spec.name, "subnet")
        return subnet.name
