"""
Access control compiler: turns declared access intents into per-group
inbound/outbound rule sets.

Every known group gets an entry, even when no intent mentions it, so a
direction with no rule permits nothing.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from pydantic import BaseModel

from ..core.config import PerimeterConfig
from ..core.errors import (
    DanglingReferenceError,
    MissingAttributeError,
    PlaintextIngressError,
    PolicyCompilationError,
    UnrestrictedAdminAccessError,
)
from ..core.graph import ResourceGraph
from ..core.logging_config import get_logger
from ..core.objects import Direction
from ..core.rules import (
    AddressPeer,
    EgressIntent,
    GroupIntent,
    GroupPeer,
    IngressIntent,
    Rule,
)

logger = get_logger(__name__)

AnyIntent = Union[IngressIntent, GroupIntent, EgressIntent]


class CompiledAccessGroup(BaseModel):
    """The compiled rule sets of one access group."""

    model_config = {"frozen": True}

    name: str
    inbound: Tuple[Rule, ...] = ()
    outbound: Tuple[Rule, ...] = ()

    def permits(self, direction: Direction) -> bool:
        rules = self.inbound if direction == Direction.INBOUND else self.outbound
        return bool(rules)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "inbound": [rule.to_dict() for rule in self.inbound],
            "outbound": [rule.to_dict() for rule in self.outbound],
        }


@dataclass
class CompilationResult:
    """Compiled groups plus the per-group errors of a non-failing compile."""

    groups: Dict[str, CompiledAccessGroup] = field(default_factory=dict)
    errors: Dict[str, PolicyCompilationError] = field(default_factory=dict)

    @property
    def is_successful(self) -> bool:
        return not self.errors


class AccessControlCompiler:
    """Compiles access intents into default-deny access group rule sets."""

    def __init__(self, config: Optional[PerimeterConfig] = None):
        self.config = config or PerimeterConfig()

    def compile(
        self,
        intents: Iterable[AnyIntent],
        graph: Optional[ResourceGraph] = None,
        groups: Optional[Sequence[str]] = None,
    ) -> Dict[str, CompiledAccessGroup]:
        """Compile every group, raising the first policy error encountered."""
        expanded, known = self._expand(intents, graph, groups)
        return {name: self._compile_group(name, expanded.get(name, [])) for name in known}

    def compile_each(
        self,
        intents: Iterable[AnyIntent],
        graph: Optional[ResourceGraph] = None,
        groups: Optional[Sequence[str]] = None,
    ) -> CompilationResult:
        """
        Compile every group independently.

        Policy errors are collected per group and the failing group is left
        out of ``groups``; structural errors still raise.
        """
        expanded, known = self._expand(intents, graph, groups)
        result = CompilationResult()
        for name in known:
            try:
                result.groups[name] = self._compile_group(name, expanded.get(name, []))
            except PolicyCompilationError as e:
                logger.warning("Access group '%s' failed to compile: %s", name, e)
                result.errors[name] = e
        return result

    def compile_group(self, group: str, intents: Iterable[AnyIntent]) -> CompiledAccessGroup:
        """Compile the rules one group receives from ``intents``."""
        expanded, _ = self._expand(intents, None, None)
        return self._compile_group(group, expanded.get(group, []))

    # -- expansion ---------------------------------------------------------

    def _expand(
        self,
        intents: Iterable[AnyIntent],
        graph: Optional[ResourceGraph],
        groups: Optional[Sequence[str]],
    ) -> Tuple[Dict[str, List[Rule]], List[str]]:
        known: List[str] = []
        if graph is not None:
            known.extend(group.name for group in graph.access_groups())
        for name in groups or ():
            if name not in known:
                known.append(name)
        validate = bool(known)

        expanded: Dict[str, List[Rule]] = {}
        for intent in intents:
            for group, rule in self._rules_for(intent):
                expanded.setdefault(group, []).append(rule)

        for group, rules in expanded.items():
            if validate and group not in known:
                raise DanglingReferenceError("AccessGroup", group, "access intent")
            for rule in rules:
                if isinstance(rule.peer, GroupPeer):
                    if validate and rule.peer.group not in known:
                        raise DanglingReferenceError(
                            "AccessGroup", rule.peer.group, f"rule on '{group}'"
                        )
            if not validate and group not in known:
                known.append(group)

        return expanded, known

    def _rules_for(self, intent: AnyIntent) -> List[Tuple[str, Rule]]:
        if intent.ports is None:
            raise MissingAttributeError(type(intent).__name__, None, "ports")
        common = {
            "protocol": intent.protocol,
            "ports": intent.ports,
            "description": intent.description,
            "placeholder": intent.placeholder,
        }

        if isinstance(intent, IngressIntent):
            if intent.source is None:
                raise MissingAttributeError("IngressIntent", intent.group, "source")
            return [
                (
                    intent.group,
                    Rule(direction=Direction.INBOUND, peer=intent.source, **common),
                )
            ]

        if isinstance(intent, EgressIntent):
            if intent.destination is None:
                raise MissingAttributeError("EgressIntent", intent.group, "destination")
            return [
                (
                    intent.group,
                    Rule(direction=Direction.OUTBOUND, peer=intent.destination, **common),
                )
            ]

        # group-to-group: one outbound rule on the source, one inbound on the target
        return [
            (
                intent.source_group,
                Rule(
                    direction=Direction.OUTBOUND,
                    peer=GroupPeer(group=intent.target_group),
                    **common,
                ),
            ),
            (
                intent.target_group,
                Rule(
                    direction=Direction.INBOUND,
                    peer=GroupPeer(group=intent.source_group),
                    **common,
                ),
            ),
        ]

    # -- per-group validation ----------------------------------------------

    def _compile_group(self, name: str, rules: List[Rule]) -> CompiledAccessGroup:
        unique = sorted(set(rules), key=lambda rule: rule.sort_key())
        inbound = [rule for rule in unique if rule.direction == Direction.INBOUND]
        outbound = [rule for rule in unique if rule.direction == Direction.OUTBOUND]

        self._check_admin_access(name, inbound)
        self._check_plaintext_ingress(name, inbound)

        compiled = CompiledAccessGroup(name=name, inbound=tuple(inbound), outbound=tuple(outbound))
        logger.debug(
            "Compiled access group '%s': %d inbound, %d outbound rules",
            name,
            len(inbound),
            len(outbound),
        )
        return compiled

    def _check_admin_access(self, group: str, inbound: List[Rule]) -> None:
        for rule in inbound:
            if not isinstance(rule.peer, AddressPeer):
                continue
            if not self.config.is_unrestricted(rule.peer.cidr):
                continue
            for port in sorted(self.config.admin_ports):
                if rule.ports.contains(port):
                    raise UnrestrictedAdminAccessError(group, port, rule.peer.cidr)

    def _check_plaintext_ingress(self, group: str, inbound: List[Rule]) -> None:
        inbound = [rule for rule in inbound if isinstance(rule.peer, AddressPeer)]
        for plaintext, encrypted in sorted(self.config.plaintext_ports.items()):
            if not any(rule.ports.contains(encrypted) for rule in inbound):
                continue
            if any(rule.ports.contains(plaintext) for rule in inbound):
                raise PlaintextIngressError(group, plaintext, encrypted)
