"""
Least-privilege role assembler.
"""

from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Tuple, Union

from ..core.config import PerimeterConfig
from ..core.errors import EmptyTrustPolicyError, MissingAttributeError, OverbroadPermissionError
from ..core.logging_config import get_logger
from ..core.policy import (
    Effect,
    IdentityDocument,
    PermissionStatement,
    PrincipalType,
    TrustStatement,
)

logger = get_logger(__name__)

TrustInput = Union[TrustStatement, Mapping[str, Any]]
StatementInput = Union[PermissionStatement, Mapping[str, Any]]


class RoleAssembler:
    """
    Merges one trust statement with named sets of scoped statements into a
    single identity document.

    Output is canonical: statement-set names, statements within a set, and
    each statement's actions and resources are de-duplicated and sorted, so
    the same input in any insertion order assembles to an equal document.
    """

    def __init__(self, config: Optional[PerimeterConfig] = None):
        self.config = config or PerimeterConfig()

    def assemble(
        self,
        name: str,
        trust: Optional[TrustInput],
        statements: Optional[Mapping[str, Iterable[StatementInput]]] = None,
        managed_policies: Sequence[str] = (),
        provider_managed_bootstrap: bool = False,
    ) -> IdentityDocument:
        trust_statement = self._normalize_trust(name, trust)

        permissions: Dict[str, Tuple[PermissionStatement, ...]] = {}
        for set_name in sorted((statements or {}).keys()):
            normalized = {
                self._normalize_statement(name, set_name, statement)
                for statement in statements[set_name]
            }
            for statement in normalized:
                if statement.is_overbroad() and not provider_managed_bootstrap:
                    raise OverbroadPermissionError(name, set_name)
            permissions[set_name] = tuple(sorted(normalized, key=lambda s: s.sort_key()))

        document = IdentityDocument(
            name=name,
            trust=trust_statement,
            permissions=permissions,
            managed_policies=tuple(sorted(set(managed_policies))),
            provider_managed_bootstrap=provider_managed_bootstrap,
        )
        if provider_managed_bootstrap:
            logger.info("Identity '%s' assembled as provider-managed bootstrap", name)
        else:
            for policy in document.managed_policies:
                if any(marker in policy for marker in self.config.full_access_markers):
                    logger.warning(
                        "Identity '%s' attaches full-access managed policy %s", name, policy
                    )
        logger.debug(
            "Assembled identity '%s' with %d statement sets", name, len(permissions)
        )
        return document

    @staticmethod
    def _normalize_trust(name: str, trust: Optional[TrustInput]) -> TrustStatement:
        if trust is None:
            raise EmptyTrustPolicyError(name)
        if isinstance(trust, Mapping):
            identifiers = trust.get("identifiers") or ()
            if isinstance(identifiers, str):
                identifiers = (identifiers,)
            trust = TrustStatement(
                principal_type=PrincipalType(trust.get("principal_type", PrincipalType.SERVICE)),
                identifiers=tuple(identifiers),
            )
        if not trust.has_principal():
            raise EmptyTrustPolicyError(name)
        identifiers = tuple(
            sorted({identifier.strip() for identifier in trust.identifiers if identifier.strip()})
        )
        return trust.model_copy(update={"identifiers": identifiers})

    @staticmethod
    def _normalize_statement(
        identity: str, set_name: str, statement: StatementInput
    ) -> PermissionStatement:
        if isinstance(statement, Mapping):
            actions = statement.get("actions") or ()
            resources = statement.get("resources") or ()
            effect = Effect(statement.get("effect", Effect.ALLOW))
        else:
            actions, resources, effect = statement.actions, statement.resources, statement.effect
        if isinstance(actions, str):
            actions = (actions,)
        if isinstance(resources, str):
            resources = (resources,)
        if not actions:
            raise MissingAttributeError("PermissionStatement", f"{identity}/{set_name}", "actions")
        if not resources:
            raise MissingAttributeError(
                "PermissionStatement", f"{identity}/{set_name}", "resources"
            )
        return PermissionStatement(
            effect=effect,
            actions=tuple(sorted(set(actions))),
            resources=tuple(sorted(set(resources))),
        )
