"""
Identity policy documents: trust statements, scoped permission statements,
and the assembled document an Identity carries.
"""

import re
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel

POLICY_VERSION = "2012-10-17"
ASSUME_ROLE_ACTION = "sts:AssumeRole"
WILDCARD = "*"


def _lookup(enum_cls, value):
    # case-insensitive match on value or member name
    if isinstance(value, str):
        for member in enum_cls:
            if value.lower() in (member.value.lower(), member.name.lower()):
                return member
    return None


class Effect(str, Enum):
    """Statement effect."""

    ALLOW = "Allow"
    DENY = "Deny"

    @classmethod
    def _missing_(cls, value):
        return _lookup(cls, value)


class PrincipalType(str, Enum):
    """Kind of principal allowed to assume an identity."""

    SERVICE = "Service"
    ACCOUNT = "AWS"
    FEDERATED = "Federated"

    @classmethod
    def _missing_(cls, value):
        return _lookup(cls, value)


class TrustStatement(BaseModel):
    """Who may assume an identity."""

    model_config = {"frozen": True}

    principal_type: PrincipalType = PrincipalType.SERVICE
    identifiers: Tuple[str, ...] = ()
    action: str = ASSUME_ROLE_ACTION

    @classmethod
    def service(cls, *identifiers: str) -> "TrustStatement":
        return cls(principal_type=PrincipalType.SERVICE, identifiers=tuple(identifiers))

    def has_principal(self) -> bool:
        return any(identifier.strip() for identifier in self.identifiers)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "Effect": Effect.ALLOW.value,
            "Principal": {self.principal_type.value: list(self.identifiers)},
            "Action": self.action,
        }


class PermissionStatement(BaseModel):
    """A scoped (effect, actions, resources) statement."""

    model_config = {"frozen": True}

    effect: Effect = Effect.ALLOW
    actions: Tuple[str, ...] = ()
    resources: Tuple[str, ...] = ()

    def is_wildcard_action(self) -> bool:
        return WILDCARD in self.actions

    def is_wildcard_resource(self) -> bool:
        return WILDCARD in self.resources

    def is_overbroad(self) -> bool:
        """Every action on every resource."""
        return (
            self.effect == Effect.ALLOW
            and self.is_wildcard_action()
            and self.is_wildcard_resource()
        )

    def wildcard_actions(self) -> List[str]:
        """Actions that are not enumerated explicitly (``*`` or ``service:*``)."""
        return [action for action in self.actions if WILDCARD in action]

    def sort_key(self) -> Tuple:
        return (self.effect.value, self.actions, self.resources)

    def to_dict(self, sid: Optional[str] = None) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if sid:
            data["Sid"] = sid
        data["Effect"] = self.effect.value
        data["Action"] = list(self.actions)
        data["Resource"] = list(self.resources)
        return data


class IdentityDocument(BaseModel):
    """
    The assembled document of one Identity.

    ``permissions`` maps a statement-set name to its statements. Both the
    mapping and each statement's action/resource lists are kept in a
    canonical order so equal inputs give equal documents.
    """

    model_config = {"frozen": True}

    name: str
    trust: TrustStatement
    permissions: Dict[str, Tuple[PermissionStatement, ...]] = {}
    managed_policies: Tuple[str, ...] = ()
    provider_managed_bootstrap: bool = False

    def statements(self) -> List[Any]:
        """The trust statement followed by every permission statement."""
        result: List[Any] = [self.trust]
        for name in sorted(self.permissions):
            result.extend(self.permissions[name])
        return result

    def permission_statements(self) -> List[Tuple[str, PermissionStatement]]:
        return [
            (name, statement)
            for name in sorted(self.permissions)
            for statement in self.permissions[name]
        ]

    def to_dict(self) -> Dict[str, Any]:
        policies = []
        for name in sorted(self.permissions):
            statements = self.permissions[name]
            policies.append(
                {
                    "PolicyName": name,
                    "PolicyDocument": {
                        "Version": POLICY_VERSION,
                        "Statement": [
                            statement.to_dict(
                                sid=_sid(name, index) if len(statements) > 1 else _sid(name)
                            )
                            for index, statement in enumerate(statements, start=1)
                        ],
                    },
                }
            )
        return {
            "RoleName": self.name,
            "AssumeRolePolicyDocument": {
                "Version": POLICY_VERSION,
                "Statement": [self.trust.to_dict()],
            },
            "Policies": policies,
            "ManagedPolicyArns": list(self.managed_policies),
            "ProviderManagedBootstrap": self.provider_managed_bootstrap,
        }


def _sid(name: str, index: Optional[int] = None) -> str:
    # Sids are alphanumeric only
    base = "".join(part.capitalize() for part in _split_words(name))
    return f"{base}{index}" if index is not None else base


def _split_words(name: str) -> List[str]:
    return re.findall(r"[A-Za-z0-9]+", name) or ["Statement"]
