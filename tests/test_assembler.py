"""
Tests for perimeter_agent.identity.assembler module.
"""

import pytest

from perimeter_agent.core.errors import (
    EmptyTrustPolicyError,
    MissingAttributeError,
    OverbroadPermissionError,
)
from perimeter_agent.core.policy import (
    Effect,
    PermissionStatement,
    PrincipalType,
    TrustStatement,
)
from perimeter_agent.identity.assembler import RoleAssembler

LOGS = PermissionStatement(
    actions=("logs:PutLogEvents", "logs:CreateLogStream"),
    resources=("arn:aws:logs:*:*:log-group:/app/*",),
)
PARAMS = PermissionStatement(
    actions=("ssm:GetParameter",),
    resources=("arn:aws:ssm:*:*:parameter/app/*",),
)


class TestAssemble:
    """Test cases for assembling identity documents."""

    def test_compute_service_role(self):
        """Test a compute-service role with two scoped statements."""
        document = RoleAssembler().assemble(
            "app-role",
            TrustStatement.service("ec2.amazonaws.com"),
            {"app": [LOGS, PARAMS]},
        )
        assert document.trust.identifiers == ("ec2.amazonaws.com",)
        assert len(document.statements()) == 3
        statements = document.permissions["app"]
        assert len(statements) == 2
        assert all(not s.is_wildcard_action() for s in statements)

    def test_actions_sorted_and_deduplicated(self):
        """Test canonical action and resource lists."""
        document = RoleAssembler().assemble(
            "app-role",
            TrustStatement.service("ec2.amazonaws.com"),
            {
                "logs": [
                    {
                        "actions": ["logs:PutLogEvents", "logs:CreateLogStream", "logs:PutLogEvents"],
                        "resources": "arn:aws:logs:*:*:*",
                    }
                ]
            },
        )
        statement = document.permissions["logs"][0]
        assert statement.actions == ("logs:CreateLogStream", "logs:PutLogEvents")
        assert statement.resources == ("arn:aws:logs:*:*:*",)
        assert statement.effect == Effect.ALLOW

    def test_order_independent(self):
        """Test that insertion order does not change the document."""
        assembler = RoleAssembler()
        trust = TrustStatement.service("ec2.amazonaws.com")
        first = assembler.assemble("app-role", trust, {"app": [LOGS, PARAMS], "extra": [PARAMS]})
        second = assembler.assemble(
            "app-role", trust, {"extra": [PARAMS], "app": [PARAMS, LOGS, PARAMS]}
        )
        assert first == second
        assert first.to_dict() == second.to_dict()

    def test_idempotent(self):
        """Test that assembling twice gives equal documents."""
        assembler = RoleAssembler()
        trust = TrustStatement.service("lambda.amazonaws.com", "ec2.amazonaws.com")
        first = assembler.assemble("role", trust, {"app": [LOGS]})
        second = assembler.assemble("role", trust, {"app": [LOGS]})
        assert first == second
        assert first.trust.identifiers == ("ec2.amazonaws.com", "lambda.amazonaws.com")

    def test_trust_from_mapping(self):
        """Test that trust may be given as a mapping."""
        document = RoleAssembler().assemble(
            "role", {"principal_type": "service", "identifiers": "ec2.amazonaws.com"}
        )
        assert document.trust.principal_type == PrincipalType.SERVICE
        assert document.trust.identifiers == ("ec2.amazonaws.com",)
        assert document.permissions == {}

    def test_managed_policies_sorted(self):
        """Test that managed policy references are canonical."""
        document = RoleAssembler().assemble(
            "role",
            TrustStatement.service("ec2.amazonaws.com"),
            managed_policies=["arn:b", "arn:a", "arn:b"],
        )
        assert document.managed_policies == ("arn:a", "arn:b")


class TestRejections:
    """Test cases for rejected identities."""

    def test_missing_trust(self):
        """Test that a trust statement is required."""
        with pytest.raises(EmptyTrustPolicyError) as exc_info:
            RoleAssembler().assemble("role", None)
        assert exc_info.value.artifact == "role"

    def test_trust_without_principal(self):
        """Test that a trust statement needs a principal."""
        with pytest.raises(EmptyTrustPolicyError):
            RoleAssembler().assemble("role", TrustStatement())
        with pytest.raises(EmptyTrustPolicyError):
            RoleAssembler().assemble("role", {"identifiers": []})

    def test_overbroad_statement(self):
        """Test that * on * is rejected."""
        with pytest.raises(OverbroadPermissionError) as exc_info:
            RoleAssembler().assemble(
                "role",
                TrustStatement.service("ec2.amazonaws.com"),
                {"admin": [{"actions": ["*"], "resources": ["*"]}]},
            )
        assert exc_info.value.statement == "admin"

    def test_bootstrap_may_be_overbroad(self):
        """Test that provider-managed bootstrap roles are exempt."""
        document = RoleAssembler().assemble(
            "bootstrap",
            TrustStatement.service("cloudformation.amazonaws.com"),
            {"admin": [{"actions": ["*"], "resources": ["*"]}]},
            provider_managed_bootstrap=True,
        )
        assert document.provider_managed_bootstrap
        assert document.permissions["admin"][0].is_overbroad()

    def test_statement_without_actions(self):
        """Test that statements need actions and resources."""
        trust = TrustStatement.service("ec2.amazonaws.com")
        with pytest.raises(MissingAttributeError, match="actions"):
            RoleAssembler().assemble("role", trust, {"empty": [{"resources": ["arn:a"]}]})
        with pytest.raises(MissingAttributeError, match="resources"):
            RoleAssembler().assemble("role", trust, {"empty": [{"actions": ["s3:GetObject"]}]})
