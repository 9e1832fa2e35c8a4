"""
Tests for perimeter_agent.provisioning module.
"""

import asyncio
import json
import logging

import pytest

from perimeter_agent.cli import build_example_blueprint
from perimeter_agent.core.blueprint import (
    AccessGroupSpec,
    Blueprint,
    ComputeSpec,
    IdentitySpec,
    NetworkSpec,
)
from perimeter_agent.core.errors import (
    DanglingReferenceError,
    FrozenGraphError,
    MissingAttributeError,
    OverbroadPermissionError,
    UnrestrictedAdminAccessError,
)
from perimeter_agent.core.objects import Tier
from perimeter_agent.core.policy import PermissionStatement, TrustStatement
from perimeter_agent.core.rules import IngressIntent
from perimeter_agent.provisioning.base import ArtifactBundle, RecordingProvider
from perimeter_agent.provisioning.pipeline import PerimeterPipeline


def _blueprint(**kwargs) -> Blueprint:
    values = dict(
        network=NetworkSpec(name="main", cidr="10.0.0.0/16", gateway="main-igw"),
        zones=["zone-a"],
        access_groups=[AccessGroupSpec(name="web"), AccessGroupSpec(name="app")],
    )
    values.update(kwargs)
    return Blueprint("test", **values)


class TestPerimeterPipeline:
    """Test cases for the pipeline run."""

    def test_example_is_compliant(self):
        """Test that the example blueprint resolves cleanly."""
        result = PerimeterPipeline().run(build_example_blueprint())

        assert result.is_compliant
        assert result.errors == []
        assert [s.block.cidr for s in result.topology.subnets] == [
            "10.0.1.0/24",
            "10.0.2.0/24",
            "10.0.3.0/24",
            "10.0.4.0/24",
        ]
        assert set(result.access_groups) == {"web", "app"}
        assert set(result.identities) == {"app-role", "recorder-role"}
        assert result.graph.get_compute("app-1").binding == "app-1-profile"
        assert result.graph.get_compute("app-1").subnet == "main-private-zone-a"

    def test_graph_is_frozen(self):
        """Test that the graph is sealed after a run."""
        result = PerimeterPipeline().run(build_example_blueprint())
        assert result.graph.is_frozen
        with pytest.raises(FrozenGraphError):
            result.graph.add_access_group("late", "main")

    def test_rules_attached_to_graph(self):
        """Test that compiled rules land on the graph's groups."""
        result = PerimeterPipeline().run(build_example_blueprint())
        web = result.graph.get_access_group("web")
        assert web.inbound == result.access_groups["web"].inbound
        assert web.description == "Public HTTPS entry point"

    def test_byte_identical_output(self):
        """Test that two runs serialise identically."""
        first = PerimeterPipeline().run(build_example_blueprint()).to_bundle().to_json()
        second = PerimeterPipeline().run(build_example_blueprint()).to_bundle().to_json()
        assert first == second
        assert json.loads(first)["name"] == "example-two-tier"

    def test_violations_emitted_with_artifacts(self, caplog):
        """Test that violations are logged but do not stop the run."""
        blueprint = _blueprint(
            computes=[ComputeSpec(name="vm-1", tier=Tier.PRIVATE, zone="zone-a", access_groups=["app"])]
        )
        with caplog.at_level(logging.WARNING):
            result = PerimeterPipeline().run(blueprint)

        assert [v.invariant for v in result.violations] == ["compute-binding"]
        assert "compute-binding" in caplog.text
        bundle = result.to_bundle()
        assert not bundle.is_compliant
        assert bundle.violations[0]["entities"] == ["vm-1"]
        assert "vm-1" in bundle.computes

    def test_explicit_subnet(self):
        """Test placing a compute by subnet name."""
        blueprint = _blueprint(
            computes=[
                ComputeSpec(name="vm-1", subnet="main-public-zone-a", access_groups=["web"])
            ]
        )
        result = PerimeterPipeline().run(blueprint)
        assert result.graph.get_compute("vm-1").subnet == "main-public-zone-a"

    def test_compute_without_placement(self):
        """Test that a compute needs a subnet or a tier and zone."""
        blueprint = _blueprint(
            computes=[ComputeSpec(name="vm-1", tier=Tier.PRIVATE, zone="zone-z", access_groups=["app"])]
        )
        with pytest.raises(MissingAttributeError):
            PerimeterPipeline().run(blueprint)

    def test_unknown_identity(self):
        """Test that computes must name an existing identity."""
        blueprint = _blueprint(
            computes=[
                ComputeSpec(
                    name="vm-1",
                    tier=Tier.PRIVATE,
                    zone="zone-a",
                    access_groups=["app"],
                    identity="ghost",
                )
            ]
        )
        with pytest.raises(DanglingReferenceError):
            PerimeterPipeline().run(blueprint)


class TestPolicyErrorHandling:
    """Test cases for policy compilation errors during a run."""

    def _bad_access(self) -> Blueprint:
        return _blueprint(
            intents=[
                IngressIntent(group="web").port(22).from_any(),
                IngressIntent(group="app").port(8443).from_group("web"),
            ]
        )

    def _bad_identity(self) -> Blueprint:
        return _blueprint(
            identities=[
                IdentitySpec(
                    name="admin-role",
                    trust=TrustStatement.service("ec2.amazonaws.com"),
                    statements={"all": [PermissionStatement(actions=("*",), resources=("*",))]},
                )
            ],
            computes=[
                ComputeSpec(
                    name="vm-1",
                    tier=Tier.PRIVATE,
                    zone="zone-a",
                    access_groups=["app"],
                    identity="admin-role",
                )
            ],
        )

    def test_access_error_aborts_by_default(self):
        """Test that a policy error stops the run."""
        with pytest.raises(UnrestrictedAdminAccessError):
            PerimeterPipeline().run(self._bad_access())

    def test_access_error_scoped(self):
        """Test that other groups still compile when asked to keep going."""
        result = PerimeterPipeline(continue_on_policy_error=True).run(self._bad_access())
        assert [name for name, _ in result.errors] == ["web"]
        assert "web" not in result.access_groups
        assert len(result.access_groups["app"].inbound) == 1
        assert result.graph.get_access_group("web").inbound == ()

    def test_identity_error_aborts_by_default(self):
        """Test that an overbroad identity stops the run."""
        with pytest.raises(OverbroadPermissionError):
            PerimeterPipeline().run(self._bad_identity())

    def test_identity_error_scoped(self):
        """Test that a failed identity leaves its compute unbound."""
        result = PerimeterPipeline(continue_on_policy_error=True).run(self._bad_identity())
        assert [name for name, _ in result.errors] == ["admin-role"]
        assert result.identities == {}
        assert result.graph.get_compute("vm-1").binding is None
        assert [v.invariant for v in result.violations] == ["compute-binding"]

    def test_recorder_identity_error_scoped(self):
        """Test that a failed recorder identity drops only the recorder."""
        blueprint = build_example_blueprint()
        recorder_role = next(i for i in blueprint.identities if i.name == "recorder-role")
        recorder_role.statements = {
            "all": [PermissionStatement(actions=("*",), resources=("*",))]
        }

        result = PerimeterPipeline(continue_on_policy_error=True).run(blueprint)

        assert [name for name, _ in result.errors] == ["recorder-role"]
        assert set(result.identities) == {"app-role"}
        assert result.graph.recorders_of("main") == []
        assert result.graph.get_compute("app-1").binding == "app-1-profile"


class TestProvisioning:
    """Test cases for handing artifacts to a provider."""

    def test_recording_provider(self):
        """Test that the provider receives the bundle."""
        pipeline = PerimeterPipeline()
        result = pipeline.run(build_example_blueprint())
        provider = RecordingProvider()

        provisioned = asyncio.run(pipeline.provision(result, provider, dry_run=False))

        assert provisioned.success
        assert not provisioned.dry_run
        assert provider.last_bundle.name == "example-two-tier"
        assert "network:main" in provisioned.applied
        assert "subnet:main-public-zone-a" in provisioned.applied
        assert "identity:app-role" in provisioned.applied

    def test_dry_run(self):
        """Test that a dry run applies nothing."""
        pipeline = PerimeterPipeline()
        result = pipeline.run(build_example_blueprint())
        provider = RecordingProvider()

        provisioned = asyncio.run(pipeline.provision(result, provider))

        assert provisioned.dry_run
        assert provisioned.applied == []
        assert len(provider.bundles) == 1

    def test_block_on_violations(self):
        """Test that a non-compliant bundle can be held back."""
        pipeline = PerimeterPipeline()
        result = pipeline.run(
            _blueprint(
                computes=[
                    ComputeSpec(name="vm-1", tier=Tier.PRIVATE, zone="zone-a", access_groups=["app"])
                ]
            )
        )
        provider = RecordingProvider()

        provisioned = asyncio.run(
            pipeline.provision(result, provider, dry_run=False, block_on_violations=True)
        )

        assert provisioned is None
        assert provider.last_bundle is None


class TestArtifactBundle:
    """Test cases for ArtifactBundle class."""

    def test_empty_bundle(self):
        """Test an empty bundle."""
        bundle = ArtifactBundle(name="empty")
        assert bundle.is_compliant
        assert json.loads(bundle.to_json())["name"] == "empty"

    def test_yaml(self):
        """Test YAML rendering."""
        bundle = PerimeterPipeline().run(build_example_blueprint()).to_bundle()
        text = bundle.to_yaml()
        assert "example-two-tier" in text
        assert "main-private-zone-a" in text
