#!/usr/bin/env python3
"""
Example script demonstrating the PerimeterAgent framework.

This script shows how to:
1. Declare a two-tier perimeter programmatically
2. Resolve it into subnets, access groups and identities
3. Check the resolved graph against the compliance invariants
4. Hand the artifacts to a (recording) provisioning provider
"""

import asyncio

from perimeter_agent import (
    Blueprint,
    ComplianceChecker,
    EgressIntent,
    GroupIntent,
    IngressIntent,
    PerimeterPipeline,
    Tier,
)
from perimeter_agent.core.blueprint import (
    AccessGroupSpec,
    ComputeSpec,
    IdentitySpec,
    NetworkSpec,
)
from perimeter_agent.core.errors import PerimeterError
from perimeter_agent.core.policy import PermissionStatement, TrustStatement
from perimeter_agent.provisioning.base import RecordingProvider


async def main():
    """Main example function."""

    print("🔒 PerimeterAgent Example - Hardened Network Perimeter")
    print("=" * 60)

    # 1. Declare the perimeter
    print("\n📋 Creating blueprint...")
    blueprint = create_example_blueprint()
    print(f"✓ Created blueprint: {blueprint.name}")
    print(f"  - Zones: {len(blueprint.zones)}")
    print(f"  - Access intents: {len(blueprint.intents)}")
    print(f"  - Identities: {len(blueprint.identities)}")

    # 2. Resolve
    print("\n🧭 Resolving topology...")
    pipeline = PerimeterPipeline()
    try:
        result = pipeline.run(blueprint)
    except PerimeterError as e:
        print(f"❌ Resolution failed: {e}")
        return

    for subnet in result.topology.subnets:
        print(f"  {subnet.name:<28} {subnet.block.cidr:<14} {subnet.tier.value}")

    # 3. Check
    print("\n🔍 Checking compliance invariants...")
    checker = ComplianceChecker()
    report = checker.report(result.graph)
    if report.is_compliant:
        print("✓ All invariants hold")
    else:
        print(checker.generate_report(report))

    # 4. Provision (recorded in memory only)
    print("\n⚙️  Handing artifacts to the recording provider...")
    provider = RecordingProvider()
    provisioned = await pipeline.provision(result, provider, dry_run=False)
    for item in provisioned.applied:
        print(f"  + {item}")

    # 5. Export
    print("\n💾 Exporting blueprint and artifacts...")
    with open("example_blueprint.yaml", "w") as f:
        f.write(blueprint.export_to_yaml())
    with open("example_artifacts.json", "w") as f:
        f.write(result.to_bundle().to_json())
    print("✓ Blueprint exported to example_blueprint.yaml")
    print("✓ Artifacts exported to example_artifacts.json")

    print("\nNext steps:")
    print("  1. Run: perimeter-agent validate example_blueprint.yaml")
    print("  2. Run: perimeter-agent check example_blueprint.yaml --fail-on-violation")


def create_example_blueprint() -> Blueprint:
    """A public load-balancer tier in front of a private app tier and database."""
    blueprint = Blueprint(
        "example-three-group",
        network=NetworkSpec(name="prod", cidr="10.20.0.0/16", gateway="prod-igw"),
        zones=["eu-west-1a", "eu-west-1b", "eu-west-1c"],
        access_groups=[
            AccessGroupSpec(name="lb", description="Internet-facing load balancer"),
            AccessGroupSpec(name="app", description="Application servers"),
            AccessGroupSpec(name="db", description="Database"),
        ],
    )

    blueprint.intents = [
        IngressIntent(group="lb", description="HTTPS").tcp().port(443).from_any(),
        GroupIntent(source_group="lb", target_group="app").tcp().port(8443),
        GroupIntent(source_group="app", target_group="db").tcp().port(5432),
        EgressIntent(group="app", description="Package mirrors").tcp().port(443).to_any(),
        IngressIntent(group="app", description="Ops VPN")
        .tcp()
        .port(22)
        .from_cidr("172.16.0.0/24"),
    ]

    blueprint.identities = [
        IdentitySpec(
            name="app-role",
            trust=TrustStatement.service("ec2.amazonaws.com"),
            statements={
                "logs": [
                    PermissionStatement(
                        actions=("logs:CreateLogStream", "logs:PutLogEvents"),
                        resources=("arn:aws:logs:*:*:log-group:/prod/app/*",),
                    )
                ],
                "config": [
                    PermissionStatement(
                        actions=("ssm:GetParameter",),
                        resources=("arn:aws:ssm:*:*:parameter/prod/app/*",),
                    )
                ],
            },
        )
    ]

    blueprint.computes = [
        ComputeSpec(
            name=f"app-{index}",
            tier=Tier.PRIVATE,
            zone=zone,
            access_groups=["app"],
            identity="app-role",
        )
        for index, zone in enumerate(blueprint.zones, start=1)
    ]
    return blueprint


if __name__ == "__main__":
    asyncio.run(main())
