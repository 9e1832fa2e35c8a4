"""
Command-line interface for PerimeterAgent.
"""

import asyncio
from pathlib import Path
from typing import List, Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from . import __version__
from .audit.checker import SEVERITIES, ComplianceChecker, ComplianceReport, Violation
from .core.blueprint import (
    AccessGroupSpec,
    Blueprint,
    ComputeSpec,
    IdentitySpec,
    NetworkSpec,
    RecorderSpec,
)
from .core.config import PerimeterConfig
from .core.errors import PerimeterError
from .core.logging_config import get_logger, log_error, setup_logging
from .core.objects import Tier
from .core.policy import PermissionStatement, TrustStatement
from .core.rules import EgressIntent, GroupIntent, IngressIntent
from .provisioning.base import RecordingProvider
from .provisioning.pipeline import PerimeterPipeline, PipelineResult

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="PerimeterAgent - Hardened Cloud Network Perimeter Modeller & Compliance Checker",
    no_args_is_help=True,
)
logger = get_logger(__name__)


def version_callback(value: bool):
    if value:
        console.print(f"PerimeterAgent version {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version information",
    ),
):
    """
    PerimeterAgent - Hardened Cloud Network Perimeter Modeller & Compliance Checker
    """


def load_blueprint(blueprint_file: Path) -> Blueprint:
    """Load a blueprint from file."""
    content = blueprint_file.read_text()

    if blueprint_file.suffix.lower() in [".yaml", ".yml"]:
        return Blueprint.from_yaml(content)
    elif blueprint_file.suffix.lower() == ".json":
        return Blueprint.from_json(content)
    else:
        raise ValueError(f"Unsupported blueprint file format: {blueprint_file.suffix}")


def load_config(config_file: Optional[Path]) -> PerimeterConfig:
    return PerimeterConfig.load_from_file(config_file)


def run_pipeline(
    blueprint_file: Path,
    config_file: Optional[Path],
    keep_going: bool = False,
    config: Optional[PerimeterConfig] = None,
    out: Console = console,
) -> PipelineResult:
    """Load the blueprint and run the pipeline, exiting 1 on fatal errors."""
    try:
        blueprint = load_blueprint(blueprint_file)
        out.print(f"✓ Loaded blueprint: {blueprint.name}")
        logger.info("Loaded blueprint: %s", blueprint.name)
    except (OSError, ValueError, yaml.YAMLError) as e:
        out.print(f"[red]Error loading blueprint: {e}[/red]")
        logger.error("Error loading blueprint: %s", e)
        raise typer.Exit(1)

    if config is None:
        config = load_config(config_file)
    pipeline = PerimeterPipeline(config, continue_on_policy_error=keep_going)
    try:
        return pipeline.run(blueprint)
    except PerimeterError as e:
        out.print(f"[red]{type(e).__name__}: {e}[/red]")
        log_error(f"Pipeline aborted: {e}", logger)
        raise typer.Exit(1)


@app.command()
def validate(
    blueprint_file: Path = typer.Argument(..., help="Path to blueprint file (YAML or JSON)"),
    config_file: Optional[Path] = typer.Option(None, "--config", help="Config file path"),
    keep_going: bool = typer.Option(
        False, "--keep-going", help="Keep compiling other artifacts after a policy error"
    ),
    verbose: int = typer.Option(
        0, "-v", "--verbose", count=True, help="Increase verbosity (-v, -vv)"
    ),
):
    """Resolve a blueprint and show its topology, groups and violations."""
    setup_logging(min(verbose, 2))
    console.print("[bold green]Validating Blueprint...[/bold green]")

    result = run_pipeline(blueprint_file, config_file, keep_going)

    display_topology(result)
    display_access_groups(result)
    display_errors(result)
    display_violations(result.violations)


@app.command()
def resolve(
    blueprint_file: Path = typer.Argument(..., help="Path to blueprint file (YAML or JSON)"),
    output_file: Optional[Path] = typer.Option(None, help="Output file path"),
    output_format: str = typer.Option("json", help="Output format: json, yaml"),
    config_file: Optional[Path] = typer.Option(None, "--config", help="Config file path"),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Hand the bundle to the in-memory recording provider"
    ),
    verbose: int = typer.Option(
        0, "-v", "--verbose", count=True, help="Increase verbosity (-v, -vv)"
    ),
):
    """Resolve a blueprint and emit the artifact bundle."""
    setup_logging(min(verbose, 2))
    # stdout carries the bundle itself when no output file is given
    status = console if output_file else err_console

    result = run_pipeline(blueprint_file, config_file, out=status)
    bundle = result.to_bundle()

    if output_format.lower() == "json":
        content = bundle.to_json()
    elif output_format.lower() in ("yaml", "yml"):
        content = bundle.to_yaml()
    else:
        status.print(f"[red]Unsupported output format: {output_format}[/red]")
        raise typer.Exit(1)

    if output_file:
        output_file.write_text(content)
        status.print(f"✓ Artifacts saved to {output_file}")
        logger.info("Artifacts saved to %s", output_file)
    else:
        typer.echo(content)

    if dry_run:
        provider = RecordingProvider()
        provisioned = asyncio.run(
            PerimeterPipeline().provision(result, provider, dry_run=True)
        )
        status.print(f"✓ Dry run handed to {provider} (success={provisioned.success})")

    if not bundle.is_compliant:
        status.print(
            f"[yellow]⚠ {len(bundle.violations)} compliance violation(s) emitted with artifacts[/yellow]"
        )


@app.command()
def check(
    blueprint_file: Path = typer.Argument(..., help="Path to blueprint file (YAML or JSON)"),
    output_format: str = typer.Option("text", help="Output format: text, json"),
    output_file: Optional[Path] = typer.Option(None, help="Output file path"),
    fail_on_violation: bool = typer.Option(
        False, "--fail-on-violation", help="Exit with code 2 when any invariant is violated"
    ),
    config_file: Optional[Path] = typer.Option(None, "--config", help="Config file path"),
    verbose: int = typer.Option(
        0, "-v", "--verbose", count=True, help="Increase verbosity (-v, -vv)"
    ),
):
    """Run the compliance invariant checker and print a report."""
    setup_logging(min(verbose, 2))

    config = load_config(config_file)
    result = run_pipeline(blueprint_file, config_file, config=config)

    checker = ComplianceChecker(config)
    report = checker.report(result.graph, result.violations)
    try:
        content = checker.generate_report(report, output_format)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    if output_file:
        output_file.write_text(content)
        console.print(f"✓ Report saved to {output_file}")
    else:
        typer.echo(content)

    display_compliance_summary(report)

    if fail_on_violation and not report.is_compliant:
        raise typer.Exit(2)


@app.command()
def create_example(
    output_file: Path = typer.Argument(..., help="Output file path for example blueprint"),
    output_format: str = typer.Option("yaml", help="Output format: yaml, json"),
):
    """Create an example two-tier blueprint."""
    console.print("Creating example blueprint...")

    blueprint = build_example_blueprint()

    if output_format.lower() in ("yaml", "yml"):
        content = blueprint.export_to_yaml()
    elif output_format.lower() == "json":
        content = blueprint.export_to_json()
    else:
        console.print(f"[red]Unsupported output format: {output_format}[/red]")
        raise typer.Exit(1)

    output_file.write_text(content)
    console.print(f"✓ Example blueprint created: {output_file}")


def build_example_blueprint() -> Blueprint:
    """Web tier in public subnets, app tier in private subnets."""
    blueprint = Blueprint(
        "example-two-tier",
        network=NetworkSpec(name="main", cidr="10.0.0.0/16", gateway="main-igw"),
        zones=["zone-a", "zone-b"],
        access_groups=[
            AccessGroupSpec(name="web", description="Public HTTPS entry point"),
            AccessGroupSpec(name="app", description="Private application tier"),
        ],
    )
    blueprint.metadata.description = "Example two-tier perimeter"
    blueprint.metadata.author = "PerimeterAgent"

    blueprint.intents = [
        IngressIntent(group="web", description="HTTPS from anywhere").tcp().port(443).from_any(),
        GroupIntent(
            source_group="web", target_group="app", description="Web to app"
        ).port(8443),
        EgressIntent(group="app", description="HTTPS egress").tcp().port(443).to_any(),
        IngressIntent(group="app", description="Admin SSH from bastion range")
        .tcp()
        .port(22)
        .from_cidr("192.168.10.0/24"),
    ]
    blueprint.identities = [
        IdentitySpec(
            name="app-role",
            trust=TrustStatement.service("ec2.amazonaws.com"),
            statements={
                "write-logs": [
                    PermissionStatement(
                        actions=(
                            "logs:CreateLogGroup",
                            "logs:CreateLogStream",
                            "logs:PutLogEvents",
                        ),
                        resources=("arn:aws:logs:*:*:log-group:/app/*",),
                    )
                ]
            },
        ),
        IdentitySpec(
            name="recorder-role",
            trust=TrustStatement.service("config.amazonaws.com"),
            managed_policies=["arn:aws:iam::aws:policy/service-role/AWS_ConfigRole"],
            provider_managed_bootstrap=True,
        ),
    ]
    blueprint.computes = [
        ComputeSpec(
            name="app-1",
            tier=Tier.PRIVATE,
            zone="zone-a",
            access_groups=["app"],
            identity="app-role",
        )
    ]
    blueprint.recorder = RecorderSpec(name="config-recorder", identity="recorder-role")
    return blueprint


def display_topology(result: PipelineResult):
    """Display resolved subnets."""
    console.print("\n[bold]Resolved Topology[/bold]")

    table = Table()
    table.add_column("Subnet", style="cyan")
    table.add_column("CIDR", style="white")
    table.add_column("Tier", style="white")
    table.add_column("Zone", style="white")
    table.add_column("Route Domain", style="white")

    for subnet in result.topology.subnets:
        table.add_row(
            subnet.name, subnet.block.cidr, subnet.tier.value, subnet.zone, subnet.route_domain
        )

    console.print(table)


def display_access_groups(result: PipelineResult):
    """Display compiled access groups."""
    console.print("\n[bold]Access Groups[/bold]")

    table = Table()
    table.add_column("Group", style="cyan")
    table.add_column("Inbound", style="white")
    table.add_column("Outbound", style="white")

    for name, group in result.access_groups.items():
        table.add_row(
            name,
            "\n".join(str(rule) for rule in group.inbound) or "deny all",
            "\n".join(str(rule) for rule in group.outbound) or "deny all",
        )

    console.print(table)


def display_errors(result: PipelineResult):
    if not result.errors:
        return
    console.print("\n[red]Artifacts that failed to compile:[/red]")
    for artifact, error in result.errors:
        console.print(f"  - {artifact}: {type(error).__name__}: {error}")


def display_violations(violations: List[Violation]):
    """Display compliance violations."""
    if not violations:
        console.print("\n[green]✓ All compliance invariants hold[/green]")
        return

    console.print(f"\n[bold yellow]Compliance Violations ({len(violations)})[/bold yellow]")

    table = Table()
    table.add_column("Invariant", style="cyan")
    table.add_column("Severity", style="white")
    table.add_column("Entities", style="white")
    table.add_column("Message", style="white")

    severity_colors = {"critical": "red", "high": "red", "medium": "yellow", "low": "blue"}
    for violation in violations:
        severity = SEVERITIES.get(violation.invariant, "info")
        color = severity_colors.get(severity, "white")
        table.add_row(
            violation.invariant,
            f"[{color}]{severity}[/{color}]",
            ", ".join(violation.entity_ids),
            violation.message,
        )

    console.print(table)


def display_compliance_summary(report: ComplianceReport):
    """Display compliance summary."""
    console.print("\n[bold]Compliance Summary[/bold]")

    table = Table()
    table.add_column("Severity", style="cyan")
    table.add_column("Count", style="white")

    for severity in ("critical", "high", "medium", "low"):
        table.add_row(severity.capitalize(), str(len(report.by_severity(severity))))
    table.add_row("Total", str(len(report.violations)))

    console.print(table)


def main():
    """Main CLI entry point."""
    app()


if __name__ == "__main__":
    main()
