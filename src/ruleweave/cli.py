"""Ruleweave CLI entry point."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import click

from ruleweave import __version__

if TYPE_CHECKING:
    from ruleweave.engine.registry import PluginRegistry


@click.group()
@click.version_option(version=__version__, prog_name="ruleweave")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Minimal output (errors only).")
@click.pass_context
def main(ctx: click.Context, *, verbose: bool, quiet: bool) -> None:
    """Ruleweave - rule-driven repository analysis."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    level = logging.DEBUG if verbose else logging.ERROR if quiet else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _build_registry() -> PluginRegistry:
    from ruleweave.engine.registry import PluginRegistry
    from ruleweave.plugins import builtin_plugins

    registry = PluginRegistry()
    for plugin in builtin_plugins():
        registry.register(plugin)
    return registry


@main.command()
@click.option(
    "--dir",
    "repo_dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Repository to analyze (default: current directory).",
)
@click.option("--archetype", "-a", default="node-fullstack", show_default=True, help="Archetype name.")
@click.option("--config-server", default=None, help="Base URL of a config server.")
@click.option(
    "--local-config",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Directory holding archetype, rule and exemption JSON files.",
)
@click.option("--repo-url", default=None, help="Repository URL used to match exemptions.")
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["rich", "json", "porcelain"]),
    default=None,
    help="Output format (default: rich if TTY, porcelain if piped).",
)
@click.option("--strict", is_flag=True, default=False, help="Exit 1 if any fatality is found.")
@click.option("--timeout", type=float, default=5.0, show_default=True, help="Config server timeout (s).")
def check(
    *,
    repo_dir: Path | None,
    archetype: str,
    config_server: str | None,
    local_config: Path | None,
    repo_url: str | None,
    fmt: str | None,
    strict: bool,
    timeout: float,
) -> None:
    """Analyze a repository against an archetype's rules.

    Exit codes: 0 = clean or findings without --strict,
    1 = fatalities with --strict, 2 = configuration error.
    """
    from ruleweave.engine.analyzer import Analyzer, format_json, format_porcelain, render_report
    from ruleweave.infrastructure.resolver import ConfigResolver, ResolutionError

    repo_root = repo_dir or Path.cwd()
    if config_server is None and local_config is None:
        click.echo("Error: provide --config-server or --local-config.", err=True)
        sys.exit(2)

    if fmt is None:
        fmt = "rich" if sys.stdout.isatty() else "porcelain"

    resolver = ConfigResolver(
        local_config_path=local_config,
        config_server=config_server,
        timeout=timeout,
        log_prefix=f"ruleweave-{__version__}",
    )
    analyzer = Analyzer(_build_registry(), resolver)

    try:
        report = asyncio.run(analyzer.analyze(repo_root, archetype, repo_url=repo_url))
    except (ResolutionError, ValueError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)

    if fmt == "rich":
        from rich.console import Console

        render_report(report, Console())
    else:
        output = format_json(report) if fmt == "json" else format_porcelain(report)
        if output:
            click.echo(output)

    if strict and report.has_fatalities:
        sys.exit(1)


@main.command("plugins")
@click.option("--json", "as_json", is_flag=True, help="JSON output.")
def plugins_cmd(*, as_json: bool) -> None:
    """List builtin plugins with their facts and operators."""
    from ruleweave.plugins import builtin_plugins

    plugins = builtin_plugins()
    if as_json:
        data = [
            {
                "name": p.name,
                "version": p.version,
                "description": p.description,
                "facts": [{"name": f.name, "kind": f.kind, "description": f.description} for f in p.facts],
                "operators": [{"name": o.name, "description": o.description} for o in p.operators],
            }
            for p in plugins
        ]
        click.echo(json.dumps(data, indent=2))
        return

    from rich.console import Console
    from rich.table import Table

    console = Console()
    table = Table(title="Plugins", box=None, padding=(0, 1))
    table.add_column("plugin", style="cyan")
    table.add_column("kind")
    table.add_column("name", style="bold", no_wrap=True)
    table.add_column("description")
    for plugin in plugins:
        for fact in plugin.facts:
            table.add_row(f"{plugin.name}@{plugin.version}", f"fact ({fact.kind})", fact.name, fact.description)
        for op in plugin.operators:
            table.add_row(f"{plugin.name}@{plugin.version}", "operator", op.name, op.description)
    console.print(table)
