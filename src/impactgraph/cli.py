"""Command-line interface for ImpactGraph."""

from __future__ import annotations

import json
import sys
import time
from pathlib import Path

import click

from impactgraph import __version__
from impactgraph.config import (
    ProjectConfig,
    find_project_root,
    load_config,
    load_server_config,
    save_config,
    set_config_value,
)
from impactgraph.exceptions import ConfigError
from impactgraph.ui.console import Console

console = Console()


def _get_project_root(path: str | None = None) -> Path:
    """Resolve --path, else the nearest .impactgraph project, else the cwd."""
    if path:
        root = Path(path).resolve()
        if not root.exists():
            console.error(f"Path does not exist: {path}")
            sys.exit(1)
        return root
    return find_project_root() or Path.cwd().resolve()


def _load_config(root: Path) -> ProjectConfig:
    try:
        return load_config(root)
    except ConfigError as e:
        console.error(str(e))
        sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="impactgraph")
def main():
    """ImpactGraph - blast radius and merge risk for pull requests."""
    pass


# =========================================================================
# Webhook server
# =========================================================================

@main.command()
@click.option("--config", "config_path", default=None, help="JSON config file for the server.")
@click.option("--host", default=None, help="Bind address (overrides config).")
@click.option("--port", type=int, default=None, help="Bind port (overrides config).")
def serve(config_path: str | None, host: str | None, port: int | None):
    """Run the webhook server.

    Point a GitHub webhook (content type application/json, pull request
    events) at:

        http://<host>:<port>/api/webhook/pr
    """
    import uvicorn

    from impactgraph.server.app import create_app

    try:
        config = load_server_config(config_path)
    except ConfigError as e:
        console.error(str(e))
        sys.exit(1)

    if host:
        config.server.host = host
    if port:
        config.server.port = port

    console.configure_logging(config.server.log_level)
    if not config.github.token:
        console.warning(
            f"${config.github.token_env} is not set; comments and statuses will fail"
        )

    console.banner()
    console.info(f"Listening on {config.server.host}:{config.server.port}")
    uvicorn.run(
        create_app(config),
        host=config.server.host,
        port=config.server.port,
        log_level=config.server.log_level.lower(),
    )


# =========================================================================
# Local analysis
# =========================================================================

@main.command()
@click.option("--path", "-p", default=None, help="Path to the project root.")
def index(path: str | None):
    """Parse the project and build the entity graph; prints graph statistics."""
    from impactgraph.graph.builder import GraphBuilder
    from impactgraph.parser.core import parse_directory

    root = _get_project_root(path)
    config = _load_config(root)

    console.info(f"Scanning {root}")
    start_time = time.time()

    with console.indexing_progress() as progress:
        task = progress.add_task("Indexing...", total=None)

        def on_progress(file_path: str, current: int, total: int):
            progress.update(
                task, total=total, completed=current,
                description=f"Parsing {file_path}",
            )

        descriptors = parse_directory(root, config.indexer, on_progress)

    builder = GraphBuilder()
    builder.build(descriptors, full=True)
    elapsed = time.time() - start_time

    console.success(f"Built graph from {len(descriptors)} descriptors in {elapsed:.1f}s")
    console.show_stats(builder.get_stats())


@main.command("impact-pr")
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.option("--base", "-b", default="main", help="Base branch to diff against.")
@click.option(
    "--format", "output_format",
    type=click.Choice(["markdown", "json", "rich"]),
    default="markdown",
    help="Output format.",
)
def impact_pr(path: str | None, base: str, output_format: str):
    """Analyze the impact of the current branch against a base branch.

    Builds the entity graph of the working copy, maps the lines changed by
    `git diff <base>...HEAD` onto methods and reports their blast radius
    and risk level.

        impactgraph impact-pr --base main --format markdown
    """
    from impactgraph.github.impact_bot import run_local_analysis

    root = _get_project_root(path)
    config = _load_config(root)
    result = run_local_analysis(root, base=base, config=config)

    if output_format == "json":
        click.echo(json.dumps(result.to_dict(), indent=2, default=str))
    elif output_format == "rich":
        console.show_report(result.to_dict())
    else:
        click.echo(result.comment)


# =========================================================================
# Config Management
# =========================================================================

@main.command("config")
@click.argument("action", type=click.Choice(["set", "get", "show"]))
@click.argument("key", required=False)
@click.argument("value", required=False)
@click.option("--path", "-p", default=None, help="Path to the project root.")
def config_cmd(action: str, key: str | None, value: str | None, path: str | None):
    """Manage ImpactGraph configuration."""
    root = _get_project_root(path)
    config = _load_config(root)

    if action == "show":
        console.console.print_json(json.dumps(config.model_dump(), indent=2))
    elif action == "get":
        if not key:
            console.error("Usage: impactgraph config get <key>")
            sys.exit(1)
        data = config.model_dump()
        parts = key.split(".")
        for part in parts:
            if isinstance(data, dict) and part in data:
                data = data[part]
            else:
                console.error(f"Unknown key: {key}")
                sys.exit(1)
        console.console.print(f"{key} = {data}")
    elif action == "set":
        if not key or value is None:
            console.error("Usage: impactgraph config set <key> <value>")
            sys.exit(1)
        try:
            # Try to parse as JSON for non-string values
            try:
                parsed_value = json.loads(value)
            except json.JSONDecodeError:
                parsed_value = value

            config = set_config_value(config, key, parsed_value)
            save_config(root, config)
            console.success(f"Set {key} = {parsed_value}")
        except KeyError:
            console.error(f"Unknown config key: {key}")
            sys.exit(1)


if __name__ == "__main__":
    main()
