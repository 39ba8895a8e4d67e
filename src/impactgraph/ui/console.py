"""Rich-powered console output for ImpactGraph."""

from __future__ import annotations

import logging

from rich.console import Console as RichConsole
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table
from rich.tree import Tree

from impactgraph import __version__

RISK_STYLES = {
    "LOW": "green",
    "MEDIUM": "yellow",
    "HIGH": "dark_orange",
    "CRITICAL": "bold red",
}


class Console:
    """Terminal output for ImpactGraph using Rich."""

    def __init__(self) -> None:
        self.console = RichConsole()

    def banner(self) -> None:
        """Show the ImpactGraph banner."""
        self.console.print(
            Panel(
                f"[bold cyan]ImpactGraph[/bold cyan] [dim]v{__version__}[/dim]\n"
                "[dim]Blast radius and merge risk for pull requests[/dim]",
                border_style="cyan",
                padding=(1, 2),
            )
        )

    def configure_logging(self, level: str = "INFO") -> None:
        """Route the ``impactgraph`` loggers through a Rich handler."""
        handler = RichHandler(console=self.console, rich_tracebacks=True, show_path=False)
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
        logger = logging.getLogger("impactgraph")
        logger.handlers[:] = [handler]
        logger.setLevel(level.upper())
        logger.propagate = False

    def success(self, message: str) -> None:
        self.console.print(f"[green]✓[/green] {message}")

    def error(self, message: str) -> None:
        self.console.print(f"[red]✗[/red] {message}")

    def warning(self, message: str) -> None:
        self.console.print(f"[yellow]![/yellow] {message}")

    def info(self, message: str) -> None:
        self.console.print(f"[blue]i[/blue] {message}")

    def indexing_progress(self) -> Progress:
        """Create a progress bar for indexing."""
        return Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TimeElapsedColumn(),
            console=self.console,
        )

    def show_stats(self, stats: dict) -> None:
        """Display graph statistics in a table."""
        table = Table(title="Entity Graph Statistics", border_style="cyan")
        table.add_column("Metric", style="bold")
        table.add_column("Count", justify="right", style="cyan")

        table.add_row("Classes", str(stats.get("classes", 0)))
        table.add_row("Methods", str(stats.get("methods", 0)))
        table.add_row("Critical Entities", str(stats.get("critical_entities", 0)))
        table.add_row("Total Nodes", str(stats.get("total_nodes", 0)))
        table.add_row("Total Edges", str(stats.get("total_edges", 0)))
        if "unresolved_refs" in stats:
            table.add_section()
            table.add_row("Descriptors", str(stats.get("descriptors", 0)))
            table.add_row("Unresolved Refs", str(stats.get("unresolved_refs", 0)))

        self.console.print(table)

    def show_report(self, result: dict) -> None:
        """Display an impact analysis result (``AnalysisResult.to_dict()``)."""
        risk = result.get("risk") or "LOW"
        style = RISK_STYLES.get(risk, "white")
        changed = result.get("changed_ids", [])

        self.console.print(
            Panel(
                f"[bold]Risk:[/bold] [{style}]{risk}[/{style}]\n"
                f"[bold]Changed Entities:[/bold] {len(changed)}\n"
                f"[bold]Affected Entities:[/bold] {result.get('affected_count', 0)}\n"
                f"[bold]Depth:[/bold] {result.get('depth', 0)}\n"
                f"[bold]Comment Only:[/bold] {result.get('comment_only', False)}\n"
                f"[bold]Critical Change:[/bold] {result.get('critical', False)}",
                title="[bold]Impact Analysis[/bold]",
                border_style=style.split()[-1],
            )
        )

        files = result.get("files", [])
        if files:
            table = Table(title="Changed Files", border_style="dim")
            table.add_column("File")
            table.add_column("Status")
            table.add_column("Lines", justify="right")
            for f in files:
                lines = ", ".join(f"{s}-{e}" if s != e else str(s) for s, e in f["ranges"])
                table.add_row(f["path"], f["status"], lines or "-")
            self.console.print(table)

        if changed:
            changed_set = set(changed)
            tree = Tree("[bold cyan]Blast Radius[/bold cyan]")
            changed_branch = tree.add("[bold]Changed[/bold]")
            for entity_id in changed:
                changed_branch.add(entity_id)
            affected = [i for i in result.get("impacted_ids", []) if i not in changed_set]
            if affected:
                branch = tree.add("[bold yellow]Impacted[/bold yellow]")
                for entity_id in affected:
                    branch.add(entity_id)
            self.console.print(tree)
