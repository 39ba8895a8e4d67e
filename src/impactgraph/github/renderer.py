"""Markdown renderer for the pull request impact comment.

The comment carries:
  - Risk level badge and headline numbers
  - Changed entities table
  - Blast radius per changed entity
  - Score breakdown
"""

from __future__ import annotations

from impactgraph.github.risk import RiskLevel
from impactgraph.graph.query import ImpactReport

COMMENT_MARKER = "<!-- impactgraph-impact-bot -->"
MAX_LISTED = 15

_BADGES = {
    RiskLevel.LOW: "🟢",
    RiskLevel.MEDIUM: "🟡",
    RiskLevel.HIGH: "🟠",
    RiskLevel.CRITICAL: "🔴",
}


def render_impact_comment(
    report: ImpactReport,
    risk: RiskLevel,
    breakdown: dict | None = None,
    stats: dict | None = None,
) -> str:
    """Render an impact report as a GitHub markdown comment."""
    sections: list[str] = []

    sections.append(COMMENT_MARKER)
    sections.append("## ImpactGraph Impact Analysis")
    sections.append("")

    if not report.changed_ids:
        sections.append("> No classes or methods were changed in this PR.")
        sections.append("")
        sections.append(_footer())
        return "\n".join(sections)

    badge = _BADGES[risk]
    sections.append("| Risk | Entities Changed | Entities Affected | Depth |")
    sections.append("|:---:|:---:|:---:|:---:|")
    sections.append(
        f"| {badge} **{risk.value}** | "
        f"{len(report.changed_ids)} | "
        f"{report.affected_count} | "
        f"{report.depth} |"
    )
    sections.append("")

    notes = _override_notes(report, risk)
    for note in notes:
        sections.append(f"> {note}")
    if notes:
        sections.append("")

    sections.append("### Changed Entities")
    sections.append("")
    sections.append("| Entity | Calls | Markers | Reach |")
    sections.append("|:-------|:-----:|:--------|:-----:|")
    for entity_id in report.changed_ids:
        reach = report.reach_by_source.get(entity_id, [])
        sections.append(
            f"| `{entity_id}` | "
            f"{report.complexity.get(entity_id, 0)} | "
            f"{_markers(report, entity_id)} | "
            f"{max(len(reach) - 1, 0)} |"
        )
    sections.append("")

    wide = [(i, r) for i, r in report.reach_by_source.items() if len(r) > 1]
    if wide:
        sections.append("### Blast Radius")
        sections.append("")
        for entity_id, reach in wide:
            affected = reach[1:]
            sections.append("<details>")
            sections.append(
                f"<summary><code>{entity_id}</code>: "
                f"{len(affected)} entities affected</summary>"
            )
            sections.append("")
            for target in affected[:MAX_LISTED]:
                sections.append(f"- `{target}`")
            if len(affected) > MAX_LISTED:
                sections.append(f"- ... and {len(affected) - MAX_LISTED} more")
            sections.append("")
            sections.append("</details>")
            sections.append("")

    if breakdown:
        factors = breakdown.get("multipliers", {})
        sections.append("<details>")
        sections.append("<summary>Score breakdown</summary>")
        sections.append("")
        sections.append("| Factor | Multiplier |")
        sections.append("|:-------|:----------:|")
        for name, value in factors.items():
            sections.append(f"| {name} | {value:g} |")
        sections.append(f"| **score** | **{breakdown.get('score', 0):.2f}** |")
        sections.append("")
        sections.append("</details>")
        sections.append("")

    if stats:
        sections.append("### Graph Stats")
        sections.append(
            f"> {stats.get('total_nodes', 0)} entities, "
            f"{stats.get('total_edges', 0)} dependencies"
        )
        sections.append("")

    sections.append(_footer())
    return "\n".join(sections)


def _markers(report: ImpactReport, entity_id: str) -> str:
    markers = sorted(m.value for m in report.markers.get(entity_id, ()))
    return ", ".join(markers) if markers else "-"


def _override_notes(report: ImpactReport, risk: RiskLevel) -> list[str]:
    notes = []
    if report.comment_only_override:
        notes.append("Only comments or blank lines were added; risk forced to LOW.")
    elif report.critical_method_override and risk is RiskLevel.CRITICAL:
        notes.append(
            "A changed entity is transactional, cached, scheduled, async, "
            "secured or a write endpoint, and its impact reaches depth "
            f"{report.depth}."
        )
    return notes


def _footer() -> str:
    return "---\n*Generated by ImpactGraph change-impact analysis*"
