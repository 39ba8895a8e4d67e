"""PR Impact Bot - change-impact analysis for pull requests.

Two entry points share the same engine:

1. ``ImpactPipeline`` serves webhook events. A ping or the first pull
   request for a repository builds the baseline graph; later pull requests
   are analysed incrementally and get a comment and a commit status.
2. ``run_local_analysis`` analyses ``git diff <base>...HEAD`` of a local
   checkout for the ``impact-pr`` command.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

from impactgraph.baseline import BaselineTracker
from impactgraph.config import ProjectConfig
from impactgraph.github.client import GitHubClient
from impactgraph.github.diff_parser import ChangeKind, ChangeRecord, parse_diff
from impactgraph.github.events import PingEvent, PullRequestEvent
from impactgraph.github.localizer import ChangeLocalizer
from impactgraph.github.renderer import render_impact_comment
from impactgraph.github.risk import RiskLevel, RiskScorer, apply_overrides
from impactgraph.github.vcs import GitWorkspace, get_git_diff, pr_ref
from impactgraph.graph.builder import GraphBuilder
from impactgraph.graph.query import ImpactPropagator, ImpactReport
from impactgraph.graph.registry import GraphRegistry
from impactgraph.graph.store import EntityGraph
from impactgraph.parser.core import parse_directory, parse_files
from impactgraph.parser.models import EntityDescriptor, EntityKind

logger = logging.getLogger("impactgraph.pipeline")

ParseRepo = Callable[..., list[EntityDescriptor]]
ParseFiles = Callable[..., list[EntityDescriptor]]


@dataclass
class AnalysisResult:
    """Outcome of one analysis cycle.

    ``report`` is None when the cycle stopped early: it built a baseline,
    the checkout failed, or no changed entity was found.
    """

    repo: str
    pr_number: int | None = None
    baseline_built: bool = False
    report: ImpactReport | None = None
    risk: RiskLevel | None = None
    breakdown: dict = field(default_factory=dict)
    comment: str = ""
    commented: bool = False
    status_set: bool = False
    files: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        report = self.report
        return {
            "repo": self.repo,
            "pr_number": self.pr_number,
            "baseline_built": self.baseline_built,
            "risk": self.risk.value if self.risk else None,
            "changed_ids": report.changed_ids if report else [],
            "impacted_ids": report.impacted_ids if report else [],
            "affected_count": report.affected_count if report else 0,
            "depth": report.depth if report else 0,
            "comment_only": report.comment_only_override if report else False,
            "critical": report.critical_method_override if report else False,
            "breakdown": self.breakdown,
            "files": self.files,
            "comment": self.comment,
        }


def deleted_class_ids(graph: EntityGraph, changes: list[ChangeRecord]) -> list[str]:
    """Class ids still in the graph for files the change set deletes.

    Deleted files cannot be re-parsed, so their last known classes stand in
    as the changed entities.
    """
    ids: list[str] = []
    for change in changes:
        if change.change_kind is not ChangeKind.DELETED:
            continue
        for entity_id in graph.ids_for_file(change.file_path):
            entity = graph.node(entity_id)
            if entity is not None and entity.kind is EntityKind.CLASS:
                ids.append(entity_id)
    return ids


def analyze_changes(
    graph: EntityGraph,
    changes: list[ChangeRecord],
    descriptors: list[EntityDescriptor],
    *,
    full: bool,
) -> ImpactReport:
    """Merge descriptors into ``graph``, localize ``changes`` and propagate.

    The caller must hold whatever lock guards ``graph``.
    """
    GraphBuilder(graph).build(descriptors, full=full)
    changed_ids = ChangeLocalizer().localize_all(changes, descriptors)
    for entity_id in deleted_class_ids(graph, changes):
        if entity_id not in changed_ids:
            changed_ids.append(entity_id)
    report = ImpactPropagator(graph).analyze(changed_ids)
    return apply_overrides(report, changes)


def _file_summaries(changes: list[ChangeRecord]) -> list[dict]:
    return [
        {
            "path": c.file_path,
            "status": c.change_kind.value,
            "ranges": [[r.start, r.end] for r in c.derive_ranges()],
        }
        for c in changes
    ]


class ImpactPipeline:
    """Runs ping and pull-request cycles against shared per-repository state.

    Safe to call from many worker threads. Cycles for one repository share a
    working copy, so checkout through propagation runs under that
    repository's working copy lock; graph access additionally takes the
    registry lock.
    """

    def __init__(
        self,
        config: ProjectConfig | None = None,
        registry: GraphRegistry | None = None,
        baseline: BaselineTracker | None = None,
        client: GitHubClient | None = None,
        workspace: GitWorkspace | None = None,
        parse_repo: ParseRepo = parse_directory,
        parse_changed: ParseFiles = parse_files,
    ) -> None:
        self.config = config or ProjectConfig()
        self.registry = registry or GraphRegistry()
        self.baseline = baseline or BaselineTracker()
        self.client = client or GitHubClient(self.config.github)
        self.workspace = workspace or GitWorkspace(
            self.config.workspace, token=self.config.github.token
        )
        self.parse_repo = parse_repo
        self.parse_changed = parse_changed
        self.scorer = RiskScorer()
        self._copy_locks: dict[str, threading.Lock] = {}
        self._copy_guard = threading.Lock()

    @contextmanager
    def _working_copy(self, repo: str) -> Iterator[None]:
        """Hold the lock on ``repo``'s working copy."""
        with self._copy_guard:
            lock = self._copy_locks.setdefault(repo, threading.Lock())
        with lock:
            yield

    def build_baseline(self, repo: str, path: Path, commit_sha: str) -> int:
        """Full parse of ``path`` into a fresh graph for ``repo``; marks the baseline."""
        descriptors = self.parse_repo(path, self.config.indexer)
        with self.registry.locked(repo) as graph:
            GraphBuilder(graph).build(descriptors, full=True)
            self.baseline.mark_fully_parsed(repo, commit_sha)
            size = graph.size()
        logger.info(f"Baseline complete for {repo}: {len(descriptors)} descriptors, {size} nodes")
        return size

    def process_ping(self, event: PingEvent) -> bool:
        """Build the baseline on a webhook ping unless one exists. Returns True if built."""
        repo = event.repository
        if self.baseline.is_fully_parsed(repo.full_name):
            logger.info(f"{repo.full_name} already has a baseline, skipping ping")
            return False

        with self._working_copy(repo.full_name):
            if self.baseline.is_fully_parsed(repo.full_name):
                return False
            path = self.workspace.checkout(repo.owner, repo.name, repo.default_branch)
            if path is None:
                return False
            self.build_baseline(repo.full_name, path, f"ping-{int(time.time() * 1000)}")
        return True

    def process_pull_request(self, event: PullRequestEvent) -> AnalysisResult:
        repo = event.repository
        result = AnalysisResult(repo=repo.full_name, pr_number=event.pr_number)
        logger.info(f"Processing {repo.full_name}#{event.pr_number} ({event.action})")

        with self._working_copy(repo.full_name):
            analysed = self._analyze_pull_request(event, result)
        if analysed is None:
            return result
        report, stats = analysed

        if not report.changed_ids:
            logger.warning(f"No changed entities detected for {repo.full_name}#{event.pr_number}")
            return result

        result.report = report
        result.risk = self.scorer.score(report)
        result.breakdown = self.scorer.breakdown(report)
        result.comment = render_impact_comment(report, result.risk, result.breakdown, stats)
        self._log_summary(result)

        if event.action in self.config.github.comment_actions:
            result.commented = self.client.post_comment(
                repo.owner, repo.name, event.pr_number, result.comment
            )
            state = (
                "failure" if result.risk.value in self.config.github.blocking_levels else "success"
            )
            result.status_set = self.client.set_commit_status(
                repo.owner, repo.name, event.head_sha, state, f"Impact risk: {result.risk.value}"
            )
        else:
            logger.debug(f"Not commenting for action {event.action}")
        return result

    def _analyze_pull_request(
        self, event: PullRequestEvent, result: AnalysisResult
    ) -> tuple[ImpactReport, dict] | None:
        """Checkout, fetch, parse and propagate. Caller holds the working copy lock."""
        repo = event.repository
        path = self.workspace.checkout(repo.owner, repo.name, pr_ref(event.pr_number))
        if path is None:
            return None

        if not self.baseline.is_fully_parsed(repo.full_name):
            logger.info(f"No baseline for {repo.full_name}, performing full scan")
            self.build_baseline(repo.full_name, path, event.head_sha)
            result.baseline_built = True
            return None

        changes = self.client.fetch_changed_files(repo.owner, repo.name, event.pr_number)
        if not changes:
            logger.warning(f"No changed files found for {repo.full_name}#{event.pr_number}")
            return None
        for change in changes:
            change.derive_ranges()
        result.files = _file_summaries(changes)

        descriptors = self.parse_changed(
            path,
            [c.file_path for c in changes if c.change_kind is not ChangeKind.DELETED],
            self.config.indexer,
        )
        with self.registry.locked(repo.full_name) as graph:
            report = analyze_changes(graph, changes, descriptors, full=False)
            stats = graph.get_stats()
        return report, stats

    def _log_summary(self, result: AnalysisResult) -> None:
        report = result.report
        logger.info(
            f"Impact for {result.repo}#{result.pr_number}: "
            f"{len(report.changed_ids)} changed, {report.affected_count} affected, "
            f"depth {report.depth}, comment-only {report.comment_only_override}, "
            f"critical {report.critical_method_override}, risk {result.risk.value}"
        )
        for entity_id in report.changed_ids:
            logger.debug(f"  [changed] {entity_id}")
        for entity_id in report.affected_ids:
            logger.debug(f"  [impacted] {entity_id}")


def run_local_analysis(
    root: Path,
    base: str = "main",
    config: ProjectConfig | None = None,
    diff_text: str | None = None,
) -> AnalysisResult:
    """Analyse the working copy at ``root`` against ``base`` without any remote calls."""
    root = Path(root).resolve()
    config = config or ProjectConfig()
    result = AnalysisResult(repo=root.name)

    if diff_text is None:
        diff_text = get_git_diff(root, base)
    changes = parse_diff(diff_text) if diff_text else []
    result.files = _file_summaries(changes)

    descriptors = parse_directory(root, config.indexer)
    graph = EntityGraph()
    report = analyze_changes(graph, changes, descriptors, full=True)

    scorer = RiskScorer()
    result.report = report
    result.risk = scorer.score(report)
    result.breakdown = scorer.breakdown(report)
    result.comment = render_impact_comment(report, result.risk, result.breakdown, graph.get_stats())
    return result
