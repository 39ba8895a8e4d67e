"""Per-repository graph instances with per-repository mutual exclusion."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager

from impactgraph.graph.store import EntityGraph


class GraphRegistry:
    """Owns one ``EntityGraph`` and one lock per repository.

    At most one mutating or traversing section may run per repository at a
    time; different repositories never contend.
    """

    def __init__(self) -> None:
        self._graphs: dict[str, EntityGraph] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def _entry(self, repo: str) -> tuple[EntityGraph, threading.Lock]:
        with self._guard:
            if repo not in self._graphs:
                self._graphs[repo] = EntityGraph()
                self._locks[repo] = threading.Lock()
            return self._graphs[repo], self._locks[repo]

    @contextmanager
    def locked(self, repo: str) -> Iterator[EntityGraph]:
        """Hold the repository's lock and yield its graph."""
        graph, lock = self._entry(repo)
        with lock:
            yield graph

    def peek(self, repo: str) -> EntityGraph | None:
        """The graph for ``repo`` if one exists, without locking it."""
        with self._guard:
            return self._graphs.get(repo)

    def repositories(self) -> list[str]:
        with self._guard:
            return sorted(self._graphs)
