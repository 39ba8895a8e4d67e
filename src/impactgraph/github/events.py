"""Webhook payload extraction."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from impactgraph.exceptions import PayloadError


@dataclass(frozen=True)
class RepositoryRef:
    owner: str
    name: str
    default_branch: str = "main"

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


@dataclass(frozen=True)
class PingEvent:
    """Webhook installation ping; triggers the repository baseline."""

    repository: RepositoryRef


@dataclass(frozen=True)
class PullRequestEvent:
    repository: RepositoryRef
    pr_number: int
    head_sha: str
    action: str

    @property
    def dedup_key(self) -> tuple[str, int, str]:
        return (self.repository.full_name, self.pr_number, self.head_sha)


def _repository(payload: dict[str, Any]) -> RepositoryRef:
    repo = payload.get("repository")
    if not isinstance(repo, dict):
        raise PayloadError("No repository info")
    owner = repo.get("owner")
    login = owner.get("login") if isinstance(owner, dict) else None
    name = repo.get("name")
    if not login or not name:
        full_name = repo.get("full_name") or ""
        if "/" not in full_name:
            raise PayloadError("Repository owner or name missing")
        login, name = full_name.split("/", 1)
    return RepositoryRef(
        owner=str(login),
        name=str(name),
        default_branch=str(repo.get("default_branch") or "main"),
    )


def parse_event(payload: Any) -> PingEvent | PullRequestEvent | None:
    """Classify a webhook payload.

    Returns:
        The event, or None if the payload is neither a ping nor a pull
        request event.

    Raises:
        PayloadError: the payload is recognised but lacks required data.
    """
    if not isinstance(payload, dict):
        raise PayloadError("Payload must be a JSON object")

    if "pull_request" in payload:
        pr = payload.get("pull_request")
        if not isinstance(pr, dict):
            raise PayloadError("Invalid payload")
        repository = _repository(payload)
        try:
            pr_number = int(pr.get("number", payload.get("number")))
        except (TypeError, ValueError) as e:
            raise PayloadError("Pull request number missing") from e
        head = pr.get("head")
        head_sha = head.get("sha") if isinstance(head, dict) else None
        if not head_sha:
            raise PayloadError("Pull request head sha missing")
        action = payload.get("action")
        if not action:
            raise PayloadError("Pull request action missing")
        return PullRequestEvent(
            repository=repository,
            pr_number=pr_number,
            head_sha=str(head_sha),
            action=str(action),
        )

    if "hook" in payload or "hook_id" in payload:
        return PingEvent(repository=_repository(payload))

    return None
