"""GitHub REST client: changed files, PR comments and commit statuses."""

from __future__ import annotations

import logging

import httpx

from impactgraph.config import GitHubConfig
from impactgraph.exceptions import CollaboratorError
from impactgraph.github.diff_parser import ChangeKind, ChangeRecord
from impactgraph.github.renderer import COMMENT_MARKER

logger = logging.getLogger("impactgraph.github")

PER_PAGE = 100
MAX_PAGES = 30


class GitHubClient:
    """Thin synchronous wrapper over the GitHub REST API.

    Every public method degrades to an empty or False result and logs the
    failure; the pipeline never sees a transport exception.
    """

    def __init__(self, config: GitHubConfig | None = None, http: httpx.Client | None = None):
        self.config = config or GitHubConfig()
        headers = {"Accept": "application/vnd.github+json"}
        token = self.config.token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self.http = http or httpx.Client(
            base_url=self.config.api_url,
            headers=headers,
            timeout=self.config.timeout_seconds,
        )

    def close(self) -> None:
        self.http.close()

    def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = self.http.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise CollaboratorError(
                "github", f"{method} {url} returned {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise CollaboratorError("github", f"{method} {url} failed: {e}") from e
        return response

    def _get_page(self, url: str, page: int) -> list[dict]:
        """One page of a list endpoint; anything but a JSON list of objects is an error."""
        response = self._request("GET", url, params={"per_page": PER_PAGE, "page": page})
        try:
            items = response.json()
        except ValueError as e:
            raise CollaboratorError("github", f"GET {url} returned invalid JSON") from e
        if not isinstance(items, list) or not all(isinstance(i, dict) for i in items):
            raise CollaboratorError("github", f"Unexpected response shape for {url}")
        return items

    # ------------------------------------------------------------------
    # Changed files
    # ------------------------------------------------------------------

    def fetch_changed_files(self, owner: str, repo: str, pr_number: int) -> list[ChangeRecord]:
        """All files changed by a pull request, following pagination."""
        try:
            return self._fetch_changed_files(owner, repo, pr_number)
        except CollaboratorError as e:
            logger.error(f"Could not fetch changed files for {owner}/{repo}#{pr_number}: {e}")
            return []

    def _fetch_changed_files(self, owner: str, repo: str, pr_number: int) -> list[ChangeRecord]:
        records: list[ChangeRecord] = []
        url = f"/repos/{owner}/{repo}/pulls/{pr_number}/files"
        for page in range(1, MAX_PAGES + 1):
            items = self._get_page(url, page)
            for item in items:
                records.append(
                    ChangeRecord(
                        file_path=item.get("filename", ""),
                        change_kind=ChangeKind.from_status(item.get("status")),
                        patch=item.get("patch"),
                        previous_path=item.get("previous_filename"),
                    )
                )
            if len(items) < PER_PAGE:
                break
        logger.info(f"Fetched {len(records)} changed files for {owner}/{repo}#{pr_number}")
        return records

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def post_comment(self, owner: str, repo: str, pr_number: int, body: str) -> bool:
        """Update the bot's existing comment on the PR, or create one."""
        if COMMENT_MARKER not in body:
            body = f"{COMMENT_MARKER}\n{body}"
        try:
            existing_id = self._find_bot_comment(owner, repo, pr_number)
            if existing_id is not None:
                self._request(
                    "PATCH",
                    f"/repos/{owner}/{repo}/issues/comments/{existing_id}",
                    json={"body": body},
                )
                logger.info(f"Updated impact comment {existing_id} on {owner}/{repo}#{pr_number}")
            else:
                self._request(
                    "POST",
                    f"/repos/{owner}/{repo}/issues/{pr_number}/comments",
                    json={"body": body},
                )
                logger.info(f"Posted impact comment on {owner}/{repo}#{pr_number}")
            return True
        except CollaboratorError as e:
            logger.error(f"Could not post comment on {owner}/{repo}#{pr_number}: {e}")
            return False

    def _find_bot_comment(self, owner: str, repo: str, pr_number: int) -> int | None:
        url = f"/repos/{owner}/{repo}/issues/{pr_number}/comments"
        for page in range(1, MAX_PAGES + 1):
            comments = self._get_page(url, page)
            for comment in comments:
                if (comment.get("body") or "").startswith(COMMENT_MARKER):
                    return comment.get("id")
            if len(comments) < PER_PAGE:
                break
        return None

    # ------------------------------------------------------------------
    # Commit statuses
    # ------------------------------------------------------------------

    def set_commit_status(
        self, owner: str, repo: str, sha: str, state: str, description: str
    ) -> bool:
        """Set a commit status under the configured context."""
        payload = {
            "state": state,
            "description": description[:140],
            "context": self.config.status_context,
        }
        try:
            self._request("POST", f"/repos/{owner}/{repo}/statuses/{sha}", json=payload)
        except CollaboratorError as e:
            logger.error(f"Could not set commit status on {owner}/{repo}@{sha[:7]}: {e}")
            return False
        logger.info(f"Commit status {state} set on {owner}/{repo}@{sha[:7]}")
        return True
