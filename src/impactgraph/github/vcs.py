"""Local git working copies of analysed repositories."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from impactgraph.config import WorkspaceConfig
from impactgraph.exceptions import CollaboratorError

logger = logging.getLogger("impactgraph.vcs")


def pr_ref(pr_number: int) -> str:
    """Ref that GitHub publishes for a pull request's head."""
    return f"pull/{pr_number}/head"


class GitWorkspace:
    """Clone-or-fetch then checkout, one directory per repository.

    Directories live under ``checkout_root`` as ``<owner>_<repo>``. Each call
    fetches the requested ref and checks out ``FETCH_HEAD`` detached, so the
    working tree matches exactly what was asked for.
    """

    def __init__(self, config: WorkspaceConfig | None = None, token: str | None = None):
        self.config = config or WorkspaceConfig()
        self.token = token

    def local_path(self, owner: str, repo: str) -> Path:
        return Path(self.config.checkout_root) / f"{owner}_{repo}"

    def clone_url(self, owner: str, repo: str) -> str:
        url = self.config.clone_url_template.format(owner=owner, repo=repo)
        if self.token and url.startswith("https://"):
            url = f"https://x-access-token:{self.token}@{url[len('https://'):]}"
        return url

    def checkout(self, owner: str, repo: str, ref: str) -> Path | None:
        """Bring the working copy of ``owner/repo`` to ``ref``.

        Returns:
            The working copy path, or None if any git step failed.
        """
        try:
            return self._checkout(owner, repo, ref)
        except CollaboratorError as e:
            logger.error(f"Checkout of {owner}/{repo}@{ref} failed: {e}")
            return None

    def _checkout(self, owner: str, repo: str, ref: str) -> Path:
        path = self.local_path(owner, repo)
        if not (path / ".git").is_dir():
            path.parent.mkdir(parents=True, exist_ok=True)
            logger.info(f"Cloning {owner}/{repo} into {path}")
            self._git(["clone", "--no-checkout", self.clone_url(owner, repo), str(path)])
        self._git(["fetch", "--depth", "1", "origin", ref], cwd=path)
        self._git(["checkout", "--force", "--detach", "FETCH_HEAD"], cwd=path)
        logger.info(f"Checked out {owner}/{repo}@{ref}")
        return path

    def _git(self, args: list[str], cwd: Path | None = None) -> str:
        try:
            result = subprocess.run(
                ["git", *args],
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=self.config.timeout_seconds,
            )
        except (subprocess.TimeoutExpired, FileNotFoundError) as e:
            raise CollaboratorError("git", f"git {args[0]}: {e}") from e
        if result.returncode != 0:
            raise CollaboratorError("git", f"git {args[0]}: {result.stderr.strip()}")
        return result.stdout


def get_git_diff(root: Path, base: str = "main") -> str:
    """Get the git diff between the current branch and base."""
    try:
        result = subprocess.run(
            ["git", "diff", f"{base}...HEAD"],
            cwd=root,
            capture_output=True,
            text=True,
            timeout=30,
        )
        if result.returncode == 0:
            return result.stdout
        # Fallback: diff against base directly
        result = subprocess.run(
            ["git", "diff", base],
            cwd=root,
            capture_output=True,
            text=True,
            timeout=30,
        )
        return result.stdout
    except (subprocess.TimeoutExpired, FileNotFoundError):
        logger.warning(f"git diff against {base} failed in {root}")
        return ""
