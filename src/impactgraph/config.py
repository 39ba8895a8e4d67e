"""Configuration management for ImpactGraph."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from impactgraph.exceptions import ConfigError

IMPACTGRAPH_DIR = ".impactgraph"
CONFIG_FILE = "config.json"


class GitHubConfig(BaseModel):
    """Hosting platform (GitHub REST API) configuration."""

    api_url: str = "https://api.github.com"
    token_env: str = "GITHUB_TOKEN"
    timeout_seconds: float = 15.0
    status_context: str = "impactgraph/risk"
    comment_actions: list[str] = Field(
        default_factory=lambda: ["opened", "reopened", "synchronize"]
    )
    blocking_levels: list[str] = Field(default_factory=lambda: ["HIGH", "CRITICAL"])

    @property
    def token(self) -> str | None:
        return os.environ.get(self.token_env) if self.token_env else None


class WorkspaceConfig(BaseModel):
    """Local working copies of analysed repositories."""

    checkout_root: str = Field(default_factory=tempfile.gettempdir)
    clone_url_template: str = "https://github.com/{owner}/{repo}.git"
    timeout_seconds: float = 300.0


class WorkerConfig(BaseModel):
    """Bounded worker pool for webhook events."""

    max_workers: int = 10
    queue_capacity: int = 100
    dedup_window: int = 1024


class ServerConfig(BaseModel):
    """Webhook HTTP server."""

    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"


class IndexerConfig(BaseModel):
    """Indexer configuration."""

    exclude_patterns: list[str] = Field(
        default_factory=lambda: [
            "node_modules",
            "__pycache__",
            ".git",
            ".impactgraph",
            "dist",
            "build",
            ".venv",
            "venv",
            ".env",
            "*.pyc",
            "*.pyo",
            "*.so",
            "target",
            ".gradle",
            ".idea",
            "*.class",
        ]
    )
    max_file_size_kb: int = 500
    languages: list[str] = Field(default_factory=list)  # empty = auto-detect


class ProjectConfig(BaseModel):
    """Full project configuration."""

    name: str = ""
    root_path: str = "."
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    workspace: WorkspaceConfig = Field(default_factory=WorkspaceConfig)
    workers: WorkerConfig = Field(default_factory=WorkerConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    indexer: IndexerConfig = Field(default_factory=IndexerConfig)


def find_project_root(start: Path | None = None) -> Path | None:
    """Walk up from `start` looking for a .impactgraph directory."""
    current = (start or Path.cwd()).resolve()
    while current != current.parent:
        if (current / IMPACTGRAPH_DIR).is_dir():
            return current
        current = current.parent
    if (current / IMPACTGRAPH_DIR).is_dir():
        return current
    return None


def get_impactgraph_dir(root: Path) -> Path:
    """Get the .impactgraph directory for a project root."""
    return root / IMPACTGRAPH_DIR


def _read_config_file(config_path: Path) -> ProjectConfig:
    try:
        data = json.loads(config_path.read_text())
        return ProjectConfig(**data)
    except (json.JSONDecodeError, ValidationError, TypeError) as e:
        raise ConfigError(f"Invalid config file {config_path}: {e}") from e


def load_config(root: Path) -> ProjectConfig:
    """Load configuration from .impactgraph/config.json."""
    config_path = get_impactgraph_dir(root) / CONFIG_FILE
    if config_path.exists():
        return _read_config_file(config_path)
    return ProjectConfig(name=root.name, root_path=str(root))


def load_server_config(path: str | Path | None) -> ProjectConfig:
    """Load a standalone config file for the webhook server, or defaults."""
    if path is None:
        return ProjectConfig()
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")
    return _read_config_file(config_path)


def save_config(root: Path, config: ProjectConfig) -> None:
    """Save configuration to .impactgraph/config.json."""
    ig_dir = get_impactgraph_dir(root)
    ig_dir.mkdir(parents=True, exist_ok=True)
    config_path = ig_dir / CONFIG_FILE
    config_path.write_text(json.dumps(config.model_dump(), indent=2))


def set_config_value(config: ProjectConfig, key: str, value: Any) -> ProjectConfig:
    """Set a nested config value using dot notation (e.g., 'workers.max_workers')."""
    parts = key.split(".")
    data = config.model_dump()
    target = data
    for part in parts[:-1]:
        if part not in target or not isinstance(target[part], dict):
            raise KeyError(f"Invalid config key: {key}")
        target = target[part]
    if parts[-1] not in target:
        raise KeyError(f"Invalid config key: {key}")
    target[parts[-1]] = value
    return ProjectConfig(**data)
