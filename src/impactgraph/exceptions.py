"""Custom exceptions for ImpactGraph."""


class ImpactGraphError(Exception):
    """Base exception for all ImpactGraph errors."""


class ConfigError(ImpactGraphError):
    """Configuration-related errors."""


class ParserError(ImpactGraphError):
    """Structural parsing errors for a single source file."""


class PayloadError(ImpactGraphError):
    """Webhook payload is missing required repository or pull request data."""


class CollaboratorError(ImpactGraphError):
    """A version-control or hosting-platform call failed."""

    def __init__(self, collaborator: str, message: str):
        self.collaborator = collaborator
        super().__init__(f"{collaborator}: {message}")
