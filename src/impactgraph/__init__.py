"""ImpactGraph - blast radius and merge risk analysis for pull requests."""

__version__ = "0.1.0"
