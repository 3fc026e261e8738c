"""relnotes - release notes and version bumps from GitLab merge requests."""

__version__ = "0.3.0"
