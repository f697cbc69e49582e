"""keep-release: release-build orchestrator for the keep-accounts app."""

__version__ = "0.3.0"
