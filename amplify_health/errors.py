"""Exception taxonomy shared by the engine, remediation and the CLI wrapper."""
from __future__ import annotations


class AmplifyHealthError(Exception):
    """Base class for all amplify_health errors."""


class ConfigError(AmplifyHealthError):
    """Compatibility table or settings could not be loaded."""


class SnapshotError(AmplifyHealthError):
    """The project root itself could not be read. Fatal to one analysis run."""


class RemediationError(AmplifyHealthError):
    def __init__(self, action_id: str, message: str):
        super().__init__(f"{action_id}: {message}")
        self.action_id = action_id
        self.message = message


class CliError(AmplifyHealthError):
    """The external amplify-monitor CLI failed or returned unusable output."""
