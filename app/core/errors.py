"""Tracionar — Error Taxonomy.

Every failure the engine reports is one of these. Routes translate them to
HTTP status codes; the sync orchestrator decides per type whether a failure
aborts the run or only the current entity branch.
"""

from typing import Any, Dict, Optional


class TracionarError(Exception):
    """Base class for all Tracionar errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ExternalAPIError(TracionarError):
    """Network, 4xx or 5xx failure from the ads platform.

    Retryable by caller policy; never retried internally.
    """

    def __init__(self, message: str, status_code: int = 0, error_code: int = 0):
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(
            message, {"status_code": status_code, "error_code": error_code}
        )


class CredentialError(TracionarError):
    """Missing, expired or invalid access token. Requires re-authorization."""


class PersistenceError(TracionarError):
    """Storage write failure. Aborts the current entity branch only."""


class GenerationError(TracionarError):
    """Narrative generator failed."""


class GenerationNotConfiguredError(GenerationError):
    """No narrative provider is configured (distinct from a transient failure)."""


class ValidationError(TracionarError):
    """Malformed input to a public operation."""


class NotFoundError(TracionarError):
    """Referenced account or campaign does not exist (or is inactive)."""


class SyncError(TracionarError):
    """A sync run aborted. The cause is recorded in the SyncRun log."""

    def __init__(self, message: str, account_id: Optional[int] = None):
        self.account_id = account_id
        super().__init__(message, {"account_id": account_id})
