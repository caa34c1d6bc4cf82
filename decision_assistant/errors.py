"""Exception hierarchy shared by providers, the orchestrator and the task ledger."""

from __future__ import annotations


class AssistantError(Exception):
    """Base class for every error raised by the assistant core."""


class ProviderError(AssistantError):
    """A remote text-generation call failed.

    ``provider`` names the provider kind that failed and ``status`` carries the
    HTTP status code when the upstream SDK exposed one.
    """

    def __init__(self, message: str, provider: str | None = None, status: int | None = None) -> None:
        super().__init__(message)
        self.provider = provider
        self.status = status


class RateLimitedError(ProviderError):
    """429-class failure. ``rotated`` records whether the credential pool advanced."""

    rotated: bool = False


class AuthenticationError(ProviderError):
    """The provider rejected the credential (401/403 or an invalid key)."""


class TransientError(ProviderError):
    """Network failure, timeout, 5xx or any other non-auth, non-429 status."""


class MalformedResponseError(AssistantError):
    """Model output did not contain a recoverable JSON object."""


class UnconfiguredError(AssistantError):
    """No provider has any credential configured."""


class NoWorkingProviderError(AssistantError):
    """Every configured provider failed its connectivity test."""


class OperationTimeoutError(AssistantError):
    """An orchestrated operation exceeded its time box."""


class InvalidArgumentError(AssistantError, ValueError):
    """A caller supplied a bad value (unknown provider, bad priority, empty question)."""


class LedgerError(AssistantError):
    """Base class for task ledger failures."""


class NotFoundError(LedgerError, KeyError):
    """No task with the requested id exists in the ledger."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "not found"


class AlreadyCompletedError(LedgerError):
    """The task was already moved to the completed set."""
