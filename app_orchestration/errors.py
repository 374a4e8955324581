"""
App Orchestration - Errors

Exception hierarchy shared by the engine, the facades and the collaborators.
Every error carries a human readable message plus an optional list of details.
"""

from __future__ import annotations
from typing import List, Optional


class OrchestrationError(Exception):
    """Base class for all orchestration errors."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.message = message
        self.errors = errors or []
        super().__init__(self.message)

    def __str__(self) -> str:
        if not self.errors:
            return self.message
        return f"{self.message}: " + "; ".join(self.errors)


class ConfigurationError(OrchestrationError):
    """Raised for malformed plans, unresolvable steps or invalid configuration."""


class PreconditionError(OrchestrationError):
    """Raised when a required collaborator or filesystem precondition is missing."""


class ConflictError(PreconditionError):
    """Raised when a target path is already occupied."""


class ResourceExhaustedError(PreconditionError):
    """Raised when free disk space is below the configured floor."""


class StateError(OrchestrationError):
    """Raised when an operation is invoked on a strategy that cannot serve it."""


class ExternalToolError(OrchestrationError):
    """Raised when a delegated tool (shell, storage, database) fails."""


class ShellError(ExternalToolError):
    """Exception raised when a shell command exits non-zero."""

    def __init__(
        self,
        message: str,
        command: str,
        exit_code: Optional[int] = None,
        output: str = "",
    ):
        self.command = command
        self.exit_code = exit_code
        self.output = output
        super().__init__(message)
