"""Jmake exception hierarchy.

This module defines traceable domain errors with clear boundaries.
Each build phase raises a specific error type for debuggability.
"""

from __future__ import annotations


class JmakeError(Exception):
    """Base exception for all Jmake failures."""


class JmakeConfigurationError(JmakeError):
    """Raised for missing or invalid manifest fields and runtime settings."""


class JmakeConflictError(JmakeError):
    """Raised when the target dataset already exists and no override was requested."""


class JmakeNotFoundError(JmakeError):
    """Raised when a base image is unavailable and cannot be fetched."""


class JmakeStepExecutionError(JmakeError):
    """Raised when a build step fails to perform its mutation."""


class JmakeCommandError(JmakeStepExecutionError):
    """Raised when an external host command exits unsuccessfully."""


class JmakeCompensationError(JmakeError):
    """Recorded when reverting a committed action fails during rollback."""

    def __init__(self, action_name: str, cause: BaseException) -> None:
        super().__init__(f"Failed to revert {action_name}: {cause}")
        self.action_name = action_name
        self.cause = cause


class JmakeDependencyError(JmakeError):
    """Raised when an optional runtime dependency is missing."""
