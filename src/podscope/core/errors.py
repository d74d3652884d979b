"""
Unified error handling for Podscope.

Every failure raised by the query resolver, the queue provider registry
and the CLI derives from PodscopeError, which carries a message, a details
dict for structured logging, and the exit code used by CLI commands.

Exit Codes:
- 0: Success
- 1: Warning (advisory, operation succeeded with warnings)
- 10: Configuration error
- 11: Provider error (queue backend or metrics backend failure)
- 12: Validation error (malformed reference, missing variables)
- 13: Not found (unknown query, provider or page)
- 127: Unknown/internal error
"""

from __future__ import annotations

import functools
import sys
import traceback
from enum import IntEnum
from typing import Any, Callable, TypeVar

import structlog

logger = structlog.get_logger()


class ExitCode(IntEnum):
    """Standardized exit codes for CLI commands."""

    SUCCESS = 0
    WARNING = 1
    CONFIG_ERROR = 10
    PROVIDER_ERROR = 11
    VALIDATION_ERROR = 12
    NOT_FOUND = 13
    UNKNOWN_ERROR = 127


class PodscopeError(Exception):
    """Base exception for Podscope errors with exit code support."""

    exit_code: ExitCode = ExitCode.UNKNOWN_ERROR
    show_traceback: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(PodscopeError):
    """Raised for configuration-related errors."""

    exit_code = ExitCode.CONFIG_ERROR


class ValidationError(PodscopeError):
    """Raised for validation failures."""

    exit_code = ExitCode.VALIDATION_ERROR


class NotFoundError(PodscopeError):
    """Raised when a well-formed lookup matches nothing."""

    exit_code = ExitCode.NOT_FOUND


class ProviderError(PodscopeError):
    """Raised when an external provider/service fails."""

    exit_code = ExitCode.PROVIDER_ERROR


# === Query resolution ===


class ReferenceFormatError(ValidationError):
    """Raised when a query reference does not parse into namespace and name."""

    def __init__(self, reference: Any, reason: str):
        super().__init__(
            f"Invalid query reference {reference!r}: {reason}",
            {"reference": reference},
        )
        self.reference = reference


class QueryNotFoundError(NotFoundError):
    """Raised when a well-formed reference has no entry in the library."""

    def __init__(self, namespace: str, name: str, reference: str | None = None):
        super().__init__(
            f"Query not found: {name} in namespace {namespace}",
            {"namespace": namespace, "query": name},
        )
        self.namespace = namespace
        self.name = name
        self.reference = reference


class MissingVariableError(ValidationError):
    """Raised when template variables have no supplied value."""

    def __init__(self, missing: list[str], reference: str | None = None):
        super().__init__(
            f"Missing values for query variables: {', '.join(missing)}",
            {"missing": list(missing)},
        )
        self.missing = list(missing)
        self.reference = reference


class InvalidQueryNameError(ValidationError):
    """Raised when a query name lacks the _v<major>-<minor>-<patch> suffix."""

    def __init__(self, name: str):
        super().__init__(
            f"Query name {name!r} must end with a version suffix like _v1-0-0",
            {"query": name},
        )
        self.name = name


# === Queue providers ===


class UnsupportedProviderTypeError(ConfigurationError):
    """Raised when a provider type has no driver."""

    def __init__(self, provider_type: str):
        super().__init__(
            f"Unsupported queue provider type: {provider_type}",
            {"provider_type": str(provider_type)},
        )
        self.provider_type = provider_type


class ProviderNotFoundError(NotFoundError):
    """Raised when a query names a provider absent from the registry."""

    exit_code = ExitCode.PROVIDER_ERROR

    def __init__(self, provider: str):
        super().__init__(f"Queue provider not found: {provider}", {"provider": provider})
        self.provider = provider


class ProviderUnhealthyError(ProviderError):
    """Raised when the health check immediately before dispatch fails."""

    def __init__(self, provider: str):
        super().__init__(f"Queue provider {provider} is not healthy", {"provider": provider})
        self.provider = provider


class ProviderConnectionError(ProviderError):
    """Raised on I/O failure while connecting to or querying a provider."""


# Type variable for decorated functions
F = TypeVar("F", bound=Callable[..., int])


def main_with_error_handling(
    *,
    show_traceback: bool = False,
    log_errors: bool = True,
) -> Callable[[F], F]:
    """
    Decorator for CLI command functions that provides unified error handling.

    Catches exceptions and converts them to appropriate exit codes with
    consistent error reporting.

    Args:
        show_traceback: If True, show full traceback for unexpected errors
        log_errors: If True, log errors to structlog

    Exit codes:
        - PodscopeError subclasses: Uses the error's exit_code
        - KeyboardInterrupt: Returns 130 (standard for SIGINT)
        - Other exceptions: Returns 127 (unknown error)
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> int:
            try:
                return func(*args, **kwargs)
            except PodscopeError as e:
                if log_errors:
                    logger.error(
                        "command_error",
                        error_type=type(e).__name__,
                        message=e.message,
                        exit_code=e.exit_code,
                        **e.details,
                    )
                if e.show_traceback or show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return e.exit_code
            except KeyboardInterrupt:
                if log_errors:
                    logger.info("command_interrupted")
                return 130
            except Exception as e:
                if log_errors:
                    logger.error(
                        "unexpected_error",
                        error_type=type(e).__name__,
                        message=str(e),
                        exit_code=ExitCode.UNKNOWN_ERROR,
                    )
                if show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return ExitCode.UNKNOWN_ERROR

        return wrapper  # type: ignore[return-value]

    return decorator


def format_error_message(error: PodscopeError) -> str:
    """Format an error message for display to users."""
    msg = error.message
    if error.details:
        detail_str = ", ".join(f"{k}={v}" for k, v in error.details.items())
        msg = f"{msg} ({detail_str})"
    return msg
