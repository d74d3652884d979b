"""Core modules for Podscope - centralized error definitions."""

from podscope.core.errors import (
    ConfigurationError,
    ExitCode,
    InvalidQueryNameError,
    MissingVariableError,
    NotFoundError,
    PodscopeError,
    ProviderConnectionError,
    ProviderError,
    ProviderNotFoundError,
    ProviderUnhealthyError,
    QueryNotFoundError,
    ReferenceFormatError,
    UnsupportedProviderTypeError,
    ValidationError,
    format_error_message,
    main_with_error_handling,
)

__all__ = [
    "ExitCode",
    "PodscopeError",
    "ConfigurationError",
    "ValidationError",
    "NotFoundError",
    "ProviderError",
    # Query resolution
    "ReferenceFormatError",
    "QueryNotFoundError",
    "MissingVariableError",
    "InvalidQueryNameError",
    # Queue providers
    "UnsupportedProviderTypeError",
    "ProviderNotFoundError",
    "ProviderUnhealthyError",
    "ProviderConnectionError",
    "main_with_error_handling",
    "format_error_message",
]
