"""Shared plumbing for the console: errors, logging, env expansion, retry."""

from metaconsole.lib.errors import (
    ConfigurationError,
    ConsoleError,
    MetadataUnavailable,
    SessionClosedError,
    StaleResponseDiscarded,
    ValidationError,
)
from metaconsole.lib.env import expand_env_vars, expand_options, load_env_file
from metaconsole.lib.logging import (
    ConsoleLogger,
    ContextFormatter,
    JSONFormatter,
    get_console_logger,
    setup_logging,
)
from metaconsole.lib.resilience import RetryConfig, retry_async

__all__ = [
    "ConfigurationError",
    "ConsoleError",
    "ConsoleLogger",
    "ContextFormatter",
    "JSONFormatter",
    "MetadataUnavailable",
    "RetryConfig",
    "SessionClosedError",
    "StaleResponseDiscarded",
    "ValidationError",
    "expand_env_vars",
    "expand_options",
    "get_console_logger",
    "load_env_file",
    "retry_async",
    "setup_logging",
]
