"""Custom exception hierarchy for SharpCore.

Separates fatal startup failures (configuration, command loading) from
errors that are recovered at a dispatch boundary (command execution,
storage), so callers can decide whether to exit or log and continue.
"""

from enum import Enum
from typing import Any, Optional


class ErrorCategory(str, Enum):
    """Classification of errors for exit/recover decisions."""
    TRANSIENT = "transient"          # Network hiccup, store busy
    PERMANENT = "permanent"          # Bad input, broken handler
    INFRASTRUCTURE = "infrastructure"  # Config, missing files


class SharpCoreError(Exception):
    """Base exception for all SharpCore errors.

    Attributes:
        message: Human-readable error description.
        category: Error classification.
        module: Originating module name (e.g. "commands.loader").
        context: Arbitrary key-value pairs for structured logging.
    """

    def __init__(
        self,
        message: str = "",
        *,
        category: ErrorCategory = ErrorCategory.PERMANENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.message = message
        self.category = category
        self.module = module
        self.context = context
        super().__init__(message)

    @property
    def is_fatal(self) -> bool:
        """Whether the process should stop when this reaches the top level."""
        return self.category == ErrorCategory.INFRASTRUCTURE

    def __str__(self) -> str:
        parts = [self.message or self.__class__.__name__]
        if self.module:
            parts.append(f"[module={self.module}]")
        if self.context:
            ctx = ", ".join(f"{k}={v}" for k, v in self.context.items())
            parts.append(f"({ctx})")
        return " ".join(parts)

    def __repr__(self) -> str:
        cls = self.__class__.__name__
        return (
            f"{cls}({self.message!r}, category={self.category.value!r}, "
            f"module={self.module!r})"
        )


class ConfigurationError(SharpCoreError):
    """Invalid or missing configuration.

    Defaults to INFRASTRUCTURE: the process exits with status 1.
    """

    def __init__(
        self,
        message: str = "",
        *,
        setting_name: Optional[str] = None,
        category: ErrorCategory = ErrorCategory.INFRASTRUCTURE,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.setting_name = setting_name
        super().__init__(
            message, category=category, module=module or "config", **context
        )


class CommandLoadError(SharpCoreError):
    """A command unit could not be imported or is malformed.

    Attributes:
        source: File path or dotted module the unit was loaded from.
    """

    def __init__(
        self,
        message: str = "",
        *,
        source: Optional[str] = None,
        category: ErrorCategory = ErrorCategory.INFRASTRUCTURE,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.source = source
        super().__init__(
            message, category=category, module=module or "commands.loader", **context
        )


class DuplicateCommandError(CommandLoadError):
    """Two command units claim the same name or alias."""

    def __init__(
        self,
        message: str = "",
        *,
        key: Optional[str] = None,
        existing: Optional[str] = None,
        source: Optional[str] = None,
        category: ErrorCategory = ErrorCategory.INFRASTRUCTURE,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.key = key
        self.existing = existing
        super().__init__(
            message,
            source=source,
            category=category,
            module=module or "commands.registry",
            **context,
        )


class StoreError(SharpCoreError):
    """Error reading or writing the key-value store.

    Attributes:
        operation: The store operation that failed ("get" or "set").
        key: The key involved (if known).
    """

    def __init__(
        self,
        message: str = "",
        *,
        operation: Optional[str] = None,
        key: Optional[str] = None,
        category: ErrorCategory = ErrorCategory.TRANSIENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.operation = operation
        self.key = key
        super().__init__(
            message, category=category, module=module or "store", **context
        )
