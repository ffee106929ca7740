"""
Exception hierarchy for rasp.

All rasp exceptions inherit from RaspError, allowing callers to catch
every rasp-specific exception with a single except clause.

Exception Categories:
    - PolicyDeniedError: Intercepted call blocked by policy
    - PolicyConfigError: Rejected mode/rule update or configuration
    - InvalidPatternError: A rule pattern that cannot be compiled

Errors raised by a wrapped operation itself are never translated into
rasp errors; they reach the caller unchanged.
"""

from dataclasses import dataclass, field
from typing import Any


# =============================================================================
# Error Codes
# =============================================================================

# Policy errors: 1xxx
ERROR_POLICY_DENIED = 1001

# Configuration errors: 2xxx
ERROR_CONFIG_INVALID = 2001
ERROR_CONFIG_INVALID_PATTERN = 2002


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class RaspError(Exception):
    """
    Base exception for all rasp errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        """Format error for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


# =============================================================================
# Policy Errors
# =============================================================================


@dataclass
class PolicyDeniedError(RaspError):
    """
    Raised when an intercepted call is blocked by the policy.

    By the time this is raised the trace message describing the denial
    has already been delivered to the reporter.

    Attributes:
        module: Module label of the blocked operation (e.g. "os")
        method: Method label of the blocked operation (e.g. "listdir")
        call_args: Canonical arguments the decision was made on
    """

    module: str = ""
    method: str = ""
    call_args: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"{self.module}.{self.method} blocked by policy"
        if self.code == 0:
            self.code = ERROR_POLICY_DENIED
        self.context.update({
            "module": self.module,
            "method": self.method,
            "args": list(self.call_args),
        })


# =============================================================================
# Configuration Errors
# =============================================================================


@dataclass
class PolicyConfigError(RaspError):
    """
    Raised when a configuration, mode or rule update is rejected.

    A rejected update never leaves the policy half-applied.

    Attributes:
        setting: The configuration setting that was invalid
        value: The offending value (repr'd into context)
        reason: Why the value was rejected
    """

    setting: str = ""
    value: Any = None
    reason: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            target = f" {self.setting}" if self.setting else ""
            self.message = f"Invalid configuration{target}: {self.reason}"
        if self.code == 0:
            self.code = ERROR_CONFIG_INVALID
        self.context.update({
            "setting": self.setting,
            "value": repr(self.value),
            "reason": self.reason,
        })


@dataclass
class InvalidPatternError(PolicyConfigError):
    """Raised when a rule pattern cannot be compiled."""

    pattern: Any = None

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid pattern {self.pattern!r}: {self.reason}"
        if self.code == 0:
            self.code = ERROR_CONFIG_INVALID_PATTERN
        if not self.suggestion:
            self.suggestion = "Patterns are plain strings; '*' is the only wildcard"
        if self.value is None:
            self.value = self.pattern
        super().__post_init__()
        self.context["pattern"] = repr(self.pattern)
