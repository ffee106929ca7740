"""
Schema definitions for rasp.

This module defines the Pydantic models used throughout rasp:
- Mode/Category: Enforcement posture and rule categories
- Api/Rules/Configuration: What the administrator allows
- Trace/TraceMessage: The audit record emitted for non-silent verdicts

Design Decisions:
    - Field names are snake_case; camelCase aliases match the policy
      file format (allowRead, allowApi, runtimeVersion, ...)
    - Rule patterns are compiled while the model is validated, so a bad
      pattern is rejected before it can reach the policy store
    - Models are immutable (frozen=True)
"""

from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from rasp.errors import PolicyConfigError
from rasp.matcher import compile_pattern


# =============================================================================
# Enums
# =============================================================================


class Mode(str, Enum):
    """
    Enforcement posture, also used as the verdict of a single decision.

    BLOCK: deny and report. ALERT: allow and report. ALLOW: allow silently.
    """

    BLOCK = "block"
    ALERT = "alert"
    ALLOW = "allow"


class Category(str, Enum):
    """A class of sensitive operation with its own pattern list."""

    READ = "read"
    WRITE = "write"
    DELETE = "delete"
    RUN = "run"
    NET = "net"

    @property
    def rule_field(self) -> str:
        """Name of the Rules field holding this category's patterns."""
        return f"allow_{self.value}"


# =============================================================================
# Policy Models
# =============================================================================


class Api(BaseModel):
    """
    A (module, method) pair exempt from all pattern checks.

    Attributes:
        module: Module label, e.g. "os"
        method: Method label, e.g. "listdir"
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    module: str = Field(..., min_length=1, description="Module label")
    method: str = Field(..., min_length=1, description="Method label")


class Rules(BaseModel):
    """
    Category allow-lists plus the unconditional API allow-list.

    An absent or empty category list always denies. Only fields present
    in model_fields_set take part in a shallow merge (see PolicyStore.update).

    Attributes:
        allow_read: Patterns for filesystem reads
        allow_write: Patterns for filesystem writes
        allow_delete: Patterns for filesystem deletes
        allow_run: Patterns for process spawning
        allow_net: Patterns for network targets and name resolution
        allow_api: (module, method) pairs allowed regardless of arguments
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    allow_read: tuple[str, ...] = Field(default=(), alias="allowRead")
    allow_write: tuple[str, ...] = Field(default=(), alias="allowWrite")
    allow_delete: tuple[str, ...] = Field(default=(), alias="allowDelete")
    allow_run: tuple[str, ...] = Field(default=(), alias="allowRun")
    allow_net: tuple[str, ...] = Field(default=(), alias="allowNet")
    allow_api: tuple[Api, ...] = Field(default=(), alias="allowApi")

    @field_validator(
        "allow_read", "allow_write", "allow_delete", "allow_run", "allow_net",
    )
    @classmethod
    def validate_patterns(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Compile every pattern up front so bad rules fail at registration."""
        for pattern in v:
            compile_pattern(pattern)
        return v

    def patterns(self, category: Category) -> tuple[str, ...]:
        """Return the pattern list for a category."""
        return getattr(self, category.rule_field)


class Configuration(Rules):
    """
    Complete policy configuration as read from a policy file.

    Callbacks (reporter, pre-decision hook) are not part of the file;
    they are passed to Rasp.from_config alongside it.

    Attributes:
        mode: Initial enforcement mode (default: block)
    """

    mode: Mode = Field(default=Mode.BLOCK, description="Initial enforcement mode")

    def rules(self) -> Rules:
        """Return the rule portion of this configuration."""
        data = {
            name: getattr(self, name)
            for name in self.model_fields_set
            if name != "mode"
        }
        return Rules.model_validate(data)


# =============================================================================
# Trace Models
# =============================================================================


class Trace(BaseModel):
    """
    The decision record embedded in a trace message.

    Attributes:
        module: Module label of the intercepted operation
        method: Method label of the intercepted operation
        blocked: True only when the effective verdict was BLOCK
        args: Canonical arguments the verdict was computed from
        stack_trace: Call-stack lines, most recent call first
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    module: str
    method: str
    blocked: bool
    args: list[str] = Field(default_factory=list)
    stack_trace: list[str] | None = Field(default=None, alias="stackTrace")


class TraceMessage(BaseModel):
    """
    Envelope delivered to the reporter once per non-silent verdict.

    Attributes:
        pid: Process identifier
        runtime: Interpreter implementation (e.g. "cpython")
        runtime_version: Interpreter version string
        time: Epoch milliseconds when the message was built
        message_type: Always "trace"
        data: The decision record
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    pid: int
    runtime: str
    runtime_version: str = Field(..., alias="runtimeVersion")
    time: int
    message_type: str = Field(default="trace", alias="messageType")
    data: Trace

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire form (camelCase keys, no empty stackTrace)."""
        return self.model_dump(by_alias=True, exclude_none=True)


# =============================================================================
# YAML Loading Helpers
# =============================================================================


def parse_config(data: Any) -> Configuration:
    """
    Validate raw configuration data.

    Raises:
        PolicyConfigError: If the data doesn't match the schema
    """
    if data is None:
        data = {}
    try:
        return Configuration.model_validate(data)
    except ValidationError as e:
        raise PolicyConfigError(setting="configuration", value=data, reason=str(e)) from e


def load_config(path: Path | str) -> Configuration:
    """
    Load a policy configuration from a YAML file.

    Args:
        path: Path to the YAML file

    Returns:
        Validated Configuration object

    Raises:
        FileNotFoundError: If the file doesn't exist
        PolicyConfigError: If the YAML doesn't match the schema
    """
    path = Path(path)
    with path.open() as f:
        data = yaml.safe_load(f)

    return parse_config(data)


def load_config_from_string(content: str) -> Configuration:
    """Load a policy configuration from a YAML string."""
    return parse_config(yaml.safe_load(content))
