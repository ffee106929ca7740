"""
Operation catalogue for rasp.

The catalogue maps an intercepted operation, identified by its
(module, method) label, to the rule category that governs it and the
argument position used as the match subject. Dispatch is data, not
control flow: supporting a new operation means registering an entry.
A label with no entry is never allowed by rules (see DecisionEngine).

Labels describe the call as the host routes it through Rasp.wrap:
    - Module functions: ("os", "listdir") wraps os.listdir
    - Bound methods: ("httpx", "Client.send") wraps client.send
    - Unbound methods: ("pathlib", "Path.read_text") wraps
      pathlib.Path.read_text, so the path itself is argument 0

Usage:
    from rasp.operations import default_operations

    table = default_operations()
    op = table.get("os", "listdir")
    op.category  # Category.READ
"""

import os
from collections.abc import Callable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from rasp.canonical import (
    ArgProcessor,
    address_processor,
    command_processor,
    path_processor,
    request_target_processor,
)
from rasp.schema import Category


@dataclass(frozen=True)
class Operation:
    """
    One entry of the operation catalogue.

    Attributes:
        module: Module label (e.g. "subprocess")
        method: Method label (e.g. "run")
        category: Rule category consulted for this operation
        subject_index: Position of the argument matched against the category
        processors: Position-specific canonicalization overrides
        keywords: Keyword parameters folded into positional slots before
            canonicalization, e.g. {"mode": 1} for open()
        category_resolver: Picks the category from the canonical args
            when one label covers both reads and writes
    """

    module: str
    method: str
    category: Category
    subject_index: int = 0
    processors: Mapping[int, ArgProcessor] = field(default_factory=dict)
    keywords: Mapping[str, int] = field(default_factory=dict)
    category_resolver: Callable[[Sequence[str]], Category] | None = None

    @property
    def key(self) -> tuple[str, str]:
        """The (module, method) lookup key."""
        return (self.module, self.method)

    @property
    def label(self) -> str:
        """Dotted label used in messages."""
        return f"{self.module}.{self.method}"

    def subject(self, args: tuple[str, ...] | list[str]) -> str | None:
        """Return the canonical argument this operation is matched on."""
        if 0 <= self.subject_index < len(args):
            return args[self.subject_index]
        return None

    def category_for(self, args: Sequence[str]) -> Category:
        """Return the category governing this call."""
        if self.category_resolver is None:
            return self.category
        return self.category_resolver(args)

    def fold_keywords(self, args: Sequence[Any], kwargs: Mapping[str, Any]) -> list[Any]:
        """
        Return the positional args extended with mapped keyword args.

        A keyword is folded only into the next free position, so the
        result never contains gaps.
        """
        folded = list(args)
        for name, position in sorted(self.keywords.items(), key=lambda item: item[1]):
            if position < len(folded):
                continue
            if position > len(folded) or name not in kwargs:
                break
            folded.append(kwargs[name])
        return folded


class OperationTable:
    """
    Registry of intercepted operations keyed by (module, method).

    Attributes:
        _operations: Internal mapping of keys to operations
    """

    def __init__(self) -> None:
        """Initialize an empty table."""
        self._operations: dict[tuple[str, str], Operation] = {}

    def register(self, operation: Operation) -> None:
        """
        Register an operation, replacing any entry with the same label.

        Raises:
            ValueError: If operation is None or has an empty module/method
        """
        if operation is None:
            msg = "Cannot register None as an operation"
            raise ValueError(msg)
        if not operation.module or not operation.method:
            msg = "Operation must have a non-empty module and method"
            raise ValueError(msg)
        if operation.subject_index < 0:
            msg = f"Invalid subject index for {operation.label}: {operation.subject_index}"
            raise ValueError(msg)
        if any(position < 0 for position in operation.keywords.values()):
            msg = f"Invalid keyword position for {operation.label}"
            raise ValueError(msg)

        self._operations[operation.key] = operation

    def get(self, module: str, method: str) -> Operation:
        """
        Look up an operation.

        Raises:
            KeyError: If no operation with that label is registered
        """
        operation = self._operations.get((module, method))
        if operation is None:
            raise KeyError(f"{module}.{method}")
        return operation

    def get_optional(self, module: str, method: str) -> Operation | None:
        """Look up an operation, returning None if not registered."""
        return self._operations.get((module, method))

    def has(self, module: str, method: str) -> bool:
        """Check if an operation is registered."""
        return (module, method) in self._operations

    def unregister(self, module: str, method: str) -> bool:
        """
        Remove an operation from the table.

        Returns:
            True if the operation was removed, False if it wasn't registered
        """
        return self._operations.pop((module, method), None) is not None

    def processors_for(self, module: str, method: str) -> Mapping[int, ArgProcessor]:
        """Return the canonicalization overrides for an operation (may be empty)."""
        operation = self._operations.get((module, method))
        return operation.processors if operation else {}

    def list_operations(self) -> list[Operation]:
        """List all operations sorted by label."""
        return [self._operations[key] for key in sorted(self._operations)]

    def __len__(self) -> int:
        return len(self._operations)

    def __iter__(self) -> Iterator[Operation]:
        return iter(self.list_operations())

    def __contains__(self, key: object) -> bool:
        return key in self._operations

    def __repr__(self) -> str:
        labels = ", ".join(op.label for op in self.list_operations())
        return f"<OperationTable: [{labels}]>"


# =============================================================================
# Built-in catalogue
# =============================================================================

_PATH = {0: path_processor}
_COMMAND = {0: command_processor}
_ADDRESS = {0: address_processor}

# open() modes and os.open() flags that can change a file
_WRITE_MODE_CHARS = frozenset("wax+")
_WRITE_FLAGS = os.O_WRONLY | os.O_RDWR | os.O_CREAT | os.O_TRUNC | os.O_APPEND


def open_mode_category(args: Sequence[str]) -> Category:
    """
    Category of an open() call from its mode argument (position 1).

    A missing mode is open()'s default "r".
    """
    mode = args[1] if len(args) > 1 else "r"
    return Category.WRITE if _WRITE_MODE_CHARS & set(mode) else Category.READ


def open_flags_category(args: Sequence[str]) -> Category:
    """
    Category of an os.open() call from its flags argument (position 1).

    Flags that cannot be read as an integer count as a write.
    """
    if len(args) < 2:
        return Category.READ
    try:
        flags = int(args[1])
    except ValueError:
        return Category.WRITE
    return Category.WRITE if flags & _WRITE_FLAGS else Category.READ


def _register_all(
    table: OperationTable,
    module: str,
    methods: tuple[str, ...],
    category: Category,
    subject_index: int = 0,
    processors: Mapping[int, ArgProcessor] | None = None,
    keywords: Mapping[str, int] | None = None,
    category_resolver: Callable[[Sequence[str]], Category] | None = None,
) -> None:
    for method in methods:
        table.register(
            Operation(
                module=module,
                method=method,
                category=category,
                subject_index=subject_index,
                processors=dict(processors or {}),
                keywords=dict(keywords or {}),
                category_resolver=category_resolver,
            )
        )


def default_operations() -> OperationTable:
    """Build the catalogue of standard-library and httpx operations."""
    table = OperationTable()

    # Filesystem
    _register_all(
        table, "builtins", ("open",), Category.READ, processors=_PATH,
        keywords={"file": 0, "mode": 1}, category_resolver=open_mode_category,
    )
    _register_all(
        table, "io", ("open",), Category.READ, processors=_PATH,
        keywords={"file": 0, "mode": 1}, category_resolver=open_mode_category,
    )
    _register_all(
        table, "pathlib", ("Path.open",), Category.READ, processors=_PATH,
        keywords={"mode": 1}, category_resolver=open_mode_category,
    )
    _register_all(
        table, "os", ("open",), Category.READ, processors=_PATH,
        keywords={"path": 0, "flags": 1}, category_resolver=open_flags_category,
    )
    _register_all(table, "os", ("listdir", "scandir"), Category.READ, processors=_PATH)
    _register_all(
        table, "os", ("mkdir", "makedirs", "rename", "replace"), Category.WRITE, processors=_PATH,
    )
    _register_all(
        table, "os", ("remove", "unlink", "rmdir", "removedirs"), Category.DELETE, processors=_PATH,
    )
    _register_all(table, "shutil", ("rmtree",), Category.DELETE, processors=_PATH)
    _register_all(
        table, "pathlib", ("Path.read_text", "Path.read_bytes", "Path.iterdir"),
        Category.READ, processors=_PATH,
    )
    _register_all(
        table, "pathlib", ("Path.write_text", "Path.write_bytes", "Path.mkdir", "Path.touch"),
        Category.WRITE, processors=_PATH,
    )
    _register_all(
        table, "pathlib", ("Path.unlink", "Path.rmdir"), Category.DELETE, processors=_PATH,
    )

    # Processes
    _register_all(table, "os", ("system", "popen"), Category.RUN, processors=_COMMAND)
    _register_all(
        table, "subprocess", ("run", "Popen", "call", "check_call", "check_output"),
        Category.RUN, processors=_COMMAND,
    )

    # Name resolution and sockets
    _register_all(
        table, "socket", ("getaddrinfo", "gethostbyname", "gethostbyname_ex"), Category.NET,
    )
    _register_all(
        table, "socket", ("create_connection", "socket.connect"), Category.NET,
        processors=_ADDRESS,
    )

    # HTTP
    _register_all(
        table, "urllib.request", ("urlopen",), Category.NET,
        processors={0: request_target_processor},
    )
    _register_all(
        table, "httpx", ("get", "head", "options", "delete", "post", "put", "patch"),
        Category.NET, processors={0: request_target_processor},
    )
    _register_all(
        table, "httpx", ("request", "stream", "Client.request", "Client.stream"),
        Category.NET, subject_index=1, processors={1: request_target_processor},
    )
    _register_all(
        table, "httpx", ("Client.send",), Category.NET,
        processors={0: request_target_processor},
    )

    return table
