"""
Interception Dispatcher for rasp.

Rasp turns a sensitive callable into a gated callable with the same
signature. The host routes calls through the gated version (explicit
call-site substitution, dependency injection, a facade); nothing is
patched globally.

Execution Flow (per call):
    1. Canonicalize positional arguments (plus catalogue-mapped
       keyword arguments) once
    2. Ask the DecisionEngine for a verdict
    3. Let the optional pre-decision hook override the verdict
    4. ALLOW: call the target, return/raise whatever it does
    5. ALERT: report (blocked=False), then call the target
    6. BLOCK: report (blocked=True), then raise PolicyDeniedError;
       the target is never called

Design Principles:
    - Report-then-fail: every denial reaches the reporter before the
      caller sees the error
    - The hook and the reporter may reconfigure the policy; changes
      apply from the next call on
    - The decision is made once, at call time; for async targets the
      returned awaitable is not re-checked when it completes
"""

import functools
import inspect
import logging
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from types import FrameType
from typing import Any, TypeVar

from rasp.canonical import ArgProcessor, canonicalize_args
from rasp.errors import PolicyConfigError, PolicyDeniedError
from rasp.operations import OperationTable
from rasp.policy import DecisionEngine, PolicyStore, coerce_mode
from rasp.reporting import Reporter, build_trace_message, capture_stack
from rasp.schema import Configuration, Mode, Rules, load_config, parse_config

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

# pre_decision(module, method, args, verdict) or the same plus the Rasp handle
PreDecisionHook = Callable[..., Mode | str]


def _takes_handle(callback: Callable[..., Any], arity: int) -> bool:
    """True if callback accepts one more positional argument than arity."""
    try:
        signature = inspect.signature(callback)
    except (TypeError, ValueError):
        return False
    try:
        signature.bind(*range(arity + 1))
    except TypeError:
        return False
    return True


class Rasp:
    """
    Runtime self-protection for one protection domain.

    Owns one PolicyStore and one DecisionEngine; every callable wrapped
    by the same Rasp shares them.

    Usage:
        rasp = Rasp(log_reporter, mode=Mode.BLOCK, rules={"allowRead": ["/srv/*"]})
        listdir = rasp.wrap(os.listdir, "os", "listdir")
        listdir("/srv/data")   # allowed
        listdir("/etc")        # reported, then PolicyDeniedError

    Attributes:
        store: The policy store
        engine: The decision engine
        operations: The operation catalogue used for dispatch and processors
        reporter: Callback receiving trace messages
        pre_decision: Optional verdict override hook
        capture_stack: Whether trace messages include the call stack
    """

    def __init__(
        self,
        reporter: Reporter,
        *,
        mode: Mode | str = Mode.BLOCK,
        rules: Rules | Mapping[str, Any] | None = None,
        pre_decision: PreDecisionHook | None = None,
        operations: OperationTable | None = None,
        capture_stack: bool = True,
    ) -> None:
        """
        Initialize the protection domain.

        Args:
            reporter: Callback receiving one TraceMessage per ALERT/BLOCK verdict;
                called as reporter(message, rasp) when it accepts a second argument
            mode: Initial enforcement mode (default: block)
            rules: Initial rules
            pre_decision: Hook (module, method, args, verdict[, rasp]) -> final verdict
            operations: Operation catalogue (defaults to the built-in one)
            capture_stack: Include the call stack in trace messages

        Raises:
            PolicyConfigError: If the reporter is missing or the policy is invalid
        """
        if reporter is None or not callable(reporter):
            raise PolicyConfigError(
                setting="reporter",
                value=reporter,
                reason="a reporter callback is required",
            )
        if pre_decision is not None and not callable(pre_decision):
            raise PolicyConfigError(
                setting="pre_decision",
                value=pre_decision,
                reason="the pre-decision hook must be callable",
            )

        self.store = PolicyStore(mode, rules)
        self.engine = DecisionEngine(self.store, operations)
        self.reporter = reporter
        self._reporter_takes_handle = _takes_handle(reporter, 1)
        self._hook_takes_handle = pre_decision is not None and _takes_handle(pre_decision, 4)
        self.pre_decision = pre_decision
        self.capture_stack = capture_stack

    @classmethod
    def from_config(
        cls,
        config: Configuration | Mapping[str, Any] | Path | str,
        reporter: Reporter,
        *,
        pre_decision: PreDecisionHook | None = None,
        operations: OperationTable | None = None,
        capture_stack: bool = True,
    ) -> "Rasp":
        """
        Build a Rasp from a configuration.

        Args:
            config: A Configuration, a raw mapping, or a path to a YAML file
            reporter: Callback receiving trace messages
            pre_decision: Optional verdict override hook
            operations: Operation catalogue (defaults to the built-in one)
            capture_stack: Include the call stack in trace messages
        """
        if isinstance(config, (str, Path)):
            config = load_config(config)
        elif not isinstance(config, Configuration):
            config = parse_config(config)

        return cls(
            reporter,
            mode=config.mode,
            rules=config.rules(),
            pre_decision=pre_decision,
            operations=operations,
            capture_stack=capture_stack,
        )

    @property
    def operations(self) -> OperationTable:
        """The operation catalogue."""
        return self.engine.operations

    # =========================================================================
    # Policy control
    # =========================================================================

    @property
    def mode(self) -> Mode:
        """Current enforcement mode."""
        return self.store.mode

    def set_mode(self, mode: Mode | str) -> None:
        """Replace the enforcement mode (applies to later calls)."""
        self.store.set_mode(mode)

    def update_rules(self, rules: Rules | Mapping[str, Any]) -> None:
        """Shallow-merge a partial rule set (applies to later calls)."""
        self.store.update(rules)

    # =========================================================================
    # Query surface
    # =========================================================================

    def is_allowed(self, module: str, method: str, raw_args: Sequence[Any]) -> bool:
        """
        Check whether the rules allow a call, ignoring the global mode.

        Raw arguments are canonicalized with the catalogue's processors
        for the operation.
        """
        args = canonicalize_args(raw_args, self.operations.processors_for(module, method))
        return self.engine.is_allowed(module, method, args)

    def get_mode(self, module: str, method: str, args: Sequence[str]) -> Mode:
        """Return the engine's verdict for already-canonical arguments."""
        return self.engine.decide(module, method, args)

    # =========================================================================
    # Interception
    # =========================================================================

    def wrap(
        self,
        target: F,
        module: str,
        method: str,
        processors: Mapping[int, ArgProcessor] | None = None,
    ) -> F:
        """
        Return a gated version of target.

        Args:
            target: The callable to protect
            module: Module label used for dispatch and reporting
            method: Method label used for dispatch and reporting
            processors: Extra canonicalization overrides; these take
                precedence over the catalogue's processors per position

        Returns:
            A callable with target's signature that enforces the policy
        """
        if not callable(target):
            raise TypeError(f"Cannot wrap non-callable {target!r} as {module}.{method}")

        operation = self.operations.get_optional(module, method)
        merged = {**self.operations.processors_for(module, method), **(processors or {})}

        @functools.wraps(target)
        def gated(*args: Any, **kwargs: Any) -> Any:
            decision_args = operation.fold_keywords(args, kwargs) if operation else args
            canonical = canonicalize_args(decision_args, merged)
            verdict = self.engine.decide(module, method, canonical)
            if self.pre_decision is not None:
                verdict = coerce_mode(self._call_hook(module, method, canonical, verdict))

            if verdict == Mode.ALLOW:
                return target(*args, **kwargs)

            stack = capture_stack(_caller_frame()) if self.capture_stack else None
            self._report(module, method, verdict, canonical, stack)

            if verdict == Mode.ALERT:
                return target(*args, **kwargs)

            raise PolicyDeniedError(module=module, method=method, call_args=list(canonical))

        return gated  # type: ignore[return-value]

    def guard(
        self,
        module: str,
        method: str,
        processors: Mapping[int, ArgProcessor] | None = None,
    ) -> Callable[[F], F]:
        """
        Decorator form of wrap().

        Usage:
            @rasp.guard("subprocess", "run")
            def run(cmd, **kwargs):
                return subprocess.run(cmd, **kwargs)
        """

        def decorator(target: F) -> F:
            return self.wrap(target, module, method, processors)

        return decorator

    def _report(
        self,
        module: str,
        method: str,
        verdict: Mode,
        args: tuple[str, ...],
        stack: list[str] | None,
    ) -> None:
        blocked = verdict == Mode.BLOCK
        logger.debug("Reporting %s.%s (blocked=%s)", module, method, blocked)
        message = build_trace_message(module, method, blocked, args, stack)
        if self._reporter_takes_handle:
            self.reporter(message, self)
        else:
            self.reporter(message)

    def _call_hook(
        self, module: str, method: str, args: tuple[str, ...], verdict: Mode,
    ) -> Mode | str:
        if self._hook_takes_handle:
            return self.pre_decision(module, method, args, verdict, self)
        return self.pre_decision(module, method, args, verdict)


def _caller_frame() -> FrameType | None:
    """Frame of whoever called the gated wrapper."""
    frame = inspect.currentframe()
    # Skip this helper and the wrapper
    for _ in range(2):
        if frame is None:
            return None
        frame = frame.f_back
    return frame
