"""
Decision Engine for rasp.

Every intercepted call is classified here, one call at a time:

    1. Global mode ALLOW            -> ALLOW
    2. (module, method) in allowApi -> ALLOW
    3. Catalogue entry found and the category for the call allows the subject
       argument                     -> ALLOW
    4. Otherwise                    -> the configured mode (BLOCK or ALERT)

Operations missing from the catalogue never reach step 3, so they
always fall through to step 4.

Security Note:
    This module is security-critical. Changes should be reviewed carefully.
    Rules are evaluated against canonical argument strings only; the
    engine never looks at raw call arguments.
"""

import logging
from collections.abc import Sequence

from rasp.operations import OperationTable, default_operations
from rasp.policy.store import PolicySnapshot, PolicyStore
from rasp.schema import Mode

logger = logging.getLogger(__name__)


class DecisionEngine:
    """
    Central policy evaluator for rasp.

    Usage:
        engine = DecisionEngine(PolicyStore(Mode.BLOCK, {"allowRead": ["*/tmp/*"]}))
        engine.decide("os", "listdir", ["/tmp/x"])   # Mode.ALLOW
        engine.decide("os", "listdir", ["/etc"])     # Mode.BLOCK

    Attributes:
        store: The policy store consulted for every decision
        operations: Catalogue mapping (module, method) to a rule category
    """

    def __init__(
        self,
        store: PolicyStore,
        operations: OperationTable | None = None,
    ) -> None:
        """
        Initialize the engine.

        Args:
            store: The policy store to consult
            operations: Operation catalogue (defaults to the built-in one)
        """
        self.store = store
        self.operations = operations if operations is not None else default_operations()

    def decide(self, module: str, method: str, args: Sequence[str]) -> Mode:
        """
        Compute the verdict for one call.

        Args:
            module: Module label of the operation
            method: Method label of the operation
            args: Canonical arguments of the call

        Returns:
            Mode.ALLOW, or the configured mode when no rule allows the call
        """
        snapshot = self.store.snapshot()

        if snapshot.mode == Mode.ALLOW:
            verdict = Mode.ALLOW
        elif self._is_allowed(snapshot, module, method, args):
            verdict = Mode.ALLOW
        else:
            verdict = snapshot.mode

        logger.debug(
            "Decision %s.%s -> %s (policy version %d)",
            module,
            method,
            verdict.value,
            snapshot.version,
        )
        return verdict

    def is_allowed(self, module: str, method: str, args: Sequence[str]) -> bool:
        """
        Check the rules alone, ignoring the global mode.

        True if the operation is in the API allow-list or its category
        allows the subject argument.
        """
        return self._is_allowed(self.store.snapshot(), module, method, args)

    def _is_allowed(
        self,
        snapshot: PolicySnapshot,
        module: str,
        method: str,
        args: Sequence[str],
    ) -> bool:
        if snapshot.is_api_allowed(module, method):
            return True

        operation = self.operations.get_optional(module, method)
        if operation is None:
            # Unknown operation - never allowed by rules
            return False

        subject = operation.subject(list(args))
        if subject is None:
            return False

        return snapshot.is_category_allowed(operation.category_for(args), subject)
