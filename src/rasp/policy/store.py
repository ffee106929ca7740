"""
Policy Store for rasp.

Holds the enforcement mode and the rule lists for one protection
domain. Every change installs a new immutable PolicySnapshot, so a
decision that took a snapshot keeps seeing exactly one policy version
even if a reporter or hook reconfigures the store while it runs.

Update semantics:
    - set_mode() replaces the mode
    - update() is a shallow merge: categories present in the update
      replace the previous list, absent categories are untouched
    - Everything is validated (and every pattern compiled) before the
      new snapshot is installed; a rejected update changes nothing
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from rasp.errors import PolicyConfigError
from rasp.matcher import matches_any
from rasp.schema import Category, Configuration, Mode, Rules

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PolicySnapshot:
    """
    One immutable version of the policy.

    Attributes:
        mode: Enforcement mode
        rules: Category allow-lists and API allow-list
        version: Incremented on every change, starting at 1
    """

    mode: Mode
    rules: Rules
    version: int = 1

    def is_api_allowed(self, module: str, method: str) -> bool:
        """Exact (module, method) membership in the API allow-list."""
        return any(
            api.module == module and api.method == method
            for api in self.rules.allow_api
        )

    def is_category_allowed(self, category: Category, subject: str) -> bool:
        """True if any pattern in the category's list matches the subject."""
        return matches_any(subject, self.rules.patterns(category))


def coerce_mode(value: Mode | str) -> Mode:
    """
    Convert a mode value or its string form into a Mode.

    Raises:
        PolicyConfigError: If the value is not a known mode
    """
    if isinstance(value, Mode):
        return value
    try:
        return Mode(value)
    except ValueError as e:
        raise PolicyConfigError(
            setting="mode",
            value=value,
            reason=f"expected one of {[m.value for m in Mode]}",
        ) from e


class PolicyStore:
    """
    Mutable holder of the current policy snapshot.

    Usage:
        store = PolicyStore(Mode.ALERT, {"allowRead": ["/srv/app/*"]})
        store.update({"allowNet": ["*.example.com:443"]})
        store.set_mode(Mode.BLOCK)
        store.is_category_allowed(Category.READ, "/srv/app/config.yaml")
    """

    def __init__(
        self,
        mode: Mode | str = Mode.BLOCK,
        rules: Rules | Mapping[str, Any] | None = None,
    ) -> None:
        """
        Initialize the store.

        Args:
            mode: Initial enforcement mode (default: block)
            rules: Initial rules (default: all categories empty)

        Raises:
            PolicyConfigError: If the mode or rules are invalid
        """
        initial_rules = self._validate_rules(rules) if rules is not None else Rules()
        self._snapshot = PolicySnapshot(mode=coerce_mode(mode), rules=initial_rules)

    # =========================================================================
    # Reading
    # =========================================================================

    def snapshot(self) -> PolicySnapshot:
        """Return the current policy version."""
        return self._snapshot

    @property
    def mode(self) -> Mode:
        """Current enforcement mode."""
        return self._snapshot.mode

    @property
    def rules(self) -> Rules:
        """Current rules."""
        return self._snapshot.rules

    def get_mode(self) -> Mode:
        """Return the current enforcement mode."""
        return self._snapshot.mode

    def is_api_allowed(self, module: str, method: str) -> bool:
        """Exact (module, method) membership in the API allow-list."""
        return self._snapshot.is_api_allowed(module, method)

    def is_category_allowed(self, category: Category, subject: str) -> bool:
        """True if any pattern in the category's list matches the subject."""
        return self._snapshot.is_category_allowed(category, subject)

    # =========================================================================
    # Updating
    # =========================================================================

    def set_mode(self, mode: Mode | str) -> None:
        """
        Replace the enforcement mode.

        Affects only decisions that start after this returns.

        Raises:
            PolicyConfigError: If the mode is invalid
        """
        new_mode = coerce_mode(mode)
        current = self._snapshot
        if new_mode == current.mode:
            return
        self._snapshot = PolicySnapshot(
            mode=new_mode,
            rules=current.rules,
            version=current.version + 1,
        )
        logger.info("Policy mode changed: %s -> %s", current.mode.value, new_mode.value)

    def update(self, rules: Rules | Mapping[str, Any]) -> None:
        """
        Shallow-merge a partial rule set into the policy.

        A mapping may use camelCase or snake_case keys and may also carry
        a "mode" entry. A Configuration carries its mode only if it was
        set explicitly.

        Raises:
            PolicyConfigError: If any part of the update is invalid
        """
        new_mode: Mode | None = None
        if isinstance(rules, Configuration):
            if "mode" in rules.model_fields_set:
                new_mode = rules.mode
            partial = rules.rules()
        elif isinstance(rules, Rules):
            partial = rules
        else:
            data = dict(rules)
            if "mode" in data:
                new_mode = coerce_mode(data.pop("mode"))
            partial = self._validate_rules(data)

        current = self._snapshot
        changed = {name: getattr(partial, name) for name in partial.model_fields_set}
        self._snapshot = PolicySnapshot(
            mode=new_mode if new_mode is not None else current.mode,
            rules=current.rules.model_copy(update=changed),
            version=current.version + 1,
        )
        logger.info(
            "Policy rules updated: %s (version %d)",
            ", ".join(sorted(changed)) or "no categories",
            self._snapshot.version,
        )
        if new_mode is not None and new_mode != current.mode:
            logger.info("Policy mode changed: %s -> %s", current.mode.value, new_mode.value)

    @staticmethod
    def _validate_rules(rules: Rules | Mapping[str, Any]) -> Rules:
        if isinstance(rules, Configuration):
            return rules.rules()
        if isinstance(rules, Rules):
            return rules
        try:
            return Rules.model_validate(dict(rules))
        except ValidationError as e:
            raise PolicyConfigError(setting="rules", value=rules, reason=str(e)) from e
