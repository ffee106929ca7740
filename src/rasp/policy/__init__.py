"""
Policy module for rasp.

Holds the policy state and classifies intercepted calls against it.

Key concepts:
    - PolicyStore: Current mode and rules, updated by atomic snapshot swaps
    - PolicySnapshot: One immutable policy version used by one decision
    - DecisionEngine: Turns (module, method, canonical args) into a verdict

Unknown operations and empty categories never allow a call; the
configured mode decides what happens to it.
"""

from rasp.policy.engine import DecisionEngine
from rasp.policy.store import PolicySnapshot, PolicyStore, coerce_mode

__all__ = [
    "DecisionEngine",
    "PolicySnapshot",
    "PolicyStore",
    "coerce_mode",
]
