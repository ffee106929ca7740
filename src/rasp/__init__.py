"""
rasp - Runtime self-protection for Python applications.

rasp sits between application code and sensitive operations (file
access, name resolution, process spawning, outbound network and HTTP)
and decides per call whether the operation proceeds, proceeds with a
reported warning, or is rejected.

It provides:
- Allow-list rules per operation category, with '*' wildcards
- Three enforcement modes: block, alert, allow
- One structured trace message per non-silent decision
- Live reconfiguration from reporters and hooks

Example usage:
    import os
    from rasp import Mode, Rasp, log_reporter

    rasp = Rasp(log_reporter, mode=Mode.BLOCK, rules={"allowRead": ["/srv/app/*"]})
    listdir = rasp.wrap(os.listdir, "os", "listdir")
    listdir("/srv/app/static")
"""

__version__ = "0.1.0"
__author__ = "rasp Contributors"

from rasp.canonical import canonicalize, canonicalize_args
from rasp.dispatcher import Rasp
from rasp.errors import InvalidPatternError, PolicyConfigError, PolicyDeniedError, RaspError
from rasp.matcher import matches
from rasp.operations import Operation, OperationTable, default_operations
from rasp.policy import DecisionEngine, PolicyStore
from rasp.reporting import CollectingReporter, log_reporter
from rasp.schema import (
    Api,
    Category,
    Configuration,
    Mode,
    Rules,
    Trace,
    TraceMessage,
    load_config,
    load_config_from_string,
)

__all__ = [
    "__version__",
    "__author__",
    "Api",
    "Category",
    "CollectingReporter",
    "Configuration",
    "DecisionEngine",
    "InvalidPatternError",
    "Mode",
    "Operation",
    "OperationTable",
    "PolicyConfigError",
    "PolicyDeniedError",
    "PolicyStore",
    "Rasp",
    "RaspError",
    "Rules",
    "Trace",
    "TraceMessage",
    "canonicalize",
    "canonicalize_args",
    "default_operations",
    "load_config",
    "load_config_from_string",
    "log_reporter",
    "matches",
]
