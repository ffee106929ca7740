"""
Trace reporting for rasp.

A reporter is a host-supplied callable that receives one TraceMessage
per non-silent verdict (ALERT or BLOCK). Transporting messages anywhere
beyond the process is the reporter's business; this module only builds
the messages and ships two ready-made reporters:

    - log_reporter: one JSON log line per message on the "rasp.trace" logger
    - CollectingReporter: keeps messages in memory (tests, diagnostics)
"""

import json
import logging
import os
import platform
import time
import traceback
from collections.abc import Callable, Sequence
from types import FrameType

from rasp.schema import Trace, TraceMessage

# reporter(message) or reporter(message, rasp)
Reporter = Callable[..., None]

TRACE_LOGGER_NAME = "rasp.trace"

trace_logger = logging.getLogger(TRACE_LOGGER_NAME)


def capture_stack(frame: FrameType | None) -> list[str]:
    """
    Describe the call stack starting at frame, most recent call first.

    Each line reads "<file>:<line> in <function>".
    """
    if frame is None:
        return []
    summary = traceback.extract_stack(frame)
    return [f"{entry.filename}:{entry.lineno} in {entry.name}" for entry in reversed(summary)]


def build_trace_message(
    module: str,
    method: str,
    blocked: bool,
    args: Sequence[str],
    stack_trace: list[str] | None = None,
) -> TraceMessage:
    """Build the trace message for one decision."""
    return TraceMessage(
        pid=os.getpid(),
        runtime=platform.python_implementation().lower(),
        runtime_version=platform.python_version(),
        time=int(time.time() * 1000),
        data=Trace(
            module=module,
            method=method,
            blocked=blocked,
            args=list(args),
            stack_trace=stack_trace,
        ),
    )


def log_reporter(message: TraceMessage) -> None:
    """Emit a trace message as a JSON log line (WARNING if blocked, else INFO)."""
    level = logging.WARNING if message.data.blocked else logging.INFO
    trace_logger.log(level, json.dumps(message.to_dict(), sort_keys=True))


class CollectingReporter:
    """
    Reporter that keeps every trace message it receives.

    Usage:
        reporter = CollectingReporter()
        rasp = Rasp(reporter, mode=Mode.ALERT)
        ...
        reporter.messages[-1].data.blocked
    """

    def __init__(self) -> None:
        self.messages: list[TraceMessage] = []

    def __call__(self, message: TraceMessage) -> None:
        self.messages.append(message)

    @property
    def traces(self) -> list[Trace]:
        """The decision records of all collected messages."""
        return [message.data for message in self.messages]

    def clear(self) -> None:
        """Forget all collected messages."""
        self.messages.clear()

    def __len__(self) -> int:
        return len(self.messages)
