"""
Unit tests for the Decision Engine.

Tests cover:
- Global ALLOW short-circuit
- API allow-list bypass
- Category dispatch through the operation catalogue
- Default-deny for unknown operations and missing subjects
- Rule-only is_allowed view
"""

import pytest

from rasp.operations import Operation, OperationTable
from rasp.policy import DecisionEngine, PolicyStore
from rasp.schema import Category, Mode


def make_engine(mode: Mode = Mode.BLOCK, **rules: list) -> DecisionEngine:
    """Build an engine over a fresh store."""
    return DecisionEngine(PolicyStore(mode, rules))


# =============================================================================
# Global Mode
# =============================================================================


class TestGlobalMode:
    """Mode ALLOW overrides everything."""

    def test_allow_mode_allows_unmatched_call(self) -> None:
        """With no rules at all, ALLOW still allows."""
        engine = make_engine(Mode.ALLOW)
        assert engine.decide("os", "listdir", ["/etc"]) == Mode.ALLOW

    def test_allow_mode_allows_unknown_operation(self) -> None:
        """Even operations missing from the catalogue are allowed."""
        engine = make_engine(Mode.ALLOW)
        assert engine.decide("ctypes", "CDLL", ["libc.so.6"]) == Mode.ALLOW

    @pytest.mark.parametrize("mode", [Mode.BLOCK, Mode.ALERT])
    def test_unmatched_call_returns_mode(self, mode: Mode) -> None:
        """Denied calls get the configured mode as verdict."""
        engine = make_engine(mode, allow_read=["/srv/*"])
        assert engine.decide("os", "listdir", ["/etc"]) == mode

    def test_mode_change_applies_to_next_decision(self) -> None:
        """Decisions read the current mode."""
        engine = make_engine(Mode.ALERT)
        assert engine.decide("os", "listdir", ["/etc"]) == Mode.ALERT
        engine.store.set_mode(Mode.BLOCK)
        assert engine.decide("os", "listdir", ["/etc"]) == Mode.BLOCK


class TestApiAllowList:
    """The API allow-list bypasses pattern checks."""

    def test_api_allowed_regardless_of_args(self) -> None:
        """Listed operations are allowed with any arguments and empty rules."""
        engine = make_engine(allow_api=[{"module": "os", "method": "listdir"}])
        assert engine.decide("os", "listdir", ["/etc/shadow"]) == Mode.ALLOW
        assert engine.decide("os", "listdir", []) == Mode.ALLOW

    def test_api_allow_list_covers_unknown_operations(self) -> None:
        """An operation outside the catalogue can still be allow-listed."""
        engine = make_engine(allow_api=[{"module": "ctypes", "method": "CDLL"}])
        assert engine.decide("ctypes", "CDLL", ["libc.so.6"]) == Mode.ALLOW

    def test_api_allow_list_is_exact(self) -> None:
        """Only the listed pair is exempt."""
        engine = make_engine(allow_api=[{"module": "os", "method": "listdir"}])
        assert engine.decide("os", "scandir", ["/etc"]) == Mode.BLOCK


# =============================================================================
# Category Dispatch
# =============================================================================


class TestCategoryDispatch:
    """Catalogue-driven category checks."""

    def test_read_allowed_in_tmp(self) -> None:
        """allowRead=['*/tmp/*'] allows reading /tmp/x."""
        engine = make_engine(allow_read=["*/tmp/*"])
        assert engine.decide("os", "listdir", ["/tmp/x"]) == Mode.ALLOW

    def test_read_blocked_outside_tmp(self) -> None:
        """allowRead=['*/tmp/*'] blocks reading /etc/x."""
        engine = make_engine(allow_read=["*/tmp/*"])
        assert engine.decide("os", "listdir", ["/etc/x"]) == Mode.BLOCK

    def test_categories_are_independent(self) -> None:
        """A read rule does not allow a write to the same path."""
        engine = make_engine(allow_read=["/tmp/*"])
        assert engine.decide("os", "mkdir", ["/tmp/new"]) == Mode.BLOCK

    @pytest.mark.parametrize(
        ("module", "method", "rule", "subject"),
        [
            ("os", "mkdir", "allow_write", "/tmp/new"),
            ("os", "remove", "allow_delete", "/tmp/old"),
            ("shutil", "rmtree", "allow_delete", "/tmp/old"),
            ("subprocess", "run", "allow_run", "git status"),
            ("os", "system", "allow_run", "git status"),
            ("socket", "getaddrinfo", "allow_net", "example.com"),
            ("socket", "create_connection", "allow_net", "example.com:443"),
            ("urllib.request", "urlopen", "allow_net", "https://example.com/"),
            ("httpx", "get", "allow_net", "https://example.com/"),
            ("pathlib", "Path.read_text", "allow_read", "/tmp/x"),
        ],
    )
    def test_operation_uses_its_category(
        self, module: str, method: str, rule: str, subject: str,
    ) -> None:
        """Each catalogue entry is checked against its own category."""
        engine = make_engine(**{rule: [subject]})
        assert engine.decide(module, method, [subject]) == Mode.ALLOW
        assert engine.decide(module, method, [subject + "-other"]) == Mode.BLOCK

    def test_subject_index(self) -> None:
        """httpx.request matches on its URL argument, not the method."""
        engine = make_engine(allow_net=["https://example.com/*"])
        assert engine.decide("httpx", "request", ["GET", "https://example.com/a"]) == Mode.ALLOW
        assert engine.decide("httpx", "request", ["https://example.com/a", "GET"]) == Mode.BLOCK

    def test_extra_args_ignored_for_matching(self) -> None:
        """Only the subject argument is matched."""
        engine = make_engine(allow_read=["/tmp/*"])
        assert engine.decide("os", "listdir", ["/tmp/x", "/etc/passwd"]) == Mode.ALLOW

    def test_open_read_and_write(self) -> None:
        """open() is allowed once both read and write are allowed."""
        engine = make_engine(allow_read=["*"], allow_write=["*"])
        assert engine.decide("builtins", "open", ["/tmp/x"]) == Mode.ALLOW
        assert engine.decide("builtins", "open", ["/tmp/x", "w"]) == Mode.ALLOW

    def test_open_mode_selects_category(self) -> None:
        """A write mode is checked against allowWrite, not allowRead."""
        engine = make_engine(allow_read=["/tmp/*"])
        assert engine.decide("io", "open", ["/tmp/x", "rb"]) == Mode.ALLOW
        assert engine.decide("builtins", "open", ["/tmp/x", "w"]) == Mode.BLOCK
        assert engine.decide("os", "open", ["/tmp/x", "1"]) == Mode.BLOCK


class TestDefaultDeny:
    """Fail-safe paths."""

    def test_unknown_operation_falls_through(self) -> None:
        """Operations without a catalogue entry are never allowed by rules."""
        engine = make_engine(allow_read=["*"], allow_net=["*"], allow_run=["*"])
        assert engine.decide("os", "chmod", ["/tmp/x"]) == Mode.BLOCK

    def test_unknown_operation_in_alert_mode(self) -> None:
        """Unknown operations get the alert verdict in alert mode."""
        engine = make_engine(Mode.ALERT, allow_read=["*"])
        assert engine.decide("fs", "readFileSync", ["/tmp/x"]) == Mode.ALERT

    def test_missing_subject_denied(self) -> None:
        """A call without the subject argument is not allowed."""
        engine = make_engine(allow_read=["*"])
        assert engine.decide("os", "listdir", []) == Mode.BLOCK

    def test_empty_category_denies(self) -> None:
        """No patterns means no allow."""
        engine = make_engine()
        assert engine.decide("os", "listdir", ["/tmp"]) == Mode.BLOCK

    def test_custom_table_without_entry(self) -> None:
        """An empty catalogue allows nothing through rules."""
        engine = DecisionEngine(PolicyStore(rules={"allowRead": ["*"]}), OperationTable())
        assert engine.decide("os", "listdir", ["/tmp"]) == Mode.BLOCK

    def test_custom_table_entry(self) -> None:
        """Registering an entry is all it takes to support an operation."""
        table = OperationTable()
        table.register(Operation("sqlite3", "connect", Category.WRITE))
        engine = DecisionEngine(PolicyStore(rules={"allowWrite": ["/var/db/*"]}), table)
        assert engine.decide("sqlite3", "connect", ["/var/db/app.db"]) == Mode.ALLOW
        assert engine.decide("sqlite3", "connect", ["/etc/app.db"]) == Mode.BLOCK


class TestIsAllowed:
    """Rule-only view."""

    def test_ignores_global_mode(self) -> None:
        """is_allowed reflects rules, not the ALLOW override."""
        engine = make_engine(Mode.ALLOW)
        assert engine.is_allowed("os", "listdir", ["/etc"]) is False

    def test_api_and_category(self) -> None:
        """API allow-list and category rules both count."""
        engine = make_engine(
            allow_read=["/tmp/*"],
            allow_api=[{"module": "os", "method": "scandir"}],
        )
        assert engine.is_allowed("os", "listdir", ["/tmp/x"]) is True
        assert engine.is_allowed("os", "scandir", ["/etc"]) is True
        assert engine.is_allowed("os", "listdir", ["/etc"]) is False
