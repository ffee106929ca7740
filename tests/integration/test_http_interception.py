"""
Integration tests for network interception.

Uses httpx.MockTransport so no real network traffic is generated.

Tests cover:
- Gating httpx.Client.send and Client.request on the request URL
- Socket-style address arguments
- Trace contents for blocked requests
"""

import httpx
import pytest

from rasp import CollectingReporter, Mode, PolicyDeniedError, Rasp


@pytest.fixture
def transport_calls() -> list[httpx.Request]:
    """Requests that reached the mock transport."""
    return []


@pytest.fixture
def client(transport_calls: list[httpx.Request]) -> httpx.Client:
    """HTTP client backed by a mock transport."""

    def handler(request: httpx.Request) -> httpx.Response:
        transport_calls.append(request)
        return httpx.Response(200, json={"url": str(request.url)})

    with httpx.Client(transport=httpx.MockTransport(handler)) as c:
        yield c


@pytest.fixture
def rasp(reporter: CollectingReporter) -> Rasp:
    """Rasp allowing only the GitHub API."""
    return Rasp(
        reporter,
        rules={"allowNet": ["https://api.github.com/*", "*.github.com:443"]},
    )


class TestClientSend:
    """Wrapping httpx.Client.send."""

    def test_allowed_request(
        self, rasp: Rasp, client: httpx.Client, transport_calls: list[httpx.Request],
    ) -> None:
        """Allowed URLs reach the transport."""
        send = rasp.wrap(client.send, "httpx", "Client.send")
        response = send(client.build_request("GET", "https://api.github.com/users"))
        assert response.status_code == 200
        assert len(transport_calls) == 1

    def test_blocked_request(
        self,
        rasp: Rasp,
        client: httpx.Client,
        reporter: CollectingReporter,
        transport_calls: list[httpx.Request],
    ) -> None:
        """Blocked URLs never reach the transport and are reported."""
        send = rasp.wrap(client.send, "httpx", "Client.send")
        with pytest.raises(PolicyDeniedError):
            send(client.build_request("POST", "https://evil.example.com/upload"))
        assert transport_calls == []
        trace = reporter.traces[0]
        assert trace.module == "httpx"
        assert trace.method == "Client.send"
        assert trace.args == ["https://evil.example.com/upload"]

    def test_lookalike_host_blocked(self, rasp: Rasp, client: httpx.Client) -> None:
        """A host that merely starts with an allowed name is blocked."""
        send = rasp.wrap(client.send, "httpx", "Client.send")
        with pytest.raises(PolicyDeniedError):
            send(client.build_request("GET", "https://api.github.com.evil.example/x"))


class TestClientRequest:
    """Wrapping httpx.Client.request (URL is argument 1)."""

    def test_method_then_url(
        self, rasp: Rasp, client: httpx.Client, reporter: CollectingReporter,
    ) -> None:
        """The URL argument, not the HTTP method, is matched."""
        request = rasp.wrap(client.request, "httpx", "Client.request")
        assert request("GET", "https://api.github.com/repos").status_code == 200
        with pytest.raises(PolicyDeniedError):
            request("GET", "https://example.com/")
        assert reporter.traces[0].args == ["GET", "https://example.com/"]

    def test_url_object(self, rasp: Rasp, client: httpx.Client) -> None:
        """httpx.URL arguments are rendered to their full URL."""
        request = rasp.wrap(client.request, "httpx", "Client.request")
        response = request("GET", httpx.URL("https://api.github.com/zen"))
        assert response.json() == {"url": "https://api.github.com/zen"}

    def test_alert_mode_lets_request_through(
        self,
        reporter: CollectingReporter,
        client: httpx.Client,
        transport_calls: list[httpx.Request],
    ) -> None:
        """Alert mode reports and still sends."""
        rasp = Rasp(reporter, mode=Mode.ALERT)
        request = rasp.wrap(client.request, "httpx", "Client.request")
        assert request("GET", "https://example.com/").status_code == 200
        assert len(transport_calls) == 1
        assert reporter.traces[0].blocked is False


class TestSocketAddresses:
    """Address arguments of socket-level operations."""

    def test_create_connection_allowed(self, rasp: Rasp) -> None:
        """(host, port) tuples render as host:port."""
        connect = rasp.wrap(lambda address, timeout=None: "connected", "socket", "create_connection")
        assert connect(("api.github.com", 443)) == "connected"

    def test_create_connection_wrong_port(self, rasp: Rasp, reporter: CollectingReporter) -> None:
        connect = rasp.wrap(lambda address: "connected", "socket", "create_connection")
        with pytest.raises(PolicyDeniedError):
            connect(("api.github.com", 22))
        assert reporter.traces[0].args == ["api.github.com:22"]

    def test_name_resolution(self, reporter: CollectingReporter) -> None:
        """Hostnames are matched as plain strings."""
        rasp = Rasp(reporter, rules={"allowNet": ["*.internal"]})
        resolve = rasp.wrap(lambda host, port: [], "socket", "getaddrinfo")
        assert resolve("db.internal", 5432) == []
        with pytest.raises(PolicyDeniedError):
            resolve("example.com", 443)
