"""Tests for the Freshdesk HTTP client."""

import base64
import json

import httpx
import pytest

from freshdesk_mcp.errors import (
    AuthenticationError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    ServerError,
    ValidationError,
)
from freshdesk_mcp.freshdesk_client import retry_delay_ms

from conftest import json_response


class Recorder:
    """MockTransport handler that replays canned responses and records requests."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


class TestRetryDelay:
    """Tests for the backoff formula."""

    @pytest.mark.parametrize("attempt, expected", [(0, 1000), (1, 2000), (2, 4000), (4, 16000), (10, 30000)])
    def test_exponential_backoff(self, attempt, expected):
        """Backoff doubles from one second up to the 30 second cap."""
        assert retry_delay_ms(attempt, ServerError("boom", status_code=500)) == expected

    @pytest.mark.parametrize("attempt", [0, 1, 5])
    def test_retry_after_wins(self, attempt):
        """retry-after replaces exponential backoff on any attempt."""
        assert retry_delay_ms(attempt, RateLimitError("slow down", retry_after=5)) == 5000

    def test_retry_after_is_capped(self):
        """A large retry-after is capped at 30 seconds."""
        assert retry_delay_ms(0, RateLimitError("slow down", retry_after=120)) == 30000

    def test_rate_limit_without_hint_uses_backoff(self):
        """A 429 without retry-after uses normal backoff."""
        assert retry_delay_ms(2, RateLimitError("slow down")) == 4000


class TestRequest:
    """Tests for request construction and response handling."""

    @pytest.mark.asyncio
    async def test_sends_auth_and_json_headers(self, make_client, config):
        """Requests carry auth, JSON and user-agent headers."""
        recorder = Recorder(json_response(200, {"id": 1}))
        client = make_client(recorder)

        result = await client.request("POST", "/tickets", data={"subject": "Help"})

        assert result == {"id": 1}
        request = recorder.requests[0]
        assert str(request.url) == "https://testco.freshdesk.com/api/v2/tickets"
        expected = base64.b64encode(f"{config.api_key}:X".encode()).decode()
        assert request.headers["authorization"] == f"Basic {expected}"
        assert request.headers["content-type"] == "application/json"
        assert request.headers["user-agent"].startswith("freshdesk-mcp/")
        assert json.loads(request.content) == {"subject": "Help"}

    @pytest.mark.asyncio
    async def test_drops_none_params(self, make_client):
        """None-valued query parameters are not sent."""
        recorder = Recorder(json_response(200, []))
        client = make_client(recorder)

        await client.list_tickets({"page": 2, "per_page": None, "filter": "spam"})

        assert dict(recorder.requests[0].url.params) == {"page": "2", "filter": "spam"}

    @pytest.mark.asyncio
    async def test_empty_response_returns_none(self, make_client):
        """A 204 response returns None."""
        client = make_client(Recorder(httpx.Response(204)))
        assert await client.delete_ticket(5) is None

    @pytest.mark.asyncio
    async def test_headers_resync_rate_limiter(self, make_client):
        """Rate-limit headers update the local limiter."""
        headers = {"x-ratelimit-total": "50", "x-ratelimit-remaining": "12"}
        client = make_client(Recorder(json_response(200, [], headers)))

        await client.list_agents()

        assert client.get_rate_limit_info().remaining == 12

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, make_client):
        """Closing twice is harmless."""
        client = make_client(Recorder(json_response(200, {})))
        await client.get_current_agent()
        await client.close()
        await client.close()

    @pytest.mark.asyncio
    async def test_non_json_success_body_returns_text(self, make_client):
        """A 200 with an HTML body is returned as text instead of failing to parse."""
        html_page = httpx.Response(200, content=b"<html>maintenance</html>", headers={"content-type": "text/html"})
        client = make_client(Recorder(html_page))

        assert await client.request("GET", "/products") == "<html>maintenance</html>"


class TestRetries:
    """Tests for the retry policy."""

    @pytest.mark.asyncio
    async def test_429_then_200_retries_once(self, make_client, sleeps):
        """A 429 with retry-after is retried once and the 200 body surfaces."""
        recorder = Recorder(
            json_response(429, {"message": "Too many"}, {"retry-after": "2"}),
            json_response(200, {"id": 42}),
        )
        client = make_client(recorder)

        result = await client.get_ticket(42)

        assert result == {"id": 42}
        assert len(recorder.requests) == 2
        assert sleeps == [2.0]

    @pytest.mark.asyncio
    async def test_server_errors_back_off_then_give_up(self, make_client, sleeps):
        """5xx is retried max_retries times and the last error is raised."""
        recorder = Recorder(json_response(503))
        client = make_client(recorder)

        with pytest.raises(ServerError) as exc_info:
            await client.list_tickets()

        assert exc_info.value.status_code == 503
        assert len(recorder.requests) == 4
        assert sleeps == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_network_error_is_retried(self, make_client, sleeps):
        """A connection failure is retried after one second."""
        recorder = Recorder(httpx.ConnectError("connection refused"), json_response(200, []))
        client = make_client(recorder)

        assert await client.list_contacts() == []
        assert sleeps == [1.0]

    @pytest.mark.asyncio
    async def test_timeout_becomes_network_error(self, make_client):
        """A timeout is reported as a network error."""
        client = make_client(Recorder(httpx.ReadTimeout("timed out")), max_retries=0)
        with pytest.raises(NetworkError, match="timed out"):
            await client.list_contacts()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status, error_type",
        [(400, ValidationError), (401, AuthenticationError), (404, NotFoundError)],
    )
    async def test_client_errors_are_not_retried(self, make_client, sleeps, status, error_type):
        """4xx responses raise at once without sleeping."""
        recorder = Recorder(json_response(status))
        client = make_client(recorder)

        with pytest.raises(error_type):
            await client.get_contact(1)

        assert len(recorder.requests) == 1
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_local_rate_limit_fails_without_network(self, make_client, sleeps):
        """An exhausted local window raises before any request is sent."""
        recorder = Recorder(json_response(200, []))
        client = make_client(recorder, rate_limit_per_minute=1)

        await client.list_companies()
        with pytest.raises(RateLimitError):
            await client.list_companies()

        assert len(recorder.requests) == 1
        assert sleeps == []


class TestConnection:
    """Tests for test_connection."""

    @pytest.mark.asyncio
    async def test_success(self, make_client):
        """A successful /agents/me call means the connection works."""
        recorder = Recorder(json_response(200, {"id": 1}))
        client = make_client(recorder)
        assert await client.test_connection() is True
        assert recorder.requests[0].url.path == "/api/v2/agents/me"

    @pytest.mark.asyncio
    async def test_failure_returns_false(self, make_client):
        """An API error during the check returns False."""
        client = make_client(Recorder(json_response(401)))
        assert await client.test_connection() is False

    @pytest.mark.asyncio
    async def test_unexpected_error_returns_false(self, make_client):
        """Errors outside the Freshdesk taxonomy also mean the check failed."""
        client = make_client(Recorder(RuntimeError("transport bug")))
        assert await client.test_connection() is False

    @pytest.mark.asyncio
    async def test_html_success_page_counts_as_reachable(self, make_client):
        """A 200 with a non-JSON body does not break the check."""
        client = make_client(Recorder(httpx.Response(200, content=b"<html>ok</html>")))
        assert await client.test_connection() is True


class TestResourceMethods:
    """Spot checks that resource helpers hit the right endpoints."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "call, method, path",
        [
            (lambda c: c.search_tickets("status:2"), "GET", "/api/v2/search/tickets"),
            (lambda c: c.merge_contacts(1, [2, 3]), "POST", "/api/v2/contacts/1/merge"),
            (lambda c: c.update_agent(9, {"occasional": True}), "PUT", "/api/v2/agents/9"),
            (lambda c: c.search_companies("name:'Acme'"), "GET", "/api/v2/search/companies"),
            (lambda c: c.create_reply(7, {"body": "hi"}), "POST", "/api/v2/tickets/7/reply"),
            (lambda c: c.create_note(7, {"body": "hi"}), "POST", "/api/v2/tickets/7/notes"),
            (lambda c: c.delete_conversation(7, 3), "DELETE", "/api/v2/tickets/7/conversations/3"),
        ],
    )
    async def test_endpoints(self, make_client, call, method, path):
        """Resource helpers use the expected method and path."""
        recorder = Recorder(json_response(200, {}))
        client = make_client(recorder)

        await call(client)

        assert recorder.requests[0].method == method
        assert recorder.requests[0].url.path == path

    @pytest.mark.asyncio
    async def test_merge_sends_secondary_ids(self, make_client):
        """Merge posts the secondary contact ids."""
        recorder = Recorder(json_response(200, {}))
        client = make_client(recorder)

        await client.merge_contacts(1, [2, 3])

        assert json.loads(recorder.requests[0].content) == {"secondary_contact_ids": [2, 3]}
