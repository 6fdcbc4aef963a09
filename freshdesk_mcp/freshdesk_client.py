"""Freshdesk API client for making authenticated, rate-limited requests."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from freshdesk_mcp import __version__
from freshdesk_mcp.auth import Authenticator
from freshdesk_mcp.config import FreshdeskConfig
from freshdesk_mcp.errors import (
    ErrorKind,
    FreshdeskError,
    NetworkError,
    error_from_response,
)
from freshdesk_mcp.rate_limiter import RateLimiter, RateLimitInfo

log = logging.getLogger(__name__)

MAX_RETRY_DELAY_MS = 30000
USER_AGENT = f"freshdesk-mcp/{__version__}"


def retry_delay_ms(attempt: int, error: FreshdeskError) -> int:
    """Milliseconds to wait before retry number ``attempt`` (0-indexed).

    A server-supplied retry-after hint wins over exponential backoff. Both are
    capped at 30 seconds.
    """
    retry_after = getattr(error, "retry_after", None)
    if error.kind is ErrorKind.RATE_LIMIT and retry_after:
        return min(retry_after * 1000, MAX_RETRY_DELAY_MS)
    return min(1000 * 2**attempt, MAX_RETRY_DELAY_MS)


def _clean_params(params: dict[str, Any] | None) -> dict[str, Any] | None:
    if not params:
        return None
    cleaned = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        cleaned[key] = value
    return cleaned or None


class FreshdeskClient:
    """Async client for the Freshdesk v2 REST API.

    Every attempt is admitted by the local rate limiter first. Network
    failures, 429s and 5xx responses are retried with backoff up to
    ``config.max_retries`` times; all other failures raise at once.
    """

    def __init__(
        self,
        config: FreshdeskConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        rate_limiter: RateLimiter | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config
        self.authenticator = Authenticator(config)
        self.rate_limiter = rate_limiter or RateLimiter(config.rate_limit_per_minute, 60.0)
        self.logger = logger or log
        self._transport = transport
        self._sleep = sleep
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.authenticator.get_base_url(),
                timeout=self.config.timeout,
                headers={
                    "Authorization": self.authenticator.get_auth_header(),
                    "Content-Type": "application/json",
                    "User-Agent": USER_AGENT,
                },
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _send(
        self,
        method: str,
        path: str,
        data: dict[str, Any] | None,
        params: dict[str, Any] | None,
        headers: dict[str, str] | None,
    ) -> Any:
        self.logger.debug("API request: %s %s params=%s", method, path, params)
        try:
            response = await self.client.request(
                method=method,
                url=path,
                json=data,
                params=params,
                headers=headers,
            )
        except httpx.TimeoutException as e:
            raise NetworkError(f"Request timed out after {self.config.timeout}s") from e
        except httpx.RequestError as e:
            raise NetworkError(str(e) or "Network error occurred") from e

        self.rate_limiter.update_from_headers(response.headers)

        if response.status_code >= 400:
            self.logger.error("API error response: %s %s -> %s", method, path, response.status_code)
            raise error_from_response(response)

        self.logger.debug("API response: %s %s -> %s", method, path, response.status_code)
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            # Maintenance pages and proxies can answer 200 with HTML.
            self.logger.warning("Non-JSON response body from %s %s", method, path)
            return response.text

    async def request(
        self,
        method: str,
        path: str,
        data: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """Make an authenticated request to the Freshdesk API.

        Returns the parsed JSON body, the raw text when a success body is not
        JSON, or None for empty responses. Raises a FreshdeskError subclass on
        failure.
        """
        params = _clean_params(params)
        attempt = 0
        while True:
            # A local RateLimitError is raised here and never retried.
            self.rate_limiter.check_limit()
            try:
                return await self._send(method, path, data, params, headers)
            except FreshdeskError as error:
                if not error.retryable or attempt >= self.config.max_retries:
                    raise
                delay = retry_delay_ms(attempt, error)
                self.logger.info(
                    "Retrying %s %s after %s (retry %d, delay %dms)",
                    method,
                    path,
                    error.code,
                    attempt + 1,
                    delay,
                )
                await self._sleep(delay / 1000)
                attempt += 1

    async def test_connection(self) -> bool:
        """Check the credentials by fetching the current agent."""
        try:
            await self.request("GET", "/agents/me")
        except Exception as e:
            self.logger.error("API connection test failed: %s", e)
            return False
        self.logger.info("API connection test successful")
        return True

    def get_rate_limit_info(self) -> RateLimitInfo:
        return self.rate_limiter.get_info()

    # Tickets
    async def list_tickets(self, params: dict[str, Any] | None = None) -> Any:
        return await self.request("GET", "/tickets", params=params)

    async def get_ticket(self, ticket_id: int, include: str | None = None) -> Any:
        return await self.request("GET", f"/tickets/{ticket_id}", params={"include": include})

    async def create_ticket(self, data: dict[str, Any]) -> Any:
        return await self.request("POST", "/tickets", data=data)

    async def update_ticket(self, ticket_id: int, data: dict[str, Any]) -> Any:
        return await self.request("PUT", f"/tickets/{ticket_id}", data=data)

    async def delete_ticket(self, ticket_id: int) -> Any:
        return await self.request("DELETE", f"/tickets/{ticket_id}")

    async def search_tickets(self, query: str, params: dict[str, Any] | None = None) -> Any:
        return await self.request("GET", "/search/tickets", params={"query": query, **(params or {})})

    # Contacts
    async def list_contacts(self, params: dict[str, Any] | None = None) -> Any:
        return await self.request("GET", "/contacts", params=params)

    async def get_contact(self, contact_id: int) -> Any:
        return await self.request("GET", f"/contacts/{contact_id}")

    async def create_contact(self, data: dict[str, Any]) -> Any:
        return await self.request("POST", "/contacts", data=data)

    async def update_contact(self, contact_id: int, data: dict[str, Any]) -> Any:
        return await self.request("PUT", f"/contacts/{contact_id}", data=data)

    async def delete_contact(self, contact_id: int) -> Any:
        return await self.request("DELETE", f"/contacts/{contact_id}")

    async def search_contacts(self, query: str, params: dict[str, Any] | None = None) -> Any:
        return await self.request("GET", "/search/contacts", params={"query": query, **(params or {})})

    async def merge_contacts(self, primary_contact_id: int, secondary_contact_ids: list[int]) -> Any:
        return await self.request(
            "POST",
            f"/contacts/{primary_contact_id}/merge",
            data={"secondary_contact_ids": secondary_contact_ids},
        )

    # Agents
    async def list_agents(self, params: dict[str, Any] | None = None) -> Any:
        return await self.request("GET", "/agents", params=params)

    async def get_agent(self, agent_id: int) -> Any:
        return await self.request("GET", f"/agents/{agent_id}")

    async def update_agent(self, agent_id: int, data: dict[str, Any]) -> Any:
        return await self.request("PUT", f"/agents/{agent_id}", data=data)

    async def get_current_agent(self) -> Any:
        return await self.request("GET", "/agents/me")

    # Companies
    async def list_companies(self, params: dict[str, Any] | None = None) -> Any:
        return await self.request("GET", "/companies", params=params)

    async def get_company(self, company_id: int) -> Any:
        return await self.request("GET", f"/companies/{company_id}")

    async def create_company(self, data: dict[str, Any]) -> Any:
        return await self.request("POST", "/companies", data=data)

    async def update_company(self, company_id: int, data: dict[str, Any]) -> Any:
        return await self.request("PUT", f"/companies/{company_id}", data=data)

    async def delete_company(self, company_id: int) -> Any:
        return await self.request("DELETE", f"/companies/{company_id}")

    async def search_companies(self, query: str, params: dict[str, Any] | None = None) -> Any:
        return await self.request("GET", "/search/companies", params={"query": query, **(params or {})})

    # Conversations
    async def list_conversations(self, ticket_id: int, params: dict[str, Any] | None = None) -> Any:
        return await self.request("GET", f"/tickets/{ticket_id}/conversations", params=params)

    async def create_reply(self, ticket_id: int, data: dict[str, Any]) -> Any:
        return await self.request("POST", f"/tickets/{ticket_id}/reply", data=data)

    async def create_note(self, ticket_id: int, data: dict[str, Any]) -> Any:
        return await self.request("POST", f"/tickets/{ticket_id}/notes", data=data)

    async def update_conversation(self, ticket_id: int, conversation_id: int, data: dict[str, Any]) -> Any:
        return await self.request("PUT", f"/tickets/{ticket_id}/conversations/{conversation_id}", data=data)

    async def delete_conversation(self, ticket_id: int, conversation_id: int) -> Any:
        return await self.request("DELETE", f"/tickets/{ticket_id}/conversations/{conversation_id}")
