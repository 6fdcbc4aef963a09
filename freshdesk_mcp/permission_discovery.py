"""Discover what the configured API key can do by probing the live API.

Probes run once at startup, sequentially, with a short pause between them.
Each probe that succeeds unlocks a capability; ``classify`` turns the probe
results into a ``UserPermissions`` record without touching the network.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from freshdesk_mcp.errors import FreshdeskError
from freshdesk_mcp.freshdesk_client import FreshdeskClient
from freshdesk_mcp.permissions import (
    AgentCapability,
    CapabilityMatrix,
    CrudCapability,
    ExportCapability,
    Permission,
    ReadCapability,
    ReadWriteCapability,
    SearchCapability,
    UserPermissions,
    access_level_for,
)

log = logging.getLogger(__name__)

PROBE_DELAY_SECONDS = 0.1


@dataclass(frozen=True)
class Probe:
    endpoint: str
    method: str
    description: str
    payload: dict[str, Any] | None = field(default=None, compare=False)


@dataclass(frozen=True)
class ProbeResult:
    endpoint: str
    method: str
    success: bool
    status_code: int
    error: str | None = None


PROBES: tuple[Probe, ...] = (
    Probe("/agents/me", "GET", "Get current agent info"),
    Probe("/agents", "GET", "List agents"),
    Probe("/tickets", "GET", "List tickets"),
    Probe(
        "/tickets",
        "POST",
        "Create ticket",
        {
            "subject": "Permission Test Ticket",
            "description": "Test",
            "email": "test@example.com",
            "priority": 1,
            "status": 2,
        },
    ),
    Probe("/contacts", "GET", "List contacts"),
    Probe(
        "/contacts",
        "POST",
        "Create contact",
        {"name": "Permission Test Contact", "email": "permtest@example.com"},
    ),
    Probe("/companies", "GET", "List companies"),
    Probe("/companies", "POST", "Create company", {"name": "Permission Test Company"}),
    Probe("/products", "GET", "List products"),
    Probe("/groups", "GET", "List groups"),
    Probe("/solutions/categories", "GET", "List solution categories"),
    Probe(
        "/solutions/categories",
        "POST",
        "Create solution category",
        {"name": "Test Category", "description": "Test"},
    ),
    Probe("/admin/ticket_fields", "GET", "List ticket fields"),
    Probe("/time_entries", "GET", "List time entries"),
    Probe('/search/tickets?query="test"', "GET", "Search tickets"),
    Probe("/reports/helpdesk_productivity", "GET", "Get productivity report"),
    Probe("/automations", "GET", "List automations"),
)

_FAILURE_MESSAGES = {
    403: "Forbidden - insufficient permissions",
    404: "Not found - endpoint may not exist",
    400: "Validation error - invalid test data",
}


def failed_probe(probe: Probe, error: FreshdeskError) -> ProbeResult:
    """Record a probe that the API rejected."""
    status = error.status_code
    if status in _FAILURE_MESSAGES:
        return ProbeResult(probe.endpoint, probe.method, False, status, _FAILURE_MESSAGES[status])
    return ProbeResult(probe.endpoint, probe.method, False, 500, error.message)


def classify(results: Iterable[ProbeResult]) -> UserPermissions:
    """Derive permissions and capabilities from probe results.

    A category is readable (writable) when any successful GET (POST) probe's
    endpoint contains the category path. Deletes are never probed, so
    ``can_delete`` is always False. Access to reports, ticket fields or
    automations is taken as a sign of an admin key.
    """
    results = list(results)

    def can_access(path: str, method: str) -> bool:
        return any(r.success and r.method == method and path in r.endpoint for r in results)

    tickets_read = can_access("/tickets", "GET")
    tickets_write = can_access("/tickets", "POST")
    contacts_read = can_access("/contacts", "GET")
    contacts_write = can_access("/contacts", "POST")
    agents_read = can_access("/agents", "GET")
    agents_write = can_access("/agents", "POST")
    companies_read = can_access("/companies", "GET")
    companies_write = can_access("/companies", "POST")
    conversations_read = can_access("/conversations", "GET")
    conversations_write = can_access("/conversations", "POST")
    products_read = can_access("/products", "GET")
    groups_read = can_access("/groups", "GET")
    custom_fields_read = can_access("/admin/ticket_fields", "GET")
    solutions_read = can_access("/solutions", "GET")
    solutions_write = can_access("/solutions", "POST")
    time_entries_read = can_access("/time_entries", "GET")
    search_enabled = can_access("/search", "GET")
    analytics_read = can_access("/reports", "GET")
    automations_read = can_access("/automations", "GET")

    granted = {
        Permission.TICKETS_READ: tickets_read,
        Permission.TICKETS_WRITE: tickets_write,
        Permission.CONTACTS_READ: contacts_read,
        Permission.CONTACTS_WRITE: contacts_write,
        Permission.AGENTS_READ: agents_read,
        Permission.AGENTS_WRITE: agents_write,
        Permission.COMPANIES_READ: companies_read,
        Permission.COMPANIES_WRITE: companies_write,
        Permission.CONVERSATIONS_READ: conversations_read,
        Permission.CONVERSATIONS_WRITE: conversations_write,
        Permission.PRODUCTS_READ: products_read,
        Permission.GROUPS_READ: groups_read,
        Permission.CUSTOM_FIELDS_READ: custom_fields_read,
        Permission.SOLUTIONS_READ: solutions_read,
        Permission.SOLUTIONS_WRITE: solutions_write,
        Permission.TIME_ENTRIES_READ: time_entries_read,
        Permission.SEARCH: search_enabled,
        Permission.ANALYTICS_READ: analytics_read,
        Permission.AUTOMATIONS_READ: automations_read,
    }

    can_write = tickets_write or contacts_write or companies_write or solutions_write
    can_delete = False
    is_admin = analytics_read or custom_fields_read or automations_read

    capabilities = CapabilityMatrix(
        tickets=CrudCapability(tickets_read, tickets_write, can_delete),
        contacts=CrudCapability(contacts_read, contacts_write, can_delete),
        agents=AgentCapability(agents_read, agents_write, is_admin),
        companies=CrudCapability(companies_read, companies_write, can_delete),
        conversations=ReadWriteCapability(conversations_read, conversations_write),
        products=ReadWriteCapability(products_read, False),
        groups=ReadWriteCapability(groups_read, False),
        custom_fields=ReadWriteCapability(custom_fields_read, False),
        solutions=ReadWriteCapability(solutions_read, solutions_write),
        time_entries=ReadWriteCapability(time_entries_read, False),
        analytics=ReadCapability(analytics_read),
        automations=ReadWriteCapability(automations_read, False),
        export=ExportCapability(data=tickets_read),
        search=SearchCapability(enabled=search_enabled),
    )

    return UserPermissions(
        access_level=access_level_for(can_write, can_delete, is_admin),
        can_write=can_write,
        can_delete=can_delete,
        is_admin=is_admin,
        permissions=frozenset(p for p, ok in granted.items() if ok),
        capabilities=capabilities,
    )


class PermissionDiscoveryService:
    """Runs the probe battery against Freshdesk and caches the outcome."""

    def __init__(
        self,
        client: FreshdeskClient,
        *,
        probes: Iterable[Probe] = PROBES,
        delay: float = PROBE_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        logger: logging.Logger | None = None,
    ) -> None:
        self.client = client
        self.probes = tuple(probes)
        self.delay = delay
        self._sleep = sleep
        self.logger = logger or log
        self._permissions: UserPermissions | None = None

    @property
    def permissions(self) -> UserPermissions | None:
        return self._permissions

    async def discover(self) -> UserPermissions:
        """Probe the API and classify the results. Later calls reuse the first result."""
        if self._permissions is not None:
            return self._permissions

        self.logger.info("Starting permission discovery (%d probes)", len(self.probes))
        results = await self.run_probes()
        self._permissions = classify(results)
        self.logger.info(
            "Permission discovery complete: access_level=%s, %d permissions",
            self._permissions.access_level.value,
            len(self._permissions.permissions),
        )
        return self._permissions

    async def run_probes(self) -> list[ProbeResult]:
        results = []
        for probe in self.probes:
            results.append(await self._run_probe(probe))
            await self._sleep(self.delay)
        return results

    async def _run_probe(self, probe: Probe) -> ProbeResult:
        self.logger.debug("Testing %s %s", probe.method, probe.endpoint)
        try:
            response = await self.client.request(probe.method, probe.endpoint, data=probe.payload)
        except FreshdeskError as e:
            result = failed_probe(probe, e)
            self.logger.debug("%s - %s", probe.description, result.error)
            return result

        self.logger.debug("%s - success", probe.description)
        if probe.method == "POST" and isinstance(response, dict) and "id" in response:
            await self._cleanup(probe, response["id"])
        return ProbeResult(probe.endpoint, probe.method, True, 200)

    async def _cleanup(self, probe: Probe, resource_id: Any) -> None:
        base_endpoint = probe.endpoint.split("?")[0]
        try:
            await self.client.request("DELETE", f"{base_endpoint}/{resource_id}")
        except FreshdeskError as e:
            self.logger.debug("Could not clean up test resource %s: %s", resource_id, e)
            return
        self.logger.debug("Cleaned up test resource %s", resource_id)
