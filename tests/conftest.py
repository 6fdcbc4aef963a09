"""Shared fixtures for the Freshdesk MCP tests."""

import dataclasses
import json

import httpx
import pytest

from freshdesk_mcp.config import FreshdeskConfig
from freshdesk_mcp.freshdesk_client import FreshdeskClient


class FakeClock:
    """Manually advanced replacement for time.time."""

    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def json_response(status_code: int, body=None, headers=None) -> httpx.Response:
    content = b"" if body is None else json.dumps(body).encode()
    return httpx.Response(status_code, content=content, headers=headers or {})


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    return FreshdeskConfig(domain="testco", api_key="abcd1234efgh5678", max_retries=3)


@pytest.fixture
def sleeps():
    """Delays (in seconds) requested by the client instead of actually sleeping."""
    return []


@pytest.fixture
def make_client(config, sleeps):
    """Build a FreshdeskClient whose HTTP traffic goes to ``handler``."""

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    def factory(handler, **overrides):
        client_config = dataclasses.replace(config, **overrides) if overrides else config
        return FreshdeskClient(
            client_config,
            transport=httpx.MockTransport(handler),
            sleep=fake_sleep,
        )

    return factory
