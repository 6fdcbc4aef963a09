"""Freshdesk credential handling: domain validation and the auth header."""

import base64
import re

from freshdesk_mcp.config import FreshdeskConfig
from freshdesk_mcp.errors import ConfigurationError

FRESHDESK_SUFFIX = ".freshdesk.com"

_LABEL = r"[a-zA-Z0-9][a-zA-Z0-9-]*[a-zA-Z0-9]"
_LABEL_PATTERN = re.compile(rf"^{_LABEL}$")
_FULL_DOMAIN_PATTERN = re.compile(rf"^{_LABEL}\.freshdesk\.com$")
_IPV4_PATTERN = re.compile(r"^\d+\.\d+\.\d+\.\d+$")


def validate_domain(domain: str) -> None:
    """Raise ConfigurationError unless ``domain`` is a Freshdesk account label.

    Accepted forms are ``yourcompany`` and ``yourcompany.freshdesk.com``.
    """
    if not domain or not domain.strip():
        raise ConfigurationError("Domain is required for Freshdesk authentication")
    if domain.lower() == "localhost" or _IPV4_PATTERN.match(domain):
        raise ConfigurationError(f"Invalid domain {domain!r}: loopback and IP addresses are not allowed")
    if "--" in domain:
        raise ConfigurationError(f"Invalid domain {domain!r}: consecutive hyphens are not allowed")
    if not (_LABEL_PATTERN.match(domain) or _FULL_DOMAIN_PATTERN.match(domain)):
        raise ConfigurationError(
            f"Invalid domain format {domain!r}. Expected format: yourcompany.freshdesk.com or yourcompany"
        )


class Authenticator:
    """Validates credentials and produces the Freshdesk auth header and base URL."""

    def __init__(self, config: FreshdeskConfig) -> None:
        if not config.api_key or not config.api_key.strip():
            raise ConfigurationError("API key is required for Freshdesk authentication")
        validate_domain(config.domain)
        self.api_key = config.api_key
        self.domain = config.domain

    def get_base_url(self) -> str:
        """Get the base URL for Freshdesk API requests."""
        full_domain = self.domain if self.domain.endswith(FRESHDESK_SUFFIX) else f"{self.domain}{FRESHDESK_SUFFIX}"
        return f"https://{full_domain}/api/v2"

    def get_auth_header(self) -> str:
        """Generate the Basic Auth header value (API key as user, "X" as password)."""
        token = base64.b64encode(f"{self.api_key}:X".encode()).decode()
        return f"Basic {token}"

    def validate_api_key(self) -> bool:
        return 0 < len(self.api_key) <= 64

    def mask_api_key(self) -> str:
        if len(self.api_key) <= 8:
            return "****"
        return f"{self.api_key[:4]}...{self.api_key[-4:]}"
