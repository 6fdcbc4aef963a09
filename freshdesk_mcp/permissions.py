"""Permission model: access levels, permission tokens and the capability matrix."""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any


class AccessLevel(str, Enum):
    """Coarse access level derived from discovered capabilities."""

    READ = "read"
    WRITE = "write"
    DELETE = "delete"
    ADMIN = "admin"

    @property
    def rank(self) -> int:
        return _ACCESS_RANK[self]


_ACCESS_RANK = {
    AccessLevel.READ: 0,
    AccessLevel.WRITE: 1,
    AccessLevel.DELETE: 2,
    AccessLevel.ADMIN: 3,
}


class Permission(str, Enum):
    TICKETS_READ = "tickets:read"
    TICKETS_WRITE = "tickets:write"
    TICKETS_DELETE = "tickets:delete"

    CONTACTS_READ = "contacts:read"
    CONTACTS_WRITE = "contacts:write"
    CONTACTS_DELETE = "contacts:delete"

    AGENTS_READ = "agents:read"
    AGENTS_WRITE = "agents:write"
    AGENTS_ADMIN = "agents:admin"

    COMPANIES_READ = "companies:read"
    COMPANIES_WRITE = "companies:write"
    COMPANIES_DELETE = "companies:delete"

    CONVERSATIONS_READ = "conversations:read"
    CONVERSATIONS_WRITE = "conversations:write"

    PRODUCTS_READ = "products:read"
    PRODUCTS_WRITE = "products:write"

    GROUPS_READ = "groups:read"
    GROUPS_WRITE = "groups:write"

    CUSTOM_FIELDS_READ = "custom_fields:read"
    CUSTOM_FIELDS_WRITE = "custom_fields:write"

    SOLUTIONS_READ = "solutions:read"
    SOLUTIONS_WRITE = "solutions:write"

    TIME_ENTRIES_READ = "time_entries:read"
    TIME_ENTRIES_WRITE = "time_entries:write"

    ANALYTICS_READ = "analytics:read"

    AUTOMATIONS_READ = "automations:read"
    AUTOMATIONS_WRITE = "automations:write"

    EXPORT_DATA = "export:data"
    SEARCH = "search"


@dataclass(frozen=True)
class CrudCapability:
    read: bool = False
    write: bool = False
    delete: bool = False


@dataclass(frozen=True)
class AgentCapability:
    read: bool = False
    write: bool = False
    admin: bool = False


@dataclass(frozen=True)
class ReadWriteCapability:
    read: bool = False
    write: bool = False


@dataclass(frozen=True)
class ReadCapability:
    read: bool = False


@dataclass(frozen=True)
class ExportCapability:
    data: bool = False


@dataclass(frozen=True)
class SearchCapability:
    enabled: bool = False


@dataclass(frozen=True)
class CapabilityMatrix:
    """What the credential can do, one fixed-shape record per resource category."""

    tickets: CrudCapability = field(default_factory=CrudCapability)
    contacts: CrudCapability = field(default_factory=CrudCapability)
    agents: AgentCapability = field(default_factory=AgentCapability)
    companies: CrudCapability = field(default_factory=CrudCapability)
    conversations: ReadWriteCapability = field(default_factory=ReadWriteCapability)
    products: ReadWriteCapability = field(default_factory=ReadWriteCapability)
    groups: ReadWriteCapability = field(default_factory=ReadWriteCapability)
    custom_fields: ReadWriteCapability = field(default_factory=ReadWriteCapability)
    solutions: ReadWriteCapability = field(default_factory=ReadWriteCapability)
    time_entries: ReadWriteCapability = field(default_factory=ReadWriteCapability)
    analytics: ReadCapability = field(default_factory=ReadCapability)
    automations: ReadWriteCapability = field(default_factory=ReadWriteCapability)
    export: ExportCapability = field(default_factory=ExportCapability)
    search: SearchCapability = field(default_factory=SearchCapability)

    def to_dict(self) -> dict[str, dict[str, bool]]:
        return asdict(self)


@dataclass(frozen=True)
class UserPermissions:
    """Permissions discovered (or assumed) for the configured API key."""

    access_level: AccessLevel
    can_write: bool
    can_delete: bool
    is_admin: bool
    permissions: frozenset[Permission]
    capabilities: CapabilityMatrix

    @property
    def is_read_only(self) -> bool:
        return not self.can_write

    def has(self, permission: Permission) -> bool:
        return permission in self.permissions

    def to_dict(self) -> dict[str, Any]:
        return {
            "access_level": self.access_level.value,
            "is_read_only": self.is_read_only,
            "can_write": self.can_write,
            "can_delete": self.can_delete,
            "is_admin": self.is_admin,
            "permissions": sorted(p.value for p in self.permissions),
            "capabilities": self.capabilities.to_dict(),
        }


@dataclass(frozen=True)
class ToolPermission:
    """What a tool (or one of its actions) needs before it may run."""

    minimum_access_level: AccessLevel = AccessLevel.READ
    required_permissions: tuple[Permission, ...] = ()
    description: str = ""

    def missing_permissions(self, user: UserPermissions) -> list[str]:
        """Tokens the user lacks, plus ``access_level:<level>`` on a rank shortfall."""
        missing = []
        if user.access_level.rank < self.minimum_access_level.rank:
            missing.append(f"access_level:{self.minimum_access_level.value}")
        missing.extend(p.value for p in self.required_permissions if p not in user.permissions)
        return missing

    def is_satisfied_by(self, user: UserPermissions) -> bool:
        return not self.missing_permissions(user)

    def to_dict(self) -> dict[str, Any]:
        return {
            "minimum_access_level": self.minimum_access_level.value,
            "required_permissions": [p.value for p in self.required_permissions],
            "description": self.description,
        }


def access_level_for(can_write: bool, can_delete: bool, is_admin: bool) -> AccessLevel:
    if is_admin:
        return AccessLevel.ADMIN
    if can_delete:
        return AccessLevel.DELETE
    if can_write:
        return AccessLevel.WRITE
    return AccessLevel.READ


def default_permissions() -> UserPermissions:
    """Conservative permissions used when discovery is skipped or fails."""
    return UserPermissions(
        access_level=AccessLevel.WRITE,
        can_write=True,
        can_delete=False,
        is_admin=False,
        permissions=frozenset(
            {
                Permission.TICKETS_READ,
                Permission.TICKETS_WRITE,
                Permission.CONTACTS_READ,
                Permission.CONTACTS_WRITE,
                Permission.AGENTS_READ,
                Permission.COMPANIES_READ,
                Permission.CONVERSATIONS_READ,
                Permission.SEARCH,
            }
        ),
        capabilities=CapabilityMatrix(
            tickets=CrudCapability(read=True, write=True),
            contacts=CrudCapability(read=True, write=True),
            agents=AgentCapability(read=True),
            companies=CrudCapability(read=True),
            conversations=ReadWriteCapability(read=True),
            products=ReadWriteCapability(read=True),
            groups=ReadWriteCapability(read=True),
            solutions=ReadWriteCapability(read=True),
            export=ExportCapability(data=True),
            search=SearchCapability(enabled=True),
        ),
    )
