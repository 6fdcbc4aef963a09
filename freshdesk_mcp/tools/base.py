"""Shared plumbing for Freshdesk MCP tools."""

import json
import logging
from typing import Annotated, Any, ClassVar

import pydantic
from mcp import types
from pydantic import BaseModel, ConfigDict, Field

from freshdesk_mcp.errors import FreshdeskError, ToolPermissionError, ValidationError
from freshdesk_mcp.freshdesk_client import FreshdeskClient
from freshdesk_mcp.permissions import AccessLevel, Permission, ToolPermission, UserPermissions

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

Email = Annotated[str, Field(pattern=EMAIL_PATTERN, json_schema_extra={"format": "email"})]
Page = Annotated[int, Field(ge=1, description="Page number (default: 1)")]
PerPage = Annotated[int, Field(ge=1, le=100, description="Items per page (default: 30, max: 100)")]


class ToolParams(BaseModel):
    """Base for the ``params`` object of a tool call. Unknown keys are rejected."""

    model_config = ConfigDict(extra="forbid")


def write_permission(resource: Permission, description: str) -> ToolPermission:
    return ToolPermission(AccessLevel.WRITE, (resource,), description)


class BaseTool:
    """A single MCP tool backed by the Freshdesk client.

    Subclasses set ``name``, ``description``, ``args_model`` and ``permission``
    and implement ``execute``. Actions listed in ``action_permissions`` need
    more than the tool-level permission to run.
    """

    name: ClassVar[str]
    description: ClassVar[str]
    args_model: ClassVar[type[BaseModel]]
    permission: ClassVar[ToolPermission] = ToolPermission()
    action_permissions: ClassVar[dict[str, ToolPermission]] = {}

    def __init__(self, client: FreshdeskClient, logger: logging.Logger | None = None) -> None:
        self.client = client
        self.logger = logger or logging.getLogger(f"{__name__}.{self.name}")

    @property
    def input_schema(self) -> dict[str, Any]:
        return self.args_model.model_json_schema()

    @property
    def actions(self) -> list[str]:
        annotation = self.args_model.model_fields["action"].annotation
        return list(getattr(annotation, "__args__", ()))

    def descriptor(self) -> types.Tool:
        return types.Tool(name=self.name, description=self.description, inputSchema=self.input_schema)

    def is_available_for(self, user: UserPermissions) -> bool:
        return self.permission.is_satisfied_by(user)

    def missing_permissions(self, user: UserPermissions) -> list[str]:
        return self.permission.missing_permissions(user)

    def missing_action_permissions(self, action: str, user: UserPermissions) -> list[str]:
        """Everything ``user`` lacks to run ``action``, tool-level requirements included."""
        missing = self.permission.missing_permissions(user)
        extra = self.action_permissions.get(action)
        if extra is not None:
            missing.extend(m for m in extra.missing_permissions(user) if m not in missing)
        return missing

    async def run(self, arguments: dict[str, Any] | None, user: UserPermissions) -> str:
        """Validate arguments, gate the action, execute and format the result.

        API and validation failures come back as a JSON error payload. A gated
        action raises ``ToolPermissionError``.
        """
        try:
            args = self.args_model.model_validate(arguments or {})
        except pydantic.ValidationError as e:
            return self.format_error(ValidationError(_validation_message(e)))

        action = getattr(args, "action", None)
        if action is not None:
            missing = self.missing_action_permissions(action, user)
            if missing:
                raise ToolPermissionError(f"{self.name}.{action}", missing)

        try:
            result = await self.execute(args)
        except FreshdeskError as e:
            return self.format_error(e)
        except Exception as e:
            self.logger.exception("Unexpected error in %s", self.name)
            return self.format_error(e)
        return self.format_response(result)

    async def execute(self, args: Any) -> Any:
        raise NotImplementedError

    def format_response(self, data: Any) -> str:
        return json.dumps(data, indent=2, default=str)

    def format_error(self, error: Exception) -> str:
        self.logger.error("Error in %s: %s", self.name, error)
        payload: dict[str, Any] = {
            "error": True,
            "message": str(error) or "An unknown error occurred",
            "code": getattr(error, "code", None) or "UNKNOWN_ERROR",
        }
        if isinstance(error, FreshdeskError):
            # statusCode, field, per-field errors and retryAfter when known.
            details = error.to_dict()
            details.pop("name", None)
            payload.update(details)
        return json.dumps(payload, indent=2)


def _validation_message(error: pydantic.ValidationError) -> str:
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "arguments"
        problems.append(f"{location}: {item['msg']}")
    return "Invalid arguments - " + "; ".join(problems)


def require(params: BaseModel, field_name: str, action: str) -> Any:
    """Return ``params.<field_name>`` or raise if the action needs it and it is unset."""
    value = getattr(params, field_name)
    if value is None or value == []:
        raise ValidationError(f"{field_name} is required for {action} action", field=field_name)
    return value
