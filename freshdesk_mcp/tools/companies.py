"""Company tools for Freshdesk MCP Server."""

from datetime import date
from typing import Any, Literal

from pydantic import BaseModel, Field

from freshdesk_mcp.permissions import AccessLevel, Permission, ToolPermission
from freshdesk_mcp.tools.base import BaseTool, Page, PerPage, ToolParams, require, write_permission

COMPANY_FIELDS = {
    "name",
    "domains",
    "description",
    "note",
    "health_score",
    "account_tier",
    "renewal_date",
    "industry",
    "custom_fields",
}


class CompanyParams(ToolParams):
    name: str | None = Field(None, description="Name of the company")
    domains: list[str] | None = Field(None, description="Domains associated with the company")
    description: str | None = Field(None, description="Description of the company")
    note: str | None = Field(None, description="Any notes about the company")
    health_score: str | None = Field(None, description="Health score of the company")
    account_tier: Literal["Basic", "Premium", "Enterprise"] | None = Field(None, description="Account tier")
    renewal_date: date | None = Field(None, description="Renewal date")
    industry: str | None = Field(None, description="Industry the company belongs to")
    custom_fields: dict[str, Any] | None = Field(None, description="Custom fields as key-value pairs")

    company_id: int | None = Field(None, description="ID of the company (update, get, delete)")

    page: Page | None = None
    per_page: PerPage | None = None

    query: str | None = Field(None, description="Search query string")
    filter_name: str | None = Field(None, description="Filter listed companies by name (case-insensitive)")


class CompaniesManageArgs(BaseModel):
    action: Literal["create", "update", "list", "get", "delete", "search"] = Field(
        description="Action to perform on companies"
    )
    params: CompanyParams = Field(default_factory=CompanyParams, description="Parameters for the action")


class CompaniesTool(BaseTool):
    name = "companies_manage"
    description = "Manage Freshdesk companies - create, update, list, get, delete, and search companies"
    args_model = CompaniesManageArgs
    permission = ToolPermission(AccessLevel.READ, (Permission.COMPANIES_READ,), "Company management capabilities")
    action_permissions = {
        action: write_permission(Permission.COMPANIES_WRITE, f"Company {action} requires write access")
        for action in ("create", "update", "delete")
    }

    async def execute(self, args: CompaniesManageArgs) -> Any:
        params = args.params
        handlers = {
            "create": self.create_company,
            "update": self.update_company,
            "list": self.list_companies,
            "get": self.get_company,
            "delete": self.delete_company,
            "search": self.search_companies,
        }
        return await handlers[args.action](params)

    async def create_company(self, params: CompanyParams) -> dict[str, Any]:
        data = params.model_dump(mode="json", include=COMPANY_FIELDS, exclude_none=True)
        company = await self.client.create_company(data)
        return {"message": "Company created successfully", "company": company}

    async def update_company(self, params: CompanyParams) -> dict[str, Any]:
        company_id = require(params, "company_id", "update")
        data = params.model_dump(mode="json", include=COMPANY_FIELDS, exclude_none=True)
        company = await self.client.update_company(company_id, data)
        return {"message": "Company updated successfully", "company": company}

    async def list_companies(self, params: CompanyParams) -> dict[str, Any]:
        companies = await self.client.list_companies({"page": params.page, "per_page": params.per_page})
        companies = companies or []
        if params.filter_name:
            needle = params.filter_name.lower()
            companies = [c for c in companies if needle in (c.get("name") or "").lower()]
        return {"message": f"Found {len(companies)} companies", "companies": companies}

    async def get_company(self, params: CompanyParams) -> dict[str, Any]:
        company = await self.client.get_company(require(params, "company_id", "get"))
        return {"message": "Company retrieved successfully", "company": company}

    async def delete_company(self, params: CompanyParams) -> dict[str, Any]:
        company_id = require(params, "company_id", "delete")
        await self.client.delete_company(company_id)
        return {"message": "Company deleted successfully", "company_id": company_id}

    async def search_companies(self, params: CompanyParams) -> dict[str, Any]:
        query = require(params, "query", "search")
        results = await self.client.search_companies(query, {"page": params.page, "per_page": params.per_page})
        found = len((results or {}).get("results") or [])
        return {"message": f"Found {found} companies matching query", "search_results": results}
