"""
Pydantic models for API contracts.

Field names follow the public JSON contract (camelCase for the federation
search body). Filter objects are accepted loosely here and validated by
``filters.parse_filter``, which raises InvalidFilter on malformed values.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from federation import DEFAULT_PAGE_SIZE, DEFAULT_SORT_FIELD, FederatedQuery
from filters import parse_filter
from models import ChildFilter, CompanyFilter, ParentFilter, ReportFilter


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str = Field(..., description="Service status")


class ErrorResponse(BaseModel):
    """Failure envelope returned for invalid filters and search engine errors."""

    success: Literal[False] = False
    error: str = Field(..., description="Human-readable error message")


# --- Federation mode ---


class SearchRequest(BaseModel):
    """Request body for POST /search in federation mode."""

    company_filters: dict[str, Any] | None = Field(
        default=None, alias="companyFilters", description="Optional {id, name} company criteria"
    )
    report_filters: dict[str, Any] | None = Field(
        default=None, alias="reportFilters", description="Optional {id, name, tags, status} report criteria"
    )
    page: int = Field(default=1, ge=1, description="1-based page of companies")
    size: int = Field(default=DEFAULT_PAGE_SIZE, ge=1, description="Companies per page")
    sort_field: str = Field(default=DEFAULT_SORT_FIELD, alias="sortField", min_length=1)
    sort_order: Literal["asc", "desc"] = Field(default="asc", alias="sortOrder")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_query(self) -> FederatedQuery:
        """Validate the filter objects and build the federator input."""
        return FederatedQuery(
            company_filter=parse_filter(CompanyFilter, self.company_filters, label="companyFilters"),
            report_filter=parse_filter(ReportFilter, self.report_filters, label="reportFilters"),
            page=self.page,
            size=self.size,
            sort_field=self.sort_field,
            sort_order=self.sort_order,
        )


class SearchResponse(BaseModel):
    """Companies on the requested page, each carrying its matching ``reports``."""

    success: bool = True
    total: int = Field(..., ge=0, description="Companies matching both filters, across all pages")
    companies: list[dict[str, Any]] = Field(default_factory=list)


class SampleDataResponse(BaseModel):
    success: bool = True
    companies: list[dict[str, Any]]
    reports: list[dict[str, Any]]


# --- Nested mode ---


class NestedSearchRequest(BaseModel):
    """Request body for POST /search in nested mode."""

    parent: dict[str, Any] | None = Field(default=None, description="Optional {name, age} parent criteria")
    child: dict[str, Any] | None = Field(
        default=None, description="Optional {name, grade, hobbies}; all must hold for one child"
    )

    model_config = ConfigDict(extra="ignore")

    def parent_filter(self) -> ParentFilter:
        return parse_filter(ParentFilter, self.parent, label="parent")

    def child_filter(self) -> ChildFilter:
        return parse_filter(ChildFilter, self.child, label="child")


class NestedSampleResponse(BaseModel):
    success: bool = True
    id: str
    document: dict[str, Any]
