"""Query federation across the company/report indices, and nested single-index search.

Federation mode answers "which companies own reports matching X, and which of
those companies also match Y" without a native join:

1. Iterate every report matching the report filter.
2. Collect the distinct ``company_id`` values they reference.
3. If there are none, stop: the answer is empty and the company index is not queried.
4. Search companies matching the company filter AND ``id`` in that key set, with
   the caller's paging and sort.
5. Attach to each returned company the matched reports whose ``company_id`` equals its id.

Paging and sort apply to companies only; every matching report of a returned
company is attached. The two searches are sequential because the second
depends on the first, and all state is local to the call.

Reports are fetched exhaustively, but the key set travels in one ``terms``
clause, which Elasticsearch rejects above ``index.max_terms_count`` (65,536 by
default). Past that many distinct companies the search fails with
SearchBackendError instead of returning a truncated answer.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from elasticsearch import Elasticsearch

from config import Config
from config import config as global_config
from errors import InvalidFilter
from filters import compile_company_query, compile_nested_query, compile_report_query
from indexer import iter_documents, search_documents, search_page
from models import ChildFilter, CompanyFilter, ParentFilter, ReportFilter

logger = logging.getLogger(__name__)

REPORT_SOURCE_FIELDS: list[str] = ["id", "name", "company_id", "tags", "status"]
DEFAULT_SORT_FIELD = "name.keyword"
DEFAULT_PAGE_SIZE = 10

SortOrder = Literal["asc", "desc"]


@dataclass
class FederatedQuery:
    """Validated input of a federated search."""

    company_filter: CompanyFilter = field(default_factory=CompanyFilter)
    report_filter: ReportFilter = field(default_factory=ReportFilter)
    page: int = 1
    size: int = DEFAULT_PAGE_SIZE
    sort_field: str = DEFAULT_SORT_FIELD
    sort_order: SortOrder = "asc"

    def __post_init__(self) -> None:
        if self.page < 1:
            raise InvalidFilter(f"page must be >= 1, got {self.page}")
        if self.size < 1:
            raise InvalidFilter(f"size must be >= 1, got {self.size}")
        if not self.sort_field or not self.sort_field.strip():
            raise InvalidFilter("sortField must be a non-empty field name")
        if self.sort_order not in ("asc", "desc"):
            raise InvalidFilter(f"sortOrder must be 'asc' or 'desc', got {self.sort_order!r}")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.size

    @property
    def sort(self) -> list[dict[str, Any]]:
        return [{self.sort_field: {"order": self.sort_order}}]


@dataclass
class FederatedResult:
    """Companies on the requested page, each with its matched reports attached."""

    total: int
    companies: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"success": True, "total": self.total, "companies": self.companies}


# --- Query federator ---


def fetch_matching_reports(
    client: Elasticsearch,
    report_filter: ReportFilter,
    *,
    cfg: Config | None = None,
) -> list[dict[str, Any]]:
    """Return every report matching ``report_filter`` (projected to REPORT_SOURCE_FIELDS)."""
    cfg = cfg or global_config
    return list(
        iter_documents(
            client,
            cfg.REPORT_INDEX,
            compile_report_query(report_filter),
            source=REPORT_SOURCE_FIELDS,
            page_size=cfg.CHILD_PAGE_SIZE,
            timeout=cfg.SEARCH_TIMEOUT,
        )
    )


def distinct_company_ids(reports: Iterable[Mapping[str, Any]]) -> list[str]:
    """Distinct company ids referenced by ``reports``, in first-seen order."""
    seen: dict[str, None] = {}
    for report in reports:
        company_id = report.get("company_id")
        if company_id:
            seen.setdefault(str(company_id), None)
    return list(seen)


def federated_search(
    client: Elasticsearch,
    query: FederatedQuery,
    *,
    cfg: Config | None = None,
) -> FederatedResult:
    """Run the two-stage report -> company search and stitch the results.

    Args:
        client: Elasticsearch client (shared, injected by the caller)
        query: Filters, paging and sort for the search
        cfg: Configuration supplying index names, page size and timeout

    Returns:
        FederatedResult whose total counts companies matching both the company
        filter and the report key set, independent of the page size

    Raises:
        SearchBackendError: If either stage fails; no partial result is returned
    """
    cfg = cfg or global_config
    if query.report_filter.is_empty():
        logger.debug("No report filter; every report is fetched")

    reports = fetch_matching_reports(client, query.report_filter, cfg=cfg)
    company_ids = distinct_company_ids(reports)
    logger.debug("Matched %d report(s) across %d company id(s)", len(reports), len(company_ids))

    if not company_ids:
        logger.debug("No reports matched; skipping company search")
        return FederatedResult(total=0, companies=[])

    page = search_page(
        client,
        cfg.COMPANY_INDEX,
        compile_company_query(query.company_filter, company_ids),
        offset=query.offset,
        size=query.size,
        sort=query.sort,
        timeout=cfg.SEARCH_TIMEOUT,
    )
    return FederatedResult(total=page.total, companies=attach_reports(page.hits, reports))


def nested_search(
    client: Elasticsearch,
    parent_filter: ParentFilter,
    child_filter: ChildFilter,
    *,
    cfg: Config | None = None,
) -> list[dict[str, Any]]:
    """Search the nested index with parent criteria and same-element child criteria.

    Returns the raw ``_source`` of matching parents. No offset, size or sort is
    sent, so the engine's default page applies; this mode does not paginate.
    """
    cfg = cfg or global_config
    return search_documents(
        client,
        cfg.NESTED_INDEX,
        compile_nested_query(parent_filter, child_filter),
        timeout=cfg.SEARCH_TIMEOUT,
    )


# --- Result assembler ---


def attach_reports(
    companies: Iterable[Mapping[str, Any]],
    reports: list[Mapping[str, Any]],
) -> list[dict[str, Any]]:
    """Copy each company and attach the reports whose company_id equals its id."""
    out: list[dict[str, Any]] = []
    for company in companies:
        company_id = company.get("id")
        out.append(
            {
                **company,
                "reports": [dict(r) for r in reports if r.get("company_id") == company_id],
            }
        )
    return out


__all__ = [
    "REPORT_SOURCE_FIELDS",
    "DEFAULT_SORT_FIELD",
    "FederatedQuery",
    "FederatedResult",
    "fetch_matching_reports",
    "distinct_company_ids",
    "federated_search",
    "nested_search",
    "attach_reports",
]
