"""Sample data for both service modes.

Federation mode: companies C1..C5, three reports each (R1..R15). Report ``r`` of a
company (1-based) is tagged ``tag<r>`` and ``common``; odd ``r`` is published,
even ``r`` is a draft.

Nested mode: one parent document with two embedded children.

Documents are written under fixed ids, so seeding twice overwrites rather than
duplicates.
"""

from __future__ import annotations

import logging
from typing import Any

from elasticsearch import Elasticsearch

from config import Config
from config import config as global_config
from indexer import BulkResult, bulk_index, index_document
from models import Company, NestedChild, NestedParent, Report

logger = logging.getLogger(__name__)

COMPANY_COUNT = 5
REPORTS_PER_COMPANY = 3
NESTED_SAMPLE_ID = "P1"


def sample_companies(count: int = COMPANY_COUNT) -> list[Company]:
    return [Company(id=f"C{i}", name=f"Company {i}") for i in range(1, count + 1)]


def sample_reports(companies: list[Company], per_company: int = REPORTS_PER_COMPANY) -> list[Report]:
    reports: list[Report] = []
    counter = 1
    for company in companies:
        for r in range(1, per_company + 1):
            reports.append(
                Report(
                    id=f"R{counter}",
                    name=f"Report {counter}",
                    company_id=company.id,
                    tags=[f"tag{r}", "common"],
                    status="draft" if r % 2 == 0 else "published",
                )
            )
            counter += 1
    return reports


def sample_nested_parent() -> NestedParent:
    return NestedParent(
        name="John Doe",
        age=45,
        children=[
            NestedChild(name="Alice", grade=3, hobbies="painting and chess"),
            NestedChild(name="Bob", grade=5, hobbies="football and video games"),
        ],
    )


def insert_sample_data(client: Elasticsearch, *, cfg: Config | None = None) -> dict[str, Any]:
    """Bulk insert the federation sample and return the inserted records.

    Rejected items are logged by the bulk helper and do not fail the insert.
    """
    cfg = cfg or global_config
    companies = sample_companies()
    reports = sample_reports(companies)

    company_docs = [c.model_dump() for c in companies]
    report_docs = [r.model_dump() for r in reports]

    company_result = bulk_index(client, cfg.COMPANY_INDEX, company_docs)
    report_result = bulk_index(client, cfg.REPORT_INDEX, report_docs)
    _log_result(cfg.COMPANY_INDEX, company_result)
    _log_result(cfg.REPORT_INDEX, report_result)

    return {"success": True, "companies": company_docs, "reports": report_docs}


def insert_nested_sample(client: Elasticsearch, *, cfg: Config | None = None) -> dict[str, Any]:
    """Index the nested-mode sample document and return it."""
    cfg = cfg or global_config
    parent = sample_nested_parent().model_dump()
    index_document(client, cfg.NESTED_INDEX, NESTED_SAMPLE_ID, parent)
    logger.info("Inserted nested sample %s into %s", NESTED_SAMPLE_ID, cfg.NESTED_INDEX)
    return {"success": True, "id": NESTED_SAMPLE_ID, "document": parent}


def _log_result(index: str, result: BulkResult) -> None:
    if result.ok:
        logger.info("Inserted %d document(s) into %s", result.indexed, index)
    else:
        logger.warning(
            "Inserted %d document(s) into %s; %d rejected", result.indexed, index, len(result.errors)
        )


__all__ = [
    "sample_companies",
    "sample_reports",
    "sample_nested_parent",
    "insert_sample_data",
    "insert_nested_sample",
]
