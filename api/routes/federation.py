"""
Federation-mode routes.

Companies and reports live in separate indices; POST /search joins them at
query time through the reports' company_id.
"""

import logging

from elasticsearch import Elasticsearch
from fastapi import APIRouter, Body, Depends

from config import Config
from federation import federated_search
from seed import insert_sample_data

from ..deps import get_es_client, get_settings
from ..models import ErrorResponse, SampleDataResponse, SearchRequest, SearchResponse

logger = logging.getLogger(__name__)
router = APIRouter()

_ERROR_RESPONSES = {500: {"model": ErrorResponse, "description": "Invalid filter or search engine failure"}}


@router.post(
    "/insertSampleData",
    response_model=SampleDataResponse,
    responses=_ERROR_RESPONSES,
    summary="Seed sample companies and reports",
)
def insert_sample_endpoint(
    cfg: Config = Depends(get_settings),
    client: Elasticsearch = Depends(get_es_client),
) -> dict:
    """
    Bulk insert 5 companies with 3 reports each and echo the inserted records.

    Re-running overwrites the same ids. Items rejected by the engine are logged
    and do not fail the request.
    """
    return insert_sample_data(client, cfg=cfg)


@router.post(
    "/search",
    response_model=SearchResponse,
    responses=_ERROR_RESPONSES,
    summary="Search companies through their reports",
)
def search_endpoint(
    req: SearchRequest | None = Body(default=None),
    cfg: Config = Depends(get_settings),
    client: Elasticsearch = Depends(get_es_client),
) -> dict:
    """
    Find reports matching ``reportFilters``, then the page of companies that own
    them and also match ``companyFilters``.

    Args:
        req: Filters, paging (page/size) and sort (sortField/sortOrder); all optional
        cfg: Configuration (injected)
        client: Elasticsearch client (injected)

    Returns:
        {success, total, companies}; each company carries only its matching reports

    Raises:
        InvalidFilter: Malformed filter values (mapped to a failure envelope)
        SearchBackendError: Either search stage failed (mapped to a failure envelope)
    """
    query = (req or SearchRequest()).to_query()
    result = federated_search(client, query, cfg=cfg)
    logger.debug("Federated search returned %d of %d companies", len(result.companies), result.total)
    return result.to_dict()
