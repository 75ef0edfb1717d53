"""
Nested-mode routes.

A single index whose documents embed their children; child criteria must all
hold for the same embedded child.
"""

from elasticsearch import Elasticsearch
from fastapi import APIRouter, Body, Depends

from config import Config
from federation import nested_search
from seed import insert_nested_sample

from ..deps import get_es_client, get_settings
from ..models import ErrorResponse, NestedSampleResponse, NestedSearchRequest

router = APIRouter()

_ERROR_RESPONSES = {500: {"model": ErrorResponse, "description": "Invalid filter or search engine failure"}}


@router.post(
    "/insert-sample",
    response_model=NestedSampleResponse,
    responses=_ERROR_RESPONSES,
    summary="Seed one parent with two embedded children",
)
def insert_sample_endpoint(
    cfg: Config = Depends(get_settings),
    client: Elasticsearch = Depends(get_es_client),
) -> dict:
    return insert_nested_sample(client, cfg=cfg)


@router.post(
    "/search",
    response_model=list[dict],
    responses=_ERROR_RESPONSES,
    summary="Search parents by their own fields and one embedded child",
)
def search_endpoint(
    req: NestedSearchRequest | None = Body(default=None),
    cfg: Config = Depends(get_settings),
    client: Elasticsearch = Depends(get_es_client),
) -> list[dict]:
    """
    Return the raw matching parent documents.

    There is no envelope, paging or sort in this mode; the engine's default
    result window applies.
    """
    req = req or NestedSearchRequest()
    return nested_search(client, req.parent_filter(), req.child_filter(), cfg=cfg)
