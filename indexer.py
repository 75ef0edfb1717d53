from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, TypeVar

from elasticsearch import ApiError, Elasticsearch, TransportError

from config import config
from errors import SearchBackendError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Sort used for exhaustive iteration; ``id`` is a unique keyword in every index we page through
DEFAULT_ITER_SORT: list[dict[str, Any]] = [{"id": "asc"}]


@dataclass
class SearchPage:
    """One page of search results: the total hit count and the ``_source`` of each hit."""

    total: int
    hits: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class BulkResult:
    """Outcome of a best-effort bulk insert."""

    indexed: int
    errors: list[dict[str, Any]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def get_client(url: str | None = None) -> Elasticsearch:
    """Get an Elasticsearch client for the configured node.

    Args:
        url: Optional node URL. If None, uses config.ELASTICSEARCH_URL.

    Returns:
        Elasticsearch: client instance. Connections are pooled by the client and
        opened lazily, so this is safe to call at import time.
    """
    return Elasticsearch(url or config.ELASTICSEARCH_URL, request_timeout=config.SEARCH_TIMEOUT)


def _engine_call(description: str, fn: Callable[..., T], /, *args: Any, **kwargs: Any) -> T:
    """Invoke a client method, translating client/transport failures to SearchBackendError."""
    try:
        return fn(*args, **kwargs)
    except (ApiError, TransportError) as e:
        raise SearchBackendError(f"{description} failed: {e}") from e


def _body(resp: Any) -> dict[str, Any]:
    """Plain dict view of a client response (ObjectApiResponse exposes it as .body)."""
    body = getattr(resp, "body", resp)
    return body if isinstance(body, Mapping) else {}


def _scoped(client: Elasticsearch, timeout: float | None) -> Elasticsearch:
    """Return a client view with a per-request timeout, or the client itself."""
    if timeout is None:
        return client
    return client.options(request_timeout=timeout)


def _total_hits(hits: Mapping[str, Any]) -> int:
    """Read hits.total, which is an object ({"value": n}) on 7.x+ and a bare int before that."""
    total = hits.get("total", 0)
    if isinstance(total, Mapping):
        return int(total.get("value", 0))
    return int(total or 0)


def cluster_health(client: Elasticsearch) -> str:
    """Return the cluster health status ("green", "yellow" or "red")."""
    resp = _body(_engine_call("Cluster health check", client.cluster.health))
    return str(resp.get("status", "unknown"))


def server_version(client: Elasticsearch) -> str:
    """Return the engine version number reported by the root endpoint."""
    resp = _body(_engine_call("Server info", client.info))
    return str(resp.get("version", {}).get("number", "unknown"))


def index_exists(client: Elasticsearch, index: str) -> bool:
    return bool(_engine_call(f"Existence check for index '{index}'", client.indices.exists, index=index))


def create_index(client: Elasticsearch, index: str, mappings: Mapping[str, Any]) -> None:
    _engine_call(f"Creating index '{index}'", client.indices.create, index=index, mappings=dict(mappings))


def index_document(
    client: Elasticsearch,
    index: str,
    doc_id: str,
    document: Mapping[str, Any],
    *,
    refresh: bool = True,
) -> None:
    """Insert or overwrite a single document by id."""
    _engine_call(
        f"Indexing document '{doc_id}' into '{index}'",
        client.index,
        index=index,
        id=doc_id,
        document=dict(document),
        refresh=refresh,
    )


def bulk_index(
    client: Elasticsearch,
    index: str,
    documents: Iterable[Mapping[str, Any]],
    *,
    id_field: str = "id",
    refresh: bool = True,
) -> BulkResult:
    """Bulk insert documents keyed by ``id_field`` (re-inserting an id overwrites it).

    Best effort: items the engine rejects are logged and reported in the result,
    they do not fail the call. Transport or request-level failures still raise
    SearchBackendError.

    Args:
        client: Elasticsearch client
        index: Target index name
        documents: Documents to insert; each must carry ``id_field``
        id_field: Field whose value becomes the document _id
        refresh: Make the documents searchable before returning

    Returns:
        BulkResult with the accepted count and the rejected items
    """
    docs = [dict(d) for d in documents]
    if not docs:
        return BulkResult(indexed=0)

    operations: list[dict[str, Any]] = []
    for doc in docs:
        if doc.get(id_field) in (None, ""):
            raise ValueError(f"Document is missing '{id_field}': {doc!r}")
        operations.append({"index": {"_index": index, "_id": str(doc[id_field])}})
        operations.append(doc)

    resp = _body(_engine_call(f"Bulk insert into '{index}'", client.bulk, operations=operations, refresh=refresh))

    errors: list[dict[str, Any]] = []
    if resp.get("errors"):
        for item in resp.get("items", []):
            action = item.get("index") or {}
            if action.get("error"):
                errors.append(action)
                logger.debug("Rejected bulk item for %s: %s", index, action)
        logger.error("Some %s inserts failed: %d of %d rejected", index, len(errors), len(docs))

    return BulkResult(indexed=len(docs) - len(errors), errors=errors)


def search_page(
    client: Elasticsearch,
    index: str,
    query: Mapping[str, Any],
    *,
    offset: int = 0,
    size: int = 10,
    sort: Sequence[Mapping[str, Any]] | None = None,
    source: Sequence[str] | None = None,
    timeout: float | None = None,
) -> SearchPage:
    """Run one paginated, optionally sorted search.

    Returns:
        SearchPage with hits.total and the ``_source`` of each hit, in engine order
    """
    kwargs: dict[str, Any] = {"index": index, "query": dict(query), "from_": offset, "size": size}
    if sort:
        kwargs["sort"] = [dict(s) for s in sort]
    if source is not None:
        kwargs["source"] = list(source)

    resp = _body(_engine_call(f"Search on '{index}'", _scoped(client, timeout).search, **kwargs))
    hits = resp.get("hits", {})
    return SearchPage(
        total=_total_hits(hits),
        hits=[h.get("_source", {}) for h in hits.get("hits", [])],
    )


def search_documents(
    client: Elasticsearch,
    index: str,
    query: Mapping[str, Any],
    *,
    timeout: float | None = None,
) -> list[dict[str, Any]]:
    """Run a bare search (no from/size/sort) and return the ``_source`` of each hit.

    The engine applies its default page size.
    """
    scoped = _scoped(client, timeout)
    resp = _body(_engine_call(f"Search on '{index}'", scoped.search, index=index, query=dict(query)))
    return [h.get("_source", {}) for h in resp.get("hits", {}).get("hits", [])]


def iter_documents(
    client: Elasticsearch,
    index: str,
    query: Mapping[str, Any],
    *,
    source: Sequence[str] | None = None,
    sort: Sequence[Mapping[str, Any]] | None = None,
    page_size: int | None = None,
    timeout: float | None = None,
) -> Iterator[dict[str, Any]]:
    """Yield the ``_source`` of every matching document, page by page.

    Pages are chained with ``search_after`` on ``sort``, which must end in a unique
    key. Iteration stops at the first short page, so results are never truncated
    at a fixed ceiling.
    """
    size = page_size or config.CHILD_PAGE_SIZE
    order = [dict(s) for s in (sort or DEFAULT_ITER_SORT)]
    scoped = _scoped(client, timeout)
    search_after: list[Any] | None = None
    pages = 0

    while True:
        kwargs: dict[str, Any] = {"index": index, "query": dict(query), "size": size, "sort": order}
        if source is not None:
            kwargs["source"] = list(source)
        if search_after is not None:
            kwargs["search_after"] = search_after

        resp = _body(_engine_call(f"Search on '{index}'", scoped.search, **kwargs))
        hits = resp.get("hits", {}).get("hits", [])
        pages += 1
        for hit in hits:
            yield hit.get("_source", {})

        if len(hits) < size:
            break
        search_after = hits[-1].get("sort")
        if not search_after:
            raise SearchBackendError(f"Search on '{index}' returned no sort values to continue paging")

    logger.debug("Iterated %s in %d page(s) of %d", index, pages, size)


__all__ = [
    "SearchPage",
    "BulkResult",
    "get_client",
    "cluster_health",
    "server_version",
    "index_exists",
    "create_index",
    "index_document",
    "bulk_index",
    "search_page",
    "search_documents",
    "iter_documents",
]
