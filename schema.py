"""Index definitions and the create-if-absent schema registrar run at startup."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from elasticsearch import Elasticsearch

from config import Config, ServiceMode
from config import config as global_config
from errors import SchemaError, SearchBackendError
from indexer import create_index, index_exists

logger = logging.getLogger(__name__)

# Analyzed text with an un-analyzed sibling for exact matching and sorting
TEXT_WITH_KEYWORD: dict[str, Any] = {"type": "text", "fields": {"keyword": {"type": "keyword"}}}
KEYWORD: dict[str, Any] = {"type": "keyword"}

COMPANY_MAPPINGS: dict[str, Any] = {
    "properties": {
        "id": KEYWORD,
        "name": TEXT_WITH_KEYWORD,
    }
}

REPORT_MAPPINGS: dict[str, Any] = {
    "properties": {
        "id": KEYWORD,
        "name": TEXT_WITH_KEYWORD,
        "company_id": KEYWORD,
        "tags": TEXT_WITH_KEYWORD,
        "status": KEYWORD,
    }
}

NESTED_MAPPINGS: dict[str, Any] = {
    "properties": {
        "name": TEXT_WITH_KEYWORD,
        "age": {"type": "integer"},
        "children": {
            "type": "nested",
            "properties": {
                "name": TEXT_WITH_KEYWORD,
                "grade": {"type": "integer"},
                "hobbies": {"type": "text"},
            },
        },
    }
}


@dataclass(frozen=True)
class IndexSpec:
    name: str
    mappings: dict[str, Any]


def required_indices(cfg: Config | None = None, mode: ServiceMode | None = None) -> list[IndexSpec]:
    """Indices the given mode needs, in creation order."""
    cfg = cfg or global_config
    if (mode or cfg.SERVICE_MODE) == "nested":
        return [IndexSpec(cfg.NESTED_INDEX, NESTED_MAPPINGS)]
    return [
        IndexSpec(cfg.COMPANY_INDEX, COMPANY_MAPPINGS),
        IndexSpec(cfg.REPORT_INDEX, REPORT_MAPPINGS),
    ]


def ensure_schema(
    client: Elasticsearch,
    cfg: Config | None = None,
    mode: ServiceMode | None = None,
) -> list[str]:
    """Create every required index that does not exist yet.

    Idempotent: existing indices are left untouched, whatever their mappings.

    Args:
        client: Elasticsearch client
        cfg: Configuration supplying index names (defaults to the global config)
        mode: Service mode whose indices to register (defaults to cfg.SERVICE_MODE)

    Returns:
        Names of the indices created by this call

    Raises:
        SchemaError: If an index cannot be checked or created. Callers treat this
            as fatal; the service must not start without its indices.
    """
    created: list[str] = []
    for spec in required_indices(cfg, mode):
        try:
            if index_exists(client, spec.name):
                logger.debug("Index %s already exists", spec.name)
                continue
            create_index(client, spec.name, spec.mappings)
        except SearchBackendError as e:
            raise SchemaError(f"Could not ensure index '{spec.name}': {e}") from e
        logger.info("Created %s index", spec.name)
        created.append(spec.name)
    return created


__all__ = [
    "COMPANY_MAPPINGS",
    "REPORT_MAPPINGS",
    "NESTED_MAPPINGS",
    "IndexSpec",
    "required_indices",
    "ensure_schema",
]
