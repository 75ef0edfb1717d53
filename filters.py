"""Filter compiler: turns optional-field filter records into Elasticsearch bool queries.

Each ``*_clauses`` function is pure and emits zero or one clause per present field,
in a fixed order so that compiled queries are deterministic:

- ``id``      -> ``term``   on the un-analyzed id
- ``name``    -> ``match``  on the analyzed name
- ``tags``    -> ``terms``  on ``tags.keyword`` (exact match against any listed tag)
- ``status``  -> ``term``   on status
- nested child criteria -> a single ``nested`` clause whose inner ``bool.must``
  holds every child clause, so one embedded element has to satisfy all of them.

An empty clause list compiles to ``match_all``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from errors import InvalidFilter
from models import ChildFilter, CompanyFilter, ParentFilter, ReportFilter

Clause = dict[str, Any]
F = TypeVar("F", bound=BaseModel)

NESTED_PATH = "children"


def parse_filter(model: type[F], raw: object, *, label: str | None = None) -> F:
    """Validate a loosely-typed filter payload into its filter record.

    ``None`` means "no filter". Anything that is not an object, or carries a field
    of the wrong type, raises :class:`InvalidFilter` instead of being coerced away.
    """
    name = label or model.__name__
    if raw is None:
        return model()
    if isinstance(raw, model):
        return raw
    if not isinstance(raw, Mapping):
        raise InvalidFilter(f"{name} must be an object, got {type(raw).__name__}")
    try:
        return model.model_validate(dict(raw))
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or name}: {err['msg']}" for err in exc.errors()
        )
        raise InvalidFilter(f"Invalid {name}: {problems}") from exc


def match_all() -> Clause:
    return {"match_all": {}}


def bool_query(clauses: list[Clause]) -> Clause:
    """Conjunction of ``clauses``; no clauses matches everything."""
    if not clauses:
        return match_all()
    return {"bool": {"must": list(clauses)}}


def _term(field: str, value: Any) -> Clause:
    return {"term": {field: value}}


def _match(field: str, value: str) -> Clause:
    return {"match": {field: value}}


def company_clauses(f: CompanyFilter) -> list[Clause]:
    clauses: list[Clause] = []
    if f.id is not None:
        clauses.append(_term("id", f.id))
    if f.name is not None:
        clauses.append(_match("name", f.name))
    return clauses


def report_clauses(f: ReportFilter) -> list[Clause]:
    clauses: list[Clause] = []
    if f.id is not None:
        clauses.append(_term("id", f.id))
    if f.name is not None:
        clauses.append(_match("name", f.name))
    if f.tags:
        clauses.append({"terms": {"tags.keyword": list(f.tags)}})
    if f.status is not None:
        clauses.append(_term("status", f.status))
    return clauses


def parent_clauses(f: ParentFilter) -> list[Clause]:
    clauses: list[Clause] = []
    if f.name is not None:
        clauses.append(_match("name", f.name))
    if f.age is not None:
        clauses.append(_term("age", f.age))
    return clauses


def child_clauses(f: ChildFilter, path: str = NESTED_PATH) -> list[Clause]:
    """Clauses against fields of one embedded child, addressed as ``<path>.<field>``."""
    clauses: list[Clause] = []
    if f.name is not None:
        clauses.append(_match(f"{path}.name", f.name))
    if f.grade is not None:
        clauses.append(_term(f"{path}.grade", f.grade))
    if f.hobbies is not None:
        clauses.append(_match(f"{path}.hobbies", f.hobbies))
    return clauses


def nested_clause(f: ChildFilter, path: str = NESTED_PATH) -> Clause | None:
    """Wrap all child clauses in one nested scope, or return None when there are none."""
    inner = child_clauses(f, path)
    if not inner:
        return None
    return {"nested": {"path": path, "query": {"bool": {"must": inner}}}}


def compile_company_query(f: CompanyFilter, company_ids: list[str] | None = None) -> Clause:
    """Company query, optionally restricted to an explicit set of ids."""
    clauses = company_clauses(f)
    if company_ids is not None:
        clauses.append({"terms": {"id": list(company_ids)}})
    return bool_query(clauses)


def compile_report_query(f: ReportFilter) -> Clause:
    return bool_query(report_clauses(f))


def compile_nested_query(parent: ParentFilter, child: ChildFilter, path: str = NESTED_PATH) -> Clause:
    clauses = parent_clauses(parent)
    nested = nested_clause(child, path)
    if nested is not None:
        clauses.append(nested)
    return bool_query(clauses)


__all__ = [
    "NESTED_PATH",
    "parse_filter",
    "match_all",
    "bool_query",
    "company_clauses",
    "report_clauses",
    "parent_clauses",
    "child_clauses",
    "nested_clause",
    "compile_company_query",
    "compile_report_query",
    "compile_nested_query",
]
