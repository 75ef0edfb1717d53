import copy
import os
import re
import time
from datetime import datetime
from pathlib import Path
from typing import Any

import pytest

from config import Config


class _ProgressReporter:
    """Pytest plugin that prints per-test start and end markers with timing."""

    def __init__(self):
        self._terminal = None
        self._starts: dict[str, float] = {}

    @pytest.hookimpl(tryfirst=True)
    def pytest_sessionstart(self, session: pytest.Session) -> None:
        if self._terminal is None:
            self._terminal = session.config.pluginmanager.get_plugin("terminalreporter")

    @pytest.hookimpl
    def pytest_runtest_logstart(self, nodeid: str, location) -> None:
        if self._terminal is None:
            return
        timestamp = datetime.now().strftime("%H:%M:%S")
        self._starts[nodeid] = time.monotonic()
        self._terminal.write_line(f"[{timestamp}] RUN    {nodeid}")

    @pytest.hookimpl
    def pytest_runtest_logreport(self, report: pytest.TestReport):
        if self._terminal is None or report.when != "call":
            return
        timestamp = datetime.now().strftime("%H:%M:%S")
        duration: float | None = None
        if report.nodeid in self._starts:
            duration = time.monotonic() - self._starts.pop(report.nodeid)
        duration_text = f" ({duration:.2f}s)" if duration is not None else ""
        outcome = report.outcome.upper()
        self._terminal.write_line(f"[{timestamp}] {outcome:6} {report.nodeid}{duration_text}")


def _progress_enabled(config: pytest.Config) -> bool:
    if config.getoption("progress", default=False):
        return True
    env_value = os.environ.get("PYTEST_PROGRESS", "")
    return env_value.lower() in {"1", "true", "yes", "on"}


def _manual_enabled(config: pytest.Config) -> bool:
    if config.getoption("manual", default=False):
        return True
    env_value = os.environ.get("PYTEST_INCLUDE_MANUAL", "")
    return env_value.lower() in {"1", "true", "yes", "on"}


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("fedsearch")
    group.addoption(
        "--progress",
        action="store_true",
        help="Print test start/finish timestamps and durations to aid debugging long runs.",
    )
    group.addoption(
        "--manual",
        action="store_true",
        help="Include tests under tests/manual/ (need a live Elasticsearch and API). Skipped by default.",
    )


def pytest_configure(config: pytest.Config) -> None:
    if _progress_enabled(config):
        reporter = _ProgressReporter()
        config.pluginmanager.register(reporter, "fedsearch-progress-reporter")


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if _manual_enabled(config):
        return

    manual_root = Path(config.rootpath, "tests", "manual").resolve()
    skip_manual = pytest.mark.skip(
        reason="Manual test suite is excluded by default; re-run with --manual or PYTEST_INCLUDE_MANUAL=1."
    )

    for item in items:
        try:
            item_path = Path(str(item.fspath)).resolve()
        except OSError:
            continue
        if manual_root in item_path.parents:
            item.add_marker(skip_manual)


# --- In-memory Elasticsearch stand-in ---


def _field_values(doc: dict[str, Any], path: str) -> list[Any]:
    """Resolve a dotted field path; a trailing ``.keyword`` addresses the same source value."""
    parts = path.split(".")
    if parts[-1] == "keyword":
        parts = parts[:-1]
    value: Any = doc
    for part in parts:
        value = value.get(part) if isinstance(value, dict) else None
    if value is None:
        return []
    return list(value) if isinstance(value, list) else [value]


def _tokens(text: Any) -> set[str]:
    return set(re.findall(r"\w+", str(text).lower()))


def _single(body: dict[str, Any]) -> tuple[str, Any]:
    ((field, value),) = body.items()
    return field, value


def evaluate(doc: dict[str, Any], query: dict[str, Any]) -> bool:
    """Evaluate the query subset the service emits against one document."""
    ((kind, body),) = query.items()
    if kind == "match_all":
        return True
    if kind == "bool":
        return all(evaluate(doc, clause) for clause in body.get("must", []))
    if kind == "term":
        field, value = _single(body)
        if isinstance(value, dict):
            value = value["value"]
        return value in _field_values(doc, field)
    if kind == "terms":
        field, values = _single(body)
        return any(v in values for v in _field_values(doc, field))
    if kind == "match":
        field, text = _single(body)
        if isinstance(text, dict):
            text = text["query"]
        wanted = _tokens(text)
        return any(wanted & _tokens(v) for v in _field_values(doc, field))
    if kind == "nested":
        path = body["path"]
        children = doc.get(path) or []
        # Each embedded element is evaluated on its own, addressed through the path prefix
        return any(evaluate({path: child}, body["query"]) for child in children)
    raise AssertionError(f"Unsupported query clause: {kind}")


class _Namespace:
    def __init__(self, **methods):
        self.__dict__.update(methods)


class FakeElasticsearch:
    """Records calls and answers them from in-memory indices.

    ``fail_on[method] = exc`` makes the named method raise ``exc``;
    ``reject_ids`` makes bulk inserts reject those document ids.
    """

    def __init__(self, version: str = "8.13.4", health: str = "green"):
        self.version = version
        self.health_status = health
        self.indices_data: dict[str, dict[str, dict[str, Any]]] = {}
        self.mappings: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.options_calls: list[dict[str, Any]] = []
        self.fail_on: dict[str, Exception] = {}
        self.reject_ids: set[str] = set()
        self.closed = False
        self.cluster = _Namespace(health=self._cluster_health)
        self.indices = _Namespace(exists=self._indices_exists, create=self._indices_create)

    def _record(self, name: str, kwargs: dict[str, Any]) -> None:
        self.calls.append((name, copy.deepcopy(kwargs)))
        if name in self.fail_on:
            raise self.fail_on[name]

    def calls_to(self, name: str) -> list[dict[str, Any]]:
        return [kwargs for called, kwargs in self.calls if called == name]

    def options(self, **kwargs: Any) -> "FakeElasticsearch":
        self.options_calls.append(kwargs)
        return self

    def close(self) -> None:
        self.closed = True

    def info(self, **kwargs: Any) -> dict[str, Any]:
        self._record("info", kwargs)
        return {"version": {"number": self.version}}

    def _cluster_health(self, **kwargs: Any) -> dict[str, Any]:
        self._record("cluster.health", kwargs)
        return {"status": self.health_status}

    def _indices_exists(self, *, index: str) -> bool:
        self._record("indices.exists", {"index": index})
        return index in self.mappings

    def _indices_create(self, *, index: str, mappings: dict[str, Any]) -> dict[str, Any]:
        self._record("indices.create", {"index": index, "mappings": mappings})
        self.mappings[index] = mappings
        self.indices_data.setdefault(index, {})
        return {"acknowledged": True, "index": index}

    def index(self, *, index: str, id: str, document: dict[str, Any], refresh: Any = None) -> dict[str, Any]:
        self._record("index", {"index": index, "id": id, "document": document, "refresh": refresh})
        store = self.indices_data.setdefault(index, {})
        result = "updated" if id in store else "created"
        store[id] = copy.deepcopy(document)
        return {"_index": index, "_id": id, "result": result}

    def bulk(self, *, operations: list[dict[str, Any]], refresh: Any = None) -> dict[str, Any]:
        self._record("bulk", {"operations": operations, "refresh": refresh})
        items = []
        errors = False
        for action, doc in zip(operations[::2], operations[1::2]):
            meta = action["index"]
            doc_id = meta["_id"]
            if doc_id in self.reject_ids:
                errors = True
                items.append(
                    {
                        "index": {
                            "_index": meta["_index"],
                            "_id": doc_id,
                            "status": 400,
                            "error": {"type": "mapper_parsing_exception", "reason": "rejected"},
                        }
                    }
                )
                continue
            self.indices_data.setdefault(meta["_index"], {})[doc_id] = copy.deepcopy(doc)
            items.append({"index": {"_index": meta["_index"], "_id": doc_id, "status": 201}})
        return {"took": 1, "errors": errors, "items": items}

    def search(
        self,
        *,
        index: str,
        query: dict[str, Any] | None = None,
        from_: int = 0,
        size: int = 10,
        sort: list[dict[str, Any]] | None = None,
        source: list[str] | None = None,
        search_after: list[Any] | None = None,
    ) -> dict[str, Any]:
        kwargs = {
            "index": index,
            "query": query,
            "from_": from_,
            "size": size,
            "sort": sort,
            "source": source,
            "search_after": search_after,
        }
        self._record("search", kwargs)

        store = self.indices_data.get(index, {})
        matched = [(doc_id, doc) for doc_id, doc in store.items() if evaluate(doc, query or {"match_all": {}})]

        sort_keys: list[tuple[str, str]] = []
        for spec in sort or []:
            field, order = _single(spec)
            if isinstance(order, dict):
                order = order.get("order", "asc")
            sort_keys.append((field, order))

        def key_of(doc: dict[str, Any]) -> list[Any]:
            return [(_field_values(doc, f) or [""])[0] for f, _ in sort_keys]

        # Stable multi-key sort, last key first
        for position in reversed(range(len(sort_keys))):
            _, order = sort_keys[position]
            matched.sort(key=lambda item: key_of(item[1])[position], reverse=(order == "desc"))

        total = len(matched)
        if search_after is not None:

            def after(doc: dict[str, Any]) -> bool:
                for (_, order), value, pivot in zip(sort_keys, key_of(doc), search_after):
                    if value != pivot:
                        return value > pivot if order == "asc" else value < pivot
                return False

            matched = [item for item in matched if after(item[1])]

        window = matched[from_ : from_ + size]
        hits = []
        for doc_id, doc in window:
            projected = {k: v for k, v in doc.items() if source is None or k in source}
            hit: dict[str, Any] = {"_index": index, "_id": doc_id, "_source": copy.deepcopy(projected)}
            if sort_keys:
                hit["sort"] = key_of(doc)
            hits.append(hit)
        return {"hits": {"total": {"value": total, "relation": "eq"}, "hits": hits}}


@pytest.fixture
def settings() -> Config:
    """Settings with default index names, independent of any .env file."""
    return Config(_env_file=None)


@pytest.fixture
def fake_es() -> FakeElasticsearch:
    return FakeElasticsearch()


@pytest.fixture
def seeded_es(fake_es: FakeElasticsearch, settings: Config) -> FakeElasticsearch:
    """Fake client holding the federation sample (C1..C5, R1..R15)."""
    from seed import insert_sample_data

    insert_sample_data(fake_es, cfg=settings)
    fake_es.calls.clear()
    return fake_es
