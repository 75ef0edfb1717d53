#!/usr/bin/env python3
"""
fedsearch CLI: operate the federated search service.

Commands:
  serve:  Run the HTTP API under uvicorn
  init:   Create any missing index for a mode
  seed:   Insert the sample data for a mode
  load:   Bulk index a JSONL file into an index
  search: Run a federated (or nested) search and print the results
"""

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import Any

from tqdm import tqdm

from config import config
from errors import InvalidFilter, SchemaError, SearchBackendError
from federation import DEFAULT_SORT_FIELD, FederatedQuery, federated_search, nested_search
from filters import parse_filter
from indexer import bulk_index, get_client
from models import ChildFilter, CompanyFilter, ParentFilter, ReportFilter
from schema import ensure_schema
from seed import insert_nested_sample, insert_sample_data

logger = logging.getLogger("fedsearch")

# Constants for output formatting
MAX_REPORTS_SHOWN = 5
DEFAULT_LOAD_BATCH = 500


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=level or config.LOG_LEVEL,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _json_arg(raw: str | None, label: str) -> Any:
    """Parse a JSON command-line argument, mapping syntax errors to InvalidFilter."""
    if raw is None or raw == "":
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise InvalidFilter(f"{label} is not valid JSON: {e}") from e


def pretty_print_companies(total: int, companies: list[dict[str, Any]]) -> None:
    """Pretty-print federated search results to stdout.

    Args:
        total: Total companies matching across all pages
        companies: Companies on this page, each with a ``reports`` list
    """
    print(f"{total} matching compan{'y' if total == 1 else 'ies'}")
    for i, c in enumerate(companies, start=1):
        reports = c.get("reports") or []
        print(f"{i:2d}. {c.get('id', '')}  {c.get('name', '')}  ({len(reports)} report(s))")
        for r in reports[:MAX_REPORTS_SHOWN]:
            tags = ", ".join(r.get("tags") or [])
            print(f"    - {r.get('id', '')} {r.get('name', '')} [{r.get('status', '')}] {tags}")
        more = len(reports) - MAX_REPORTS_SHOWN
        if more > 0:
            print(f"    (+{more} more)")
    print()


def pretty_print_parents(parents: list[dict[str, Any]]) -> None:
    """Pretty-print nested search results to stdout."""
    if not parents:
        print("No results.")
        return
    for i, p in enumerate(parents, start=1):
        print(f"{i:2d}. {p.get('name', '')} (age {p.get('age', '?')})")
        for child in p.get("children") or []:
            print(f"    - {child.get('name', '')}, grade {child.get('grade', '?')}: {child.get('hobbies', '')}")
    print()


def cmd_serve(args: argparse.Namespace) -> int:
    """Serve command: run the FastAPI app with uvicorn.

    Args:
        args: Parsed arguments with host, port, reload

    Returns:
        Exit code (0 on clean shutdown, non-zero if startup fails)
    """
    import uvicorn

    host = args.host or config.API_HOST
    port = args.port or config.API_PORT
    print(f"Serving {config.SERVICE_MODE} API at http://{host}:{port} (Ctrl+C to stop)")
    print(f"Using Elasticsearch at: {config.ELASTICSEARCH_URL}")

    try:
        uvicorn.run("api.app:app", host=host, port=port, reload=args.reload)
    except SystemExit as e:
        # uvicorn exits with code 3 when the lifespan startup fails
        return int(e.code or 0)
    return 0


def cmd_init(args: argparse.Namespace) -> int:
    """Init command: create any missing index for the chosen mode."""
    client = get_client()
    try:
        created = ensure_schema(client, config, mode=args.mode)
    except SchemaError as e:
        print(f"Schema registration failed: {e}", file=sys.stderr)
        return 1

    if created:
        print(f"Created: {', '.join(created)}")
    else:
        print("All indexes already exist.")
    return 0


def cmd_seed(args: argparse.Namespace) -> int:
    """Seed command: ensure the schema, then insert the sample data for the chosen mode."""
    mode = args.mode or config.SERVICE_MODE
    client = get_client()
    try:
        ensure_schema(client, config, mode=mode)
        if mode == "nested":
            result = insert_nested_sample(client, cfg=config)
            print(f"Inserted nested sample '{result['id']}' into {config.NESTED_INDEX}")
        else:
            result = insert_sample_data(client, cfg=config)
            print(
                f"Inserted {len(result['companies'])} companies into {config.COMPANY_INDEX} "
                f"and {len(result['reports'])} reports into {config.REPORT_INDEX}"
            )
    except (SchemaError, SearchBackendError) as e:
        print(f"Seeding failed: {e}", file=sys.stderr)
        return 1
    return 0


def _read_jsonl(path: Path) -> list[dict[str, Any]]:
    docs: list[dict[str, Any]] = []
    with open(path, encoding="utf-8") as handle:
        for lineno, line in enumerate(handle, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                doc = json.loads(line)
            except json.JSONDecodeError:
                logger.warning("Skipping malformed JSON line %d in %s", lineno, path)
                continue
            if isinstance(doc, dict):
                docs.append(doc)
            else:
                logger.warning("Skipping non-object line %d in %s", lineno, path)
    return docs


def cmd_load(args: argparse.Namespace) -> int:
    """Load command: bulk index a JSONL file in batches.

    Args:
        args: Parsed arguments with input, index, id_field, batch_size

    Returns:
        Exit code (0 on success, 1 on backend failure, 2 on bad input)
    """
    src: Path = args.input.resolve()
    if not src.is_file():
        print(f"Error: Input file does not exist: {src}", file=sys.stderr)
        return 2

    docs = _read_jsonl(src)
    if not docs:
        print("No documents found.", file=sys.stderr)
        return 2

    missing = [i for i, d in enumerate(docs, start=1) if d.get(args.id_field) in (None, "")]
    if missing:
        print(f"Error: {len(missing)} document(s) lack '{args.id_field}' (first at #{missing[0]})", file=sys.stderr)
        return 2

    client = get_client()
    indexed = 0
    rejected = 0
    start = time.perf_counter()
    batch_size = max(1, args.batch_size)

    with tqdm(total=len(docs), desc=f"Loading {args.index}") as pbar:
        for i in range(0, len(docs), batch_size):
            batch = docs[i : i + batch_size]
            try:
                # Refresh once, after the last batch
                last = i + batch_size >= len(docs)
                result = bulk_index(client, args.index, batch, id_field=args.id_field, refresh=last)
            except SearchBackendError as e:
                tqdm.write(f"[error] batch starting at #{i + 1}: {e}")
                return 1
            indexed += result.indexed
            rejected += len(result.errors)
            pbar.update(len(batch))

    print("\nLoad complete:")
    print(f"  Indexed: {indexed}")
    if rejected:
        print(f"  Rejected: {rejected}")
    print(f"  Elapsed: {time.perf_counter() - start:.2f}s")
    return 0


def cmd_search(args: argparse.Namespace) -> int:
    """Search command: run a federated search, or a nested search with --nested.

    Returns:
        Exit code (0 on success, 1 on backend failure, 2 on invalid filters)
    """
    client = get_client()
    try:
        if args.nested:
            parent = parse_filter(ParentFilter, _json_arg(args.parent_filter, "--parent-filter"), label="parent")
            child = parse_filter(ChildFilter, _json_arg(args.child_filter, "--child-filter"), label="child")
            parents = nested_search(client, parent, child, cfg=config)
            if args.json:
                print(json.dumps(parents, indent=2))
            else:
                pretty_print_parents(parents)
            return 0

        query = FederatedQuery(
            company_filter=parse_filter(
                CompanyFilter, _json_arg(args.company_filter, "--company-filter"), label="companyFilters"
            ),
            report_filter=parse_filter(
                ReportFilter, _json_arg(args.report_filter, "--report-filter"), label="reportFilters"
            ),
            page=args.page,
            size=args.size,
            sort_field=args.sort_field,
            sort_order=args.sort_order,
        )
        result = federated_search(client, query, cfg=config)
    except InvalidFilter as e:
        print(f"Invalid filter: {e}", file=sys.stderr)
        return 2
    except SearchBackendError as e:
        print(f"Search failed: {e}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        pretty_print_companies(result.total, result.companies)
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build argument parser with subcommands.

    Returns:
        Configured ArgumentParser
    """
    parser = argparse.ArgumentParser(
        prog="fedsearch",
        description="fedsearch CLI: serve, init, seed, load, search",
    )
    parser.add_argument("--log-level", type=str, default=None, help="Override LOG_LEVEL for this run")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # serve subcommand
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", type=str, default=None, help="Bind host (default: API_HOST)")
    serve_parser.add_argument("--port", type=int, default=None, help="Bind port (default: API_PORT)")
    serve_parser.add_argument("--reload", action="store_true", help="Reload on code changes (development)")

    # init subcommand
    init_parser = subparsers.add_parser("init", help="Create missing indexes")
    init_parser.add_argument(
        "--mode",
        choices=["federation", "nested"],
        default=None,
        help="Which mode's indexes to create (default: SERVICE_MODE)",
    )

    # seed subcommand
    seed_parser = subparsers.add_parser("seed", help="Insert sample data")
    seed_parser.add_argument(
        "--mode",
        choices=["federation", "nested"],
        default=None,
        help="Which sample to insert (default: SERVICE_MODE)",
    )

    # load subcommand
    load_parser = subparsers.add_parser("load", help="Bulk index a JSONL file")
    load_parser.add_argument("input", type=Path, help="JSONL file, one document per line")
    load_parser.add_argument("--index", type=str, required=True, help="Target index name")
    load_parser.add_argument("--id-field", type=str, default="id", help="Field used as document _id (default: id)")
    load_parser.add_argument(
        "--batch-size",
        type=int,
        default=DEFAULT_LOAD_BATCH,
        help=f"Documents per bulk request (default: {DEFAULT_LOAD_BATCH})",
    )
    load_parser.epilog = (
        "Examples:\n"
        "  fedsearch load reports.jsonl --index reports\n"
        "  fedsearch load companies.jsonl --index company --batch-size 1000\n"
    )

    # search subcommand
    search_parser = subparsers.add_parser("search", help="Run a federated or nested search")
    search_parser.add_argument("--company-filter", type=str, default=None, help='JSON, e.g. \'{"name": "Company"}\'')
    search_parser.add_argument("--report-filter", type=str, default=None, help='JSON, e.g. \'{"status": "draft"}\'')
    search_parser.add_argument("--page", type=int, default=1, help="1-based page of companies (default: 1)")
    search_parser.add_argument("--size", type=int, default=10, help="Companies per page (default: 10)")
    search_parser.add_argument(
        "--sort-field",
        type=str,
        default=DEFAULT_SORT_FIELD,
        help=f"Company sort field (default: {DEFAULT_SORT_FIELD})",
    )
    search_parser.add_argument("--sort-order", choices=["asc", "desc"], default="asc")
    search_parser.add_argument("--nested", action="store_true", help="Search the nested index instead")
    search_parser.add_argument("--parent-filter", type=str, default=None, help='JSON, e.g. \'{"age": 45}\'')
    search_parser.add_argument(
        "--child-filter", type=str, default=None, help='JSON, e.g. \'{"name": "Alice", "grade": 3}\''
    )
    search_parser.add_argument("--json", action="store_true", help="Output raw JSON")
    search_parser.epilog = (
        "Examples:\n"
        "  fedsearch search --report-filter '{\"status\": \"draft\"}'\n"
        "  fedsearch search --page 2 --size 2 --sort-order desc\n"
        "  fedsearch search --nested --child-filter '{\"name\": \"Alice\", \"grade\": 3}'\n"
    )

    return parser


COMMANDS = {
    "serve": cmd_serve,
    "init": cmd_init,
    "seed": cmd_seed,
    "load": cmd_load,
    "search": cmd_search,
}


def main() -> None:
    """Main entry point for CLI."""
    parser = build_parser()
    args = parser.parse_args()
    configure_logging(args.log_level.upper() if args.log_level else None)

    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        rc = 2
    else:
        rc = handler(args)

    sys.exit(rc)


if __name__ == "__main__":
    main()
