#!/usr/bin/env python3
import argparse
import json
import logging
import sys
from pathlib import Path

from md_search_indexer.app import apply_env_overrides, load_config, rebuild_index, with_defaults
from md_search_indexer.index.base import IndexLifecycleError
from md_search_indexer.ingest.md_sections import segment
from md_search_indexer.ingest.metadata import strip_front_matter
from md_search_indexer.ingest.sources import SourceError, page_url
from md_search_indexer.logging_utils import setup_logging
from md_search_indexer.utils.output import write_report

logger = logging.getLogger(__name__)


def _apply_overrides(cfg: dict, args) -> dict:
    """CLI flags > env > config file."""
    overrides = {
        ("source", "directory"): args.dir,
        ("source", "git_url"): args.git_url,
        ("source", "branch"): args.branch,
        ("index", "name"): args.index,
        ("index", "host"): args.host,
        ("index", "max_batch_bytes"): args.max_batch_bytes,
        ("index", "workers"): args.workers,
    }
    for (section, key), value in overrides.items():
        if value is not None:
            cfg[section][key] = value
    if args.cleanup:
        cfg["source"]["cleanup"] = True
    return cfg


def _run_rebuild(args) -> int:
    if Path(args.config).exists():
        cfg = load_config(args.config)
    else:
        cfg = apply_env_overrides(with_defaults({}))
    cfg = _apply_overrides(cfg, args)
    try:
        report = rebuild_index(cfg)
    except (IndexLifecycleError, SourceError, ValueError) as e:
        logger.error("Rebuild aborted: %s", e)
        return 2

    if args.out or args.save:
        target = write_report(report, out_path=args.out, fmt=args.format, save_dir=args.save)
        logger.info("Report written to %s", target)

    print(
        f"{report.index_name}: {report.documents} documents, {report.sections} sections, "
        f"{len(report.batches)} batches ({len(report.failed_batches)} failed)"
    )
    return 0 if report.ok else 2


def _run_sections(args) -> int:
    path = Path(args.file)
    url = args.url or page_url(path.name)
    sections = segment(url, strip_front_matter(path.read_text(encoding="utf-8")))
    print(json.dumps([s.model_dump() for s in sections], ensure_ascii=False, indent=2))
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="md-search-indexer",
        description="Rebuild a full-text search index from a tree of Markdown documents.",
    )
    sub = parser.add_subparsers(dest="cmd", required=True)

    parser.add_argument("--verbose", "-v", action="store_true", help="Enable DEBUG logs (to stderr).")
    parser.add_argument("--quiet", "-q", action="store_true", help="Reduce logs to WARN and above.")
    parser.add_argument("--log-json", action="store_true", help="Emit logs as JSON lines (stderr).")

    # -----------------------
    # rebuild
    # -----------------------
    p_rb = sub.add_parser("rebuild", help="Drop, recreate and fill the search index")
    p_rb.add_argument("--config", type=str, default="config.yaml")
    p_rb.add_argument("--dir", type=str, default=None, help="Local Markdown tree (or clone target)")
    p_rb.add_argument("--git-url", type=str, default=None, help="Clone this repository first")
    p_rb.add_argument("--branch", type=str, default=None, help="Branch to clone (default master)")
    p_rb.add_argument(
        "--cleanup", action="store_true", help="Delete the cloned checkout when done"
    )
    p_rb.add_argument("--index", type=str, default=None, help="Target index name")
    p_rb.add_argument(
        "--host",
        type=str,
        default=None,
        help="Search engine URL. Precedence: --host > ELASTIC_SEARCH_HOST env > config",
    )
    p_rb.add_argument(
        "--max-batch-bytes", type=int, default=None, help="Bulk request ceiling (default 10 MiB)"
    )
    p_rb.add_argument("--workers", type=int, default=None, help="Concurrent bulk requests")
    p_rb.add_argument("--out", type=str, default=None, help="Write the run report to a file")
    p_rb.add_argument(
        "--format",
        type=str,
        default=None,
        choices=["json", "md", "txt"],
        help="Report format (overrides --out extension)",
    )
    p_rb.add_argument("--save", type=str, default=None, help="Directory to auto-save the report")

    # -----------------------
    # sections
    # -----------------------
    p_sec = sub.add_parser("sections", help="Print the sections of one Markdown file as JSON")
    p_sec.add_argument("file", type=str)
    p_sec.add_argument("--url", type=str, default=None, help="Page URL used for section links")

    args = parser.parse_args(argv)

    if args.verbose and args.quiet:
        print("Cannot use --verbose and --quiet together.", file=sys.stderr)
        sys.exit(2)
    if args.verbose:
        setup_logging(level="DEBUG", json_logs=args.log_json)
    elif args.quiet:
        setup_logging(level="WARNING", json_logs=args.log_json)
    else:
        setup_logging(level="INFO", json_logs=args.log_json)

    logger.debug("CLI args parsed: %s", vars(args))

    if args.cmd == "rebuild":
        sys.exit(_run_rebuild(args))
    elif args.cmd == "sections":
        sys.exit(_run_sections(args))
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
