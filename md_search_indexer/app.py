from __future__ import annotations

import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor
from copy import deepcopy
from pathlib import Path
from typing import List, Optional, Tuple

import yaml

from .index.base import SearchClient
from .index.batch import MAX_BATCH_BYTES, pack, submit_batches
from .index.factory import make_client
from .index.lifecycle import ensure_clean_index
from .index.schema import Document, IndexOperation, RunReport
from .ingest.md_sections import segment
from .ingest.metadata import TitleCache, resolve_metadata, strip_front_matter
from .ingest.sources import (
    MARKDOWN_EXT,
    clone_repository,
    load_documents,
    operation_id,
    page_url,
    remove_checkout,
)
from .utils.log import Logger

logger = logging.getLogger(__name__)

DEFAULTS = {
    "app": {"log_dir": "logs"},
    "source": {
        "directory": "docs",
        "git_url": None,
        "branch": "master",
        "extension": MARKDOWN_EXT,
        "cleanup": False,
    },
    "index": {
        "name": None,
        "backend": "elasticsearch",
        "host": None,
        "username": None,
        "password": None,
        "max_batch_bytes": MAX_BATCH_BYTES,
        "workers": 1,
        "connect_timeout": None,
        "read_timeout": None,
    },
}

ENV_OVERRIDES = {
    "ELASTIC_SEARCH_HOST": ("index", "host"),
    "ELASTIC_SEARCH_USER": ("index", "username"),
    "ELASTIC_SEARCH_PASSWORD": ("index", "password"),
}


def with_defaults(cfg: Optional[dict]) -> dict:
    merged = deepcopy(DEFAULTS)
    for section, values in (cfg or {}).items():
        if isinstance(values, dict) and isinstance(merged.get(section), dict):
            merged[section].update(values)
        else:
            merged[section] = values
    return merged


def apply_env_overrides(cfg: dict) -> dict:
    for env, (section, key) in ENV_OVERRIDES.items():
        if os.getenv(env):
            cfg[section][key] = os.getenv(env)
    return cfg


def load_config(path: str | Path) -> dict:
    with open(path, "r", encoding="utf-8") as f:
        return apply_env_overrides(with_defaults(yaml.safe_load(f)))


def _require(cfg: dict, section: str, key: str):
    value = (cfg.get(section) or {}).get(key)
    if value in (None, ""):
        raise ValueError(f"Missing required setting: {section}.{key}")
    return value


def client_from_config(cfg: dict) -> SearchClient:
    idx = cfg["index"]
    return make_client(
        backend=idx.get("backend", "elasticsearch"),
        host=idx.get("host"),
        username=idx.get("username"),
        password=idx.get("password"),
        connect_timeout=idx.get("connect_timeout"),
        read_timeout=idx.get("read_timeout"),
    )


def document_operations(
    doc: Document, index_name: str, titles: TitleCache, extension: str = MARKDOWN_EXT
) -> List[IndexOperation]:
    meta = resolve_metadata(doc.path, titles)
    sections = segment(page_url(doc.path, extension), strip_front_matter(doc.content))
    return [
        IndexOperation(
            operation_id=operation_id(doc.path, i),
            index_name=index_name,
            section=section,
            document_title=meta.document_title,
            document_id=meta.document_id,
        )
        for i, section in enumerate(sections)
    ]


def build_operations(
    docs: List[Document],
    index_name: str,
    titles: TitleCache,
    extension: str = MARKDOWN_EXT,
    workers: int = 1,
    events: Optional[Logger] = None,
) -> Tuple[List[IndexOperation], List[str]]:
    """
    Operations for all documents, in document order.

    A document that fails to render is logged and contributes nothing; its
    path is returned in the skipped list.
    """

    def one(doc: Document) -> Optional[List[IndexOperation]]:
        try:
            return document_operations(doc, index_name, titles, extension)
        except Exception as e:
            logger.exception("Could not segment %s: %s", doc.path, e, extra={"document": doc.path})
            if events:
                events.write({"event": "render_error", "file": doc.path, "error": str(e)})
            return None

    if workers > 1 and len(docs) > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            per_doc = list(executor.map(one, docs))
    else:
        per_doc = [one(d) for d in docs]

    operations: List[IndexOperation] = []
    skipped: List[str] = []
    for doc, ops in zip(docs, per_doc):
        if ops is None:
            skipped.append(doc.path)
            continue
        operations.extend(ops)
    return operations, skipped


def rebuild_index(cfg: dict, client: Optional[SearchClient] = None) -> RunReport:
    """
    Full rebuild of one search index from a Markdown tree.

    Clone (optional) -> load -> metadata + sections per document -> drop and
    recreate the index -> pack into bulk batches -> submit every batch.
    Index lifecycle failures raise; batch failures are reported.
    """
    cfg_run = with_defaults(cfg)
    index_name = _require(cfg_run, "index", "name")
    src = cfg_run["source"]
    directory = Path(_require(cfg_run, "source", "directory"))
    extension = src.get("extension") or MARKDOWN_EXT
    max_bytes = int(cfg_run["index"].get("max_batch_bytes") or MAX_BATCH_BYTES)
    workers = max(1, int(cfg_run["index"].get("workers") or 1))
    events = Logger(Path(cfg_run["app"]["log_dir"]) / "rebuild.log.jsonl")
    client = client or client_from_config(cfg_run)

    t0 = time.perf_counter()
    report = RunReport(index_name=index_name)
    try:
        if src.get("git_url"):
            clone_repository(src["git_url"], directory, src.get("branch") or "master")

        docs = load_documents(directory, extension)
        report.documents = len(docs)

        # Fresh per run: titles must not leak from one run into the next
        titles = TitleCache(directory)
        operations, report.skipped_documents = build_operations(
            docs, index_name, titles, extension, workers=workers, events=events
        )
        for folder, err in titles.errors:
            events.write({"event": "title_config_error", "folder": folder, "error": err})
        report.sections = len(operations)

        ensure_clean_index(client, index_name)

        batches = pack(operations, max_bytes)
        logger.info("Sending %d sections in %d bulk requests", len(operations), len(batches))
        report.batches = submit_batches(client, batches, workers=workers)
        for failed in report.failed_batches:
            events.write({"event": "batch_error", "batch": failed.number, "error": failed.error})
    finally:
        if src.get("git_url") and src.get("cleanup"):
            remove_checkout(directory)

    report.elapsed_ms = int((time.perf_counter() - t0) * 1000)
    events.write(
        {
            "event": "run_complete",
            "index": index_name,
            "ok": report.ok,
            "documents": report.documents,
            "sections": report.sections,
            "batches": len(report.batches),
            "failed_batches": len(report.failed_batches),
        }
    )
    if report.ok:
        logger.info("Successfully created/updated index: %s", index_name)
    else:
        logger.error(
            "Upload to index %s failed for %d of %d batches",
            index_name,
            len(report.failed_batches),
            len(report.batches),
        )
    return report
