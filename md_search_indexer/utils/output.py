from __future__ import annotations

import datetime
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..index.schema import RunReport


def _timestamp() -> str:
    return datetime.datetime.now().strftime("%Y%m%d_%H%M%S")


def infer_format(out_path: Optional[str], fmt: Optional[str]) -> str:
    if fmt:
        return fmt.lower()
    if out_path:
        ext = Path(out_path).suffix.lower().lstrip(".")
        if ext in {"json", "md", "txt"}:
            return ext
    return "json"


def ensure_outpath(out_path: Optional[str], fmt: str, save_dir: Optional[str], index: str) -> Path:
    if out_path:
        p = Path(out_path)
        p.parent.mkdir(parents=True, exist_ok=True)
        return p
    base_dir = Path(save_dir or "outputs")
    base_dir.mkdir(parents=True, exist_ok=True)
    return base_dir / f"{_timestamp()}_{index}.{fmt}"


def report_dict(report: RunReport) -> Dict[str, Any]:
    obj = report.model_dump()
    obj["ok"] = report.ok
    obj["failed_batches"] = len(report.failed_batches)
    return obj


def as_markdown(obj: Dict[str, Any]) -> str:
    lines: List[str] = []
    status = "ok" if obj.get("ok") else "FAILED"
    lines.append(f"# Index rebuild: {obj.get('index_name')} ({status})\n")
    lines.append(f"- Documents: {obj.get('documents')}")
    lines.append(f"- Sections: {obj.get('sections')}")
    lines.append(f"- Batches: {len(obj.get('batches') or [])} ({obj.get('failed_batches')} failed)")
    lines.append(f"- Elapsed: {obj.get('elapsed_ms')} ms")
    lines.append("")
    skipped = obj.get("skipped_documents") or []
    if skipped:
        lines.append("## Skipped documents")
        for p in skipped:
            lines.append(f"- `{p}`")
        lines.append("")
    failed = [b for b in obj.get("batches") or [] if not b.get("ok")]
    if failed:
        lines.append("## Failed batches")
        for b in failed:
            lines.append(f"- #{b['number']} ({b['operations']} operations): {b.get('error')}")
    return "\n".join(lines).strip() + "\n"


def as_text(obj: Dict[str, Any]) -> str:
    lines: List[str] = []
    lines.append(f"INDEX: {obj.get('index_name')}")
    lines.append(f"STATUS: {'ok' if obj.get('ok') else 'failed'}")
    lines.append(f"DOCUMENTS: {obj.get('documents')}  SECTIONS: {obj.get('sections')}")
    for b in obj.get("batches") or []:
        state = "ok" if b.get("ok") else f"failed: {b.get('error')}"
        lines.append(f"- batch {b['number']} | {b['operations']} ops | {state}")
    for p in obj.get("skipped_documents") or []:
        lines.append(f"- skipped {p}")
    return "\n".join(lines).strip() + "\n"


def write_report(
    report: RunReport,
    out_path: Optional[str] = None,
    fmt: Optional[str] = None,
    save_dir: Optional[str] = None,
) -> Path:
    fmt2 = infer_format(out_path, fmt)
    target = ensure_outpath(out_path, fmt2, save_dir, report.index_name)
    obj = report_dict(report)
    if fmt2 == "json":
        target.write_text(json.dumps(obj, ensure_ascii=False, indent=2), encoding="utf-8")
    elif fmt2 == "md":
        target.write_text(as_markdown(obj), encoding="utf-8")
    elif fmt2 == "txt":
        target.write_text(as_text(obj), encoding="utf-8")
    else:
        raise ValueError(f"Unsupported format: {fmt2}")
    return target
