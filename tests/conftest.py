import sys
from pathlib import Path

import pytest

# Repo root = one level above tests/
REPO_ROOT = Path(__file__).resolve().parents[1]

# Ensure repo root is on sys.path so `import cli` and the package work uninstalled.
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from md_search_indexer.index.base import BulkSubmitError, SearchClient  # noqa: E402


class FakeSearchClient(SearchClient):
    """In-memory index that records every call."""

    def __init__(self, existing=(), fail_batches=(), fail_on=None):
        self.indices = {name: {} for name in existing}
        self.mappings = {}
        self.calls = []
        self.fail_batches = set(fail_batches)
        self.fail_on = fail_on

    def _maybe_fail(self, op):
        if self.fail_on == op:
            raise RuntimeError(f"{op} refused")

    def exists(self, index):
        self.calls.append(("exists", index))
        self._maybe_fail("exists")
        return index in self.indices

    def delete(self, index):
        self.calls.append(("delete", index))
        self._maybe_fail("delete")
        del self.indices[index]

    def create(self, index, properties):
        self.calls.append(("create", index))
        self._maybe_fail("create")
        self.indices[index] = {}
        self.mappings[index] = properties

    def bulk(self, batch):
        self.calls.append(("bulk", batch.number))
        if batch.number in self.fail_batches:
            raise BulkSubmitError(f"batch {batch.number}: rejected")
        for op in batch.operations:
            self.indices[op.index_name][op.operation_id] = op.document().model_dump()
        return {"errors": False, "items": []}


@pytest.fixture
def fake_client():
    return FakeSearchClient()


def write_tree(root: Path, files: dict) -> Path:
    for rel, text in files.items():
        p = root / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(text, encoding="utf-8")
    return root


@pytest.fixture
def docs_tree(tmp_path):
    return write_tree(
        tmp_path / "docs",
        {
            "index.md": "# Welcome\nStart here.\n",
            "readme.md": "# Readme\nRepository notes.\n",
            "guide/setup.md": "# Intro\ntext\n## Details\nmore\n",
            "guide/index.md": "---\ntitle: User Guide\n---\n# Guide\nOverview of the guide.\n",
            "my-guide/faq.md": "# FAQ\n## Overview\none\n## Overview\ntwo\n",
            "my-guide/notes.md": "No headers in this file at all.\n",
            "_drafts/wip.md": "# Draft\nnot published\n",
            ".github/issue.md": "# Template\n",
            "assets/readme.md": "# Asset notes\n",
        },
    )
