import subprocess
from pathlib import Path

import pytest

from conftest import write_tree
from md_search_indexer.ingest import sources
from md_search_indexer.ingest.sources import (
    SourceError,
    clone_repository,
    list_markdown_files,
    load_documents,
    make_entry_id,
    operation_id,
    page_url,
)


def test_list_filters_unpublished_paths(docs_tree: Path):
    files = list_markdown_files(docs_tree)
    assert files == [
        "guide/index.md",
        "guide/setup.md",
        "index.md",
        "my-guide/faq.md",
        "my-guide/notes.md",
    ]


def test_readme_kept_without_sibling_index(tmp_path: Path):
    write_tree(tmp_path, {"README.md": "# R\n", "a/readme.md": "# A\n", "a/index.md": "# I\n"})
    assert list_markdown_files(tmp_path) == ["README.md", "a/index.md"]


def test_assets_prefix_only_excludes_the_folder(tmp_path: Path):
    write_tree(tmp_path, {"assets/x.md": "# X\n", "assets-guide/y.md": "# Y\n"})
    assert list_markdown_files(tmp_path) == ["assets-guide/y.md"]


def test_missing_directory_raises(tmp_path: Path):
    with pytest.raises(SourceError):
        list_markdown_files(tmp_path / "nope")


def test_load_documents_reads_content(docs_tree: Path):
    docs = load_documents(docs_tree)
    by_path = {d.path: d.content for d in docs}
    assert by_path["guide/setup.md"].startswith("# Intro")


def test_page_url_encodes_like_encode_uri():
    assert page_url("guide/setup.md") == "guide/setup.html"
    assert page_url("my docs/Q&A (v1).md") == "my%20docs/Q&A%20(v1).html"
    assert page_url("notes/ü.md") == "notes/%C3%BC.html"
    assert page_url("notes/plain.txt") == "notes/plain.txt"


def test_entry_id_and_operation_id():
    assert make_entry_id("guide/setup.md") == "guide/setupmd"
    assert make_entry_id("my docs/Q&A (v1).md") == "mydocs/Q&A(v1)md"
    assert make_entry_id("my%20docs/a.md") == "mydocs/amd"
    assert make_entry_id("/") == "root"
    assert operation_id("guide/setup.md", 3) == "guide/setupmd_3"


def test_clone_repository_runs_git(monkeypatch, tmp_path: Path):
    target = tmp_path / "checkout"
    target.mkdir()
    (target / "stale.md").write_text("old", encoding="utf-8")
    calls = []

    def fake_run(cmd, **kwargs):
        calls.append(cmd)
        return subprocess.CompletedProcess(cmd, 0, "", "")

    monkeypatch.setattr(sources.subprocess, "run", fake_run)
    clone_repository("https://example.com/docs.git", target, "main")
    assert calls == [
        ["git", "clone", "--depth", "1", "--branch", "main", "https://example.com/docs.git", str(target)]
    ]
    assert not target.exists()  # old checkout removed before cloning


def test_clone_failure_raises_source_error(monkeypatch, tmp_path: Path):
    def fake_run(cmd, **kwargs):
        raise subprocess.CalledProcessError(128, cmd, stderr="fatal: repository not found")

    monkeypatch.setattr(sources.subprocess, "run", fake_run)
    with pytest.raises(SourceError, match="repository not found"):
        clone_repository("https://example.com/missing.git", tmp_path / "c")
