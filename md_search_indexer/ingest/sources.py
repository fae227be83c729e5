from __future__ import annotations

import logging
import re
import shutil
import subprocess
from pathlib import Path, PurePosixPath
from typing import List
from urllib.parse import quote, unquote

from ..index.schema import Document

logger = logging.getLogger(__name__)

MARKDOWN_EXT = ".md"
# Jekyll does not publish these
_EXCLUDED = re.compile(r"^(_|\.|assets/)")
_ENTRY_ID_DROP = re.compile(r"[^A-Za-z0-9/\-()_+&]")
# characters encodeURI leaves alone on top of quote()'s own safe set
_URI_SAFE = ";,/?:@&=+$!*'()#"


class SourceError(RuntimeError):
    pass


def list_markdown_files(directory: Path, extension: str = MARKDOWN_EXT) -> List[str]:
    """
    Relative POSIX paths of the publishable Markdown files under `directory`.

    A folder with an index.md publishes that as its landing page, so its
    readme.md is left out.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise SourceError(f"Source directory not found: {directory}")

    files = sorted(
        p.relative_to(directory).as_posix()
        for p in directory.rglob("*" + extension)
        if p.is_file()
    )
    files = [f for f in files if not _EXCLUDED.match(f)]

    folders_with_index = {
        str(PurePosixPath(f).parent) for f in files if PurePosixPath(f).name.lower() == "index.md"
    }
    return [
        f
        for f in files
        if not (
            PurePosixPath(f).name.lower() == "readme.md"
            and str(PurePosixPath(f).parent) in folders_with_index
        )
    ]


def load_documents(directory: Path, extension: str = MARKDOWN_EXT) -> List[Document]:
    directory = Path(directory)
    docs = []
    for rel in list_markdown_files(directory, extension):
        text = (directory / rel).read_text(encoding="utf-8", errors="replace")
        docs.append(Document(path=rel, content=text))
    logger.info("Loaded %d documents from %s", len(docs), directory)
    return docs


def page_url(path: str, extension: str = MARKDOWN_EXT) -> str:
    """Published URL of a source file: foo/bar baz.md -> foo/bar%20baz.html"""
    if path.endswith(extension):
        path = path[: -len(extension)] + ".html"
    return quote(path, safe=_URI_SAFE)


def make_entry_id(path: str) -> str:
    entry_id = _ENTRY_ID_DROP.sub("", unquote(path))
    if entry_id == "/":
        entry_id = "root"
    return entry_id


def operation_id(path: str, section_index: int) -> str:
    return f"{make_entry_id(path)}_{section_index}"


def clone_repository(url: str, directory: Path, branch: str = "master") -> Path:
    directory = Path(directory)
    remove_checkout(directory)
    directory.parent.mkdir(parents=True, exist_ok=True)
    logger.info("Cloning %s (%s) into %s", url, branch, directory)
    try:
        subprocess.run(
            ["git", "clone", "--depth", "1", "--branch", branch, url, str(directory)],
            check=True,
            capture_output=True,
            text=True,
        )
    except FileNotFoundError as e:
        raise SourceError("git executable not found") from e
    except subprocess.CalledProcessError as e:
        raise SourceError(f"git clone failed: {(e.stderr or '').strip()}") from e
    return directory


def remove_checkout(directory: Path) -> None:
    directory = Path(directory)
    if directory.exists():
        shutil.rmtree(directory)
        logger.debug("Removed checkout %s", directory)
