from __future__ import annotations

import logging
import re
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import frontmatter
import yaml

from ..index.schema import DocumentMetadata

logger = logging.getLogger(__name__)

FOLDER_CONFIG = "index.md"

_NON_WORD = re.compile(r"[^A-Za-z0-9_]")
_TITLE_WORD = re.compile(r"[^\s-]+")
_YAML = frontmatter.YAMLHandler()


def title_case(name: str) -> str:
    """'my-guide' -> 'My-Guide', 'getting STARTED' -> 'Getting Started'."""
    return _TITLE_WORD.sub(lambda m: m.group(0)[:1].upper() + m.group(0)[1:].lower(), name)


def document_id(title: Optional[str]) -> Optional[str]:
    # The search page derives the same id from the title it displays.
    if not title:
        return None
    return _NON_WORD.sub("", title).lower()


def _read_text(path: Path) -> Optional[str]:
    if not path.is_file():
        return None
    return path.read_text(encoding="utf-8")


def parse_title(config_text: str) -> Optional[str]:
    """Title from an index.md front matter block; None when there is none."""
    if frontmatter.checks(config_text):
        data = frontmatter.loads(config_text).metadata
    else:
        # Without a delimited block the whole file is read as YAML
        data = yaml.safe_load(config_text.replace("---", ""))
    if isinstance(data, dict) and data.get("title"):
        return str(data["title"])
    return None


class TitleCache:
    """
    Document titles per top-level folder for one indexing run.

    A folder's title comes from the `title` key of its index.md front
    matter, else from the folder name. Each folder is resolved once; the
    lock makes the check-then-populate atomic when documents are processed
    from several threads.
    """

    def __init__(self, root: Path, read_file: Optional[Callable[[Path], Optional[str]]] = None):
        self.root = Path(root)
        self.read_file = read_file or _read_text
        self.errors: List[Tuple[str, str]] = []
        self._titles: Dict[str, str] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._titles)

    def title_for(self, folder: str) -> str:
        with self._lock:
            if folder not in self._titles:
                self._titles[folder] = self._resolve(folder)
            return self._titles[folder]

    def _resolve(self, folder: str) -> str:
        config_path = self.root / folder / FOLDER_CONFIG
        try:
            text = self.read_file(config_path)
            title = parse_title(text) if text is not None else None
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
            logger.warning("Unreadable folder config %s: %s", config_path, e)
            self.errors.append((folder, str(e)))
            title = None
        return title or title_case(folder)


def resolve_metadata(path: str, titles: TitleCache) -> DocumentMetadata:
    parts = path.split("/")
    if len(parts) < 2:
        return DocumentMetadata()
    title = titles.title_for(parts[0])
    return DocumentMetadata(document_title=title, document_id=document_id(title))


def strip_front_matter(content: str) -> str:
    """Page body as published: a leading front matter block is not rendered."""
    if not _YAML.detect(content):
        return content
    try:
        _, body = _YAML.split(content)
    except ValueError:
        # Opening delimiter with no closing one
        return content
    return body.lstrip("\n")
