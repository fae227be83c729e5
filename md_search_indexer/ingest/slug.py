import re
from typing import Dict

# Space stays in the allowed set even though spaces are already hyphens here.
_DISALLOWED = re.compile(r"[^a-z0-9- ]+")


def slugify(title: str) -> str:
    """Anchor id for a heading, matching the ids the rendered pages carry."""
    s = title.lstrip().replace(" ", "-")
    return _DISALLOWED.sub("", s.lower())


class SlugRegistry:
    """Per-document slug bookkeeping: first use is bare, repeats get -1, -2, ..."""

    def __init__(self):
        self._seen: Dict[str, int] = {}

    def unique(self, title: str) -> str:
        slug = slugify(title)
        if slug in self._seen:
            self._seen[slug] += 1
            return f"{slug}-{self._seen[slug]}"
        self._seen[slug] = 0
        return slug
