import re

# Block-level normalisation applied before rendering. Non-breaking spaces
# (U+00A0) are deliberately left alone so they survive into section text.
_NEWLINES = re.compile(r"\r\n|\r")


def normalize_markdown(s: str) -> str:
    if not s:
        return s
    s = _NEWLINES.sub("\n", s)
    s = s.replace("\t", "    ")
    s = s.replace("\u2424", "\n")  # SYMBOL FOR NEWLINE
    return s


# Kramdown inline attribute lists, e.g. "{: .note}" or "{#install}"
_IAL = re.compile(r"\{[:#][^{}\r\n]+\}")


def strip_attribute_lists(s: str) -> str:
    return _IAL.sub("", s)
