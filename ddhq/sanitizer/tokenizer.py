# ddhq/sanitizer/tokenizer.py
#
# Minimal start-tag / attribute scanner.
#
# This is NOT an HTML parser. It walks the markup once, finds start tags and
# records where each attribute name and value sits in the source string so
# the sanitizer can splice replacements in without touching anything else.
#
# Handles:
#   - "double", 'single' and unquoted attribute values (">" inside quotes ok)
#   - boolean attributes (no value)
#   - <!-- comments -->, <!DOCTYPE>, <?pi?>
#   - raw-text bodies of <script>/<style>/<textarea>/<title> (skipped whole)
#
# An unterminated tag ends the scan; the rest of the document is left as is.

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple

__all__ = ["Attr", "Tag", "iter_tags", "apply_edits"]

_TAG_NAME_RE = re.compile(r"[a-zA-Z][^\s/>]*")

RAW_TEXT_TAGS = {"script", "style", "textarea", "title"}


@dataclass
class Attr:
    name: str                 # lowercased
    raw_name: str
    value: Optional[str]      # raw text between quotes (entities NOT decoded)
    quote: str                # '"', "'" or "" (unquoted / boolean)
    lead: int                 # start of whitespace before the name
    start: int                # name start
    name_end: int
    value_start: int = -1     # first char of value (after opening quote)
    value_end: int = -1       # one past last char of value
    end: int = -1             # one past the closing quote / value / name


@dataclass
class Tag:
    name: str
    start: int
    end: int
    attrs: List[Attr] = field(default_factory=list)

    def get(self, name: str) -> Optional[Attr]:
        for a in self.attrs:
            if a.name == name:
                return a
        return None


def _scan_attrs(html: str, pos: int) -> Optional[Tuple[List[Attr], int]]:
    n = len(html)
    attrs: List[Attr] = []
    j = pos
    while True:
        lead = j
        while j < n and html[j].isspace():
            j += 1
        if j >= n:
            return None

        c = html[j]
        if c == ">":
            return attrs, j + 1
        if c == "/" or c == "=":
            j += 1
            continue

        ns = j
        while j < n and not html[j].isspace() and html[j] not in "/>=":
            j += 1
        raw_name = html[ns:j]
        attr = Attr(
            name=raw_name.lower(),
            raw_name=raw_name,
            value=None,
            quote="",
            lead=lead,
            start=ns,
            name_end=j,
            end=j,
        )

        k = j
        while k < n and html[k].isspace():
            k += 1
        if k < n and html[k] == "=":
            k += 1
            while k < n and html[k].isspace():
                k += 1
            if k >= n:
                return None
            q = html[k]
            if q in ("\"", "'"):
                close = html.find(q, k + 1)
                if close < 0:
                    return None
                attr.quote = q
                attr.value_start, attr.value_end = k + 1, close
                attr.end = close + 1
            else:
                vs = k
                while k < n and not html[k].isspace() and html[k] != ">":
                    k += 1
                attr.value_start, attr.value_end = vs, k
                attr.end = k
            attr.value = html[attr.value_start:attr.value_end]
            j = attr.end

        attrs.append(attr)


def _find_raw_text_close(html: str, name: str, pos: int) -> int:
    m = re.compile(r"</" + re.escape(name) + r"[\s/>]", re.IGNORECASE).search(html, pos)
    return m.start() if m else len(html)


def iter_tags(html: str) -> Iterator[Tag]:
    """Yield every start tag in `html`, in document order."""
    n = len(html)
    i = 0
    while i < n:
        lt = html.find("<", i)
        if lt < 0:
            return

        if html.startswith("<!--", lt):
            close = html.find("-->", lt + 4)
            if close < 0:
                return
            i = close + 3
            continue

        if lt + 1 < n and html[lt + 1] in "!?":
            gt = html.find(">", lt + 2)
            if gt < 0:
                return
            i = gt + 1
            continue

        m = _TAG_NAME_RE.match(html, lt + 1)
        if not m:
            # end tag, stray "<", "a < b" in text ...
            i = lt + 1
            continue

        scanned = _scan_attrs(html, m.end())
        if scanned is None:
            return
        attrs, end = scanned
        name = m.group(0).lower()
        yield Tag(name=name, start=lt, end=end, attrs=attrs)

        i = end
        self_closing = html[end - 2:end] == "/>"
        if name in RAW_TEXT_TAGS and not self_closing:
            i = _find_raw_text_close(html, name, end)


def apply_edits(html: str, edits: List[Tuple[int, int, str]]) -> str:
    """Splice non-overlapping (start, end, replacement) edits into html."""
    if not edits:
        return html
    out: List[str] = []
    pos = 0
    for start, end, text in sorted(edits, key=lambda e: e[0]):
        out.append(html[pos:start])
        out.append(text)
        pos = end
    out.append(html[pos:])
    return "".join(out)
