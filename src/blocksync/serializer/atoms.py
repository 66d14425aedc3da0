"""Canonical text encodings of the atomic inline elements.

Each encoder takes the element's attribute mapping and returns the Markdown
the host stores for it:

=============  ==============================================
citation       ``[see -@smith2020, p. 4; @jones2019 passim]``
annotation     ``<!-- ::task:: [x] text -->`` / ``<!-- ::comment:: text -->``
footnote_ref   ``[^3]``
footnote_def   ``[^3]: `` (opens the definition paragraph)
=============  ==============================================
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from typing import Any

ANNOTATION_TYPES: frozenset[str] = frozenset({"task", "comment", "reference"})

_CITEKEY_RE = re.compile(r"(-?)@([\w:.-]+)(?:,\s*(.+))?")
_WHITESPACE_RE = re.compile(r"\s+")


def _locators(raw: Any) -> list[str]:
    if not raw:
        return []
    if isinstance(raw, str):
        try:
            value = json.loads(raw)
        except ValueError:
            return []
    else:
        value = raw
    return [str(v) if v else "" for v in value] if isinstance(value, list) else []


def serialize_citation(attrs: Mapping[str, Any]) -> str:
    """Render citation attributes as a Pandoc citation bracket.

    ``citekeys`` is a comma-separated string and ``locators`` a JSON list in
    the same order.  A citation with no keys falls back to its recorded
    ``raw_syntax``.
    """
    keys = [k.strip() for k in str(attrs.get("citekeys") or "").split(",") if k.strip()]
    if not keys:
        return str(attrs.get("raw_syntax") or "")
    locators = _locators(attrs.get("locators"))
    prefix = attrs.get("prefix") or ""

    parts: list[str] = []
    for i, key in enumerate(keys):
        locator = locators[i] if i < len(locators) else ""
        suppress = "-" if attrs.get("suppress_author") and i == 0 else ""
        lead = f"{prefix} " if i == 0 and prefix else ""
        part = f"{lead}{suppress}@{key}"
        if locator:
            part += f", {locator}"
        parts.append(part)

    body = "; ".join(parts)
    suffix = attrs.get("suffix") or ""
    if suffix:
        body = f"{body} {suffix}"
    return f"[{body}]"


def parse_citation_bracket(content: str) -> dict[str, Any]:
    """Parse the inside of a ``[...]`` citation bracket into node attributes.

    Only the first citation's leading text becomes the prefix.
    """
    citekeys: list[str] = []
    locators: list[str] = []
    prefix = ""
    suppress_author = False

    for part in (p.strip() for p in content.split(";")):
        at = part.find("@")
        if at > 0:
            before = part[:at].strip()
            if before != "-" and not citekeys:
                prefix = before.rstrip("-").strip()
        match = _CITEKEY_RE.search(part)
        if match:
            suppress, key, locator = match.groups()
            if suppress == "-":
                suppress_author = True
            citekeys.append(key)
            locators.append((locator or "").strip())

    return {
        "citekeys": ",".join(citekeys),
        "locators": json.dumps(locators),
        "prefix": prefix,
        "suffix": "",
        "suppress_author": suppress_author,
        "raw_syntax": f"[{content}]",
    }


def serialize_annotation(attrs: Mapping[str, Any], text: str) -> str:
    """Render an annotation as an HTML comment marker.

    Line breaks and runs of whitespace in *text* collapse to single spaces.
    """
    body = _WHITESPACE_RE.sub(" ", text).strip()
    kind = attrs.get("type") or "comment"
    if kind == "task":
        checkbox = "[x]" if attrs.get("is_completed") else "[ ]"
        return f"<!-- ::task:: {checkbox} {body} -->"
    return f"<!-- ::{kind}:: {body} -->"


def serialize_footnote_ref(attrs: Mapping[str, Any]) -> str:
    return f"[^{attrs.get('label', '')}]"


def serialize_footnote_def(attrs: Mapping[str, Any]) -> str:
    return f"[^{attrs.get('label', '')}]: "
