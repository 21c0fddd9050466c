# siggen/placeholders.py

import csv
import io
import re
from pathlib import Path
from typing import Dict, Iterable, List

from siggen.errors import SourceError
from siggen.models import PlaceholderSet, Table, TokenSyntax, fold


DOUBLE_BRACE_RE = re.compile(r"\{\{([^{}\r\n]+)\}\}")
CSV_TEMPLATE_SEPARATOR = ";"


def sort_key(name: str):
    return (fold(name), name)


def extract_placeholders(template: str) -> PlaceholderSet:
    """
    Distinct ``{{field}}`` names in a template.

    Names are trimmed, blanks dropped, de-duplicated case-insensitively (the
    first spelling is kept) and sorted case-insensitively.
    """
    seen: Dict[str, str] = {}
    for m in DOUBLE_BRACE_RE.finditer(template or ""):
        name = m.group(1).strip()
        if name:
            seen.setdefault(fold(name), name)

    return PlaceholderSet(tuple(sorted(seen.values(), key=sort_key)), TokenSyntax.DOUBLE)


def referenced_headers(template: str, headers: Iterable[str]) -> PlaceholderSet:
    """
    Headers that a single-brace template refers to as ``{header}``, in the order
    the template first mentions them.
    """
    text = fold(template or "")
    found = []
    for key, header in _distinct(headers).items():
        pos = text.find("{" + key + "}")
        if pos >= 0:
            found.append((pos, header))
    found.sort(key=lambda item: item[0])
    return PlaceholderSet(tuple(h for _, h in found), TokenSyntax.SINGLE)


def placeholders_for(template: str, syntax: TokenSyntax, table: Table) -> PlaceholderSet:
    if syntax is TokenSyntax.SINGLE:
        return referenced_headers(template, table.headers)
    return extract_placeholders(template)


# ============================================================
# CSV template export
# ============================================================

def csv_template_header(placeholders: Iterable[str]) -> str:
    """
    A single ``;``-separated header line naming every placeholder, so a table
    matching the template can be started in a spreadsheet tool.
    """
    buf = io.StringIO()
    writer = csv.writer(
        buf,
        delimiter=CSV_TEMPLATE_SEPARATOR,
        quotechar='"',
        quoting=csv.QUOTE_MINIMAL,
        lineterminator="\r\n",
    )
    writer.writerow(list(placeholders))
    return buf.getvalue()


def write_csv_template(path: str, placeholders: Iterable[str]) -> Path:
    p = Path(path).expanduser()
    try:
        p.parent.mkdir(parents=True, exist_ok=True)
        with open(p, mode="w", encoding="utf-8", newline="") as f:
            f.write(csv_template_header(placeholders))
    except OSError as e:
        raise SourceError(f"Cannot write CSV template {p}: {e}", path=str(p)) from e
    return p


def _distinct(names: Iterable[str]) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for n in names:
        if n:
            out.setdefault(fold(n), n)
    return out


def residual_tokens(text: str) -> List[str]:
    """Double-brace names still present in rendered output."""
    return list(extract_placeholders(text).names)
