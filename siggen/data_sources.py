# siggen/data_sources.py

import logging
import re
from pathlib import Path
from typing import List, Optional, Tuple

from siggen.errors import RowError, SourceError
from siggen.models import Row, Table


logger = logging.getLogger(__name__)

DELIMITERS = (";", ",", "\t")
QUOTE = '"'

# records end at CR, LF or CRLF only; other Unicode line breaks stay inside values
LINE_BREAK_RE = re.compile(r"\r\n|\r|\n")


# -------------------------------------------------
# Public API
# -------------------------------------------------

def load_table(path: str, *, strict: bool = True) -> Table:
    """
    Load a delimited table from a UTF-8 text file.

    Raises:
        SourceError: the file is missing, unreadable or not UTF-8.
    """
    p = Path(path).expanduser()
    try:
        # utf-8-sig so exports from spreadsheet tools keep their first header
        text = p.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        raise SourceError(f"Cannot read table {p}: {e}", path=str(p)) from e

    table = parse_table(text, strict=strict)
    logger.info(
        "Loaded %s: %d column(s), %d row(s), %d rejected, delimiter %r",
        p.name, len(table.headers), len(table.rows), len(table.rejected), table.delimiter,
    )
    return table


def parse_table(text: str, *, strict: bool = True) -> Table:
    """
    Parse delimited text into a Table.

    The first non-blank line is the header. Whitespace-only lines are skipped.
    In strict mode a row whose field count differs from the header count is
    rejected and recorded on ``Table.rejected``; otherwise it is padded with
    empty strings or truncated.
    """
    lines = _numbered_lines(text or "")
    if not lines:
        return Table()

    header_no, header_line = lines[0]
    delimiter = detect_delimiter(header_line)
    headers = tuple(h for h in (t.strip() for t in split_line(header_line, delimiter)) if h)

    rows: List[Row] = []
    rejected: List[RowError] = []

    for line_no, line in lines[1:]:
        values = split_line(line, delimiter)
        if strict and len(values) != len(headers):
            err = RowError(
                line_no,
                f"column count mismatch (expected {len(headers)}, got {len(values)}), skipping.",
            )
            logger.warning("%s", err)
            rejected.append(err)
            continue
        rows.append(Row(headers, values, line_number=line_no))

    return Table(headers=headers, rows=tuple(rows), rejected=tuple(rejected), delimiter=delimiter)


def detect_delimiter(line: Optional[str]) -> str:
    """
    Pick the field delimiter from the header line.

    Semicolon wins when its count is at least that of both others, then comma,
    then tab. A delimiter that does not occur is never picked; the default is
    comma. Read literally, "at least both others" would pick semicolon for a
    header with no delimiter at all (0 >= 0); such a header yields
    comma, i.e. a single-column table.
    """
    line = line or ""
    semi, comma, tab = line.count(";"), line.count(","), line.count("\t")

    if semi and semi >= comma and semi >= tab:
        return ";"
    if comma and comma >= tab:
        return ","
    if tab:
        return "\t"
    return ","


def split_line(line: str, delimiter: str = ",") -> List[str]:
    """
    Quote-aware split of one record.

    ``"`` toggles quoting, ``""`` inside quotes is a literal quote and the
    delimiter only separates fields outside quotes. An unterminated quote
    runs to the end of the line.
    """
    if line is None:
        return []

    fields: List[str] = []
    buf: List[str] = []
    in_quotes = False
    i = 0
    n = len(line)

    while i < n:
        ch = line[i]
        if ch == QUOTE:
            if in_quotes and i + 1 < n and line[i + 1] == QUOTE:
                buf.append(QUOTE)
                i += 1
            else:
                in_quotes = not in_quotes
        elif ch == delimiter and not in_quotes:
            fields.append("".join(buf))
            buf = []
        else:
            buf.append(ch)
        i += 1

    fields.append("".join(buf))
    return fields


# -------------------------------------------------
# Internal helpers
# -------------------------------------------------

def _numbered_lines(text: str) -> List[Tuple[int, str]]:
    """Non-blank lines with their 1-based physical line numbers."""
    out = []
    for idx, raw in enumerate(LINE_BREAK_RE.split(text), start=1):
        if raw.strip():
            out.append((idx, raw))
    return out
