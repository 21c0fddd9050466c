# siggen/preview.py

from typing import Dict, Iterable, List

from bs4 import BeautifulSoup

from siggen.mailer import recipient_skip_reason
from siggen.models import GeneratedArtifact
from siggen.placeholders import residual_tokens


SNIPPET_LEN = 120


# ============================================================
# helpers
# ============================================================

def html_to_text(html: str) -> str:
    """Readable text of an HTML document, one line per block."""
    soup = BeautifulSoup(html or "", "html.parser")
    for tag in soup(["style", "script", "head"]):
        tag.decompose()
    for br in soup.find_all("br"):
        br.replace_with("\n")

    lines = [" ".join(line.split()) for line in soup.get_text("\n").splitlines()]
    return "\n".join(line for line in lines if line)


def _snippet(text: str, max_chars: int = SNIPPET_LEN) -> str:
    flat = " ".join(text.split())
    if len(flat) <= max_chars:
        return flat
    return flat[: max_chars - 1].rstrip() + "…"


# ============================================================
# preview row construction
# ============================================================

def build_preview_rows(artifacts: Iterable[GeneratedArtifact]) -> List[Dict]:
    """
    Build preview table rows.

    Returns list of dicts with keys:
        row           (source line number)
        name
        email
        filename
        deliverable   (False for reserved / unparseable addresses)
        skip_reason
        unfilled      (double-brace tokens left in the output)
        snippet       (plain-text start of the document)
    """
    out: List[Dict] = []

    for a in artifacts:
        reason = recipient_skip_reason(a.email)
        out.append(
            {
                "row": a.row_number,
                "name": a.name,
                "email": a.email,
                "filename": a.filename,
                "deliverable": reason is None,
                "skip_reason": reason or "",
                "unfilled": residual_tokens(a.content),
                "snippet": _snippet(html_to_text(a.content)),
            }
        )

    return out
