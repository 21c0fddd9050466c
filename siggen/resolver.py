# siggen/resolver.py

import re
from typing import Dict, Iterable, Mapping, Optional, Sequence

from siggen.models import PlaceholderSet, TokenSyntax, fold


def render_single_brace(template: str, values: Mapping[str, Optional[str]]) -> str:
    """
    Replace every ``{key}`` (any letter case) for every key of ``values``.

    All keys are matched in one pass, so a value that looks like a token is
    inserted verbatim.
    """
    if not template or "{" not in template:
        return template or ""

    lookup: Dict[str, str] = {}
    for key, value in values.items():
        if key:
            lookup.setdefault(fold(key), "" if value is None else str(value))
    if not lookup:
        return template

    # longest first so "{first name}" is not shadowed by a shorter key
    alternatives = sorted(lookup, key=len, reverse=True)
    pattern = re.compile(
        r"\{(" + "|".join(re.escape(k) for k in alternatives) + r")\}",
        flags=re.IGNORECASE,
    )
    return pattern.sub(lambda m: lookup.get(fold(m.group(1)), m.group(0)), template)


def render_double_brace(
    template: str,
    values: Mapping[str, Optional[str]],
    placeholders: Iterable[str],
) -> str:
    """
    Replace the literal ``{{name}}`` token of every placeholder name.

    Tokens match exactly (``{{NAME}}`` and ``{{ name }}`` are not ``{{name}}``);
    only the row lookup is case-insensitive. A placeholder the row does not
    have renders as an empty string. All tokens are replaced in one pass, so a
    value that looks like a token is inserted verbatim.
    """
    if not template or "{{" not in template:
        return template or ""

    row = {fold(k): ("" if v is None else str(v)) for k, v in reversed(list(values.items()))}
    tokens: Dict[str, str] = {}
    for name in placeholders:
        if name:
            tokens.setdefault("{{" + name + "}}", row.get(fold(name), ""))
    if not tokens:
        return template

    pattern = re.compile("|".join(re.escape(t) for t in sorted(tokens, key=len, reverse=True)))
    return pattern.sub(lambda m: tokens[m.group(0)], template)


class RowResolver:
    """
    Fills a template from one table row and exposes the recipient fields the
    delivery and naming steps need.

    Recipient detection:
    1. name: first header named name / full name / fullname / display name
    2. email: first header containing "email" or "e-mail", else one containing "mail"
    """

    NAME_HEADERS = ("name", "full name", "fullname", "full_name", "display name")
    EMAIL_SUBSTRS = ("email", "e-mail")
    MAIL_SUBSTR = "mail"

    def __init__(self, headers: Sequence[str], row: Mapping[str, str]):
        self.headers = list(headers or [])
        self.row = row if row is not None else {}

        self._name_header = self._first_exact_header(self.NAME_HEADERS)
        self._email_header = (
            self._first_contains_header(self.EMAIL_SUBSTRS)
            or self._first_contains_header((self.MAIL_SUBSTR,))
        )

    # -------------------------
    # Header detection helpers
    # -------------------------

    def _first_exact_header(self, candidates):
        for h in self.headers:
            if fold(h) in candidates:
                return h
        return None

    def _first_contains_header(self, substrings):
        for h in self.headers:
            hl = fold(h)
            if any(sub in hl for sub in substrings):
                return h
        return None

    # -------------------------
    # Rendering
    # -------------------------

    def render(
        self,
        template: str,
        syntax: TokenSyntax = TokenSyntax.DOUBLE,
        placeholders: Optional[PlaceholderSet] = None,
    ) -> str:
        if syntax is TokenSyntax.SINGLE:
            return render_single_brace(template, self.row)
        names = placeholders if placeholders is not None else self.headers
        return render_double_brace(template, self.row, names)

    # -------------------------
    # Convenience getters
    # -------------------------

    def get_full_name(self) -> str:
        if self._name_header:
            return (self.row.get(self._name_header) or "").strip()
        return ""

    def get_email(self) -> str:
        if self._email_header:
            return (self.row.get(self._email_header) or "").strip()
        return ""
