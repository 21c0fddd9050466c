# siggen/validator.py

import logging
from typing import List, Optional

from siggen.models import (
    PlaceholderSet,
    Table,
    ValidationResult,
    ValidationStatus,
    cap_lines,
)


logger = logging.getLogger(__name__)

MAX_ROW_DIAGNOSTICS = 10


def validate(placeholders: Optional[PlaceholderSet], table: Optional[Table]) -> ValidationResult:
    """
    Reconcile template placeholders with table headers, then check that every
    row carries a value for every placeholder.

    Only a VALID result keeps the table; the others carry ``table=None`` so
    nothing downstream can render from an unchecked table.
    """
    if table is None or table.is_empty:
        return ValidationResult(ValidationStatus.NOT_ATTEMPTED, diagnostics=("No table loaded.",))
    if not placeholders:
        return ValidationResult(
            ValidationStatus.NOT_ATTEMPTED,
            diagnostics=("Template has no placeholders.",),
        )

    wanted = placeholders.keys()
    have = table.header_keys()

    missing = tuple(name for key, name in wanted.items() if key not in have)
    extra = tuple(name for key, name in have.items() if key not in wanted)

    if missing or extra:
        diagnostics: List[str] = []
        if missing:
            diagnostics.append(f"Missing columns: {', '.join(missing)}")
        if extra:
            diagnostics.append(f"Unexpected columns: {', '.join(extra)}")
        for line in diagnostics:
            logger.warning("%s", line)
        return ValidationResult(
            ValidationStatus.INVALID,
            missing=missing,
            extra=extra,
            diagnostics=tuple(diagnostics),
        )

    violations = []
    for row in table.rows:
        for name in placeholders:
            if not (row.get(name) or "").strip():
                violations.append(f"Row {row.line_number}: missing value for '{name}'.")

    if violations:
        logger.warning("%d row value(s) missing", len(violations))
        return ValidationResult(
            ValidationStatus.INVALID,
            violations=tuple(violations),
            diagnostics=tuple(cap_lines(violations, MAX_ROW_DIAGNOSTICS)),
        )

    return ValidationResult(ValidationStatus.VALID, table=table)
