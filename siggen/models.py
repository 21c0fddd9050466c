# siggen/models.py

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from siggen.errors import RowError


def fold(text: str) -> str:
    """Identity key for headers, placeholders and domains. Locale-independent."""
    return text.lower()


# ============================================================
# configuration enums
# ============================================================

class TokenSyntax(str, Enum):
    """Which placeholder syntax a template uses."""
    SINGLE = "single"   # {field}, driven by the table's headers
    DOUBLE = "double"   # {{field}}, extracted and validated


class RowPolicy(str, Enum):
    """How rows whose width differs from the header are handled."""
    STRICT = "strict"     # skip the row with a diagnostic
    LENIENT = "lenient"   # pad with "" / drop extra values


class ValidationStatus(str, Enum):
    VALID = "valid"
    INVALID = "invalid"
    NOT_ATTEMPTED = "not_attempted"


# ============================================================
# table
# ============================================================

class Row(Mapping[str, str]):
    """
    One data row. Keys are looked up case-insensitively and only the first
    of several same-named headers is addressable.
    """

    __slots__ = ("_items", "_index", "line_number", "field_count")

    def __init__(
        self,
        headers: Sequence[str],
        values: Sequence[str],
        line_number: int = 0,
        field_count: Optional[int] = None,
    ):
        padded = list(values[: len(headers)])
        padded += [""] * (len(headers) - len(padded))
        self._items: Tuple[Tuple[str, str], ...] = tuple(zip(headers, padded))

        index: Dict[str, int] = {}
        for i, (h, _) in enumerate(self._items):
            index.setdefault(fold(h), i)
        self._index = index

        self.line_number = line_number
        self.field_count = len(values) if field_count is None else field_count

    def __getitem__(self, key: str) -> str:
        if not isinstance(key, str):
            raise KeyError(key)
        return self._items[self._index[fold(key)]][1]

    def __iter__(self) -> Iterator[str]:
        for i in sorted(self._index.values()):
            yield self._items[i][0]

    def __len__(self) -> int:
        return len(self._index)

    def __repr__(self) -> str:
        return f"Row(line={self.line_number}, {self.as_dict()!r})"

    def as_dict(self) -> Dict[str, str]:
        return {k: self[k] for k in self}


@dataclass(frozen=True)
class Table:
    headers: Tuple[str, ...] = ()
    rows: Tuple[Row, ...] = ()
    rejected: Tuple[RowError, ...] = ()
    delimiter: str = ","

    @property
    def is_empty(self) -> bool:
        return not self.headers

    def header_keys(self) -> Dict[str, str]:
        """folded header -> first spelling, in header order."""
        out: Dict[str, str] = {}
        for h in self.headers:
            out.setdefault(fold(h), h)
        return out

    def has_header(self, name: str) -> bool:
        return fold(name) in self.header_keys()


# ============================================================
# placeholders / validation
# ============================================================

@dataclass(frozen=True)
class PlaceholderSet:
    names: Tuple[str, ...] = ()
    syntax: TokenSyntax = TokenSyntax.DOUBLE

    def __iter__(self) -> Iterator[str]:
        return iter(self.names)

    def __len__(self) -> int:
        return len(self.names)

    def __bool__(self) -> bool:
        return bool(self.names)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and fold(name) in self.keys()

    def keys(self) -> Dict[str, str]:
        return {fold(n): n for n in self.names}


@dataclass(frozen=True)
class ValidationResult:
    status: ValidationStatus
    missing: Tuple[str, ...] = ()
    extra: Tuple[str, ...] = ()
    violations: Tuple[str, ...] = ()
    diagnostics: Tuple[str, ...] = ()
    table: Optional[Table] = None

    @property
    def is_valid(self) -> bool:
        return self.status is ValidationStatus.VALID


# ============================================================
# artifacts
# ============================================================

@dataclass(frozen=True)
class GeneratedArtifact:
    """One rendered document. Never mutated after the batch creates it."""
    row_number: int
    name: str
    email: str
    content: str
    filename: str
    path: Optional[Path] = None

    def data(self) -> bytes:
        return self.content.encode("utf-8")


@dataclass(frozen=True)
class PipelineConfig:
    syntax: TokenSyntax = TokenSyntax.DOUBLE
    row_policy: RowPolicy = RowPolicy.STRICT
    name_suffix: str = "signature"
    extension: str = ".html"
    max_name_length: int = 80

    @property
    def strict(self) -> bool:
        return self.row_policy is RowPolicy.STRICT

    @classmethod
    def from_dict(cls, data: Mapping) -> "PipelineConfig":
        return cls(
            syntax=TokenSyntax(data.get("syntax") or TokenSyntax.DOUBLE.value),
            row_policy=RowPolicy(data.get("row_policy") or RowPolicy.STRICT.value),
            name_suffix=str(data.get("name_suffix", "signature") or ""),
            extension=str(data.get("extension") or ".html"),
            max_name_length=int(data.get("max_name_length") or 80),
        )

    def to_dict(self) -> Dict[str, object]:
        return {
            "syntax": self.syntax.value,
            "row_policy": self.row_policy.value,
            "name_suffix": self.name_suffix,
            "extension": self.extension,
            "max_name_length": self.max_name_length,
        }


def cap_lines(lines: Sequence[str], limit: int = 10) -> List[str]:
    """First `limit` lines plus a "(+N more)" line when there are more."""
    shown = list(lines[:limit])
    if len(lines) > limit:
        shown.append(f"(+{len(lines) - limit} more)")
    return shown
