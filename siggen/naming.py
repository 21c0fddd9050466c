# siggen/naming.py

import re
from pathlib import Path
from typing import Callable, Optional, Set

from siggen.models import fold


LEGAL_EXTRA_CHARS = " -_.()@+"
DEFAULT_MAX_LEN = 80

# names Windows refuses regardless of extension
_RESERVED_RE = re.compile(r"^(con|prn|aux|nul|com[1-9]|lpt[1-9])$", re.IGNORECASE)


def safe_filename(name: str, max_len: int = DEFAULT_MAX_LEN, fallback: str = "artifact") -> str:
    """
    Convert arbitrary text into a filesystem-safe base name (no extension).

    Characters outside letters, digits and `` -_.()@+`` become ``_``.
    """
    base = "".join(ch if (ch.isalnum() or ch in LEGAL_EXTRA_CHARS) else "_" for ch in (name or ""))
    base = base.strip().strip(".").strip()
    if not base:
        base = fallback
    if _RESERVED_RE.match(base.split(".")[0]):
        base = "_" + base
    if len(base) > max_len:
        base = base[:max_len].rstrip(" .") or base[:max_len]
    return base


def row_label(name: str, email: str, index: int) -> str:
    """name, else address, else ``row_{index}`` (1-based)."""
    for candidate in (name, email):
        if candidate and candidate.strip():
            return candidate.strip()
    return f"row_{index}"


class OutputNamer:
    """
    Hands out collision-free artifact names for one batch.

    Names are compared case-insensitively so the result is safe on
    case-insensitive filesystems and in ZIP archives extracted there.
    ``exists`` lets the caller veto names already present in the target,
    e.g. files in an output directory.
    """

    def __init__(
        self,
        suffix: str = "",
        extension: str = ".html",
        max_len: int = DEFAULT_MAX_LEN,
        exists: Optional[Callable[[str], bool]] = None,
    ):
        self.suffix = (suffix or "").strip()
        self.extension = extension if not extension or extension.startswith(".") else "." + extension
        self.max_len = max_len
        self._exists = exists
        self._used: Set[str] = set()

    @classmethod
    def for_directory(cls, directory: Path, **kwargs) -> "OutputNamer":
        directory = Path(directory)
        return cls(exists=lambda fname: (directory / fname).exists(), **kwargs)

    def base_name(self, label: str, index: int) -> str:
        text = f"{label}_{self.suffix}" if self.suffix else label
        return safe_filename(text, max_len=self.max_len, fallback=f"row_{index}")

    def name_for(self, name: str, email: str, index: int) -> str:
        """Reserve and return the file name for a row."""
        base = self.base_name(row_label(name, email, index), index)
        return self.reserve(base)

    def reserve(self, base: str) -> str:
        candidate = f"{base}{self.extension}"
        counter = 1
        while self._taken(candidate):
            candidate = f"{base} ({counter}){self.extension}"
            counter += 1
        self._used.add(fold(candidate))
        return candidate

    def _taken(self, fname: str) -> bool:
        if fold(fname) in self._used:
            return True
        return bool(self._exists and self._exists(fname))


def unique_path(directory: Path, base_name: str, extension: str) -> Path:
    """``base.ext``, else ``base (1).ext``, ``base (2).ext`` … in ``directory``."""
    directory = Path(directory)
    path = directory / f"{base_name}{extension}"
    counter = 1
    while path.exists():
        path = directory / f"{base_name} ({counter}){extension}"
        counter += 1
    return path
