# siggen/utils.py

import os
import tempfile
from pathlib import Path
from typing import Union


def atomic_write_text(path: Union[str, Path], text: str) -> Path:
    """
    Write UTF-8 text (no BOM) so the destination either keeps its old content
    or holds the complete new content.

    The data goes to a temporary file in the same directory, is fsynced and
    then moved over the destination with ``os.replace``.
    """
    return atomic_write_bytes(path, text.encode("utf-8"))


def atomic_write_bytes(path: Union[str, Path], data: bytes) -> Path:
    p = Path(path).expanduser()
    parent = p.parent
    tmp_path = None

    try:
        parent.mkdir(parents=True, exist_ok=True)

        with tempfile.NamedTemporaryFile(
            mode="wb",
            dir=str(parent),
            prefix=p.name + ".",
            suffix=".tmp",
            delete=False,
        ) as f:
            tmp_path = Path(f.name)
            f.write(data)
            f.flush()
            os.fsync(f.fileno())

        os.replace(str(tmp_path), str(p))
        tmp_path = None
    finally:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()

    return p
