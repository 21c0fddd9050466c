# siggen/archive.py

import logging
import os
import tempfile
import zipfile
from pathlib import Path
from typing import Callable, Iterable, Optional, Union

from siggen.errors import SourceError
from siggen.models import GeneratedArtifact, fold
from siggen.naming import unique_path


logger = logging.getLogger(__name__)

DEFAULT_ARCHIVE_NAME = "signatures"


def unique_archive_path(dest_dir: Union[str, Path], base_name: str = DEFAULT_ARCHIVE_NAME) -> Path:
    """``signatures.zip``, else ``signatures (1).zip`` … in ``dest_dir``."""
    return unique_path(Path(dest_dir).expanduser(), base_name, ".zip")


def write_archive(
    artifacts: Iterable[GeneratedArtifact],
    zip_path: Union[str, Path],
    on_item: Optional[Callable[[GeneratedArtifact], None]] = None,
) -> Path:
    """
    Package artifacts into a ZIP, one entry per artifact named after it.

    The archive is assembled next to the destination and moved into place, so
    an existing file at ``zip_path`` is only replaced by a complete archive.
    Entry names are made unique within the archive.

    Raises:
        SourceError: the archive could not be written.
    """
    dest = Path(zip_path).expanduser()
    tmp_path = None
    count = 0

    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=str(dest.parent), prefix=dest.name + ".", suffix=".tmp")
        os.close(fd)
        tmp_path = Path(tmp_name)

        used = set()
        with zipfile.ZipFile(tmp_path, mode="w", compression=zipfile.ZIP_DEFLATED) as zf:
            for artifact in artifacts:
                arcname = _entry_name(artifact.filename, used)
                zf.writestr(arcname, artifact.data())
                count += 1
                if on_item is not None:
                    on_item(artifact)

        os.replace(str(tmp_path), str(dest))
        tmp_path = None
    except (OSError, zipfile.BadZipFile) as e:
        raise SourceError(f"ZIP error: {e}", path=str(dest)) from e
    finally:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()

    logger.info("ZIP saved: %s (%d entries)", dest, count)
    return dest


def _entry_name(filename: str, used: set) -> str:
    stem, ext = os.path.splitext(filename)
    arcname = filename
    counter = 1
    while fold(arcname) in used:
        arcname = f"{stem} ({counter}){ext}"
        counter += 1
    used.add(fold(arcname))
    return arcname
