import zipfile

import pytest

from siggen.archive import unique_archive_path, write_archive
from siggen.errors import SourceError
from siggen.models import GeneratedArtifact


def _artifact(filename, content="<p>x</p>", row=2):
    return GeneratedArtifact(row_number=row, name="", email="", content=content, filename=filename)


def test_write_archive_one_entry_per_artifact(tmp_path):
    artifacts = [_artifact("Ann_signature.html", "<p>Ann ✓</p>"), _artifact("Bo_signature.html", "<p>Bo</p>")]
    seen = []

    path = write_archive(artifacts, tmp_path / "signatures.zip", on_item=seen.append)

    assert path == tmp_path / "signatures.zip"
    assert seen == artifacts
    with zipfile.ZipFile(path) as zf:
        assert zf.namelist() == ["Ann_signature.html", "Bo_signature.html"]
        assert zf.read("Ann_signature.html").decode("utf-8") == "<p>Ann ✓</p>"
        assert zf.getinfo("Bo_signature.html").compress_type == zipfile.ZIP_DEFLATED
    assert [p.name for p in tmp_path.iterdir()] == ["signatures.zip"]


def test_write_archive_dedupes_entry_names(tmp_path):
    artifacts = [_artifact("a.html"), _artifact("A.html"), _artifact("a.html")]

    path = write_archive(artifacts, tmp_path / "out.zip")

    with zipfile.ZipFile(path) as zf:
        assert zf.namelist() == ["a.html", "A (1).html", "a (2).html"]


def test_write_archive_replaces_existing_file(tmp_path):
    dest = tmp_path / "signatures.zip"
    dest.write_bytes(b"not a zip")

    write_archive([_artifact("a.html")], dest)

    assert zipfile.is_zipfile(dest)


def test_write_archive_failure_raises_source_error(tmp_path):
    blocker = tmp_path / "file.txt"
    blocker.write_text("x", encoding="utf-8")

    with pytest.raises(SourceError) as exc:
        write_archive([_artifact("a.html")], blocker / "out.zip")

    assert str(exc.value).startswith("ZIP error:")


def test_unique_archive_path(tmp_path):
    assert unique_archive_path(tmp_path).name == "signatures.zip"
    (tmp_path / "signatures.zip").write_bytes(b"")
    assert unique_archive_path(tmp_path).name == "signatures (1).zip"
