import sys
from pathlib import Path

import pytest

# Ensure local package is importable without installation
_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))


TEMPLATE = "Hi {{name}}, email {{email}}"
TABLE = "name,email\nAnn,a@x.com\nBo,b@x.com\n"


@pytest.fixture()
def write(tmp_path: Path):
    """write("rel/path", text) -> Path, creating parents."""
    def _write(rel: str, text: str, encoding: str = "utf-8") -> Path:
        p = tmp_path / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(text, encoding=encoding)
        return p
    return _write


@pytest.fixture()
def sources(write):
    """Template and table on disk for the two-recipient scenario."""
    return write("signature.html", TEMPLATE), write("people.csv", TABLE)


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("SIGGEN_SETTINGS_FILE", str(tmp_path / "settings" / "siggen_settings.json"))
    monkeypatch.delenv("SIGGEN_SMTP_PASSWORD", raising=False)
