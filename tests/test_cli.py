import json
import os
import subprocess
import sys
import zipfile
from pathlib import Path

from siggen.__main__ import main
from siggen.config import load_settings, save_settings


def _run(capsys, *argv):
    code = main(list(argv))
    return code, json.loads(capsys.readouterr().out)


def test_cli_smoke(sources, tmp_path):
    template, table = sources
    out = tmp_path / "out"
    env = os.environ.copy()
    repo_root = Path(__file__).resolve().parents[1]
    env["PYTHONPATH"] = str(repo_root) + (os.pathsep + env["PYTHONPATH"] if env.get("PYTHONPATH") else "")

    cmd = [sys.executable, "-m", "siggen", "generate", "--template", str(template), "--table", str(table), "--out", str(out)]
    p = subprocess.run(cmd, capture_output=True, text=True, env=env)

    assert p.returncode == 0, p.stderr
    payload = json.loads(p.stdout)
    assert payload["success"] is True
    assert payload["data"]["status"] == "completed"
    assert (out / "Ann_signature.html").read_text(encoding="utf-8") == "Hi Ann, email a@x.com"


def test_load_table(capsys, write):
    path = write("t.csv", "a;b\n1;2\n3\n")

    code, payload = _run(capsys, "load-table", str(path))

    assert code == 0
    assert payload["data"]["headers"] == ["a", "b"]
    assert payload["data"]["rows"] == [{"a": "1", "b": "2"}]
    assert payload["data"]["delimiter"] == ";"
    assert payload["data"]["rejected"] == ["Row 3: column count mismatch (expected 2, got 1), skipping."]


def test_placeholders_and_csv_template(capsys, sources, tmp_path):
    template, _ = sources

    code, payload = _run(capsys, "placeholders", str(template))
    assert code == 0
    assert payload["data"] == {"placeholders": ["email", "name"], "count": 2}

    target = tmp_path / "header.csv"
    code, payload = _run(capsys, "csv-template", str(template), "--out", str(target))
    assert code == 0
    assert target.read_bytes() == b"email;name\r\n"


def test_single_brace_placeholders_need_a_table(capsys, write):
    template = write("t.html", "{name}")

    code, payload = _run(capsys, "placeholders", str(template), "--syntax", "single")

    assert code == 1
    assert payload["success"] is False


def test_validate_reports_mismatch(capsys, write, sources):
    template, _ = sources
    table = write("bad.csv", "name,phone\nAnn,1\n")

    code, payload = _run(capsys, "validate", "--template", str(template), "--table", str(table))

    assert code == 0
    data = payload["data"]
    assert data["status"] == "invalid"
    assert data["ready"] is False
    assert data["missing"] == ["email"]
    assert data["extra"] == ["phone"]


def test_preview_blocked_by_blank_value(capsys, write, sources):
    template, _ = sources
    table = write("blank.csv", "name,email\nAnn,a@x.com\nBo,\n")

    code, payload = _run(capsys, "preview", "--template", str(template), "--table", str(table))

    assert code == 1
    assert payload["success"] is False
    assert payload["error"]["diagnostics"] == ["Row 3: missing value for 'email'."]


def test_paths_fall_back_to_saved_settings(capsys, sources):
    template, table = sources
    settings = load_settings()
    settings["template_path"] = str(template)
    settings["table_path"] = str(table)
    save_settings(settings)

    code, payload = _run(capsys, "preview")

    assert code == 0
    assert [r["name"] for r in payload["data"]["preview_rows"]] == ["Ann", "Bo"]


def test_missing_inputs_is_an_error(capsys):
    code, payload = _run(capsys, "validate")

    assert code == 1
    assert "Please select both" in payload["error"]


def test_export_zip(capsys, sources, tmp_path):
    template, table = sources
    dest = tmp_path / "sigs.zip"

    code, payload = _run(capsys, "export-zip", "--template", str(template), "--table", str(table), "--zip", str(dest))

    assert code == 0
    assert payload["data"]["entries"] == ["Ann_signature.html", "Bo_signature.html"]
    with zipfile.ZipFile(dest) as zf:
        assert zf.read("Bo_signature.html") == b"Hi Bo, email b@x.com"


def test_send_dry_run(capsys, write, monkeypatch):
    monkeypatch.setenv("SIGGEN_SMTP_PASSWORD", "pw")
    template = write("t.html", "{{name}} {{email}}")
    table = write("t.csv", "name,email\nAnn,ann@realdomain.com\nBo,bo@example.com\n")

    code, payload = _run(
        capsys,
        "send", "--template", str(template), "--table", str(table),
        "--host", "smtp.realdomain.com", "--username", "me@realdomain.com",
        "--subject", "Signature", "--dry-run",
    )

    assert code == 0
    assert payload["data"]["sent"] == ["ann@realdomain.com"]
    assert payload["data"]["skipped"] == ["bo@example.com"]
    assert payload["data"]["diagnostics"][-1] == "Sent 1 message(s), skipped 1."


def test_missing_table_file(capsys, sources, tmp_path):
    template, _ = sources

    code, payload = _run(capsys, "generate", "--template", str(template), "--table", str(tmp_path / "nope.csv"))

    assert code == 1
    assert payload["error"].startswith("Cannot read table")
