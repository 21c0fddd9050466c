#!/usr/bin/env python3
"""
Signature Generator CLI

Command-line interface for the siggen engine.
This serves as the bridge between the desktop shell (or scripts) and the engine.

Usage:
    python -m siggen load-table <path> [--lenient]
    python -m siggen placeholders <template> [--syntax single|double] [--table <path>]
    python -m siggen csv-template <template> [--out <path>]
    python -m siggen validate --template <path> --table <path>
    python -m siggen preview --template <path> --table <path>
    python -m siggen generate --template <path> --table <path> [--out <dir>]
    python -m siggen export-zip --template <path> --table <path> [--zip <path>]
    python -m siggen send --template <path> --table <path> --subject <str> [--attach <path>] [--dry-run]
    python -m siggen test-smtp

Options not given on the command line fall back to the saved settings.
All commands output JSON to stdout; logging goes to stderr.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from siggen.archive import unique_archive_path, write_archive
from siggen.config import SmtpSettings, configure_logging, load_settings, pipeline_config
from siggen.data_sources import load_table
from siggen.errors import SigGenError
from siggen.mailer import check_connection, send_artifacts
from siggen.models import GeneratedArtifact, PipelineConfig, RowPolicy, Table, TokenSyntax
from siggen.pipeline import PipelineState, default_output_dir, load_state, load_template, run_batch
from siggen.placeholders import (
    csv_template_header,
    extract_placeholders,
    placeholders_for,
    write_csv_template,
)
from siggen.preview import build_preview_rows


logger = logging.getLogger("siggen")


def output_json(data: Any, success: bool = True) -> None:
    """Output JSON response to stdout."""
    response = {
        "success": success,
        "data": data if success else None,
        "error": None if success else data,
    }
    print(json.dumps(response, indent=2, ensure_ascii=False))


def _artifact_json(a: GeneratedArtifact, with_content: bool = False) -> Dict[str, Any]:
    out = {
        "row": a.row_number,
        "name": a.name,
        "email": a.email,
        "filename": a.filename,
        "path": str(a.path) if a.path else None,
    }
    if with_content:
        out["content"] = a.content
    return out


def _config(args: argparse.Namespace, settings: Dict[str, Any]) -> PipelineConfig:
    base = pipeline_config(settings).to_dict()
    if getattr(args, "syntax", None):
        base["syntax"] = args.syntax
    if getattr(args, "lenient", False):
        base["row_policy"] = RowPolicy.LENIENT.value
    if getattr(args, "suffix", None) is not None:
        base["name_suffix"] = args.suffix
    return PipelineConfig.from_dict(base)


def _state(args: argparse.Namespace, settings: Dict[str, Any]) -> PipelineState:
    template = args.template or settings.get("template_path") or ""
    table = args.table or settings.get("table_path") or ""
    if not template or not table:
        raise SigGenError("Please select both an HTML template and a table before generating.")
    return load_state(template, table, _config(args, settings))


def _state_json(state: PipelineState) -> Dict[str, Any]:
    v = state.validation
    return {
        "status": v.status.value,
        "ready": state.ready,
        "syntax": state.config.syntax.value,
        "placeholders": list(state.placeholders),
        "headers": list(state.table.headers),
        "missing": list(v.missing),
        "extra": list(v.extra),
        "violations": len(v.violations),
        "diagnostics": list(v.diagnostics),
        "rows": len(state.table.rows),
        "rejected": [str(e) for e in state.table.rejected],
    }


def _smtp(args: argparse.Namespace, settings: Dict[str, Any]) -> SmtpSettings:
    smtp = dict(settings.get("smtp") or {})
    for key in ("host", "port", "username", "sender"):
        val = getattr(args, key, None)
        if val is not None:
            smtp[key] = val
    if getattr(args, "ssl", None) is not None:
        smtp["use_ssl"] = args.ssl
    return SmtpSettings.from_settings({"smtp": smtp})


# =========================
# Commands
# =========================

def cmd_load_table(args: argparse.Namespace) -> bool:
    """Load a table and return headers + rows."""
    table = load_table(args.path, strict=not args.lenient)
    output_json({
        "headers": list(table.headers),
        "rows": [r.as_dict() for r in table.rows],
        "count": len(table.rows),
        "delimiter": table.delimiter,
        "rejected": [str(e) for e in table.rejected],
    })
    return True


def cmd_placeholders(args: argparse.Namespace) -> bool:
    """List the placeholders a template refers to."""
    template = load_template(args.template)
    syntax = TokenSyntax(args.syntax or TokenSyntax.DOUBLE.value)
    table = load_table(args.table) if args.table else None
    if syntax is TokenSyntax.SINGLE and table is None:
        output_json("Single-brace templates need --table to resolve their fields.", success=False)
        return False

    found = placeholders_for(template, syntax, table or Table())
    output_json({"placeholders": list(found), "count": len(found)})
    return True


def cmd_csv_template(args: argparse.Namespace) -> bool:
    """Write (or print) a ;-separated header line for the template's placeholders."""
    template = load_template(args.template)
    found = extract_placeholders(template)
    if args.out:
        path = write_csv_template(args.out, found)
        output_json({"path": str(path), "placeholders": list(found)})
    else:
        output_json({"header": csv_template_header(found), "placeholders": list(found)})
    return True


def cmd_validate(args: argparse.Namespace) -> bool:
    """Reconcile template placeholders with table headers."""
    state = _state(args, load_settings())
    output_json(_state_json(state))
    return True


def cmd_preview(args: argparse.Namespace) -> bool:
    """Render in memory and describe each artifact."""
    state = _state(args, load_settings())
    result = run_batch(state)
    output_json({
        "status": result.status.value,
        "preview_rows": build_preview_rows(result.artifacts),
        "diagnostics": list(result.diagnostics),
        "count": len(result.artifacts),
    }, success=result.ok)
    return result.ok


def cmd_generate(args: argparse.Namespace) -> bool:
    """Render every row into an output directory."""
    settings = load_settings()
    state = _state(args, settings)
    out = args.out or settings.get("output_dir") or default_output_dir()
    result = run_batch(state, out)
    output_json({
        "status": result.status.value,
        "output_dir": str(result.output_dir) if result.output_dir else None,
        "artifacts": [_artifact_json(a, args.with_content) for a in result.artifacts],
        "diagnostics": list(result.diagnostics),
        "attempted": result.attempted,
        "total": result.total,
    }, success=result.ok)
    return result.ok


def cmd_export_zip(args: argparse.Namespace) -> bool:
    """Render in memory and package into a ZIP."""
    state = _state(args, load_settings())
    result = run_batch(state)
    if not result.ok:
        output_json({"status": result.status.value, "diagnostics": list(result.diagnostics)}, success=False)
        return False

    zip_path = Path(args.zip) if args.zip else unique_archive_path(Path.cwd())
    path = write_archive(result.artifacts, zip_path)
    output_json({
        "path": str(path),
        "entries": [a.filename for a in result.artifacts],
        "diagnostics": list(result.diagnostics),
    })
    return True


def cmd_send(args: argparse.Namespace) -> bool:
    """Render in memory and mail each artifact to its recipient."""
    settings = load_settings()
    state = _state(args, settings)
    result = run_batch(state)
    if not result.ok:
        output_json({"status": result.status.value, "diagnostics": list(result.diagnostics)}, success=False)
        return False

    body = settings.get("body") or ""
    if args.body_file:
        body = Path(args.body_file).read_text(encoding="utf-8")
    elif args.body is not None:
        body = args.body

    attach = args.attach
    if attach is None and settings.get("attach_extra"):
        attach = settings.get("extra_attachment_path") or None

    report = send_artifacts(
        result.artifacts,
        _smtp(args, settings),
        subject=args.subject if args.subject is not None else settings.get("subject", ""),
        body=body,
        extra_attachment=attach,
        dry_run=args.dry_run,
    )
    data = {
        "sent": [a.email for a in report.sent],
        "skipped": [a.email for a in report.skipped],
        "diagnostics": list(result.diagnostics) + list(report.diagnostics),
    }
    if report.aborted:
        data["error"] = str(report.error)
    output_json(data, success=not report.aborted)
    return not report.aborted


def cmd_test_smtp(args: argparse.Namespace) -> bool:
    """Connect and authenticate, then disconnect."""
    ok, message = check_connection(_smtp(args, load_settings()))
    output_json({"ok": ok, "message": message}, success=ok)
    return ok


# =========================
# Parser
# =========================

def _add_pipeline_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--template", help="Path to the HTML template")
    p.add_argument("--table", help="Path to the CSV/TSV table")
    p.add_argument("--syntax", choices=[s.value for s in TokenSyntax], help="Placeholder syntax")
    p.add_argument("--lenient", action="store_true", help="Pad/truncate rows instead of skipping mismatched ones")
    p.add_argument("--suffix", help="Suffix appended to every generated file name")


def _add_smtp_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--host", help="SMTP host")
    p.add_argument("--port", type=int, help="SMTP port")
    p.add_argument("--ssl", dest="ssl", action="store_true", default=None, help="Implicit TLS (SMTPS)")
    p.add_argument("--starttls", dest="ssl", action="store_false", default=None, help="STARTTLS (default)")
    p.add_argument("--username", help="SMTP user name")
    p.add_argument("--sender", help="From address (defaults to the user name)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="siggen",
        description="Signature Generator CLI - JSON bridge for the desktop shell",
    )
    parser.add_argument("--log-level", default="WARNING", help="Logging level for stderr output")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # load-table
    p_table = subparsers.add_parser("load-table", help="Load a delimited table")
    p_table.add_argument("path", help="Path to the table")
    p_table.add_argument("--lenient", action="store_true", help="Pad/truncate rows instead of skipping them")
    p_table.set_defaults(func=cmd_load_table)

    # placeholders
    p_ph = subparsers.add_parser("placeholders", help="List template placeholders")
    p_ph.add_argument("template", help="Path to the template")
    p_ph.add_argument("--syntax", choices=[s.value for s in TokenSyntax], help="Placeholder syntax")
    p_ph.add_argument("--table", help="Table whose headers single-brace templates refer to")
    p_ph.set_defaults(func=cmd_placeholders)

    # csv-template
    p_csv = subparsers.add_parser("csv-template", help="Header line for a table matching the template")
    p_csv.add_argument("template", help="Path to the template")
    p_csv.add_argument("--out", help="Write the header line to this file")
    p_csv.set_defaults(func=cmd_csv_template)

    # validate
    p_val = subparsers.add_parser("validate", help="Check the table against the template")
    _add_pipeline_args(p_val)
    p_val.set_defaults(func=cmd_validate)

    # preview
    p_prev = subparsers.add_parser("preview", help="Preview generated signatures")
    _add_pipeline_args(p_prev)
    p_prev.set_defaults(func=cmd_preview)

    # generate
    p_gen = subparsers.add_parser("generate", help="Write one HTML file per row")
    _add_pipeline_args(p_gen)
    p_gen.add_argument("--out", help="Output directory (default: a new temp directory)")
    p_gen.add_argument("--with-content", action="store_true", help="Include rendered HTML in the output")
    p_gen.set_defaults(func=cmd_generate)

    # export-zip
    p_zip = subparsers.add_parser("export-zip", help="Package generated signatures into a ZIP")
    _add_pipeline_args(p_zip)
    p_zip.add_argument("--zip", help="Archive path (default: signatures.zip in the current directory)")
    p_zip.set_defaults(func=cmd_export_zip)

    # send
    p_send = subparsers.add_parser("send", help="Mail each recipient their signature")
    _add_pipeline_args(p_send)
    _add_smtp_args(p_send)
    p_send.add_argument("--subject", help="Message subject")
    p_send.add_argument("--body", help="Message body (Markdown)")
    p_send.add_argument("--body-file", help="Read the message body from a file")
    p_send.add_argument("--attach", help="Extra file attached to every message")
    p_send.add_argument("--dry-run", action="store_true", help="Build messages without sending")
    p_send.set_defaults(func=cmd_send)

    # test-smtp
    p_smtp = subparsers.add_parser("test-smtp", help="Test the SMTP connection")
    _add_smtp_args(p_smtp)
    p_smtp.set_defaults(func=cmd_test_smtp)

    return parser


def main(argv: Optional[list] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        ok = args.func(args)
    except (SigGenError, OSError) as e:
        logger.error("%s", e)
        output_json(str(e), success=False)
        return 1
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
