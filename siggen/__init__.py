# siggen/__init__.py
"""
Signature Generator engine - personalized HTML signatures from a template and a table.

This module provides the core functionality for:
- Reading delimited tables (delimiter detection, quoted fields)
- Extracting and validating template placeholders against table headers
- Rendering one artifact per row with collision-free file names
- Packaging artifacts into a ZIP or mailing them over SMTP

Public API:
-----------
Data Loading:
    load_table(path, strict=True) -> Table
    parse_table(text, strict=True) -> Table

Placeholders / Validation:
    extract_placeholders(template) -> PlaceholderSet
    validate(placeholders, table) -> ValidationResult
    csv_template_header(placeholders) -> str

Pipeline:
    load_state(template_path, table_path, config) -> PipelineState
    prepare(template, table_text, config) -> PipelineState
    iter_batch(state, output_dir, cancel) -> Iterator[BatchProgress]
    run_batch(state, output_dir, cancel) -> BatchResult

Export / Delivery:
    write_archive(artifacts, zip_path) -> Path
    send_artifacts(artifacts, smtp_settings, subject=..., body=...) -> DeliveryReport

The engine has no UI dependencies and can be used standalone.
"""

from siggen.archive import unique_archive_path, write_archive
from siggen.data_sources import detect_delimiter, load_table, parse_table, split_line
from siggen.errors import DeliveryError, RowError, SchemaError, SigGenError, SourceError
from siggen.mailer import DeliveryReport, is_deliverable_email, send_artifacts, check_connection
from siggen.models import (
    GeneratedArtifact,
    PipelineConfig,
    PlaceholderSet,
    RowPolicy,
    Table,
    TokenSyntax,
    ValidationResult,
    ValidationStatus,
)
from siggen.naming import OutputNamer, safe_filename
from siggen.pipeline import (
    BatchResult,
    BatchStatus,
    PipelineState,
    iter_batch,
    load_state,
    prepare,
    run_batch,
)
from siggen.placeholders import csv_template_header, extract_placeholders, write_csv_template
from siggen.preview import build_preview_rows
from siggen.resolver import RowResolver, render_double_brace, render_single_brace
from siggen.validator import validate

__version__ = "0.1.0"

__all__ = [
    # Data loading
    "load_table",
    "parse_table",
    "detect_delimiter",
    "split_line",
    # Placeholders / validation
    "extract_placeholders",
    "validate",
    "csv_template_header",
    "write_csv_template",
    # Rendering / naming
    "RowResolver",
    "render_single_brace",
    "render_double_brace",
    "OutputNamer",
    "safe_filename",
    # Pipeline
    "PipelineConfig",
    "PipelineState",
    "BatchResult",
    "BatchStatus",
    "load_state",
    "prepare",
    "iter_batch",
    "run_batch",
    "build_preview_rows",
    # Export / delivery
    "write_archive",
    "unique_archive_path",
    "send_artifacts",
    "check_connection",
    "is_deliverable_email",
    "DeliveryReport",
    # Model
    "GeneratedArtifact",
    "PlaceholderSet",
    "RowPolicy",
    "Table",
    "TokenSyntax",
    "ValidationResult",
    "ValidationStatus",
    # Errors
    "SigGenError",
    "SourceError",
    "SchemaError",
    "RowError",
    "DeliveryError",
]
