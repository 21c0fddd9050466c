# siggen/pipeline.py

import logging
import tempfile
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Tuple, Union

from siggen.data_sources import load_table, parse_table
from siggen.errors import RowError, SchemaError, SigGenError, SourceError
from siggen.models import (
    GeneratedArtifact,
    PipelineConfig,
    PlaceholderSet,
    Row,
    Table,
    TokenSyntax,
    ValidationResult,
    ValidationStatus,
)
from siggen.naming import OutputNamer
from siggen.placeholders import placeholders_for
from siggen.resolver import RowResolver
from siggen.utils import atomic_write_text
from siggen.validator import validate


logger = logging.getLogger(__name__)


class BatchStatus(str, Enum):
    COMPLETED = "completed"
    BLOCKED = "blocked"       # schema not reconciled, nothing rendered
    FAILED = "failed"         # output could not be written
    CANCELLED = "cancelled"


# ============================================================
# state
# ============================================================

@dataclass(frozen=True)
class PipelineState:
    """
    Snapshot of one pipeline invocation: the template, the parsed table and
    what validation made of them. Callers keep the latest snapshot and build a
    new one whenever an input changes.
    """
    template: str
    table: Table
    placeholders: PlaceholderSet
    validation: ValidationResult
    config: PipelineConfig = field(default_factory=PipelineConfig)
    template_path: Optional[str] = None
    table_path: Optional[str] = None

    @property
    def ready(self) -> bool:
        if self.config.syntax is TokenSyntax.SINGLE:
            return not self.table.is_empty
        return self.validation.is_valid

    @property
    def total(self) -> int:
        return len(self.table.rows) + len(self.table.rejected)

    def blocking_error(self) -> Optional[SchemaError]:
        if self.ready:
            return None
        lines = list(self.validation.diagnostics) or ["No table loaded."]
        return SchemaError("Template and table do not match.", lines)


@dataclass(frozen=True)
class BatchProgress:
    attempted: int
    total: int
    artifact: Optional[GeneratedArtifact] = None
    diagnostic: Optional[str] = None


@dataclass(frozen=True)
class BatchResult:
    status: BatchStatus
    artifacts: Tuple[GeneratedArtifact, ...] = ()
    diagnostics: Tuple[str, ...] = ()
    attempted: int = 0
    total: int = 0
    error: Optional[SigGenError] = None
    output_dir: Optional[Path] = None

    @property
    def ok(self) -> bool:
        return self.status is BatchStatus.COMPLETED


# ============================================================
# building state
# ============================================================

def build_state(
    template: str,
    table: Table,
    config: Optional[PipelineConfig] = None,
    *,
    template_path: Optional[str] = None,
    table_path: Optional[str] = None,
) -> PipelineState:
    config = config or PipelineConfig()
    placeholders = placeholders_for(template, config.syntax, table)

    if config.syntax is TokenSyntax.DOUBLE:
        validation = validate(placeholders, table)
    else:
        # single-brace templates are filled from whatever headers exist
        validation = ValidationResult(ValidationStatus.NOT_ATTEMPTED)

    return PipelineState(
        template=template,
        table=table,
        placeholders=placeholders,
        validation=validation,
        config=config,
        template_path=template_path,
        table_path=table_path,
    )


def prepare(template: str, table_text: str, config: Optional[PipelineConfig] = None) -> PipelineState:
    config = config or PipelineConfig()
    return build_state(template, parse_table(table_text, strict=config.strict), config)


def load_template(path: str) -> str:
    p = Path(path).expanduser()
    try:
        return p.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        raise SourceError(f"Cannot read template {p}: {e}", path=str(p)) from e


def load_state(template_path: str, table_path: str, config: Optional[PipelineConfig] = None) -> PipelineState:
    """Read both sources from disk. Raises SourceError."""
    config = config or PipelineConfig()
    template = load_template(template_path)
    table = load_table(table_path, strict=config.strict)
    return build_state(template, table, config, template_path=template_path, table_path=table_path)


def default_output_dir() -> Path:
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return Path(tempfile.gettempdir()) / f"signatures_{stamp}"


# ============================================================
# running
# ============================================================

def _records(table: Table) -> List[Union[Row, RowError]]:
    records: List[Union[Row, RowError]] = [*table.rows, *table.rejected]
    records.sort(key=lambda r: r.line_number)
    return records


def iter_batch(
    state: PipelineState,
    output_dir: Optional[Union[str, Path]] = None,
    cancel=None,
) -> Iterator[BatchProgress]:
    """
    Render the batch one row at a time, yielding after every row attempted.

    Rows are visited in table order. Rejected rows yield a diagnostic, the
    others an artifact. ``cancel`` is anything with ``is_set()``; it is checked
    before each row. When ``output_dir`` is given every artifact is written
    there before it is yielded.

    Raises:
        SchemaError: the state is not ready to render.
        SourceError: the output directory or a file could not be written.
    """
    if not state.ready:
        raise state.blocking_error()

    cfg = state.config
    out: Optional[Path] = None
    if output_dir is not None:
        out = Path(output_dir).expanduser()
        try:
            out.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise SourceError(f"Cannot create output directory {out}: {e}", path=str(out)) from e
        namer = OutputNamer.for_directory(
            out, suffix=cfg.name_suffix, extension=cfg.extension, max_len=cfg.max_name_length
        )
    else:
        namer = OutputNamer(suffix=cfg.name_suffix, extension=cfg.extension, max_len=cfg.max_name_length)

    records = _records(state.table)
    total = len(records)

    for idx, record in enumerate(records, start=1):
        if cancel is not None and cancel.is_set():
            logger.info("Batch cancelled after %d of %d row(s)", idx - 1, total)
            return

        if isinstance(record, RowError):
            yield BatchProgress(idx, total, diagnostic=str(record))
            continue

        resolver = RowResolver(state.table.headers, record)
        content = resolver.render(state.template, cfg.syntax, state.placeholders)
        name = resolver.get_full_name()
        email = resolver.get_email()
        filename = namer.name_for(name, email, idx)

        path = None
        if out is not None:
            path = out / filename
            try:
                atomic_write_text(path, content)
            except OSError as e:
                raise SourceError(f"Cannot write {path}: {e}", path=str(path)) from e

        artifact = GeneratedArtifact(
            row_number=record.line_number,
            name=name,
            email=email,
            content=content,
            filename=filename,
            path=path,
        )
        logger.debug("Rendered row %d as %s", record.line_number, filename)
        yield BatchProgress(idx, total, artifact=artifact)


def run_batch(
    state: PipelineState,
    output_dir: Optional[Union[str, Path]] = None,
    cancel=None,
    on_progress: Optional[Callable[[BatchProgress], None]] = None,
) -> BatchResult:
    """
    Run the whole batch and fold everything into a BatchResult.

    Never raises for schema, row or output problems; the result's status and
    error carry them instead.
    """
    out = Path(output_dir).expanduser() if output_dir is not None else None

    if not state.ready:
        err = state.blocking_error()
        return BatchResult(
            BatchStatus.BLOCKED,
            diagnostics=tuple(err.diagnostics),
            total=state.total,
            error=err,
            output_dir=out,
        )

    artifacts: List[GeneratedArtifact] = []
    diagnostics: List[str] = []
    attempted = 0

    try:
        for progress in iter_batch(state, out, cancel=cancel):
            attempted = progress.attempted
            if progress.artifact is not None:
                artifacts.append(progress.artifact)
            if progress.diagnostic:
                diagnostics.append(progress.diagnostic)
            if on_progress is not None:
                on_progress(progress)
    except SourceError as e:
        logger.error("%s", e)
        diagnostics.append(str(e))
        return BatchResult(
            BatchStatus.FAILED,
            artifacts=tuple(artifacts),
            diagnostics=tuple(diagnostics),
            attempted=attempted,
            total=state.total,
            error=e,
            output_dir=out,
        )

    status = BatchStatus.COMPLETED if attempted >= state.total else BatchStatus.CANCELLED
    if out is not None:
        logger.info("Generated %d signature(s) into: %s", len(artifacts), out)
    else:
        logger.info("Generated %d signature(s)", len(artifacts))

    return BatchResult(
        status,
        artifacts=tuple(artifacts),
        diagnostics=tuple(diagnostics),
        attempted=attempted,
        total=state.total,
        output_dir=out,
    )
