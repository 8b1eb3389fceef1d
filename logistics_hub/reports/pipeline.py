from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List

from logistics_hub.common.date_utils import aware_now, get_timezone
from logistics_hub.common.db import session_scope
from logistics_hub.common.db_tables import documents
from logistics_hub.common.json_logger import JsonLogger, get_logger, log_event, timed_event
from logistics_hub.config import Config
from logistics_hub.customers.service import list_customers
from logistics_hub.shipments.service import list_shipments

from .pdf import render_customers_pdf, render_shipments_pdf

PIPELINE_NAME = "reports"
REPORT_KINDS = ("shipments", "customers")


@dataclass(frozen=True)
class _ReportKind:
    load: Callable[[str], Awaitable[List[Dict[str, Any]]]]
    render: Callable[..., Path]


_KINDS: Dict[str, _ReportKind] = {
    "shipments": _ReportKind(load=list_shipments, render=render_shipments_pdf),
    "customers": _ReportKind(load=list_customers, render=render_customers_pdf),
}


def report_path(reports_root: str | Path, kind: str, report_date: date) -> Path:
    return Path(reports_root).expanduser() / kind / f"{kind}-report-{report_date.isoformat()}.pdf"


async def _persist_document(
    *,
    database_url: str,
    kind: str,
    report_date: date,
    file_path: Path,
    created_by: str,
) -> None:
    async with session_scope(database_url) as session:
        await session.execute(
            documents.insert().values(
                doc_type=f"{kind}_report_pdf",
                doc_date=report_date,
                file_name=file_path.name,
                mime_type="application/pdf",
                file_size_bytes=file_path.stat().st_size if file_path.exists() else None,
                file_path=str(file_path),
                created_by=created_by,
            )
        )
        await session.commit()


async def generate_report(
    kind: str,
    *,
    config: Config,
    report_date: date | None = None,
    created_by: str = "pipeline",
    logger: JsonLogger | None = None,
) -> Path:
    """Load rows for ``kind``, render the PDF and record it in ``documents``."""

    if kind not in _KINDS:
        raise ValueError(f"unknown report kind: {kind}")
    report = _KINDS[kind]
    logger = logger or get_logger()
    phase = f"{PIPELINE_NAME}.{kind}"
    resolved_date = report_date or aware_now(get_timezone(config.pipeline_timezone)).date()

    log_event(
        logger=logger,
        phase=phase,
        message="starting report",
        report_date=resolved_date.isoformat(),
        created_by=created_by,
    )

    with timed_event(logger=logger, phase=f"{phase}.load_data", message="report data loaded"):
        rows = await report.load(config.database_url)

    output_path = report_path(config.reports_root, kind, resolved_date)
    if output_path.exists():
        output_path.unlink()
    with timed_event(
        logger=logger,
        phase=f"{phase}.render_pdf",
        message="report pdf rendered",
        rows=len(rows),
        file_path=str(output_path),
    ):
        report.render(rows, output_path, resolved_date)

    await _persist_document(
        database_url=config.database_url,
        kind=kind,
        report_date=resolved_date,
        file_path=output_path,
        created_by=created_by,
    )
    log_event(
        logger=logger,
        phase=f"{phase}.persist_documents",
        message="saved report document",
        file_path=str(output_path),
    )
    return output_path
