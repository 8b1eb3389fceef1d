from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

__all__ = [
    "HEADER_FILL",
    "SHIPMENT_HEADERS",
    "CUSTOMER_HEADERS",
    "shipment_rows",
    "customer_rows",
    "render_shipments_pdf",
    "render_customers_pdf",
]

HEADER_FILL = colors.HexColor("#34495E")
MISSING = "-"

# The base-14 PDF fonts have no arrow glyph.
ROUTE_SEPARATOR = " -> "

SHIPMENT_HEADERS = ["Tracking ID", "Customer", "Route", "Status", "ETA"]
CUSTOMER_HEADERS = [
    "Name",
    "Email",
    "Location",
    "Credit Used/Limit",
    "Credit Status",
    "Active Shipments",
]

TITLE_STYLE = ParagraphStyle(
    "ReportTitle", fontName="Helvetica-Bold", fontSize=18, leading=22, textColor=colors.HexColor("#1c1c1c")
)
SUBTITLE_STYLE = ParagraphStyle(
    "ReportSubtitle", fontName="Helvetica", fontSize=11, leading=14, textColor=colors.HexColor("#1c1c1c")
)


def _text(value: Any) -> str:
    if value is None:
        return MISSING
    text = str(value).strip()
    return text or MISSING


def _amount(value: Any) -> str:
    if value is None or value == "":
        return "0"
    return f"{value:,.2f}" if not isinstance(value, str) else value


def shipment_rows(shipments: Iterable[Mapping[str, Any]]) -> list[list[str]]:
    rows: list[list[str]] = []
    for shipment in shipments:
        rows.append(
            [
                _text(shipment.get("tracking_id")),
                _text(shipment.get("customer_name")),
                f"{shipment.get('origin') or ''}{ROUTE_SEPARATOR}{shipment.get('destination') or ''}",
                _text(shipment.get("status")),
                _text(shipment.get("eta_display") or shipment.get("eta")),
            ]
        )
    return rows


def customer_rows(customers: Iterable[Mapping[str, Any]]) -> list[list[str]]:
    rows: list[list[str]] = []
    for customer in customers:
        location = customer.get("location")
        if location is not None and not str(location).strip(" ,"):
            location = None
        rows.append(
            [
                _text(customer.get("name")),
                _text(customer.get("email")),
                _text(location),
                f"{_amount(customer.get('credit_used'))} / {_amount(customer.get('credit_limit'))}",
                _text(customer.get("credit_status")),
                str(customer.get("active_shipments") or 0),
            ]
        )
    return rows


def _table(headers: Sequence[str], rows: Sequence[Sequence[str]], col_widths: Sequence[float]) -> Table:
    table = Table([list(headers), *rows], colWidths=list(col_widths), repeatRows=1)
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), HEADER_FILL),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTNAME", (0, 1), (-1, -1), "Helvetica"),
                ("FONTSIZE", (0, 0), (-1, -1), 10),
                ("TOPPADDING", (0, 0), (-1, -1), 3),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
                ("LEFTPADDING", (0, 0), (-1, -1), 3),
                ("RIGHTPADDING", (0, 0), (-1, -1), 3),
                ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#e1e1e1")),
                ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#f5f5f5")]),
                ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
            ]
        )
    )
    return table


def _build(
    path: Path,
    *,
    title: str,
    generated_on: date,
    headers: Sequence[str],
    rows: Sequence[Sequence[str]],
    weights: Sequence[float],
) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    doc = SimpleDocTemplate(
        str(path),
        pagesize=A4,
        leftMargin=40,
        rightMargin=40,
        topMargin=40,
        bottomMargin=40,
        title=title,
    )
    widths = [doc.width * weight for weight in weights]
    story = [
        Paragraph(title, TITLE_STYLE),
        Spacer(1, 4),
        Paragraph(f"Generated on: {generated_on.strftime('%d-%b-%Y')}", SUBTITLE_STYLE),
        Spacer(1, 10),
        _table(headers, rows, widths),
    ]
    doc.build(story)
    return path


def render_shipments_pdf(shipments: Iterable[Mapping[str, Any]], path: str | Path, generated_on: date) -> Path:
    return _build(
        Path(path),
        title="Shipments Report",
        generated_on=generated_on,
        headers=SHIPMENT_HEADERS,
        rows=shipment_rows(shipments),
        weights=[0.16, 0.22, 0.34, 0.13, 0.15],
    )


def render_customers_pdf(customers: Iterable[Mapping[str, Any]], path: str | Path, generated_on: date) -> Path:
    return _build(
        Path(path),
        title="Customers Report",
        generated_on=generated_on,
        headers=CUSTOMER_HEADERS,
        rows=customer_rows(customers),
        weights=[0.2, 0.24, 0.16, 0.16, 0.12, 0.12],
    )
