"""
mbom_export.py

Export an mBOM to CSV, Excel and PDF.

CSV and Excel share one column set and order; the PDF is a condensed,
paginated table meant for printing.
"""

import io
import logging
from datetime import datetime
from typing import Any, Iterable, List, Optional

import pandas as pd
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from mbom_graph import work_center_token
from mbom_models import ChangeType, parse_items
from mbom_stats import aggregate, confidence_percent

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = [
    "Part Number",
    "Description",
    "Quantity",
    "Level",
    "Work Center",
    "Material Spec",
    "Confidence",
    "Change Type",
]

# Excel column widths, in characters
COLUMN_WIDTHS = [20, 45, 10, 10, 25, 25, 12, 15]

PDF_COLUMNS = ["Part Number", "Description", "Qty", "Work Center", "Confidence"]
PDF_DESCRIPTION_LIMIT = 40
PDF_HEADER_COLOR = colors.Color(20 / 255, 184 / 255, 166 / 255)  # Teal
PDF_ALT_ROW_COLOR = colors.Color(245 / 255, 245 / 255, 245 / 255)


# ---------- Formatting helpers ----------

def format_confidence(value: Optional[float]) -> str:
    """'87%' for a score, empty when the score is missing or zero."""
    if not value:
        return ""
    return f"{confidence_percent(value)}%"


def truncate(text: str, limit: int = PDF_DESCRIPTION_LIMIT) -> str:
    if len(text) > limit:
        return text[:limit] + "..."
    return text


def _timestamp(generated_at: Optional[datetime]) -> str:
    return (generated_at or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")


# ---------- Tabular export ----------

def export_frame(items: Iterable[Any]) -> pd.DataFrame:
    """
    Build the export table, one row per item in list order.

    Missing change types are written as 'unchanged'.
    """
    rows = []
    for item in parse_items(items):
        rows.append({
            "Part Number": item.part_number,
            "Description": item.description,
            "Quantity": item.quantity,
            "Level": item.level,
            "Work Center": item.work_center or "",
            "Material Spec": item.material_spec or "",
            "Confidence": format_confidence(item.confidence),
            "Change Type": (item.change_type or ChangeType.UNCHANGED).value,
        })
    return pd.DataFrame(rows, columns=EXPORT_COLUMNS)


def summary_frame(items: Iterable[Any], generated_at: Optional[datetime] = None) -> pd.DataFrame:
    stats = aggregate(items)
    return pd.DataFrame(
        [
            {"Metric": "Total Assemblies", "Value": stats.total_parts},
            {"Metric": "Added Nodes", "Value": stats.added_parts},
            {"Metric": "Modified Nodes", "Value": stats.modified_parts},
            {"Metric": "Overall Neural Confidence", "Value": f"{stats.avg_confidence}%"},
            {"Metric": "Export Date", "Value": _timestamp(generated_at)},
        ],
        columns=["Metric", "Value"],
    )


def to_csv_bytes(items: Iterable[Any]) -> bytes:
    df = export_frame(items)
    return df.to_csv(index=False).encode("utf-8")


def to_excel_bytes(items: Iterable[Any], generated_at: Optional[datetime] = None) -> bytes:
    """
    Two-sheet workbook: 'mBOM' with the export table and 'Synthesis Summary'
    with the aggregate statistics.
    """
    snapshot = parse_items(items)
    df = export_frame(snapshot)
    summary = summary_frame(snapshot, generated_at)

    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="xlsxwriter") as writer:
        df.to_excel(writer, sheet_name="mBOM", index=False)
        summary.to_excel(writer, sheet_name="Synthesis Summary", index=False)

        sheet = writer.sheets["mBOM"]
        for col, width in enumerate(COLUMN_WIDTHS):
            sheet.set_column(col, col, width)
        writer.sheets["Synthesis Summary"].set_column(0, 1, 25)

    logger.info("Exported %d items to Excel", len(df))
    return buffer.getvalue()


# ---------- PDF export ----------

def pdf_rows(items: Iterable[Any]) -> List[List[str]]:
    """Body rows of the printed table (header not included)."""
    return [
        [
            item.part_number,
            truncate(item.description),
            str(item.quantity),
            work_center_token(item.work_center),
            format_confidence(item.confidence),
        ]
        for item in parse_items(items)
    ]


def to_pdf_bytes(items: Iterable[Any], generated_at: Optional[datetime] = None) -> bytes:
    snapshot = parse_items(items)
    styles = getSampleStyleSheet()

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=14 * mm,
        rightMargin=14 * mm,
        topMargin=14 * mm,
        bottomMargin=14 * mm,
        title="Manufacturing Bill of Materials (mBOM)",
    )

    table = Table([PDF_COLUMNS] + pdf_rows(snapshot), repeatRows=1)
    table.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 8),
        ("BACKGROUND", (0, 0), (-1, 0), PDF_HEADER_COLOR),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, PDF_ALT_ROW_COLOR]),
        ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
        ("TOPPADDING", (0, 0), (-1, -1), 2),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 2),
    ]))

    story = [
        Paragraph("Manufacturing Bill of Materials (mBOM)", styles["Title"]),
        Paragraph(f"Generated: {_timestamp(generated_at)}", styles["Normal"]),
        Paragraph(f"Total Parts: {len(snapshot)}", styles["Normal"]),
        Spacer(1, 6 * mm),
        table,
    ]
    doc.build(story)

    logger.info("Exported %d items to PDF", len(snapshot))
    return buffer.getvalue()
