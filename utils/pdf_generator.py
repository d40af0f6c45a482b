"""PDF rendering for industry water-quality compliance reports."""

import io
from typing import Dict, List
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle


PAGE_MARGIN = 20 * mm
CONTENT_WIDTH = A4[0] - (PAGE_MARGIN * 2)


styles = getSampleStyleSheet()

TITLE_STYLE = ParagraphStyle(
    name="ReportTitle",
    parent=styles["Title"],
    fontName="Helvetica-Bold",
    fontSize=16,
    leading=20,
    alignment=0,
    spaceAfter=12,
    textColor=colors.black,
)

DISCLAIMER_STYLE = ParagraphStyle(
    name="Disclaimer",
    fontName="Helvetica",
    fontSize=8,
    leading=10,
    textColor=colors.black,
    wordWrap="CJK",
    splitLongWords=True,
)

HEADING_STYLE = ParagraphStyle(
    name="SectionHeading",
    fontName="Helvetica-Bold",
    fontSize=11,
    leading=14,
    textColor=colors.black,
    spaceBefore=4,
    spaceAfter=6,
    keepWithNext=True,
    wordWrap="CJK",
    splitLongWords=True,
)

BODY_STYLE = ParagraphStyle(
    name="BodyText",
    fontName="Helvetica",
    fontSize=9,
    leading=12,
    textColor=colors.black,
    wordWrap="CJK",
    splitLongWords=True,
)

LABEL_STYLE = ParagraphStyle(
    name="LabelText",
    parent=BODY_STYLE,
    fontName="Helvetica-Bold",
)


def _para(value: str, style: ParagraphStyle = BODY_STYLE) -> Paragraph:
    """Create a wrapping paragraph with safe escaping and soft line handling."""
    text = escape(str(value or "").strip())
    text = text.replace("\n", "<br/>")
    text = text if text else "N/A"
    return Paragraph(text, style)


def _kv_table(rows: List[List[str]]) -> Table:
    table_rows = []
    for label, value in rows:
        table_rows.append([_para(label, LABEL_STYLE), _para(value, BODY_STYLE)])

    table = Table(table_rows, colWidths=[60 * mm, CONTENT_WIDTH - (60 * mm)], hAlign="LEFT")
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
                ("TEXTCOLOR", (0, 0), (-1, -1), colors.black),
                ("FONTNAME", (0, 0), (-1, -1), "Helvetica"),
                ("FONTSIZE", (0, 0), (-1, -1), 9),
                ("ALIGN", (0, 0), (-1, -1), "LEFT"),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
                ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
                ("BACKGROUND", (0, 1), (-1, -1), colors.whitesmoke),
                ("LEFTPADDING", (0, 0), (-1, -1), 4),
                ("RIGHTPADDING", (0, 0), (-1, -1), 4),
                ("TOPPADDING", (0, 0), (-1, -1), 4),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
            ]
        )
    )
    return table


def _table_with_header(rows: List[List[str]], col_widths: List[float]) -> Table:
    formatted_rows: List[List] = []
    for idx, row in enumerate(rows):
        is_header = idx == 0
        formatted_row = []
        for cell in row:
            if isinstance(cell, Paragraph):
                formatted_row.append(cell)
            else:
                formatted_row.append(_para(cell, LABEL_STYLE if is_header else BODY_STYLE))
        formatted_rows.append(formatted_row)

    table = Table(formatted_rows, colWidths=col_widths, repeatRows=1, splitByRow=1, hAlign="LEFT")
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
                ("TEXTCOLOR", (0, 0), (-1, -1), colors.black),
                ("FONTNAME", (0, 0), (-1, -1), "Helvetica"),
                ("FONTSIZE", (0, 0), (-1, -1), 8),
                ("ALIGN", (0, 0), (-1, -1), "LEFT"),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
                ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
                ("LEFTPADDING", (0, 0), (-1, -1), 4),
                ("RIGHTPADDING", (0, 0), (-1, -1), 4),
                ("TOPPADDING", (0, 0), (-1, -1), 4),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
            ]
        )
    )
    return table


def _summary_rows(summary: List[Dict]) -> List[List[str]]:
    rows = [["Parameter", "Kit", "Readings", "Min", "Max", "Average"]]
    for entry in summary:
        rows.append(
            [
                entry.get("display_name", ""),
                entry.get("kit_type", ""),
                str(entry.get("count", 0)),
                entry.get("min", ""),
                entry.get("max", ""),
                entry.get("average", ""),
            ]
        )
    return rows


def generate_pdf(payload: Dict) -> bytes:
    """Render an industry compliance report and return the PDF bytes."""
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=PAGE_MARGIN,
        rightMargin=PAGE_MARGIN,
        topMargin=PAGE_MARGIN,
        bottomMargin=PAGE_MARGIN,
        title=payload.get("title", "Report"),
        allowSplitting=True,
    )

    industry = payload.get("industry") or {}
    story: List = []
    story.append(Paragraph(escape(payload.get("title", "Report")), TITLE_STYLE))
    story.append(
        Paragraph(
            "Generated by the effluent monitoring system from stored kit readings.",
            DISCLAIMER_STYLE,
        )
    )
    story.append(Spacer(1, 8))

    story.append(Paragraph("1. Industry", HEADING_STYLE))
    story.append(
        _kv_table(
            [
                ["Report Metadata", ""],
                ["Industry", industry.get("name", "")],
                ["Type", industry.get("industry_type") or "Not specified"],
                ["Owner Email", payload.get("owner_email") or "Not specified"],
                ["Address", industry.get("location") or "Not specified"],
                ["Contact", industry.get("phone_number") or "Not specified"],
                ["Period", payload.get("period_label", "")],
                ["Generated At (UTC)", payload.get("generated_at", "")],
            ]
        )
    )
    story.append(Spacer(1, 10))

    story.append(Paragraph("2. Reading Summary", HEADING_STYLE))
    summary = payload.get("summary") or []
    if summary:
        story.append(
            _table_with_header(
                _summary_rows(summary),
                col_widths=[40 * mm, 25 * mm, 22 * mm, 25 * mm, 25 * mm, CONTENT_WIDTH - (137 * mm)],
            )
        )
    else:
        story.append(_para("No readings recorded in this period."))
    story.append(Spacer(1, 8))

    story.append(Paragraph("3. Threshold Alerts", HEADING_STYLE))
    alerts = payload.get("alerts") or []
    if alerts:
        alert_rows = [["Detected", "Parameter", "Value", "Threshold", "Sample Time"]]
        for alert in alerts:
            alert_rows.append(
                [
                    alert.get("alert_datetime", ""),
                    alert.get("parameter", ""),
                    str(alert.get("current_value", "")),
                    alert.get("threshold_label") or str(alert.get("threshold_value", "")),
                    alert.get("water_quality_measured_at", ""),
                ]
            )
        story.append(
            _table_with_header(
                alert_rows,
                col_widths=[35 * mm, 40 * mm, 20 * mm, 35 * mm, CONTENT_WIDTH - (130 * mm)],
            )
        )
    else:
        story.append(_para("No threshold alerts raised in this period."))

    doc.build(story)
    return buffer.getvalue()
