"""
PDF rendering for settlements.

Produces a single A4 document with the settlement header, one row per
vehicle line and the consolidated totals. Rendering reads only the
settlement snapshot (plates, owners, totals), never live vehicle data.

Usage:
    from settlements.pdf import render_settlement_pdf

    content = render_settlement_pdf(settlement)
"""

from __future__ import annotations

import io
import logging
from typing import TYPE_CHECKING

from django.utils.html import escape
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
from reportlab.platypus.doctemplate import LayoutError

from core.exceptions import ExternalServiceError
from toolkit.helpers import format_money

if TYPE_CHECKING:
    from settlements.models import Settlement

logger = logging.getLogger(__name__)

PRIMARY_COLOR = colors.HexColor("#1e3a5f")
STRIPE_COLOR = colors.HexColor("#f0f4f8")

styles = getSampleStyleSheet()
styles.add(
    ParagraphStyle(
        name="SettlementTitle",
        fontName="Helvetica-Bold",
        fontSize=16,
        leading=20,
        textColor=PRIMARY_COLOR,
        spaceAfter=6,
    )
)
styles.add(
    ParagraphStyle(
        name="SettlementDetails",
        fontName="Helvetica",
        fontSize=9,
        leading=12,
        textColor=colors.HexColor("#666666"),
    )
)

LINE_HEADERS = ["Plate", "Fleet", "Owner", "Services", "Expenses", "Net"]


def _line_rows(settlement: Settlement) -> list[list]:
    rows = [LINE_HEADERS]
    for line in settlement.lines.all().order_by("position"):
        rows.append(
            [
                line.plate,
                line.fleet,
                Paragraph(escape(line.owner_name or "-"), styles["BodyText"]),
                format_money(line.total_services),
                format_money(line.total_operational_expenses),
                format_money(line.net),
            ]
        )
    return rows


def _totals_rows(settlement: Settlement) -> list[list]:
    return [
        ["Total services", format_money(settlement.total_services)],
        ["Operational expenses", format_money(settlement.total_operational_expenses)],
        ["Pre-operational expenses", format_money(settlement.total_preoperational_expenses)],
        ["Net total", format_money(settlement.net_total)],
    ]


def render_settlement_pdf(settlement: Settlement) -> bytes:
    """
    Render a settlement to PDF bytes.

    Raises:
        ExternalServiceError: PDF_RENDER_FAILED if reportlab cannot build
            the document
    """
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=1.5 * cm,
        rightMargin=1.5 * cm,
        topMargin=1.5 * cm,
        bottomMargin=1.5 * cm,
        title=settlement.number,
    )

    client_name = settlement.client.name if settlement.client_id else "-"
    story = [
        Paragraph(settlement.number, styles["SettlementTitle"]),
        Paragraph(f"Client: {escape(client_name)}", styles["SettlementDetails"]),
        Paragraph(f"Generated on: {settlement.generated_on:%Y-%m-%d}", styles["SettlementDetails"]),
        Paragraph(f"State: {settlement.get_state_display()}", styles["SettlementDetails"]),
        Spacer(1, 0.6 * cm),
    ]

    lines_table = Table(
        _line_rows(settlement),
        colWidths=[2.2 * cm, 2.2 * cm, 5.0 * cm, 2.8 * cm, 2.8 * cm, 2.8 * cm],
        repeatRows=1,
    )
    lines_table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), PRIMARY_COLOR),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, -1), 8),
                ("ALIGN", (3, 1), (-1, -1), "RIGHT"),
                ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, STRIPE_COLOR]),
                ("GRID", (0, 0), (-1, -1), 0.25, colors.HexColor("#cccccc")),
                ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
            ]
        )
    )
    story.extend([lines_table, Spacer(1, 0.6 * cm)])

    totals_table = Table(_totals_rows(settlement), colWidths=[6 * cm, 4 * cm], hAlign="RIGHT")
    totals_table.setStyle(
        TableStyle(
            [
                ("ALIGN", (1, 0), (1, -1), "RIGHT"),
                ("FONTSIZE", (0, 0), (-1, -1), 9),
                ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
                ("TEXTCOLOR", (0, -1), (-1, -1), PRIMARY_COLOR),
                ("LINEABOVE", (0, -1), (-1, -1), 0.75, PRIMARY_COLOR),
            ]
        )
    )
    story.append(totals_table)

    if settlement.notes:
        story.extend([Spacer(1, 0.6 * cm), Paragraph(escape(settlement.notes), styles["BodyText"])])

    try:
        doc.build(story)
    except (ValueError, LayoutError) as e:
        logger.error(
            f"Failed to render settlement PDF: {e}",
            extra={"settlement_id": str(settlement.id)},
        )
        raise ExternalServiceError(
            "Could not render the settlement document",
            error_code="PDF_RENDER_FAILED",
            details={"settlement_id": str(settlement.id)},
        ) from e

    return buffer.getvalue()
