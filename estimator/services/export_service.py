"""Export of saved estimations as PDF documents."""

from datetime import datetime
from io import BytesIO
from typing import Dict, Any, Mapping, Optional

from reportlab.lib.pagesizes import A4
from reportlab.lib import colors
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.enums import TA_CENTER
from xml.sax.saxutils import escape

from estimator.services.reconciliation_service import reconcile_estimation
from estimator.utils.formatters import money, quantity, datetime_display


def export_fields(snapshot: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Fields handed to the document renderer, and nothing else.

    The snapshot is reconciled first so raw stored records work too.
    """
    estimation = reconcile_estimation(snapshot)
    return {
        'product_name': estimation['product_name'],
        'created_at': estimation['created_at'],
        'total_cost': estimation['total_cost'],
        'materials': [
            {
                'name': line['name'],
                'quantity': line['quantity'],
                'unit': line['unit'],
                'unit_price': line['unit_price'],
                'subtotal': line['subtotal'],
            }
            for line in estimation['materials']
        ],
    }


def render_estimation_pdf(snapshot: Mapping[str, Any], business_info: Optional[Dict[str, Any]] = None) -> BytesIO:
    """
    Render an estimation: product name, creation time, one row per material
    and a totals row.
    """
    fields = export_fields(snapshot)
    business_info = business_info or {}
    label = business_info.get('currency_label')

    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=0.75*inch,
        leftMargin=0.75*inch,
        topMargin=0.75*inch,
        bottomMargin=0.75*inch,
        title=f"Estimation - {fields['product_name']}"
    )

    elements = []
    styles = getSampleStyleSheet()

    title_style = ParagraphStyle(
        'EstimationTitle',
        parent=styles['Heading1'],
        fontSize=22,
        textColor=colors.HexColor('#2C3E50'),
        spaceAfter=12,
        alignment=TA_CENTER,
        fontName='Helvetica-Bold'
    )

    header_style = ParagraphStyle(
        'EstimationHeader',
        parent=styles['Normal'],
        fontSize=10,
        textColor=colors.HexColor('#7F8C8D'),
        alignment=TA_CENTER,
        spaceAfter=6
    )

    # 1. Title and business header
    elements.append(Paragraph("COST ESTIMATION", title_style))

    if business_info.get('name'):
        elements.append(Paragraph(f"<b>{escape(business_info['name'])}</b>", header_style))
    if business_info.get('email'):
        elements.append(Paragraph(escape(business_info['email']), header_style))

    elements.append(Spacer(1, 0.3*inch))

    # 2. Metadata
    info_table = Table([
        ['Product:', Paragraph(escape(fields['product_name']), styles['Normal'])],
        ['Created:', datetime_display(fields['created_at'])],
        ['Printed:', datetime_display(business_info.get('printed_at') or datetime.now())],
    ], colWidths=[1.5*inch, 4.5*inch])
    info_table.setStyle(TableStyle([
        ('ALIGN', (0, 0), (0, -1), 'RIGHT'),
        ('ALIGN', (1, 0), (1, -1), 'LEFT'),
        ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 10),
        ('TEXTCOLOR', (0, 0), (-1, -1), colors.HexColor('#34495E')),
    ]))
    elements.append(info_table)
    elements.append(Spacer(1, 0.3*inch))

    # 3. Materials
    table_data = [['Material', 'Quantity', 'Unit', 'Unit Price', 'Subtotal']]
    for line in fields['materials']:
        table_data.append([
            Paragraph(escape(str(line['name'])), styles['Normal']),
            quantity(line['quantity']),
            line['unit'],
            money(line['unit_price']),
            money(line['subtotal']),
        ])
    table_data.append(['Total', '', '', '', money(fields['total_cost'], label)])

    items_table = Table(table_data, colWidths=[2.6*inch, 0.9*inch, 0.8*inch, 1.1*inch, 1.3*inch])
    items_table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#4F46E5')),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('ALIGN', (0, 0), (-1, 0), 'CENTER'),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('BOTTOMPADDING', (0, 0), (-1, 0), 10),
        ('ALIGN', (1, 1), (2, -1), 'CENTER'),
        ('ALIGN', (3, 1), (4, -1), 'RIGHT'),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.HexColor('#BDC3C7')),
        ('ROWBACKGROUNDS', (0, 1), (-1, -2), [colors.white, colors.HexColor('#ECF0F1')]),
        # Totals row
        ('SPAN', (0, -1), (3, -1)),
        ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
        ('BACKGROUND', (0, -1), (-1, -1), colors.HexColor('#E8F8F5')),
        ('TEXTCOLOR', (0, -1), (-1, -1), colors.HexColor('#27AE60')),
    ]))

    elements.append(items_table)
    elements.append(Spacer(1, 0.4*inch))

    footer_style = ParagraphStyle('Footer', parent=styles['Normal'], fontSize=9, textColor=colors.HexColor('#95A5A6'), alignment=TA_CENTER)
    elements.append(Paragraph(
        "Prices as recorded when the estimation was saved.<br/><i>This document is not an invoice.</i>",
        footer_style
    ))

    doc.build(elements)
    buffer.seek(0)
    return buffer
