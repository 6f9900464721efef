"""
PDF documents for clients and suppliers: invoices and purchase orders.
"""

import logging
from datetime import datetime
from io import BytesIO

from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle

from database.models import ClientQuote, Order

logger = logging.getLogger(__name__)

BRAND_COLOR = '#556B2F'


def _money(value) -> str:
    return f"${(value or 0):,.2f}"


def _styles():
    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        'DocumentTitle',
        parent=styles['Heading1'],
        fontSize=22,
        textColor=colors.HexColor(BRAND_COLOR),
        spaceAfter=20,
    )
    return styles, title_style


def _line_table(rows, col_widths, total_rows: int) -> Table:
    table = Table(rows, colWidths=col_widths)
    body_end = len(rows) - total_rows - 1
    style = [
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor(BRAND_COLOR)),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 9),
        ('BOTTOMPADDING', (0, 0), (-1, 0), 8),
        ('ALIGN', (1, 0), (-1, -1), 'RIGHT'),
        ('GRID', (0, 0), (-1, body_end), 0.5, colors.grey),
        ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
    ]
    if body_end >= 1:
        style.append(('BACKGROUND', (0, 1), (-1, body_end), colors.beige))
    table.setStyle(TableStyle(style))
    return table


def generate_invoice_pdf(invoice: ClientQuote, organization_name: str = 'StudioFlow') -> bytes:
    """Invoice with lines, GST, QST and total."""
    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=letter, title=invoice.quote_number)
    styles, title_style = _styles()
    story = []

    story.append(Paragraph(organization_name, title_style))
    story.append(Paragraph(f"Invoice {invoice.quote_number}", styles['Heading2']))
    story.append(Paragraph(invoice.title, styles['Normal']))
    story.append(Spacer(1, 0.2 * inch))

    client_name = invoice.client_name or (invoice.project.client.name if invoice.project.client else '')
    story.append(Paragraph(f"Bill to: {client_name}", styles['Normal']))
    if invoice.client_email:
        story.append(Paragraph(invoice.client_email, styles['Normal']))
    story.append(Paragraph(f"Project: {invoice.project.name}", styles['Normal']))
    story.append(Paragraph(f"Date: {(invoice.created_at or datetime.utcnow()).strftime('%Y-%m-%d')}",
                           styles['Normal']))
    if invoice.valid_until:
        story.append(Paragraph(f"Due: {invoice.valid_until.strftime('%Y-%m-%d')}", styles['Normal']))
    story.append(Spacer(1, 0.3 * inch))

    rows = [['Item', 'Qty', 'Unit Price', 'Total']]
    for line in invoice.line_items:
        rows.append([
            Paragraph(line.display_name, styles['Normal']),
            str(line.quantity or 1),
            _money(line.client_unit_price),
            _money(line.client_total_price)
        ])
    rows.append(['', '', 'Subtotal:', _money(invoice.subtotal)])
    rows.append(['', '', f"GST ({invoice.gst_rate or 0:g}%):", _money(invoice.gst_amount)])
    rows.append(['', '', f"QST ({invoice.qst_rate or 0:g}%):", _money(invoice.qst_amount)])
    rows.append(['', '', 'TOTAL:', _money(invoice.total_amount)])
    story.append(_line_table(rows, [3.5 * inch, 0.7 * inch, 1.3 * inch, 1.3 * inch], total_rows=4))

    if invoice.deposit_amount:
        story.append(Spacer(1, 0.2 * inch))
        story.append(Paragraph(
            f"Deposit required ({invoice.deposit_required or 0:g}%): {_money(invoice.deposit_amount)}",
            styles['Normal']
        ))
    if invoice.payment_terms:
        story.append(Spacer(1, 0.2 * inch))
        story.append(Paragraph(f"Payment terms: {invoice.payment_terms}", styles['Normal']))
    if invoice.cc_surcharge_percent:
        story.append(Paragraph(
            f"Credit card payments carry a {invoice.cc_surcharge_percent:g}% surcharge.", styles['Italic']
        ))

    doc.build(story)
    logger.info(f"Generated invoice PDF for {invoice.quote_number}")
    return buffer.getvalue()


def generate_purchase_order_pdf(order: Order, organization_name: str = 'StudioFlow') -> bytes:
    """Purchase order with lines, shipping, extra charges, tax and total."""
    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=letter, title=order.order_number)
    styles, title_style = _styles()
    story = []

    story.append(Paragraph(organization_name, title_style))
    story.append(Paragraph(f"Purchase Order {order.order_number}", styles['Heading2']))
    vendor = order.supplier.name if order.supplier else order.vendor_name
    story.append(Paragraph(f"Supplier: {vendor or ''}", styles['Normal']))
    story.append(Paragraph(f"Project: {order.project.name}", styles['Normal']))
    if order.project.address:
        story.append(Paragraph(f"Ship to: {order.project.address}", styles['Normal']))
    story.append(Paragraph(f"Date: {(order.ordered_at or order.created_at or datetime.utcnow()).strftime('%Y-%m-%d')}",
                           styles['Normal']))
    story.append(Spacer(1, 0.3 * inch))

    rows = [['Item', 'Qty', 'Unit Price', 'Total']]
    for item in order.items:
        name = f"  - {item.name}" if item.is_component else item.name
        rows.append([
            Paragraph(name, styles['Normal']),
            str(item.quantity or 1),
            _money(item.unit_price),
            _money(item.total_price)
        ])
    totals = [['', '', 'Subtotal:', _money(order.subtotal)]]
    if order.shipping_cost:
        totals.append(['', '', 'Shipping:', _money(order.shipping_cost)])
    for charge in order.extra_charges or []:
        totals.append(['', '', f"{charge.get('label') or 'Other'}:", _money(charge.get('amount'))])
    if order.tax_amount:
        totals.append(['', '', 'Tax:', _money(order.tax_amount)])
    totals.append(['', '', f"TOTAL ({order.currency}):", _money(order.total_amount)])
    story.append(_line_table(rows + totals, [3.5 * inch, 0.7 * inch, 1.3 * inch, 1.3 * inch],
                             total_rows=len(totals)))

    if order.notes:
        story.append(Spacer(1, 0.2 * inch))
        story.append(Paragraph(f"Notes: {order.notes}", styles['Normal']))

    doc.build(story)
    logger.info(f"Generated purchase order PDF for {order.order_number}")
    return buffer.getvalue()
