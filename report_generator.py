"""
Corte de Caja PDF Generator
Generador del reporte impreso del corte de caja diario
"""

import io
from datetime import datetime
from typing import Optional

from reportlab.lib.pagesizes import letter
from reportlab.lib.units import inch
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.enums import TA_CENTER, TA_LEFT
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle
from reportlab.lib import colors

from utils import format_currency

STATUS_LABELS = {
    'cuadrado': 'CUADRADO',
    'sobrante': 'SOBRANTE',
    'faltante': 'FALTANTE',
}


def _styles():
    styles = getSampleStyleSheet()

    styles.add(ParagraphStyle(
        name='ReportTitle',
        fontSize=16,
        alignment=TA_CENTER,
        fontName='Helvetica-Bold',
        spaceAfter=12
    ))

    styles.add(ParagraphStyle(
        name='SectionHeader',
        fontSize=12,
        alignment=TA_LEFT,
        fontName='Helvetica-Bold',
        spaceAfter=6,
        spaceBefore=12
    ))

    styles.add(ParagraphStyle(
        name='NormalText',
        fontSize=9,
        alignment=TA_LEFT,
        fontName='Helvetica'
    ))

    styles.add(ParagraphStyle(
        name='CenterInfo',
        fontSize=9,
        alignment=TA_CENTER,
        fontName='Helvetica'
    ))
    return styles


def _summary_table(rows, highlight_last=True):
    table = Table(rows, colWidths=[3.2*inch, 2*inch])
    style = [
        ('BACKGROUND', (0, 0), (0, -1), colors.lightgrey),
        ('TEXTCOLOR', (0, 0), (-1, -1), colors.black),
        ('ALIGN', (1, 0), (1, -1), 'RIGHT'),
        ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 9),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 5),
        ('TOPPADDING', (0, 0), (-1, -1), 5),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.black),
    ]
    if highlight_last:
        style += [
            ('BACKGROUND', (0, -1), (-1, -1), colors.lightblue),
            ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
        ]
    table.setStyle(TableStyle(style))
    return table


def _grid_table(rows, col_widths):
    table = Table(rows, colWidths=col_widths)
    table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.grey),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('ALIGN', (1, 0), (-1, -1), 'RIGHT'),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 8),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 4),
        ('TOPPADDING', (0, 0), (-1, -1), 4),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.beige])
    ]))
    return table


def generate_corte_pdf(reconciliation, business_name: str = 'Corte de Caja',
                       generated_by: Optional[str] = None) -> bytes:
    """
    Generate the daily cash reconciliation report

    Args:
        reconciliation: Reconciliation result of the day
        business_name: Header shown on top of the report
        generated_by: Name of the user printing the report

    Returns:
        PDF content as bytes
    """
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=letter,
        rightMargin=40,
        leftMargin=40,
        topMargin=40,
        bottomMargin=40
    )

    styles = _styles()
    content = []

    day = reconciliation.day_state
    balance = reconciliation.balance
    count = reconciliation.cash_count
    aggregate = reconciliation.aggregate

    content.append(Paragraph(business_name, styles['ReportTitle']))
    content.append(Paragraph(f"Corte de Caja - {day.date.strftime('%d/%m/%Y')}", styles['ReportTitle']))
    estado = 'ABIERTO' if day.is_open else f"CERRADO por {day.closed_by or 'N/A'}"
    content.append(Paragraph(f"Estado: {estado}", styles['CenterInfo']))
    content.append(Paragraph(
        f"Generado: {datetime.now().strftime('%d/%m/%Y %H:%M:%S')}"
        + (f" por {generated_by}" if generated_by else ''),
        styles['CenterInfo']
    ))
    content.append(Spacer(1, 16))

    # Desglose por sección
    content.append(Paragraph("Ventas por Sección", styles['SectionHeader']))
    breakdown_rows = [['Sección / Método', 'Monto']]
    for sale_type in aggregate.sections:
        breakdown_rows.append([sale_type, format_currency(aggregate.section_total(sale_type))])
        methods = aggregate.breakdown[sale_type]
        for method, amount in methods.items():
            breakdown_rows.append([f"    {method}", format_currency(amount)])
    breakdown_rows.append(['TOTAL VENTAS', format_currency(aggregate.total)])
    content.append(_grid_table(breakdown_rows, [3.2*inch, 2*inch]))

    # Corte diario
    content.append(Paragraph("Corte Diario", styles['SectionHeader']))
    content.append(_summary_table([
        ['Fondo de Caja:', format_currency(balance.initial_fund)],
        ['Total Ventas:', format_currency(balance.total_sales)],
        ['(-) Ventas con Tarjeta:', format_currency(balance.card_sales)],
        ['(-) Depósitos / Link / Bitcoin:', format_currency(balance.deposit_sales)],
        ['Ventas en Efectivo:', format_currency(balance.gross_cash)],
        ['(-) Gastos:', format_currency(balance.total_expenses)],
        ['Efectivo Neto del Día:', format_currency(balance.net_cash_today)],
        ['Total Acumulado en Caja:', format_currency(balance.theoretical_cash)],
    ]))

    # Conteo físico
    content.append(Paragraph("Conteo Físico", styles['SectionHeader']))
    count_rows = [['Denominación', 'Cantidad', 'Subtotal']]
    for denom, qty in list(count.bills.items()) + list(count.coins.items()):
        count_rows.append([format_currency(denom), str(qty), format_currency(denom * qty)])
    count_rows.append(['Cheques', '', format_currency(count.checks)])
    count_rows.append(['Otros', '', format_currency(count.others)])
    count_rows.append(['TOTAL CONTADO', '', format_currency(count.total)])
    content.append(_grid_table(count_rows, [2*inch, 1.2*inch, 2*inch]))

    # Resultado
    content.append(Paragraph("Resultado", styles['SectionHeader']))
    content.append(_summary_table([
        ['Teórico en Caja:', format_currency(balance.theoretical_cash)],
        ['Contado:', format_currency(balance.counted_total)],
        ['Diferencia:', format_currency(balance.difference) if balance.difference >= 0
            else f"- {format_currency(-balance.difference)}"],
        ['Estado:', STATUS_LABELS.get(balance.status, balance.status)],
    ]))

    # Cierre de lote
    content.append(Paragraph("Cierre de Lote (Tarjetas)", styles['SectionHeader']))
    batch_rows = [['Red', 'Lote', 'Ventas', 'Diferencia']]
    for network, row in reconciliation.card_batches.items():
        batch_rows.append([
            network,
            format_currency(row['batch']),
            format_currency(row['sales']),
            format_currency(row['difference']) if row['difference'] >= 0
            else f"- {format_currency(-row['difference'])}",
        ])
    content.append(_grid_table(batch_rows, [1.4*inch, 1.4*inch, 1.4*inch, 1.4*inch]))

    # Remesa
    remittance = reconciliation.remittance
    content.append(Paragraph("Remesa", styles['SectionHeader']))
    content.append(_summary_table([
        ['Base de Remesa:', format_currency(remittance.base)],
        ['Sobrante:', format_currency(remittance.surplus)],
        ['Remesa Procesada:', 'SÍ' if reconciliation.remittance_done else 'NO'],
        ['Monto Remesado:', format_currency(remittance.amount) if reconciliation.remittance_done else '-'],
        ['Fondo Día Siguiente:', format_currency(reconciliation.next_fund)],
    ]))

    # Gastos
    if reconciliation.expenses:
        content.append(Paragraph("Gastos del Día", styles['SectionHeader']))
        expense_rows = [['Proveedor', 'Documento', 'Total']]
        for expense in reconciliation.expenses:
            expense_rows.append([
                expense.provider[:30],
                f"{expense.document_type.value} {expense.document_number}",
                format_currency(expense.amount),
            ])
        content.append(_grid_table(expense_rows, [2.6*inch, 2*inch, 1.4*inch]))

    content.append(Spacer(1, 30))
    content.append(Paragraph("_" * 50, styles['NormalText']))
    content.append(Paragraph("Firma Responsable", styles['NormalText']))

    doc.build(content)
    return buffer.getvalue()
