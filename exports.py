"""
Exportaciones administrativas: CSV de ventas del mes y Excel del resumen por período
"""
import csv
import io
import logging

import openpyxl
from openpyxl.styles import Font, PatternFill, Alignment

from payroll import MATRIX_COLUMNS
from utils import money_str

logger = logging.getLogger(__name__)

SALES_CSV_HEADERS = ['Fecha', 'Comanda', 'Tipo', 'Monto', 'Metodo', 'Canal']

MATRIX_HEADERS = {
    'efectivo': 'Efectivo',
    'tc': 'TC (BAC/Promerica)',
    'bitcoin': 'Bitcoin',
    'transfer': 'Transferencia/Link/Otros',
    'total': 'Total',
}

TITLE_FILL = PatternFill(start_color='366092', end_color='366092', fill_type='solid')
HEADER_FILL = PatternFill(start_color='D9E2F3', end_color='D9E2F3', fill_type='solid')


def sales_csv(sales):
    """
    CSV de ventas: Fecha,Comanda,Tipo,Monto,Metodo,Canal

    Los campos con comas o comillas se escapan con las reglas estándar de CSV.
    """
    output = io.StringIO()
    writer = csv.writer(output, lineterminator='\n')
    writer.writerow(SALES_CSV_HEADERS)
    for sale in sales:
        writer.writerow([
            sale.date.date().isoformat(),
            sale.command_number,
            sale.type,
            money_str(sale.amount),
            sale.payment_method,
            getattr(sale.channel, 'value', sale.channel),
        ])
    return output.getvalue()


def _title(ws, row, text, width):
    ws.merge_cells(start_row=row, start_column=1, end_row=row, end_column=width)
    cell = ws.cell(row=row, column=1, value=text)
    cell.font = Font(color='FFFFFF', size=14, bold=True)
    cell.fill = TITLE_FILL
    cell.alignment = Alignment(horizontal='center')


def _header(ws, row, headers):
    for col, header in enumerate(headers, 1):
        cell = ws.cell(row=row, column=col, value=header)
        cell.font = Font(bold=True)
        cell.fill = HEADER_FILL


def _money_row(ws, row, label, values, bold=False):
    ws.cell(row=row, column=1, value=label).font = Font(bold=bold)
    for col, value in enumerate(values, 2):
        cell = ws.cell(row=row, column=col, value=float(value))
        cell.number_format = '#,##0.00'
        if bold:
            cell.font = Font(bold=True)


def summary_workbook(summary):
    """
    Libro Excel con las tres tablas del resumen: canales, venta directa y planilla

    Args:
        summary: PeriodSummary

    Returns:
        bytes del archivo .xlsx
    """
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = 'Resumen'

    columns = list(MATRIX_COLUMNS) + ['total']
    width = len(columns) + 1

    _title(ws, 1, f"Resumen de Ventas {summary.start_date.strftime('%d/%m/%Y')} - "
                  f"{summary.end_date.strftime('%d/%m/%Y')}", width)

    # Tabla 1: canales
    row = 3
    _header(ws, row, ['Canal'] + [MATRIX_HEADERS[c] for c in columns])
    for channel, values in summary.channel_matrix.items():
        row += 1
        _money_row(ws, row, channel, [values[c] for c in columns])
    row += 1
    _money_row(ws, row, 'TOTAL', [summary.matrix_totals[c] for c in columns], bold=True)

    # Tabla 2: deducciones de venta directa
    row += 2
    _title(ws, row, 'Venta Directa - Deducciones', width)
    row += 1
    deduction_labels = [
        ('efectivo', 'Efectivo'),
        ('tc', 'TC (BAC/Promerica)'),
        ('bitcoin', 'Bitcoin'),
        ('transfer', 'Transferencia/Link/Otros'),
        ('tax', 'Impuesto Hotel (18%)'),
        ('bank_fee', 'Comisión Bancaria (4.5%)'),
        ('commissionable_base', 'Base Comisionable'),
        ('total_commission', 'Comisión Generada'),
    ]
    _header(ws, row, ['Concepto', 'Monto'])
    for key, label in deduction_labels:
        row += 1
        _money_row(ws, row, label, [summary.deductions[key]], bold=key == 'total_commission')

    # Tabla 3: planilla de comisiones
    row += 2
    _title(ws, row, 'Pago de Comisiones', width)
    row += 1
    _header(ws, row, ['Recepcionista', 'Comisión', 'Renta (10%)', 'A Pagar'])
    for staff, payout in summary.payouts.items():
        row += 1
        _money_row(ws, row, staff, [payout['commission'], payout['rent'], payout['total']])
    row += 1
    totals = summary.payout_totals
    _money_row(ws, row, 'TOTAL', [totals['commission'], totals['rent'], totals['total']], bold=True)

    ws.column_dimensions['A'].width = 28
    for letter in 'BCDEF':
        ws.column_dimensions[letter].width = 22

    output = io.BytesIO()
    wb.save(output)
    logger.debug(f"Excel de resumen generado: {summary.start_date} a {summary.end_date}")
    return output.getvalue()
