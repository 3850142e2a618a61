"""
Tests para las exportaciones: CSV de ventas, Excel del resumen y PDF del corte
"""
import csv
import io

import openpyxl
import pytest
from datetime import date, datetime
from decimal import Decimal
from types import SimpleNamespace

from models import Channel, DayState
from aggregation import aggregate
from exports import sales_csv, summary_workbook, SALES_CSV_HEADERS
from payroll import summarize
from reconciliation import CashCount, reconcile
from report_generator import generate_corte_pdf
import business_rules as rules


@pytest.fixture
def month_sales():
    return [
        SimpleNamespace(
            date=datetime(2025, 3, 1, 10, 15), command_number='HAB-12', type='Hotel',
            amount=Decimal('1000.00'), payment_method='BAC', channel=Channel.RESERVA_DIRECTA,
            receptionist='Diego', commission_amount=Decimal('15.50'),
        ),
        SimpleNamespace(
            date=datetime(2025, 3, 2, 18, 40), command_number='Mesa 4, terraza', type='Restaurante',
            amount=Decimal('45.5'), payment_method='Efectivo', channel=Channel.RESERVA_DIRECTA,
            receptionist='Ninguno', commission_amount=Decimal('0.00'),
        ),
    ]


class TestSalesCSV:

    def test_header(self, month_sales):
        lines = sales_csv(month_sales).splitlines()
        assert lines[0] == 'Fecha,Comanda,Tipo,Monto,Metodo,Canal'

    def test_rows(self, month_sales):
        lines = sales_csv(month_sales).splitlines()
        assert lines[1] == '2025-03-01,HAB-12,Hotel,1000.00,BAC,Reserva Directa'

    def test_commas_are_quoted(self, month_sales):
        """Las comas dentro de un campo no rompen las columnas"""
        rows = list(csv.reader(io.StringIO(sales_csv(month_sales))))
        assert rows[2] == ['2025-03-02', 'Mesa 4, terraza', 'Restaurante', '45.50', 'Efectivo', 'Reserva Directa']
        assert all(len(row) == len(SALES_CSV_HEADERS) for row in rows)

    def test_empty(self):
        assert sales_csv([]) == 'Fecha,Comanda,Tipo,Monto,Metodo,Canal\n'


class TestSummaryWorkbook:

    def test_workbook_contents(self, month_sales):
        summary = summarize(month_sales, date(2025, 3, 1), date(2025, 3, 31))
        wb = openpyxl.load_workbook(io.BytesIO(summary_workbook(summary)))
        ws = wb['Resumen']

        values = [cell for row in ws.iter_rows(values_only=True) for cell in row if cell is not None]
        assert 'Reserva Directa' in values
        assert 'Diego' in values
        assert 1045.5 in values
        assert 13.95 in values


class TestCortePDF:

    def test_pdf_generated(self, month_sales):
        state = DayState(date=date(2025, 3, 1), is_open=True, initial_fund=Decimal('200.00'))
        agg = aggregate(month_sales, rules.DEFAULT_PAYMENT_METHODS, rules.DEFAULT_SALES_TYPES)
        expense = SimpleNamespace(
            amount=Decimal('113.00'), provider='FERRETERIA CENTRAL', document_number='0012',
            document_type=SimpleNamespace(value='CCF'), to_dict=lambda: {},
        )
        result = reconcile(state, agg, [expense],
                           cash_count=CashCount.from_inputs(bills={'100': '1'}))

        pdf = generate_corte_pdf(result, generated_by='Helen')
        assert pdf.startswith(b'%PDF')
        assert len(pdf) > 1000
