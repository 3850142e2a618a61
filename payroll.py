"""
Resumen de ventas por período y planilla de comisiones

Solo suma la comisión guardada en cada venta; nunca la recalcula con las
tasas actuales, así el reporte es estable sobre datos históricos.
"""
from collections import OrderedDict
from datetime import datetime, time
from decimal import Decimal

from models import Channel
import business_rules as rules
from commissions import deductions_for
from utils import money_str, quantize_money, to_decimal

ZERO = Decimal('0')

MATRIX_COLUMNS = ('efectivo', 'tc', 'bitcoin', 'transfer')


def matrix_column(payment_method):
    """Columna del resumen: Transferencia, Link de Pago y Otros van juntos"""
    tag = rules.payment_tag(payment_method)
    if tag == rules.CASH:
        return 'efectivo'
    if tag == rules.CARD:
        return 'tc'
    if tag == rules.CRYPTO:
        return 'bitcoin'
    return 'transfer'


def _empty_row():
    row = OrderedDict((column, ZERO) for column in MATRIX_COLUMNS)
    row['total'] = ZERO
    return row


def _row_to_dict(row):
    return OrderedDict((key, money_str(value)) for key, value in row.items())


class PeriodSummary:
    def __init__(self, start_date, end_date):
        self.start_date = start_date
        self.end_date = end_date
        self.channel_matrix = OrderedDict((channel.value, _empty_row()) for channel in Channel)
        self.matrix_totals = _empty_row()
        self.deductions = OrderedDict((column, ZERO) for column in MATRIX_COLUMNS)
        self.deductions.update(tax=ZERO, bank_fee=ZERO, commissionable_base=ZERO, total_commission=ZERO)
        self.payouts = OrderedDict(
            (staff, {'commission': ZERO, 'rent': ZERO, 'total': ZERO})
            for staff in rules.RECEPTIONISTS
        )
        self.payout_totals = {'commission': ZERO, 'rent': ZERO, 'total': ZERO}

    def to_dict(self):
        return {
            'start': self.start_date.isoformat(),
            'end': self.end_date.isoformat(),
            'channel_matrix': OrderedDict(
                (channel, _row_to_dict(row)) for channel, row in self.channel_matrix.items()
            ),
            'matrix_totals': _row_to_dict(self.matrix_totals),
            'deductions': _row_to_dict(self.deductions),
            'payouts': OrderedDict(
                (staff, _row_to_dict(row)) for staff, row in self.payouts.items()
            ),
            'payout_totals': _row_to_dict(self.payout_totals),
        }


def in_period(sale_date, start_date, end_date):
    start = datetime.combine(start_date, time.min)
    end = datetime.combine(end_date, time.max)
    return start <= sale_date <= end


def summarize(sales, start_date, end_date):
    """
    Resumen del período [start_date 00:00:00, end_date 23:59:59] inclusive

    Args:
        sales: ventas (se filtran por fecha aquí mismo)
        start_date: primer día
        end_date: último día

    Returns:
        PeriodSummary con matriz por canal, deducciones de venta directa y
        pago de comisiones por recepcionista
    """
    summary = PeriodSummary(start_date, end_date)

    for sale in sales:
        if not in_period(sale.date, start_date, end_date):
            continue

        amount = to_decimal(sale.amount)
        channel = getattr(sale.channel, 'value', sale.channel)
        column = matrix_column(sale.payment_method)
        commission = to_decimal(sale.commission_amount)

        row = summary.channel_matrix.get(channel)
        if row is not None:
            row[column] += amount
            row['total'] += amount
            summary.matrix_totals[column] += amount
            summary.matrix_totals['total'] += amount

        if channel == rules.COMMISSIONABLE_CHANNEL.value:
            summary.deductions[column] += amount
            deductions = deductions_for(amount, sale.type, sale.payment_method)
            summary.deductions['tax'] += deductions.tax
            summary.deductions['bank_fee'] += deductions.bank_fee
            if deductions.base > 0:
                summary.deductions['commissionable_base'] += deductions.base
            summary.deductions['total_commission'] += commission

        payout = summary.payouts.get(sale.receptionist)
        if payout is not None:
            payout['commission'] += commission

    for payout in summary.payouts.values():
        payout['rent'] = quantize_money(payout['commission'] * rules.RENT_RATE)
        payout['total'] = payout['commission'] - payout['rent']
        for key in summary.payout_totals:
            summary.payout_totals[key] += payout[key]

    return summary
