"""
Agregación diaria de ventas

Totales por categoría de método de pago y desglose (tipo de venta, método)
usado por el corte de caja y el dashboard. Funciones puras sobre una lista
de ventas ya cargada.
"""
from collections import OrderedDict
from decimal import Decimal

import business_rules as rules
from utils import money_str, to_decimal

ZERO = Decimal('0')


class DailyAggregate:
    """Totales de un conjunto de ventas (normalmente las de un día)"""

    def __init__(self):
        self.total = ZERO
        self.transactions = 0
        self.cash = ZERO
        self.card = ZERO
        self.deposit = ZERO
        self.other = ZERO
        self.card_by_network = OrderedDict((network, ZERO) for network in rules.CARD_NETWORKS)
        # OrderedDict[tipo] -> OrderedDict[método] -> monto, solo celdas positivas
        self.breakdown = OrderedDict()

    @property
    def sections(self):
        return list(self.breakdown.keys())

    def section_total(self, sale_type):
        return sum(self.breakdown.get(sale_type, {}).values(), ZERO)

    def to_dict(self):
        return {
            'total': money_str(self.total),
            'transactions': self.transactions,
            'cash': money_str(self.cash),
            'card': money_str(self.card),
            'deposit': money_str(self.deposit),
            'other': money_str(self.other),
            'card_by_network': {k: money_str(v) for k, v in self.card_by_network.items()},
            'breakdown': [
                {
                    'type': sale_type,
                    'total': money_str(self.section_total(sale_type)),
                    'methods': [
                        {'method': method, 'amount': money_str(amount)}
                        for method, amount in methods.items()
                    ],
                }
                for sale_type, methods in self.breakdown.items()
            ],
        }


def _ordered(configured, present):
    """Valores configurados en su orden, luego los históricos en orden alfabético"""
    configured = list(configured or [])
    extras = sorted(value for value in present if value not in configured)
    return [value for value in configured if value in present] + extras


def aggregate(sales, payment_methods, sales_types):
    """
    Agrupa ventas por categoría de pago y por (tipo, método)

    Args:
        sales: ventas a agregar (cualquier objeto con amount, type, payment_method)
        payment_methods: métodos configurados, en orden
        sales_types: tipos de venta configurados, en orden

    Returns:
        DailyAggregate
    """
    result = DailyAggregate()
    cells = {}

    for sale in sales:
        amount = to_decimal(sale.amount)
        method = sale.payment_method
        tag = rules.payment_tag(method)

        result.total += amount
        result.transactions += 1

        if tag == rules.CASH:
            result.cash += amount
        elif tag == rules.CARD:
            result.card += amount
            result.card_by_network[method] = result.card_by_network.get(method, ZERO) + amount
        elif tag in rules.DEPOSIT_TAGS:
            result.deposit += amount
        else:
            result.other += amount

        key = (sale.type, method)
        cells[key] = cells.get(key, ZERO) + amount

    positive = {key: value for key, value in cells.items() if value > 0}
    types_present = {sale_type for sale_type, _ in positive}

    for sale_type in _ordered(sales_types, types_present):
        methods_present = {method for t, method in positive if t == sale_type}
        result.breakdown[sale_type] = OrderedDict(
            (method, positive[(sale_type, method)])
            for method in _ordered(payment_methods, methods_present)
        )

    return result


def dashboard_stats(sales):
    """
    Estadísticas del dashboard para una lista de ventas

    Returns:
        dict con total, ticket promedio, efectivo vs digital y ventas por canal y tipo
    """
    total = ZERO
    cash = ZERO
    by_channel = {}
    by_type = {}

    for sale in sales:
        amount = to_decimal(sale.amount)
        total += amount
        if rules.payment_tag(sale.payment_method) == rules.CASH:
            cash += amount
        channel = getattr(sale.channel, 'value', sale.channel)
        by_channel[channel] = by_channel.get(channel, ZERO) + amount
        by_type[sale.type] = by_type.get(sale.type, ZERO) + amount

    count = len(sales)
    average = total / count if count else ZERO

    return {
        'total': money_str(total),
        'transactions': count,
        'average_ticket': money_str(average),
        'cash': money_str(cash),
        'digital': money_str(total - cash),
        'by_channel': [
            {'channel': name, 'amount': money_str(value)}
            for name, value in sorted(by_channel.items(), key=lambda item: (-item[1], item[0]))
            if value > 0
        ],
        'by_type': [
            {'type': name, 'amount': money_str(value)}
            for name, value in sorted(by_type.items(), key=lambda item: (-item[1], item[0]))
            if value > 0
        ],
    }
