"""
Corte de caja: conteo físico, saldo teórico, diferencia, remesa y estado del día

El conteo y los cálculos son funciones puras. El estado abierto/cerrado de cada
día se lee y escribe a través de repository; un día sin registro está abierto
con el fondo inicial por defecto.
"""
import logging
from collections import namedtuple, OrderedDict
from datetime import datetime, timedelta
from decimal import Decimal

from flask import current_app, has_app_context

from models import DayState
from errors import DayClosedError, ForbiddenError, ValidationError
import business_rules as rules
import repository
from utils import log_success, money_str, parse_amount, parse_quantity, quantize_money, to_decimal

logger = logging.getLogger(__name__)

ZERO = Decimal('0')

BILL_DENOMINATIONS = tuple(Decimal(d) for d in ('100', '50', '20', '10', '5', '1'))
COIN_DENOMINATIONS = tuple(Decimal(d) for d in ('0.25', '0.10', '0.05', '0.01'))

# Diferencias menores a esto son ruido de redondeo
VARIANCE_TOLERANCE = Decimal('0.009')

DEFAULT_INITIAL_FUND = Decimal('200.00')

STATUS_BALANCED = 'cuadrado'
STATUS_SURPLUS = 'sobrante'
STATUS_SHORTAGE = 'faltante'


def default_initial_fund():
    """Fondo inicial configurado (DEFAULT_INITIAL_FUND) o 200.00"""
    if has_app_context():
        return quantize_money(current_app.config.get('DEFAULT_INITIAL_FUND', DEFAULT_INITIAL_FUND))
    return DEFAULT_INITIAL_FUND


# --- Conteo físico ---

def _mapping(raw, label, shape='denominación -> cantidad'):
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValidationError(f'{label} debe ser un objeto {shape}', field=label)
    return raw


def _denomination_quantities(raw, denominations, label):
    raw = _mapping(raw, label)
    quantities = OrderedDict((d, 0) for d in denominations)
    for key, value in raw.items():
        try:
            denomination = Decimal(str(key))
            match = next((d for d in denominations if d == denomination), None)
        except ArithmeticError:
            raise ValidationError(f'Denominación inválida: {key}', field=label)
        if match is None:
            raise ValidationError(f'Denominación inválida: {key}', field=label)
        quantities[match] = parse_quantity(value, f'{label} {key}')
    return quantities


class CashCount:
    """Conteo físico de la caja: billetes, monedas, cheques y otros"""

    def __init__(self, bills=None, coins=None, checks=ZERO, others=ZERO):
        self.bills = bills or OrderedDict((d, 0) for d in BILL_DENOMINATIONS)
        self.coins = coins or OrderedDict((d, 0) for d in COIN_DENOMINATIONS)
        self.checks = checks
        self.others = others

    @classmethod
    def from_inputs(cls, bills=None, coins=None, checks=None, others=None):
        """
        Construye el conteo a partir de lo que digitó el operador

        Args:
            bills: dict denominación -> cantidad (texto o entero)
            coins: dict denominación -> cantidad
            checks: monto en cheques
            others: otros montos

        Raises:
            ValidationError: cantidad no entera o monto con caracteres inválidos
        """
        return cls(
            bills=_denomination_quantities(bills, BILL_DENOMINATIONS, 'Billetes'),
            coins=_denomination_quantities(coins, COIN_DENOMINATIONS, 'Monedas'),
            checks=parse_amount(checks, 'Cheques'),
            others=parse_amount(others, 'Otros'),
        )

    @property
    def bills_total(self):
        return sum((d * qty for d, qty in self.bills.items()), ZERO)

    @property
    def coins_total(self):
        return sum((d * qty for d, qty in self.coins.items()), ZERO)

    @property
    def total(self):
        return self.bills_total + self.coins_total + self.checks + self.others

    def to_dict(self):
        return {
            'bills': {str(d): qty for d, qty in self.bills.items()},
            'coins': {f'{d:.2f}': qty for d, qty in self.coins.items()},
            'checks': money_str(self.checks),
            'others': money_str(self.others),
            'bills_total': money_str(self.bills_total),
            'coins_total': money_str(self.coins_total),
            'total': money_str(self.total),
        }


# --- Saldo teórico ---

class Balance(namedtuple('Balance', [
        'initial_fund', 'total_sales', 'card_sales', 'deposit_sales', 'total_expenses',
        'gross_cash', 'net_cash_today', 'theoretical_cash', 'counted_total',
        'difference', 'surplus', 'shortage', 'status'])):
    __slots__ = ()

    def to_dict(self):
        data = {field: money_str(getattr(self, field)) for field in self._fields if field != 'status'}
        data['status'] = self.status
        return data


def compute_balance(aggregate, total_expenses, initial_fund, counted_total):
    """
    Saldo teórico de caja y diferencia contra el conteo físico

    grossCash = ventas - tarjeta - depósitos
    netCashToday = grossCash - gastos
    theoreticalCash = fondo inicial + netCashToday
    """
    total_expenses = to_decimal(total_expenses)
    initial_fund = to_decimal(initial_fund)
    counted_total = to_decimal(counted_total)

    gross_cash = aggregate.total - aggregate.card - aggregate.deposit
    net_cash_today = gross_cash - total_expenses
    theoretical_cash = initial_fund + net_cash_today

    difference = counted_total - theoretical_cash
    if abs(difference) < VARIANCE_TOLERANCE:
        difference = ZERO

    if difference > 0:
        status = STATUS_SURPLUS
    elif difference < 0:
        status = STATUS_SHORTAGE
    else:
        status = STATUS_BALANCED

    return Balance(
        initial_fund=initial_fund,
        total_sales=aggregate.total,
        card_sales=aggregate.card,
        deposit_sales=aggregate.deposit,
        total_expenses=total_expenses,
        gross_cash=gross_cash,
        net_cash_today=net_cash_today,
        theoretical_cash=theoretical_cash,
        counted_total=counted_total,
        difference=difference,
        surplus=max(difference, ZERO),
        shortage=max(-difference, ZERO),
        status=status,
    )


# --- Remesa ---

class Remittance(namedtuple('Remittance', [
        'base', 'surplus', 'total_with_surplus', 'can_remit',
        'include_surplus', 'amount', 'surplus_remitted'])):
    __slots__ = ()

    def to_dict(self):
        return {
            'base': money_str(self.base),
            'surplus': money_str(self.surplus),
            'total_with_surplus': money_str(self.total_with_surplus),
            'can_remit': self.can_remit,
            'include_surplus': self.include_surplus,
            'amount': money_str(self.amount),
            'surplus_remitted': money_str(self.surplus_remitted),
        }


def compute_remittance(balance, include_surplus=False):
    """
    Monto a remesar: el efectivo neto del día (nunca negativo) y, si el
    operador lo elige, también el sobrante
    """
    base = max(balance.net_cash_today, ZERO)
    surplus = balance.surplus
    surplus_remitted = surplus if include_surplus else ZERO
    return Remittance(
        base=base,
        surplus=surplus,
        total_with_surplus=base + surplus,
        can_remit=base > 0 or surplus > 0,
        include_surplus=bool(include_surplus),
        amount=base + surplus_remitted,
        surplus_remitted=surplus_remitted,
    )


def card_batch_variance(aggregate, batch_inputs):
    """
    Diferencia entre el cierre de lote de cada red y lo vendido con esa tarjeta

    Solo informativo, no bloquea el cierre del día.
    """
    batch_inputs = _mapping(batch_inputs, 'Cierre de lote', shape='red -> monto')
    result = OrderedDict()
    for network in rules.CARD_NETWORKS:
        entered = parse_amount(batch_inputs.get(network), f'Cierre de lote {network}')
        sold = aggregate.card_by_network.get(network, ZERO)
        result[network] = {
            'batch': entered,
            'sales': sold,
            'difference': entered - sold,
        }
    return result


def resolve_next_fund(remittance_done, next_day_fund, counted_total):
    """
    Fondo con el que abre el día siguiente

    Con remesa procesada se usa el valor digitado por el operador (200.00 si
    lo deja vacío). Sin remesa, todo el conteo físico pasa al día siguiente.
    """
    if remittance_done:
        if next_day_fund is None or str(next_day_fund).strip() == '':
            return DEFAULT_INITIAL_FUND
        return quantize_money(parse_amount(next_day_fund, 'Fondo del día siguiente'))
    return quantize_money(counted_total)


# --- Estado del día ---

def resolve_day_state(day):
    """DayState guardado o uno abierto con el fondo por defecto (no se persiste)"""
    state = repository.load_day_state(day)
    if state is None:
        state = DayState(date=day, is_open=True, initial_fund=default_initial_fund())
    return state


def ensure_day_open(day):
    """
    Raises:
        DayClosedError: si el día está cerrado
    """
    state = resolve_day_state(day)
    if not state.is_open:
        raise DayClosedError(day)
    return state


def close_day(day, next_fund, actor, confirmed, now=None):
    """
    Cierra el día y siembra el día siguiente con el fondo indicado

    El día siguiente solo se crea si no tiene registro. Ambas escrituras van
    en una sola transacción.

    Returns:
        tuple: (DayState cerrado, bool si se creó el día siguiente)
    """
    if not confirmed:
        raise ValidationError('Debe confirmar el cierre del día.', field='confirmed')
    if next_fund is None or str(next_fund).strip() == '':
        raise ValidationError('El fondo para el día siguiente es obligatorio.', field='next_fund')
    next_fund = quantize_money(parse_amount(next_fund, 'Fondo del día siguiente'))

    state = resolve_day_state(day)
    if not state.is_open:
        raise DayClosedError(day, f'El día {day.isoformat()} ya está cerrado')

    state.is_open = False
    state.final_fund = next_fund
    state.closed_at = now or datetime.now()
    state.closed_by = actor.name if actor is not None else None

    next_day = day + timedelta(days=1)
    to_save = [state]
    seeded = False
    if repository.load_day_state(next_day) is None:
        to_save.append(DayState(date=next_day, is_open=True, initial_fund=next_fund))
        seeded = True

    repository.save_day_state(*to_save)

    log_success('day_closed', f'Día {day.isoformat()} cerrado', {
        'date': day.isoformat(),
        'final_fund': money_str(next_fund),
        'next_day_seeded': seeded,
    })
    return state, seeded


def reopen_day(day, actor, confirmed):
    """Reabre un día cerrado (solo administradores); los fondos no cambian"""
    if actor is None or not actor.is_admin:
        raise ForbiddenError('Solo un administrador puede reabrir el día.')
    if not confirmed:
        raise ValidationError('Debe confirmar la reapertura del día.', field='confirmed')

    state = resolve_day_state(day)
    if state.is_open:
        raise ValidationError(f'El día {day.isoformat()} ya está abierto')

    state.is_open = True
    repository.save_day_state(state)

    log_success('day_reopened', f'Día {day.isoformat()} reabierto', {'date': day.isoformat()})
    return state


# --- Corte completo ---

class Reconciliation:
    """Resultado del corte de caja de un día"""

    def __init__(self, day_state, aggregate, expenses, cash_count, balance,
                 remittance, card_batches, remittance_record, next_fund):
        self.day_state = day_state
        self.aggregate = aggregate
        self.expenses = expenses
        self.cash_count = cash_count
        self.balance = balance
        self.remittance = remittance
        self.card_batches = card_batches
        self.remittance_record = remittance_record
        self.next_fund = next_fund

    @property
    def remittance_done(self):
        return self.remittance_record is not None

    def to_dict(self):
        return {
            'day': self.day_state.to_dict(),
            'sales': self.aggregate.to_dict(),
            'expenses': [expense.to_dict() for expense in self.expenses],
            'cash_count': self.cash_count.to_dict(),
            'balance': self.balance.to_dict(),
            'remittance': self.remittance.to_dict(),
            'remittance_done': self.remittance_done,
            'remittance_record': self.remittance_record,
            'card_batches': {
                network: {key: money_str(value) for key, value in row.items()}
                for network, row in self.card_batches.items()
            },
            'next_fund': money_str(self.next_fund),
        }


def reconcile(day_state, aggregate, expenses, cash_count=None, batch_inputs=None,
              include_surplus=False, remittance_record=None, next_day_fund=None,
              initial_fund=None):
    """
    Arma el corte de caja completo de un día

    Args:
        day_state: DayState resuelto del día
        aggregate: DailyAggregate de las ventas del día
        expenses: gastos del día
        cash_count: CashCount (vacío si no se envía)
        batch_inputs: cierres de lote por red de tarjeta
        include_surplus: si la remesa incluye el sobrante
        remittance_record: remesa ya procesada en la sesión, o None
        next_day_fund: fondo del día siguiente digitado por el operador
        initial_fund: fondo inicial corregido por el operador (solo día abierto)
    """
    cash_count = cash_count or CashCount()
    fund = day_state.initial_fund
    if initial_fund is not None and str(initial_fund).strip() != '' and day_state.is_open:
        fund = parse_amount(initial_fund, 'Fondo de caja')

    total_expenses = sum((to_decimal(expense.amount) for expense in expenses), ZERO)
    balance = compute_balance(aggregate, total_expenses, fund, cash_count.total)

    if remittance_record is not None:
        include_surplus = bool(remittance_record.get('include_surplus'))
    remittance = compute_remittance(balance, include_surplus)

    return Reconciliation(
        day_state=day_state,
        aggregate=aggregate,
        expenses=list(expenses),
        cash_count=cash_count,
        balance=balance,
        remittance=remittance,
        card_batches=card_batch_variance(aggregate, batch_inputs),
        remittance_record=remittance_record,
        next_fund=resolve_next_fund(remittance_record is not None, next_day_fund, cash_count.total),
    )
