"""
Motor de comisiones de recepción

La comisión se calcula una sola vez, al crear o editar la venta, y queda
guardada en Sale.commission_amount. Los reportes suman ese valor congelado y
nunca lo recalculan con las tasas vigentes.
"""
import logging
from collections import namedtuple
from datetime import datetime, date

from models import Sale, Channel, new_id
from errors import ValidationError
import business_rules as rules
from utils import parse_amount, quantize_money, sanitize_input, to_decimal

logger = logging.getLogger(__name__)

Deductions = namedtuple('Deductions', ['tax', 'bank_fee', 'base'])


def is_commissionable(sale_type, channel):
    """Solo Reserva Directa y nunca Restaurante"""
    return sale_type != rules.RESTAURANT_TYPE and channel == rules.COMMISSIONABLE_CHANNEL


def deductions_for(amount, sale_type, payment_method):
    """
    Deducciones sobre una venta directa

    Ambas deducciones se calculan sobre el monto original y se restan de la
    misma base; no se encadenan.

    Returns:
        Deductions(tax, bank_fee, base)
    """
    amount = to_decimal(amount)
    tax = amount * rules.HOTEL_TAX_RATE if sale_type == rules.HOTEL_TYPE else to_decimal(0)
    bank_fee = amount * rules.BANK_FEE_RATE if rules.charges_bank_fee(payment_method) else to_decimal(0)
    return Deductions(tax=tax, bank_fee=bank_fee, base=amount - tax - bank_fee)


def assigned_receptionist(sale, receptionist):
    """Recepcionista que queda en la venta: 'Ninguno' si no es comisionable"""
    if not is_commissionable(sale.type, sale.channel):
        return rules.NO_RECEPTIONIST
    return receptionist or rules.NO_RECEPTIONIST


def compute_commission(sale, receptionist):
    """
    Comisión de una venta para el recepcionista asignado

    Args:
        sale: objeto con amount, type, channel y payment_method
        receptionist: 'Helen', 'Diego' o 'Ninguno'

    Returns:
        Decimal redondeado a centavos
    """
    if not is_commissionable(sale.type, sale.channel):
        return quantize_money(0)

    base = deductions_for(sale.amount, sale.type, sale.payment_method).base
    rate = rules.commission_rate(receptionist)
    if base <= 0:
        return quantize_money(0)
    return quantize_money(base * rate)


def _parse_channel(value):
    if isinstance(value, Channel):
        return value
    for channel in Channel:
        if value in (channel.value, channel.name):
            return channel
    raise ValidationError(f'Canal de venta inválido: {value}', field='channel')


def _check_configured(value, options, existing_value, label, field):
    if not value:
        raise ValidationError(f'{label} es obligatorio.', field=field)
    # En edición se aceptan valores históricos que ya no están configurados
    if value not in options and value != existing_value:
        raise ValidationError(f'{label} no configurado: {value}', field=field)


def build_sale(data, settings, actor=None, existing=None, operation_date=None, now=None):
    """
    Valida los datos de una venta y construye el registro completo a guardar

    Args:
        data: dict con command_number, amount, channel, type, payment_method,
              voucher_number, notes, receptionist
        settings: AppSettings vigente (listas de tipos y métodos)
        actor: usuario que registra la venta
        existing: venta original cuando se trata de una edición
        operation_date: día de operación seleccionado (solo en creación)
        now: reloj inyectable

    Returns:
        Sale transitorio; en edición conserva id y fecha originales
    """
    now = now or datetime.now()

    command_number = sanitize_input(data.get('command_number'), 50)
    if not command_number:
        raise ValidationError('El número de comanda es obligatorio.', field='command_number')

    amount = parse_amount(data.get('amount'), 'El monto', allow_zero=False)

    sale_type = (data.get('type') or '').strip()
    payment_method = (data.get('payment_method') or '').strip()
    _check_configured(sale_type, settings.sales_types, existing.type if existing else None,
                      'El tipo de venta', 'type')
    _check_configured(payment_method, settings.payment_methods, existing.payment_method if existing else None,
                      'El método de pago', 'payment_method')

    channel = _parse_channel(data.get('channel') or Channel.RESERVA_DIRECTA)
    if existing is None and rules.is_direct_service(sale_type):
        channel = Channel.RESERVA_DIRECTA

    voucher_number = sanitize_input(data.get('voucher_number'), 60)
    if rules.requires_voucher(payment_method):
        if not voucher_number:
            raise ValidationError(
                'El número de voucher/referencia es obligatorio para este método de pago.',
                field='voucher_number'
            )
    else:
        voucher_number = None

    receptionist = data.get('receptionist')
    if receptionist is None:
        if existing is not None:
            receptionist = existing.receptionist
        else:
            receptionist = (actor.receptionist_name if actor is not None else None) or rules.DEFAULT_RECEPTIONIST

    commissionable = is_commissionable(sale_type, channel)
    # En ventas no comisionables el recepcionista se fuerza a Ninguno
    if commissionable and receptionist not in rules.RECEPTIONISTS and receptionist != rules.NO_RECEPTIONIST:
        raise ValidationError(f'Recepcionista inválido: {receptionist}', field='receptionist')

    if (commissionable and existing is None and receptionist == rules.NO_RECEPTIONIST
            and actor is not None and actor.receptionist_name):
        receptionist = actor.receptionist_name

    if existing is not None:
        sale_date = existing.date
    else:
        day = operation_date or now.date()
        if isinstance(day, datetime):
            day = day.date()
        if not isinstance(day, date):
            raise ValidationError('Fecha de operación inválida', field='date')
        sale_date = datetime.combine(day, now.time().replace(microsecond=0))

    sale = Sale(
        id=existing.id if existing is not None else new_id(),
        date=sale_date,
        command_number=command_number,
        amount=amount,
        channel=channel,
        type=sale_type,
        payment_method=payment_method,
        voucher_number=voucher_number,
        notes=sanitize_input(data.get('notes'), 500) or None,
        created_by=existing.created_by if existing is not None else (actor.name if actor is not None else None),
        created_at=existing.created_at if existing is not None else now,
    )

    sale.receptionist = assigned_receptionist(sale, receptionist)
    sale.commission_amount = compute_commission(sale, sale.receptionist)

    logger.debug(
        f"Comisión calculada: venta {sale.id} tipo={sale_type} canal={channel.value} "
        f"método={payment_method} recepcionista={sale.receptionist} comisión={sale.commission_amount}"
    )
    return sale
