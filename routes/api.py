from flask import Blueprint, request, jsonify, session
from datetime import datetime, date
import logging

import repository
import business_rules as rules
from models import Channel
from errors import POSError, NotFoundError, ValidationError
from commissions import build_sale
from expenses import build_expense
from aggregation import aggregate, dashboard_stats
from payroll import summarize
from reconciliation import (CashCount, reconcile, resolve_day_state, ensure_day_open,
                            close_day, reopen_day, resolve_next_fund)
from routes.auth import require_login, require_admin
from utils import parse_iso_date, log_success, money_str, pos_error_response

# Configure logging
logger = logging.getLogger(__name__)

bp = Blueprint('api', __name__, url_prefix='/api')


@bp.errorhandler(POSError)
def handle_pos_error(error):
    return pos_error_response(error, log_context={'endpoint': request.endpoint})


# HEAD handlers to prevent log spam from monitoring services
@bp.route('', methods=['HEAD'])
@bp.route('/', methods=['HEAD'])
def api_head():
    return '', 200


def _json_body():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('Los datos deben ser un objeto JSON válido')
    return data


def _operation_date(data=None):
    """Día de operación: ?date=, luego 'date' del cuerpo, luego hoy"""
    value = request.args.get('date') or (data or {}).get('date')
    if not value:
        return date.today()
    return parse_iso_date(value)


def _remittance_record(day):
    return (session.get('remittances') or {}).get(day.isoformat())


def _cash_count(data):
    return CashCount.from_inputs(
        bills=data.get('bills'),
        coins=data.get('coins'),
        checks=data.get('checks'),
        others=data.get('others'),
    )


def _reconciliation_for(day, data=None):
    data = data or {}
    settings = repository.load_settings()
    day_state = resolve_day_state(day)
    sales_aggregate = aggregate(repository.load_sales_for_date(day),
                                settings.payment_methods, settings.sales_types)
    return reconcile(
        day_state,
        sales_aggregate,
        repository.load_expenses_for_date(day),
        cash_count=_cash_count(data),
        batch_inputs=data.get('batches'),
        include_surplus=bool(data.get('include_surplus')),
        remittance_record=_remittance_record(day),
        next_day_fund=data.get('next_day_fund'),
        initial_fund=data.get('initial_fund'),
    )


# --- Configuración ---

@bp.route('/settings', methods=['GET'])
def get_settings():
    user = require_login()
    if isinstance(user, tuple):
        return user

    settings = repository.load_settings()
    payload = settings.to_dict()
    payload.update({
        'channels': [channel.value for channel in Channel],
        'receptionists': list(rules.RECEPTIONISTS) + [rules.NO_RECEPTIONIST],
        'direct_service_types': sorted(rules.DIRECT_SERVICE_TYPES),
        'voucher_required_methods': sorted(rules.VOUCHER_REQUIRED_METHODS),
    })
    return jsonify(payload)


# --- Ventas ---

@bp.route('/sales', methods=['GET'])
def list_sales():
    user = require_login()
    if isinstance(user, tuple):
        return user

    day = _operation_date()
    sales = repository.load_sales_for_date(day)
    return jsonify({
        'date': day.isoformat(),
        'day': resolve_day_state(day).to_dict(),
        'sales': [sale.to_dict() for sale in sales],
    })


@bp.route('/sales', methods=['POST'])
def create_sale():
    user = require_login()
    if isinstance(user, tuple):
        return user

    data = _json_body()
    day = _operation_date(data)
    ensure_day_open(day)

    sale = build_sale(data, repository.load_settings(), actor=user, operation_date=day)
    sale = repository.save_sale(sale)

    log_success('sale_saved', f'Venta {sale.command_number} registrada', {
        'sale_id': sale.id,
        'amount': money_str(sale.amount),
        'commission': money_str(sale.commission_amount),
    })
    return jsonify({'sale': sale.to_dict()}), 201


@bp.route('/sales/<sale_id>', methods=['PUT'])
def update_sale(sale_id):
    user = require_admin()
    if isinstance(user, tuple):
        return user

    existing = repository.get_sale(sale_id)
    if existing is None:
        raise NotFoundError('Venta no encontrada')
    ensure_day_open(existing.date.date())

    sale = build_sale(_json_body(), repository.load_settings(), actor=user, existing=existing)
    sale = repository.save_sale(sale)

    log_success('sale_updated', f'Venta {sale.command_number} actualizada', {
        'sale_id': sale.id,
        'amount': money_str(sale.amount),
        'commission': money_str(sale.commission_amount),
    })
    return jsonify({'sale': sale.to_dict()})


@bp.route('/sales/<sale_id>', methods=['DELETE'])
def delete_sale(sale_id):
    user = require_admin()
    if isinstance(user, tuple):
        return user

    sale = repository.get_sale(sale_id)
    if sale is None:
        raise NotFoundError('Venta no encontrada')
    ensure_day_open(sale.date.date())

    repository.delete_sale(sale)
    log_success('sale_deleted', f'Venta {sale_id} eliminada', {'sale_id': sale_id})
    return jsonify({'success': True})


# --- Gastos ---

@bp.route('/expenses', methods=['GET'])
def list_expenses():
    user = require_login()
    if isinstance(user, tuple):
        return user

    day = _operation_date()
    expenses = repository.load_expenses_for_date(day)
    return jsonify({
        'date': day.isoformat(),
        'expenses': [expense.to_dict() for expense in expenses],
    })


@bp.route('/expenses', methods=['POST'])
def create_expense():
    user = require_login()
    if isinstance(user, tuple):
        return user

    data = _json_body()
    expense = build_expense(data, repository.load_settings(), default_date=_operation_date(data))
    ensure_day_open(expense.date)

    expense = repository.save_expense(expense)
    log_success('expense_saved', f'Gasto {expense.document_number} registrado', {
        'expense_id': expense.id,
        'amount': money_str(expense.amount),
    })
    return jsonify({'expense': expense.to_dict()}), 201


@bp.route('/expenses/<expense_id>', methods=['DELETE'])
def delete_expense(expense_id):
    user = require_admin()
    if isinstance(user, tuple):
        return user

    expense = repository.get_expense(expense_id)
    if expense is None:
        raise NotFoundError('Gasto no encontrado')
    ensure_day_open(expense.date)

    repository.delete_expense(expense)
    log_success('expense_deleted', f'Gasto {expense_id} eliminado', {'expense_id': expense_id})
    return jsonify({'success': True})


# --- Día de operación y corte de caja ---

@bp.route('/days/<day_iso>', methods=['GET'])
def get_day(day_iso):
    user = require_login()
    if isinstance(user, tuple):
        return user

    day = parse_iso_date(day_iso)
    payload = resolve_day_state(day).to_dict()
    payload['remittance'] = _remittance_record(day)
    return jsonify(payload)


@bp.route('/days/<day_iso>/reconciliation', methods=['GET', 'POST'])
def day_reconciliation(day_iso):
    user = require_login()
    if isinstance(user, tuple):
        return user

    day = parse_iso_date(day_iso)
    data = {}
    if request.method == 'POST':
        # El conteo físico es una entrada más del día: solo lectura si está cerrado
        ensure_day_open(day)
        data = _json_body()

    result = _reconciliation_for(day, data)
    return jsonify(result.to_dict())


@bp.route('/days/<day_iso>/remittance', methods=['POST'])
def process_remittance(day_iso):
    user = require_login()
    if isinstance(user, tuple):
        return user

    day = parse_iso_date(day_iso)
    ensure_day_open(day)
    if _remittance_record(day) is not None:
        raise ValidationError('La remesa de este día ya fue procesada.')

    data = _json_body()
    result = _reconciliation_for(day, data)
    remittance = result.remittance
    if not remittance.can_remit:
        raise ValidationError('No hay efectivo para remesar.')

    record = {
        'include_surplus': remittance.include_surplus,
        'amount': money_str(remittance.amount),
        'surplus_remitted': money_str(remittance.surplus_remitted),
        'processed_at': datetime.now().isoformat(timespec='seconds'),
        'processed_by': user.name,
    }
    remittances = dict(session.get('remittances') or {})
    remittances[day.isoformat()] = record
    session['remittances'] = remittances

    log_success('remittance_processed', f'Remesa del {day.isoformat()} procesada', {
        'date': day.isoformat(),
        'amount': record['amount'],
        'include_surplus': remittance.include_surplus,
    })
    return jsonify({'remittance': record, 'reconciliation': _reconciliation_for(day, data).to_dict()})


@bp.route('/days/<day_iso>/close', methods=['POST'])
def close(day_iso):
    user = require_login()
    if isinstance(user, tuple):
        return user

    day = parse_iso_date(day_iso)
    data = _json_body()
    count = _cash_count(data)
    next_fund = resolve_next_fund(_remittance_record(day) is not None,
                                  data.get('next_day_fund'), count.total)

    state, seeded = close_day(day, next_fund, user, bool(data.get('confirmed')))
    return jsonify({'day': state.to_dict(), 'next_day_seeded': seeded})


@bp.route('/days/<day_iso>/reopen', methods=['POST'])
def reopen(day_iso):
    user = require_login()
    if isinstance(user, tuple):
        return user

    day = parse_iso_date(day_iso)
    data = _json_body()
    state = reopen_day(day, user, bool(data.get('confirmed')))
    return jsonify({'day': state.to_dict()})


# --- Reportes ---

@bp.route('/dashboard', methods=['GET'])
def dashboard():
    user = require_login()
    if isinstance(user, tuple):
        return user

    day = _operation_date()
    settings = repository.load_settings()
    sales = repository.load_sales_for_date(day)
    payload = dashboard_stats(sales)
    payload['date'] = day.isoformat()
    payload['aggregate'] = aggregate(sales, settings.payment_methods, settings.sales_types).to_dict()
    return jsonify(payload)


def summary_period():
    """Período del resumen: por defecto del primer día del mes a hoy"""
    today = date.today()
    start = parse_iso_date(request.args['start'], 'Fecha inicial') if request.args.get('start') \
        else today.replace(day=1)
    end = parse_iso_date(request.args['end'], 'Fecha final') if request.args.get('end') else today
    if end < start:
        raise ValidationError('La fecha final debe ser posterior a la inicial', field='end')
    return start, end


@bp.route('/summary', methods=['GET'])
def period_summary():
    user = require_admin()
    if isinstance(user, tuple):
        return user

    start, end = summary_period()
    summary = summarize(repository.load_sales_between(start, end), start, end)
    return jsonify(summary.to_dict())
