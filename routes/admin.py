from flask import Blueprint, request, jsonify, Response, session
from datetime import date
import logging

import repository
import business_rules as rules
from models import User, UserRole
from errors import POSError, ForbiddenError, NotFoundError, ValidationError
from aggregation import aggregate
from payroll import summarize
from reconciliation import reconcile, resolve_day_state
from exports import sales_csv, summary_workbook
from report_generator import generate_corte_pdf
from routes.auth import require_admin
from routes.api import summary_period
from utils import parse_iso_date, sanitize_input, validate_pin, log_success, pos_error_response

logger = logging.getLogger(__name__)

bp = Blueprint('admin', __name__, url_prefix='/admin')


@bp.errorhandler(POSError)
def handle_pos_error(error):
    return pos_error_response(error, log_context={'endpoint': request.endpoint})


def require_super_admin():
    user = require_admin()
    if isinstance(user, tuple):
        return user
    if not user.is_super_admin:
        raise ForbiddenError('Solo el super administrador puede gestionar usuarios')
    return user


# --- Usuarios ---

@bp.route('/users', methods=['GET'])
def list_users():
    user = require_super_admin()
    if isinstance(user, tuple):
        return user
    return jsonify({'users': [u.to_dict(include_pin=True) for u in repository.get_users()]})


@bp.route('/users', methods=['POST'])
def create_user():
    user = require_super_admin()
    if isinstance(user, tuple):
        return user

    data = request.get_json(silent=True) or {}
    name = sanitize_input(data.get('name'), 100)
    pin = str(data.get('pin') or '').strip()
    if not name:
        raise ValidationError('El nombre es obligatorio', field='name')

    pin_check = validate_pin(pin)
    if not pin_check['valid']:
        raise ValidationError(pin_check['message'], field='pin')

    try:
        role = UserRole(data.get('role') or UserRole.RECEPTIONIST.value)
    except ValueError:
        raise ValidationError(f"Rol inválido: {data.get('role')}", field='role')

    # Identidad para comisiones: explícita, o el nombre del recepcionista
    receptionist_name = data.get('receptionist_name')
    if receptionist_name is None and role == UserRole.RECEPTIONIST and name in rules.RECEPTIONISTS:
        receptionist_name = name
    if receptionist_name is not None and receptionist_name not in rules.RECEPTIONISTS:
        raise ValidationError(f'Recepcionista inválido: {receptionist_name}', field='receptionist_name')

    new_user = repository.save_user(User(
        name=name,
        pin=pin,
        role=role,
        receptionist_name=receptionist_name,
        is_super_admin=False,
    ))
    log_success('user_created', f'Usuario {name} creado', {'new_user_id': new_user.id})
    return jsonify({'user': new_user.to_dict(include_pin=True)}), 201


@bp.route('/users/<user_id>', methods=['DELETE'])
def delete_user(user_id):
    user = require_super_admin()
    if isinstance(user, tuple):
        return user

    target = repository.get_user(user_id)
    if target is None:
        raise NotFoundError('Usuario no encontrado')
    if target.is_super_admin:
        raise ForbiddenError('El super administrador no se puede eliminar')

    repository.delete_user(target)
    log_success('user_deleted', f'Usuario {target.name} eliminado', {'deleted_user_id': user_id})
    return jsonify({'success': True})


# --- Configuración ---

def _clean_list(values, label, field):
    if not isinstance(values, list):
        raise ValidationError(f'{label} debe ser una lista', field=field)
    cleaned = []
    for value in values:
        item = sanitize_input(value, 60)
        if item and item not in cleaned:
            cleaned.append(item)
    if not cleaned:
        raise ValidationError(f'{label} no puede quedar vacía', field=field)
    return cleaned


@bp.route('/settings', methods=['PUT'])
def update_settings():
    user = require_admin()
    if isinstance(user, tuple):
        return user

    data = request.get_json(silent=True) or {}
    sales_types = data.get('sales_types')
    payment_methods = data.get('payment_methods')
    if sales_types is not None:
        sales_types = _clean_list(sales_types, 'La lista de tipos de venta', 'sales_types')
    if payment_methods is not None:
        payment_methods = _clean_list(payment_methods, 'La lista de métodos de pago', 'payment_methods')

    settings = repository.update_settings(sales_types, payment_methods)
    log_success('settings_updated', 'Configuración actualizada', settings.to_dict())
    return jsonify(settings.to_dict())


# --- Descargas ---

@bp.route('/export/sales.csv', methods=['GET'])
def export_sales_csv():
    user = require_admin()
    if isinstance(user, tuple):
        return user

    today = date.today()
    sales = sorted(repository.load_sales_for_month(today.year, today.month), key=lambda s: s.date)
    filename = f"ventas_{today.year}_{today.month:02d}.csv"
    return Response(
        sales_csv(sales),
        mimetype='text/csv',
        headers={'Content-Disposition': f'attachment; filename={filename}'}
    )


@bp.route('/export/summary.xlsx', methods=['GET'])
def export_summary_excel():
    user = require_admin()
    if isinstance(user, tuple):
        return user

    start, end = summary_period()
    summary = summarize(repository.load_sales_between(start, end), start, end)
    filename = f"resumen_{start.isoformat()}_{end.isoformat()}.xlsx"
    return Response(
        summary_workbook(summary),
        mimetype='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
        headers={'Content-Disposition': f'attachment; filename={filename}'}
    )


@bp.route('/export/corte/<day_iso>.pdf', methods=['GET'])
def export_corte_pdf(day_iso):
    user = require_admin()
    if isinstance(user, tuple):
        return user

    day = parse_iso_date(day_iso)
    settings = repository.load_settings()
    result = reconcile(
        resolve_day_state(day),
        aggregate(repository.load_sales_for_date(day), settings.payment_methods, settings.sales_types),
        repository.load_expenses_for_date(day),
        remittance_record=(session.get('remittances') or {}).get(day.isoformat()),
    )
    pdf = generate_corte_pdf(result, generated_by=user.name)
    return Response(
        pdf,
        mimetype='application/pdf',
        headers={'Content-Disposition': f'attachment; filename=corte_{day.isoformat()}.pdf'}
    )
