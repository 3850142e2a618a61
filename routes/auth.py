from flask import Blueprint, request, jsonify, session
from flask_wtf.csrf import generate_csrf
import logging

import repository
from errors import POSError, ForbiddenError
from utils import validate_pin, validate_json_structure, error_response, pos_error_response, log_success

logger = logging.getLogger(__name__)

bp = Blueprint('auth', __name__, url_prefix='/api')


@bp.errorhandler(POSError)
def handle_pos_error(error):
    return pos_error_response(error, log_context={'endpoint': request.endpoint})


def require_login():
    if 'user_id' not in session:
        return jsonify({'error': 'No autorizado'}), 401

    user = repository.get_user(session['user_id'])
    if not user:
        return jsonify({'error': 'Usuario no encontrado'}), 401

    return user


def require_admin():
    """Usuario administrador en sesión; respuesta 401 si no hay sesión"""
    user = require_login()
    if isinstance(user, tuple):
        return user
    if not user.is_admin:
        raise ForbiddenError('Solo los administradores pueden acceder a esta sección')
    return user


@bp.route('/csrf', methods=['GET'])
def csrf_token():
    return jsonify({'csrf_token': generate_csrf()})


@bp.route('/auth/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    structure = validate_json_structure(data, ['pin'], optional_fields=['csrf_token'])
    if not structure['valid']:
        return error_response('validation', structure['message'], field='pin', status_code=400)

    pin = str(data.get('pin')).strip()
    pin_check = validate_pin(pin)
    if not pin_check['valid']:
        return error_response('validation', pin_check['message'], field='pin', status_code=400)

    user = repository.find_user_by_pin(pin)
    if user is None:
        return error_response('permission', 'PIN incorrecto', status_code=401)

    session.clear()
    session['user_id'] = user.id
    session['user_name'] = user.name
    session['role'] = user.role.value
    session['remittances'] = {}

    log_success('login', f'Inicio de sesión de {user.name}', {'user_id': user.id})
    return jsonify({'user': user.to_dict()})


@bp.route('/auth/logout', methods=['POST'])
def logout():
    session.clear()
    return jsonify({'success': True})


@bp.route('/auth/user', methods=['GET'])
def current_user():
    user = require_login()
    if isinstance(user, tuple):
        return user
    return jsonify({'user': user.to_dict()})
