"""
Utility functions for the corte de caja system
Money/quantity parsing, validation helpers and centralized logging
"""
import re
import uuid
import logging
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, Dict, Any
from datetime import datetime, date
from flask import jsonify, session, has_request_context

from errors import ValidationError

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')

# Cantidades: solo enteros no negativos. Montos: decimales no negativos con hasta 2 decimales.
QUANTITY_PATTERN = re.compile(r'^\d+$')
AMOUNT_PATTERN = re.compile(r'^(\d+(\.\d{0,2})?|\.\d{1,2})$')
PIN_PATTERN = re.compile(r'^\d{4}$')


def generate_error_id() -> str:
    """
    Genera un ID único para rastreo de errores

    Returns:
        str: ID único en formato UUID corto (primeros 8 caracteres)
    """
    return str(uuid.uuid4())[:8].upper()


def get_user_context() -> Dict[str, Any]:
    """
    Obtiene contexto del usuario actual para logging

    Returns:
        Dict con información del usuario (user_id, name, role)
    """
    if has_request_context() and session.get('user_id'):
        return {
            'user_id': session.get('user_id'),
            'username': session.get('user_name', 'unknown'),
            'role': session.get('role', 'unknown'),
        }
    return {'user_id': None, 'username': 'anonymous', 'role': 'unknown'}


def log_error(error_type: str, message: str, error_id: str = None,
              context: Dict[str, Any] = None, exc_info: bool = False):
    """
    Logging centralizado de errores con contexto completo

    Args:
        error_type: Tipo de error ('validation', 'permission', 'not_found', 'server', 'business')
        message: Mensaje descriptivo del error
        error_id: ID único del error (se genera automáticamente si no se proporciona)
        context: Contexto adicional (sale_id, date, etc.)
        exc_info: Si se debe incluir información de excepción
    """
    if error_id is None:
        error_id = generate_error_id()

    user_ctx = get_user_context()

    log_data = {
        'error_id': error_id,
        'error_type': error_type,
        'msg_detail': message,
        'user_id': user_ctx.get('user_id'),
        'username': user_ctx.get('username'),
        'role': user_ctx.get('role'),
    }

    if context:
        log_data.update(context)

    if error_type in ['validation', 'business', 'permission', 'not_found']:
        logger.warning(f"[{error_id}] {message}", extra=log_data, exc_info=exc_info)
    else:
        logger.error(f"[{error_id}] {message}", extra=log_data, exc_info=exc_info)


def log_success(operation: str, message: str, context: Dict[str, Any] = None):
    """
    Logging de operaciones críticas exitosas

    Args:
        operation: Nombre de la operación (ej: 'sale_saved', 'day_closed')
        message: Mensaje descriptivo del éxito
        context: Contexto adicional (sale_id, date, amount, etc.)
    """
    user_ctx = get_user_context()

    log_data = {
        'operation': operation,
        'msg_detail': message,
        'user_id': user_ctx.get('user_id'),
        'username': user_ctx.get('username'),
        'role': user_ctx.get('role'),
        'timestamp': datetime.utcnow().isoformat()
    }

    if context:
        log_data.update(context)

    logger.info(f"[SUCCESS] {operation}: {message}", extra=log_data)


def error_response(error_type: str, message: str, details: Optional[str] = None,
                   field: Optional[str] = None, status_code: int = 400,
                   log_context: Dict[str, Any] = None, **kwargs):
    """
    Genera una respuesta de error estandarizada para endpoints de API con logging automático

    Args:
        error_type: Tipo de error ('validation', 'permission', 'not_found', 'server', 'business')
        message: Mensaje principal del error (breve y claro)
        details: Detalles adicionales del error (opcional)
        field: Campo que causó el error (opcional)
        status_code: Código HTTP de respuesta (default: 400)
        log_context: Contexto adicional para logging
        **kwargs: Datos adicionales a incluir en la respuesta

    Returns:
        tuple: (jsonify response, status_code)

    Examples:
        >>> return error_response(
        ...     error_type='business',
        ...     message='El día 2025-03-01 se encuentra cerrado',
        ...     status_code=409,
        ...     log_context={'date': '2025-03-01'}
        ... )
    """
    error_id = generate_error_id()

    log_error(
        error_type=error_type,
        message=message,
        error_id=error_id,
        context=log_context or {}
    )

    response_data = {
        'error': message,
        'type': error_type,
        'error_id': error_id,
        'timestamp': datetime.utcnow().isoformat()
    }

    if details:
        response_data['details'] = details

    if field:
        response_data['field'] = field

    response_data.update(kwargs)

    return jsonify(response_data), status_code


def pos_error_response(exc, log_context: Dict[str, Any] = None):
    """Convierte una excepción POSError en la respuesta estandarizada"""
    return error_response(
        error_type=exc.error_type,
        message=exc.message,
        details=exc.details,
        field=exc.field,
        status_code=exc.status_code,
        log_context=log_context,
    )


# --- Money / Quantity utilities ---

def to_decimal(value: Any) -> Decimal:
    """
    Convierte un valor numérico a Decimal sin pasar por float binario

    None y '' se interpretan como cero.
    """
    if value is None or value == '':
        return Decimal('0')
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f'Valor numérico inválido: {value!r}')


def quantize_money(value: Any) -> Decimal:
    """Redondea a centavos (ROUND_HALF_UP)"""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def parse_quantity(value: Any, field_name: str = "Cantidad") -> int:
    """
    Parse a cash-count quantity typed by the operator

    Only non-negative integers are accepted; an empty input counts as zero.
    Anything else is rejected instead of being coerced.
    """
    if value is None:
        return 0
    if isinstance(value, bool):
        raise ValidationError(f'{field_name} debe ser un número entero no negativo', field=field_name)
    if isinstance(value, int):
        if value < 0:
            raise ValidationError(f'{field_name} debe ser un número entero no negativo', field=field_name)
        return value

    text = str(value).strip()
    if text == '':
        return 0
    if not QUANTITY_PATTERN.match(text):
        raise ValidationError(f'{field_name} debe ser un número entero no negativo', field=field_name)
    return int(text)


def parse_amount(value: Any, field_name: str = "Monto", allow_zero: bool = True) -> Decimal:
    """
    Parse a money amount typed by the operator

    Args:
        value: Raw input (string or number)
        field_name: Name of the field for error messages
        allow_zero: When False the amount must be strictly positive

    Returns:
        Decimal with at most 2 decimal places
    """
    if value is None or (isinstance(value, str) and value.strip() == ''):
        amount = Decimal('0')
    else:
        if isinstance(value, bool):
            raise ValidationError(f'{field_name} debe ser un monto válido', field=field_name)
        text = str(value).strip() if not isinstance(value, float) else repr(value)
        if not AMOUNT_PATTERN.match(text):
            raise ValidationError(
                f'{field_name} debe ser un monto no negativo con máximo 2 decimales',
                field=field_name
            )
        amount = Decimal(text)

    if not allow_zero and amount <= 0:
        raise ValidationError(f'{field_name} debe ser mayor a 0.', field=field_name)
    return amount


def format_currency(amount: Any) -> str:
    """
    Format currency for reports ($ 1,234.50)

    Args:
        amount: The amount to format

    Returns:
        Formatted currency string
    """
    return f"$ {quantize_money(amount):,.2f}"


def money_str(amount: Any) -> str:
    """Monto como texto con exactamente 2 decimales (para JSON)"""
    return f"{quantize_money(amount):.2f}"


def parse_iso_date(value: Any, field_name: str = "Fecha") -> date:
    """Parse YYYY-MM-DD dates coming from query strings and JSON bodies"""
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except (ValueError, TypeError):
        raise ValidationError(f'{field_name} inválida, use el formato AAAA-MM-DD', field=field_name)


def validate_pin(pin: Any) -> Dict[str, Any]:
    """
    Validate a login PIN (exactly 4 digits)

    Returns:
        Dict with validation result
    """
    if pin is None or not PIN_PATTERN.match(str(pin)):
        return {
            'valid': False,
            'message': 'El PIN debe tener exactamente 4 dígitos'
        }
    return {
        'valid': True,
        'message': 'PIN válido'
    }


def sanitize_input(value: str, max_length: int = 255) -> str:
    """
    Sanitize input string for database storage

    Args:
        value: The input string
        max_length: Maximum allowed length

    Returns:
        Sanitized string
    """
    if not value:
        return ''

    sanitized = re.sub(r'[<>"\']', '', str(value))
    return sanitized.strip()[:max_length]


def validate_json_structure(data: dict, required_fields: list, optional_fields: list = None) -> Dict[str, Any]:
    """
    Validate JSON structure for API endpoints

    Args:
        data: The JSON data to validate
        required_fields: List of required field names
        optional_fields: List of optional field names

    Returns:
        Dict with validation result
    """
    if not isinstance(data, dict):
        return {
            'valid': False,
            'message': 'Los datos deben ser un objeto JSON válido'
        }

    missing_fields = []
    for field in required_fields:
        if field not in data or data[field] is None or data[field] == '':
            missing_fields.append(field)

    if missing_fields:
        return {
            'valid': False,
            'message': f'Campos requeridos faltantes: {", ".join(missing_fields)}'
        }

    allowed_fields = set(required_fields)
    if optional_fields:
        allowed_fields.update(optional_fields)

    unexpected_fields = [field for field in data.keys() if field not in allowed_fields]
    if unexpected_fields:
        return {
            'valid': False,
            'message': f'Campos no permitidos: {", ".join(unexpected_fields)}'
        }

    return {
        'valid': True,
        'message': 'Estructura JSON válida'
    }
