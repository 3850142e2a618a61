"""
Excepciones de negocio del sistema de corte de caja

Cada excepción lleva el tipo de error usado por utils.log_error / error_response
y el código HTTP con el que se reporta al cliente.
"""


class POSError(Exception):
    error_type = 'server'
    status_code = 500

    def __init__(self, message, details=None, field=None):
        super().__init__(message)
        self.message = message
        self.details = details
        self.field = field


class ValidationError(POSError):
    """Campo faltante, monto no positivo, voucher faltante, entrada inválida"""
    error_type = 'validation'
    status_code = 400


class DayClosedError(POSError):
    """Operación de escritura sobre un día cerrado"""
    error_type = 'business'
    status_code = 409

    def __init__(self, day, message=None):
        super().__init__(
            message or f'El día {day.isoformat()} se encuentra cerrado',
            details='La información es de solo lectura.'
        )
        self.day = day


class ForbiddenError(POSError):
    error_type = 'permission'
    status_code = 403


class NotFoundError(POSError):
    error_type = 'not_found'
    status_code = 404


class PersistenceError(POSError):
    """Falla del almacenamiento; la operación se aborta sin reintentos"""
    error_type = 'server'
    status_code = 500
