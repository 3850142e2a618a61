"""
Acceso a datos del corte de caja (Flask-SQLAlchemy)

Todas las fallas de la base se revierten y se reportan como PersistenceError;
no hay reintentos automáticos.
"""
import logging
from datetime import datetime, time, timedelta

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from models import db, Sale, Expense, DayState, AppSettings, User, UserRole
from errors import PersistenceError
import business_rules as rules
from utils import log_error

logger = logging.getLogger(__name__)

DEFAULT_ADMIN = {
    'name': 'Diego (Admin)',
    'pin': '2211',
    'role': UserRole.ADMIN,
    'receptionist_name': 'Diego',
    'is_super_admin': True,
}


def _fail(operation, exc):
    db.session.rollback()
    log_error('server', f'Error de base de datos en {operation}: {exc}',
              context={'operation': operation}, exc_info=True)
    raise PersistenceError('Error al acceder a la base de datos', details=operation) from exc


def _commit(operation):
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        _fail(operation, e)


def _day_bounds(start_day, end_day=None):
    """[inicio 00:00:00, fin 23:59:59.999999] como datetimes"""
    end_day = end_day or start_day
    return datetime.combine(start_day, time.min), datetime.combine(end_day, time.max)


# --- Ventas ---

def load_sales_between(start_day, end_day):
    start, end = _day_bounds(start_day, end_day)
    try:
        stmt = (select(Sale)
                .where(Sale.date >= start, Sale.date <= end)
                .order_by(Sale.date.desc()))
        return list(db.session.scalars(stmt))
    except SQLAlchemyError as e:
        _fail('load_sales_between', e)


def load_sales_for_date(day):
    return load_sales_between(day, day)


def load_sales_for_month(year, month):
    first = datetime(year, month, 1).date()
    following = datetime(year + (month // 12), month % 12 + 1, 1).date()
    return load_sales_between(first, following - timedelta(days=1))


def get_sale(sale_id):
    try:
        return db.session.get(Sale, sale_id)
    except SQLAlchemyError as e:
        _fail('get_sale', e)


def save_sale(sale):
    """Inserta o reemplaza la venta completa (mismo id)"""
    try:
        sale = db.session.merge(sale)
    except SQLAlchemyError as e:
        _fail('save_sale', e)
    _commit('save_sale')
    return sale


def delete_sale(sale):
    try:
        db.session.delete(sale)
    except SQLAlchemyError as e:
        _fail('delete_sale', e)
    _commit('delete_sale')


# --- Gastos ---

def load_expenses_for_date(day):
    try:
        stmt = select(Expense).where(Expense.date == day).order_by(Expense.created_at)
        return list(db.session.scalars(stmt))
    except SQLAlchemyError as e:
        _fail('load_expenses_for_date', e)


def get_expense(expense_id):
    try:
        return db.session.get(Expense, expense_id)
    except SQLAlchemyError as e:
        _fail('get_expense', e)


def save_expense(expense):
    db.session.add(expense)
    _commit('save_expense')
    return expense


def delete_expense(expense):
    try:
        db.session.delete(expense)
    except SQLAlchemyError as e:
        _fail('delete_expense', e)
    _commit('delete_expense')


# --- Estado del día ---

def load_day_state(day):
    try:
        return db.session.get(DayState, day)
    except SQLAlchemyError as e:
        _fail('load_day_state', e)


def save_day_state(*states):
    """Guarda uno o varios DayState en una sola transacción"""
    for state in states:
        db.session.add(state)
    _commit('save_day_state')
    return states


# --- Configuración ---

def load_settings():
    """Configuración vigente; se crea con los valores por defecto la primera vez"""
    try:
        settings = db.session.get(AppSettings, 1)
    except SQLAlchemyError as e:
        _fail('load_settings', e)

    if settings is None:
        settings = AppSettings(
            id=1,
            sales_types=list(rules.DEFAULT_SALES_TYPES),
            payment_methods=list(rules.DEFAULT_PAYMENT_METHODS),
        )
        db.session.add(settings)
        _commit('load_settings')
        logger.info("Configuración inicial creada con valores por defecto")
    return settings


def update_settings(sales_types=None, payment_methods=None):
    settings = load_settings()
    if sales_types is not None:
        settings.sales_types = list(sales_types)
    if payment_methods is not None:
        settings.payment_methods = list(payment_methods)
    _commit('update_settings')
    return settings


# --- Usuarios ---

def get_users():
    """Usuarios registrados; si no hay ninguno se crea el super administrador"""
    try:
        users = list(db.session.scalars(select(User).order_by(User.created_at)))
    except SQLAlchemyError as e:
        _fail('get_users', e)

    if not users:
        admin = User(**DEFAULT_ADMIN)
        db.session.add(admin)
        _commit('get_users')
        logger.info("Super administrador por defecto creado")
        users = [admin]
    return users


def find_user_by_pin(pin):
    """Primer usuario con ese PIN"""
    for user in get_users():
        if user.pin == pin:
            return user
    return None


def get_user(user_id):
    try:
        return db.session.get(User, user_id)
    except SQLAlchemyError as e:
        _fail('get_user', e)


def save_user(user):
    db.session.add(user)
    _commit('save_user')
    return user


def delete_user(user):
    try:
        db.session.delete(user)
    except SQLAlchemyError as e:
        _fail('delete_user', e)
    _commit('delete_user')
