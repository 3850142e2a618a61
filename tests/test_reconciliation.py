"""
Tests para el corte de caja: conteo físico, saldo teórico, remesa y estado del día
"""
import os

import pytest
from datetime import date, datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace

# Configure environment for testing
os.environ['SESSION_SECRET'] = 'test_secret_key_for_testing_only'
os.environ['DATABASE_URL'] = 'sqlite:///:memory:'
os.environ['RATELIMIT_ENABLED'] = 'false'

from main import app
from models import db, DayState, UserRole
from errors import DayClosedError, ForbiddenError, ValidationError
from aggregation import aggregate
from reconciliation import (
    CashCount,
    compute_balance,
    compute_remittance,
    card_batch_variance,
    resolve_next_fund,
    resolve_day_state,
    ensure_day_open,
    close_day,
    reopen_day,
    reconcile,
)
import business_rules as rules


def sale(amount, method, sale_type='Hotel'):
    return SimpleNamespace(amount=Decimal(amount), type=sale_type, payment_method=method)


def make_aggregate(sales):
    return aggregate(sales, rules.DEFAULT_PAYMENT_METHODS, rules.DEFAULT_SALES_TYPES)


@pytest.fixture
def example_aggregate():
    """Ventas 1500: 300 con tarjeta y 200 tipo depósito"""
    return make_aggregate([
        sale('1000.00', 'Efectivo'),
        sale('200.00', 'BAC'),
        sale('100.00', 'Promerica'),
        sale('120.00', 'Transferencia'),
        sale('80.00', 'Link de Pago'),
    ])


class TestCashCount:

    def test_total(self):
        count = CashCount.from_inputs(
            bills={'100': '5', '20': '3', '1': '2'},
            coins={'0.25': '1', '0.01': '2'},
            checks='10.50',
            others='',
        )
        assert count.total == Decimal('572.77')

    def test_empty_count(self):
        assert CashCount.from_inputs().total == Decimal('0')

    def test_coin_key_formats(self):
        """0.1 y 0.10 son la misma moneda"""
        count = CashCount.from_inputs(coins={'0.1': '3'})
        assert count.coins_total == Decimal('0.30')

    def test_invalid_quantity_rejected(self):
        with pytest.raises(ValidationError):
            CashCount.from_inputs(bills={'50': '2.5'})

    def test_unknown_denomination_rejected(self):
        with pytest.raises(ValidationError):
            CashCount.from_inputs(bills={'200': '1'})

    def test_invalid_checks_rejected(self):
        with pytest.raises(ValidationError):
            CashCount.from_inputs(checks='10,50')

    @pytest.mark.parametrize('bills', [['5'], '100', 5])
    def test_bills_must_be_mapping(self, bills):
        with pytest.raises(ValidationError) as exc_info:
            CashCount.from_inputs(bills=bills)
        assert exc_info.value.field == 'Billetes'


class TestBalance:

    def test_theoretical_cash(self, example_aggregate):
        """Fondo 200, ventas 1500 (300 tarjeta, 200 depósito), gastos 150: teórico 1050"""
        balance = compute_balance(example_aggregate, Decimal('150.00'), Decimal('200.00'), Decimal('1050.00'))

        assert balance.gross_cash == Decimal('1000.00')
        assert balance.net_cash_today == Decimal('850.00')
        assert balance.theoretical_cash == Decimal('1050.00')
        assert balance.status == 'cuadrado'

    def test_tolerance_absorbs_rounding(self):
        """Contado 1050.00 contra teórico 1050.004 queda cuadrado"""
        agg = make_aggregate([sale('850.004', 'Efectivo')])
        balance = compute_balance(agg, 0, Decimal('200.00'), Decimal('1050.00'))

        assert balance.theoretical_cash == Decimal('1050.004')
        assert balance.difference == 0
        assert balance.surplus == 0
        assert balance.shortage == 0
        assert balance.status == 'cuadrado'

    def test_surplus(self, example_aggregate):
        balance = compute_balance(example_aggregate, Decimal('150.00'), Decimal('200.00'), Decimal('1060.00'))
        assert balance.difference == Decimal('10.00')
        assert balance.surplus == Decimal('10.00')
        assert balance.status == 'sobrante'

    def test_shortage_not_remittable(self, example_aggregate):
        balance = compute_balance(example_aggregate, Decimal('150.00'), Decimal('200.00'), Decimal('1000.00'))
        assert balance.shortage == Decimal('50.00')
        assert balance.surplus == 0
        assert balance.status == 'faltante'


class TestRemittance:

    def test_without_surplus(self, example_aggregate):
        balance = compute_balance(example_aggregate, Decimal('150.00'), Decimal('200.00'), Decimal('1060.00'))
        remittance = compute_remittance(balance, include_surplus=False)

        assert remittance.base == Decimal('850.00')
        assert remittance.total_with_surplus == Decimal('860.00')
        assert remittance.amount == Decimal('850.00')
        assert remittance.surplus_remitted == 0
        assert remittance.can_remit is True

    def test_with_surplus(self, example_aggregate):
        balance = compute_balance(example_aggregate, Decimal('150.00'), Decimal('200.00'), Decimal('1060.00'))
        remittance = compute_remittance(balance, include_surplus=True)
        assert remittance.amount == Decimal('860.00')
        assert remittance.surplus_remitted == Decimal('10.00')

    def test_negative_net_cash_base_is_zero(self):
        agg = make_aggregate([sale('50.00', 'Efectivo')])
        balance = compute_balance(agg, Decimal('80.00'), Decimal('200.00'), Decimal('170.00'))
        remittance = compute_remittance(balance)
        assert remittance.base == 0
        assert remittance.can_remit is False


class TestCardBatches:

    def test_signed_difference(self, example_aggregate):
        result = card_batch_variance(example_aggregate, {'BAC': '190.00', 'Promerica': '100'})
        assert result['BAC']['difference'] == Decimal('-10.00')
        assert result['Promerica']['difference'] == Decimal('0')

    def test_blank_batches(self, example_aggregate):
        result = card_batch_variance(example_aggregate, None)
        assert result['BAC']['difference'] == Decimal('-200.00')

    def test_batches_must_be_mapping(self, example_aggregate):
        with pytest.raises(ValidationError):
            card_batch_variance(example_aggregate, ['190.00'])


class TestNextFund:

    def test_without_remittance_uses_counted_total(self):
        """Sin remesa, el conteo físico completo pasa al día siguiente"""
        assert resolve_next_fund(False, '300.00', Decimal('513.27')) == Decimal('513.27')

    def test_with_remittance_uses_operator_value(self):
        assert resolve_next_fund(True, '250.00', Decimal('513.27')) == Decimal('250.00')

    def test_with_remittance_blank_defaults_to_200(self):
        assert resolve_next_fund(True, '', Decimal('513.27')) == Decimal('200.00')


# --- Estado del día (base de datos) ---

@pytest.fixture(scope='module')
def test_app():
    app.config['TESTING'] = True
    app.config['WTF_CSRF_ENABLED'] = False

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def clean_days(test_app):
    yield
    db.session.rollback()
    DayState.query.delete()
    db.session.commit()


@pytest.fixture
def admin():
    return SimpleNamespace(name='Diego (Admin)', role=UserRole.ADMIN, is_admin=True)


@pytest.fixture
def receptionist():
    return SimpleNamespace(name='Helen', role=UserRole.RECEPTIONIST, is_admin=False)


class TestDayStateMachine:

    day = date(2025, 3, 1)

    def test_missing_day_is_open_with_default_fund(self, clean_days):
        state = resolve_day_state(self.day)
        assert state.is_open is True
        assert state.initial_fund == Decimal('200.00')

    def test_close_seeds_next_day(self, clean_days, receptionist):
        state, seeded = close_day(self.day, Decimal('513.27'), receptionist, confirmed=True)

        assert seeded is True
        assert state.is_open is False
        assert state.final_fund == Decimal('513.27')
        assert state.closed_by == 'Helen'

        next_state = db.session.get(DayState, self.day + timedelta(days=1))
        assert next_state.is_open is True
        assert next_state.initial_fund == Decimal('513.27')

    def test_close_requires_confirmation(self, clean_days, receptionist):
        with pytest.raises(ValidationError):
            close_day(self.day, Decimal('200.00'), receptionist, confirmed=False)
        assert db.session.get(DayState, self.day) is None

    def test_close_twice_raises(self, clean_days, receptionist):
        close_day(self.day, Decimal('200.00'), receptionist, confirmed=True)
        with pytest.raises(DayClosedError):
            close_day(self.day, Decimal('200.00'), receptionist, confirmed=True)

    def test_ensure_day_open(self, clean_days, receptionist):
        assert ensure_day_open(self.day).is_open is True
        close_day(self.day, Decimal('200.00'), receptionist, confirmed=True)
        with pytest.raises(DayClosedError):
            ensure_day_open(self.day)

    def test_reopen_requires_admin(self, clean_days, receptionist):
        close_day(self.day, Decimal('200.00'), receptionist, confirmed=True)
        with pytest.raises(ForbiddenError):
            reopen_day(self.day, receptionist, confirmed=True)

    def test_reopen_open_day_rejected(self, clean_days, admin):
        with pytest.raises(ValidationError):
            reopen_day(self.day, admin, confirmed=True)

    def test_reopen_keeps_funds(self, clean_days, receptionist, admin):
        close_day(self.day, Decimal('350.00'), receptionist, confirmed=True)
        state = reopen_day(self.day, admin, confirmed=True)
        assert state.is_open is True
        assert state.final_fund == Decimal('350.00')

    def test_close_reopen_close_no_duplicate_seed(self, clean_days, receptionist, admin):
        """Cerrar, reabrir y cerrar con el mismo fondo deja el mismo estado"""
        first, seeded_first = close_day(self.day, Decimal('300.00'), receptionist, confirmed=True,
                                        now=datetime(2025, 3, 1, 22, 0))
        reopen_day(self.day, admin, confirmed=True)
        second, seeded_second = close_day(self.day, Decimal('300.00'), receptionist, confirmed=True,
                                          now=datetime(2025, 3, 1, 22, 0))

        assert seeded_first is True
        assert seeded_second is False
        assert second.to_dict() == {
            'date': '2025-03-01',
            'is_open': False,
            'initial_fund': '200.00',
            'final_fund': '300.00',
            'closed_at': '2025-03-01T22:00:00',
            'closed_by': 'Helen',
        }
        assert DayState.query.count() == 2

    def test_reconcile_bundle(self, clean_days, example_aggregate):
        state = resolve_day_state(self.day)
        expenses = [SimpleNamespace(amount=Decimal('150.00'), to_dict=lambda: {})]
        count = CashCount.from_inputs(bills={'100': '10', '50': '1'})

        result = reconcile(state, example_aggregate, expenses, cash_count=count,
                           batch_inputs={'BAC': '200'})
        data = result.to_dict()

        assert data['balance']['theoretical_cash'] == '1050.00'
        assert data['balance']['status'] == 'cuadrado'
        assert data['remittance']['base'] == '850.00'
        assert data['remittance_done'] is False
        assert data['next_fund'] == '1050.00'
        assert data['card_batches']['BAC']['difference'] == '0.00'
