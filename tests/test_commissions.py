"""
Tests Unitarios para el Motor de Comisiones
Valida la base comisionable, las tasas por recepcionista y las reglas del formulario de venta
"""
import unittest
from datetime import datetime, date
from decimal import Decimal
from types import SimpleNamespace

from errors import ValidationError
from models import Sale, Channel, UserRole
from commissions import compute_commission, deductions_for, build_sale, is_commissionable
import business_rules as rules


def make_settings():
    return SimpleNamespace(
        sales_types=list(rules.DEFAULT_SALES_TYPES),
        payment_methods=list(rules.DEFAULT_PAYMENT_METHODS),
    )


def make_sale(amount, sale_type='Hotel', channel=Channel.RESERVA_DIRECTA, method='Efectivo'):
    return SimpleNamespace(amount=Decimal(amount), type=sale_type, channel=channel, payment_method=method)


class TestComputeCommission(unittest.TestCase):
    """Tests para el cálculo de la comisión por venta"""

    def test_hotel_directa_bac_diego(self):
        """Hotel, Reserva Directa, BAC, 1000, Diego: base 775 y comisión 15.50"""
        sale = make_sale('1000.00', 'Hotel', method='BAC')
        deductions = deductions_for(sale.amount, sale.type, sale.payment_method)

        self.assertEqual(deductions.tax, Decimal('180.00'))
        self.assertEqual(deductions.bank_fee, Decimal('45.00'))
        self.assertEqual(deductions.base, Decimal('775.00'))
        self.assertEqual(compute_commission(sale, 'Diego'), Decimal('15.50'))

    def test_no_hotel_efectivo_helen(self):
        """Daypass en efectivo, 200, Helen: comisión 2.00"""
        sale = make_sale('200.00', 'Daypass')
        self.assertEqual(compute_commission(sale, 'Helen'), Decimal('2.00'))

    def test_restaurante_no_comisiona(self):
        sale = make_sale('500.00', 'Restaurante')
        self.assertFalse(is_commissionable(sale.type, sale.channel))
        self.assertEqual(compute_commission(sale, 'Diego'), Decimal('0.00'))

    def test_canal_no_directo_no_comisiona(self):
        for channel in (Channel.EXPEDIA, Channel.BOOKING, Channel.WEBSITE):
            sale = make_sale('500.00', 'Hotel', channel=channel)
            self.assertEqual(compute_commission(sale, 'Diego'), Decimal('0.00'))

    def test_deducciones_no_se_encadenan(self):
        """Ambas deducciones se calculan sobre el monto original"""
        deductions = deductions_for(Decimal('100.00'), 'Hotel', 'Link de Pago')
        self.assertEqual(deductions.base, Decimal('100.00') - Decimal('18.00') - Decimal('4.50'))

    def test_transferencia_sin_comision_bancaria(self):
        deductions = deductions_for(Decimal('100.00'), 'Tours', 'Transferencia')
        self.assertEqual(deductions.bank_fee, Decimal('0'))
        self.assertEqual(deductions.base, Decimal('100.00'))

    def test_ninguno_sin_tasa(self):
        sale = make_sale('300.00', 'Tours')
        self.assertEqual(compute_commission(sale, 'Ninguno'), Decimal('0.00'))

    def test_redondeo_a_centavos(self):
        sale = make_sale('33.33', 'Tours')
        self.assertEqual(compute_commission(sale, 'Helen'), Decimal('0.33'))


class TestBuildSale(unittest.TestCase):
    """Tests para la validación y construcción de ventas"""

    def setUp(self):
        self.settings = make_settings()
        self.receptionist = SimpleNamespace(name='Helen', receptionist_name='Helen', role=UserRole.RECEPTIONIST)
        self.now = datetime(2025, 3, 1, 14, 30, 5)
        self.valid = {
            'command_number': 'HAB-12',
            'amount': '1000',
            'channel': 'Reserva Directa',
            'type': 'Hotel',
            'payment_method': 'BAC',
            'voucher_number': '556677',
        }

    def build(self, **overrides):
        data = dict(self.valid, **overrides)
        return build_sale(data, self.settings, actor=self.receptionist,
                          operation_date=date(2025, 3, 1), now=self.now)

    def test_commission_frozen_on_creation(self):
        sale = self.build(receptionist='Diego')
        self.assertEqual(sale.commission_amount, Decimal('15.50'))
        self.assertEqual(sale.receptionist, 'Diego')
        self.assertEqual(sale.date, datetime(2025, 3, 1, 14, 30, 5))

    def test_default_receptionist_from_actor(self):
        sale = self.build()
        self.assertEqual(sale.receptionist, 'Helen')
        self.assertEqual(sale.commission_amount, Decimal('7.75'))

    def test_non_commissionable_forces_ninguno(self):
        sale = self.build(channel='Expedia', receptionist='Diego')
        self.assertEqual(sale.receptionist, 'Ninguno')
        self.assertEqual(sale.commission_amount, Decimal('0.00'))

    def test_restaurante_forces_ninguno(self):
        sale = self.build(type='Restaurante', payment_method='Efectivo', receptionist='Diego')
        self.assertEqual(sale.receptionist, 'Ninguno')
        self.assertEqual(sale.commission_amount, Decimal('0.00'))

    def test_unknown_receptionist_ignored_when_not_commissionable(self):
        sale = self.build(type='Restaurante', payment_method='Efectivo', receptionist='Pedro')
        self.assertEqual(sale.receptionist, 'Ninguno')
        sale = self.build(channel='Booking', receptionist='Pedro')
        self.assertEqual(sale.receptionist, 'Ninguno')

    def test_unknown_receptionist_rejected_when_commissionable(self):
        with self.assertRaises(ValidationError) as ctx:
            self.build(receptionist='Pedro')
        self.assertEqual(ctx.exception.field, 'receptionist')

    def test_direct_service_locks_channel(self):
        """Masajes se registra siempre como Reserva Directa"""
        sale = self.build(type='Masajes', channel='Booking', payment_method='Efectivo')
        self.assertEqual(sale.channel, Channel.RESERVA_DIRECTA)

    def test_voucher_required(self):
        with self.assertRaises(ValidationError) as ctx:
            self.build(voucher_number='')
        self.assertEqual(ctx.exception.field, 'voucher_number')

    def test_voucher_dropped_for_cash(self):
        sale = self.build(payment_method='Efectivo', voucher_number='123')
        self.assertIsNone(sale.voucher_number)

    def test_amount_must_be_positive(self):
        with self.assertRaises(ValidationError):
            self.build(amount='0')

    def test_command_number_required(self):
        with self.assertRaises(ValidationError):
            self.build(command_number='')

    def test_unknown_method_rejected(self):
        with self.assertRaises(ValidationError):
            self.build(payment_method='Cheque')

    def test_unknown_channel_rejected(self):
        with self.assertRaises(ValidationError):
            self.build(channel='Airbnb')

    def test_edit_keeps_id_and_date(self):
        existing = Sale(
            id='abc-123',
            date=datetime(2025, 2, 27, 9, 0, 0),
            command_number='HAB-1',
            amount=Decimal('100.00'),
            channel=Channel.RESERVA_DIRECTA,
            type='Tipo Anterior',
            payment_method='Efectivo',
            receptionist='Helen',
            commission_amount=Decimal('1.00'),
            created_by='Helen',
            created_at=datetime(2025, 2, 27, 9, 0, 0),
        )
        data = {
            'command_number': 'HAB-1',
            'amount': '200',
            'channel': 'Reserva Directa',
            'type': 'Tipo Anterior',
            'payment_method': 'Efectivo',
        }
        sale = build_sale(data, self.settings, actor=self.receptionist, existing=existing, now=self.now)

        self.assertEqual(sale.id, 'abc-123')
        self.assertEqual(sale.date, datetime(2025, 2, 27, 9, 0, 0))
        self.assertEqual(sale.receptionist, 'Helen')
        self.assertEqual(sale.commission_amount, Decimal('2.00'))


if __name__ == '__main__':
    unittest.main()
