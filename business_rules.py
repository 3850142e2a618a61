"""
Reglas de negocio estáticas: clasificación de métodos de pago, tipos de venta,
recepcionistas con comisión y tasas.

Los tipos de venta y métodos de pago son listas configurables (AppSettings); aquí
solo se clasifican los valores conocidos por nombre. Cualquier valor adicional
configurado cae en la categoría 'other'.
"""
from decimal import Decimal

from models import Channel

# --- Valores por defecto de AppSettings ---
DEFAULT_SALES_TYPES = [
    'Daypass',
    'Restaurante',
    'Hotel',
    'Boutique',
    'Masajes',
    'Transportes',
    'Tours',
    'Evento',
    'Clase de Surf',
]

DEFAULT_PAYMENT_METHODS = [
    'Efectivo',
    'BAC',
    'Promerica',
    'Link de Pago',
    'Transferencia',
    'Bitcoin',
    'Otros',
]

RESTAURANT_TYPE = 'Restaurante'
HOTEL_TYPE = 'Hotel'

# Servicios directos: al registrarlos el canal queda fijo en Reserva Directa
DIRECT_SERVICE_TYPES = frozenset([
    'Masajes',
    'Transportes',
    'Clase de Surf',
    'Boutique',
    'Daypass',
    'Tours',
    'Restaurante',
])

# --- Métodos de pago ---
CASH = 'cash'
CARD = 'card'
PAYMENT_LINK = 'payment_link'
TRANSFER = 'transfer'
CRYPTO = 'crypto'
OTHER = 'other'

CASH_METHOD = 'Efectivo'
CARD_NETWORKS = ('BAC', 'Promerica')

PAYMENT_METHOD_TAGS = {
    'Efectivo': CASH,
    'BAC': CARD,
    'Promerica': CARD,
    'Link de Pago': PAYMENT_LINK,
    'Transferencia': TRANSFER,
    'Bitcoin': CRYPTO,
    'Otros': OTHER,
}

# Métodos que requieren número de voucher/referencia
VOUCHER_REQUIRED_METHODS = frozenset(['BAC', 'Promerica', 'Link de Pago', 'Transferencia'])

# Métodos que pagan comisión bancaria (4.5%)
BANK_FEE_METHODS = frozenset(['BAC', 'Promerica', 'Link de Pago'])

# En el corte de caja: tarjeta y depósito no son efectivo en caja
DEPOSIT_TAGS = frozenset([TRANSFER, PAYMENT_LINK, CRYPTO])

# --- Comisiones ---
HOTEL_TAX_RATE = Decimal('0.18')
BANK_FEE_RATE = Decimal('0.045')
RENT_RATE = Decimal('0.10')  # Retención de renta sobre comisiones

NO_RECEPTIONIST = 'Ninguno'
COMMISSION_RATES = {
    'Helen': Decimal('0.01'),
    'Diego': Decimal('0.02'),
}
RECEPTIONISTS = ('Diego', 'Helen')
DEFAULT_RECEPTIONIST = 'Helen'

COMMISSIONABLE_CHANNEL = Channel.RESERVA_DIRECTA

# --- Gastos ---
IVA_RATE = Decimal('0.13')


def payment_tag(method):
    """Categoría de un método de pago; los desconocidos caen en 'other'"""
    return PAYMENT_METHOD_TAGS.get(method, OTHER)


def requires_voucher(method):
    return method in VOUCHER_REQUIRED_METHODS


def charges_bank_fee(method):
    return method in BANK_FEE_METHODS


def is_direct_service(sale_type):
    return sale_type in DIRECT_SERVICE_TYPES


def commission_rate(receptionist):
    return COMMISSION_RATES.get(receptionist, Decimal('0'))


def expense_has_iva(document_type):
    """IVA 13% solo para comprobantes de crédito fiscal"""
    value = getattr(document_type, 'value', document_type)
    return value in ('CCF', 'CREDITO_FISCAL')
