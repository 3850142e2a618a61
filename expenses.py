"""
Registro de gastos / documentos de proveedores
"""
from decimal import Decimal

from models import Expense, ExpenseDocumentType, new_id
from errors import ValidationError
import business_rules as rules
from utils import parse_amount, parse_iso_date, quantize_money, sanitize_input


def calculate_iva(subtotal, document_type):
    """
    Calculate IVA for an expense document

    Args:
        subtotal: Subtotal sin IVA
        document_type: ExpenseDocumentType

    Returns:
        IVA 13% para CCF y Crédito Fiscal, 0 para recibos y facturas
    """
    if rules.expense_has_iva(document_type):
        return quantize_money(Decimal(subtotal) * rules.IVA_RATE)
    return quantize_money(0)


def _parse_document_type(value):
    if isinstance(value, ExpenseDocumentType):
        return value
    try:
        return ExpenseDocumentType(value or ExpenseDocumentType.CCF.value)
    except ValueError:
        raise ValidationError(f'Tipo de documento inválido: {value}', field='document_type')


def build_expense(data, settings, default_date=None):
    """
    Valida un gasto y calcula IVA y total

    Proveedor y descripción se guardan en mayúsculas. Los datos fiscales solo
    se conservan para los documentos que los llevan.
    """
    provider = sanitize_input(data.get('provider'), 150).upper()
    description = sanitize_input(data.get('description'), 500).upper()
    document_number = sanitize_input(data.get('document_number'), 60)
    raw_subtotal = data.get('subtotal')

    if not provider or not description or not document_number or raw_subtotal in (None, ''):
        raise ValidationError(
            'Complete los campos obligatorios: Proveedor, Descripción, Documento # y Subtotal.'
        )

    subtotal = parse_amount(raw_subtotal, 'El subtotal', allow_zero=False)
    document_type = _parse_document_type(data.get('document_type'))

    payment_method = (data.get('payment_method') or rules.CASH_METHOD).strip()
    if payment_method not in settings.payment_methods:
        raise ValidationError(f'El método de pago no configurado: {payment_method}', field='payment_method')

    if data.get('date'):
        expense_date = parse_iso_date(data.get('date'))
    elif default_date is not None:
        expense_date = default_date
    else:
        raise ValidationError('La fecha del documento es obligatoria.', field='date')

    iva = calculate_iva(subtotal, document_type)
    has_tax_payer = document_type in (ExpenseDocumentType.CCF, ExpenseDocumentType.CREDITO_FISCAL)
    full_fiscal = document_type == ExpenseDocumentType.CREDITO_FISCAL

    return Expense(
        id=new_id(),
        date=expense_date,
        provider=provider,
        description=description,
        subtotal=subtotal,
        iva=iva,
        amount=quantize_money(subtotal + iva),
        payment_method=payment_method,
        document_type=document_type,
        document_number=document_number,
        tax_payer_name=sanitize_input(data.get('tax_payer_name'), 200) or None if has_tax_payer else None,
        tax_dui=sanitize_input(data.get('tax_dui'), 30) or None if full_fiscal else None,
        tax_phone=sanitize_input(data.get('tax_phone'), 30) or None if full_fiscal else None,
        tax_address=sanitize_input(data.get('tax_address'), 300) or None if full_fiscal else None,
    )
