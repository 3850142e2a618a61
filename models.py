from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


db = SQLAlchemy(model_class=Base)
from datetime import datetime, date as date_type
from decimal import Decimal
from sqlalchemy import String, Integer, DateTime, Date, Boolean, Text, Numeric, Enum, JSON
from sqlalchemy.orm import Mapped, mapped_column
import enum
import uuid


def new_id():
    return str(uuid.uuid4())


def _money(value):
    """Serializa montos Decimal como texto con 2 decimales"""
    if value is None:
        return None
    return f"{Decimal(value):.2f}"


class UserRole(enum.Enum):
    ADMIN = "admin"
    RECEPTIONIST = "receptionist"


class Channel(enum.Enum):
    RESERVA_DIRECTA = "Reserva Directa"
    EXPEDIA = "Expedia"
    BOOKING = "Booking"
    WEBSITE = "Website"


class ExpenseDocumentType(enum.Enum):
    RECIBO = "RECIBO"
    CCF = "CCF"                        # Comprobante de crédito fiscal (simple)
    CREDITO_FISCAL = "CREDITO_FISCAL"  # Crédito fiscal con datos completos del contribuyente
    FACTURA = "FACTURA"


class User(db.Model):
    __tablename__ = 'users'

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    pin: Mapped[str] = mapped_column(String(4), nullable=False)  # Único dato de login
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=UserRole.RECEPTIONIST,
    )
    receptionist_name: Mapped[str] = mapped_column(String(20), nullable=True)  # Identidad para comisiones
    is_super_admin: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    @property
    def is_admin(self):
        return self.role == UserRole.ADMIN

    def to_dict(self, include_pin=False):
        data = {
            'id': self.id,
            'name': self.name,
            'role': self.role.value,
            'receptionist_name': self.receptionist_name,
            'is_super_admin': bool(self.is_super_admin),
        }
        if include_pin:
            data['pin'] = self.pin
        return data


class Sale(db.Model):
    __tablename__ = 'sales'

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    command_number: Mapped[str] = mapped_column(String(50), nullable=False)  # Número de comanda / habitación
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    channel: Mapped[Channel] = mapped_column(
        Enum(Channel, native_enum=False, values_callable=lambda e: [m.value for m in e], validate_strings=True),
        nullable=False,
        default=Channel.RESERVA_DIRECTA,
    )
    type: Mapped[str] = mapped_column(String(60), nullable=False)
    payment_method: Mapped[str] = mapped_column(String(60), nullable=False)
    voucher_number: Mapped[str] = mapped_column(String(60), nullable=True)  # Solo tarjeta/banco
    notes: Mapped[str] = mapped_column(Text, nullable=True)
    receptionist: Mapped[str] = mapped_column(String(20), nullable=False, default='Ninguno')
    # Se calcula al crear/editar la venta y no se recalcula después
    commission_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal('0.00'))
    created_by: Mapped[str] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'date': self.date.isoformat(timespec='seconds'),
            'command_number': self.command_number,
            'amount': _money(self.amount),
            'channel': self.channel.value,
            'type': self.type,
            'payment_method': self.payment_method,
            'voucher_number': self.voucher_number,
            'notes': self.notes,
            'receptionist': self.receptionist,
            'commission_amount': _money(self.commission_amount),
        }


class Expense(db.Model):
    __tablename__ = 'expenses'

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    date: Mapped[date_type] = mapped_column(Date, nullable=False, index=True)  # Fecha del documento
    provider: Mapped[str] = mapped_column(String(150), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)  # Sub total sin IVA
    iva: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal('0.00'))
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)  # Total (sub + IVA)
    payment_method: Mapped[str] = mapped_column(String(60), nullable=False)
    document_type: Mapped[ExpenseDocumentType] = mapped_column(
        Enum(ExpenseDocumentType, native_enum=False),
        nullable=False,
        default=ExpenseDocumentType.CCF,
    )
    document_number: Mapped[str] = mapped_column(String(60), nullable=False)
    tax_payer_name: Mapped[str] = mapped_column(String(200), nullable=True)  # Nombre / Razón social
    tax_dui: Mapped[str] = mapped_column(String(30), nullable=True)  # DUI/NIT
    tax_phone: Mapped[str] = mapped_column(String(30), nullable=True)
    tax_address: Mapped[str] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'date': self.date.isoformat(),
            'provider': self.provider,
            'description': self.description,
            'subtotal': _money(self.subtotal),
            'iva': _money(self.iva),
            'amount': _money(self.amount),
            'payment_method': self.payment_method,
            'document_type': self.document_type.value,
            'document_number': self.document_number,
            'tax_payer_name': self.tax_payer_name,
            'tax_dui': self.tax_dui,
            'tax_phone': self.tax_phone,
            'tax_address': self.tax_address,
        }


class DayState(db.Model):
    """Estado de un día de operación (abierto/cerrado) y su fondo de caja"""
    __tablename__ = 'day_states'

    date: Mapped[date_type] = mapped_column(Date, primary_key=True)
    is_open: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    initial_fund: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    final_fund: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=True)
    closed_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)
    closed_by: Mapped[str] = mapped_column(String(100), nullable=True)

    def to_dict(self):
        return {
            'date': self.date.isoformat(),
            'is_open': bool(self.is_open),
            'initial_fund': _money(self.initial_fund),
            'final_fund': _money(self.final_fund),
            'closed_at': self.closed_at.isoformat(timespec='seconds') if self.closed_at else None,
            'closed_by': self.closed_by,
        }


class AppSettings(db.Model):
    """Listas configurables de tipos de venta y métodos de pago (fila única)"""
    __tablename__ = 'app_settings'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    sales_types: Mapped[list] = mapped_column(JSON, nullable=False)
    payment_methods: Mapped[list] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'sales_types': list(self.sales_types),
            'payment_methods': list(self.payment_methods),
        }
