"""
Schemas Pydantic para Pedidos y Formatos
Proyecto: Control de Formatos (SGV)

Un pedido es una orden de impresión de una cantidad de formatos
numerados para un par (empresa, tipo de formato). Cada hoja impresa
es un formato (Unit) con su propio número y estado de custodia.
"""

import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


# -------------------------------------------------------------------
# Enum de estados
# -------------------------------------------------------------------

class OrderStatus(str, Enum):
    """Ciclo de vida del pedido en la imprenta."""
    PENDING_PICKUP = "pending_pickup"
    PICKED_UP = "picked_up"


class PaymentStatus(str, Enum):
    """Estado de deuda del pedido (bandera plana, no es un libro contable)."""
    PAID = "paid"
    UNPAID = "unpaid"


class UnitStatus(str, Enum):
    """Estados de custodia de un formato."""
    AVAILABLE = "available"
    ASSIGNED = "assigned"
    DELIVERED = "delivered"


# ------------------------------------------------------------
# Schemas Order
# ------------------------------------------------------------

class OrderBase(BaseModel):
    """
    Campos comunes del pedido.

    El tipo de formato y la empresa se guardan por nombre: el par
    (empresa, formato) es la clave de numeración.
    """
    order_date: datetime.date = Field(..., description="Fecha del pedido")
    form_type: str = Field(..., min_length=1, max_length=200, description="Nombre del tipo de formato")
    company: str = Field(..., min_length=1, max_length=200, description="Nombre de la empresa")
    status: OrderStatus = Field(default=OrderStatus.PENDING_PICKUP, description="Estado del pedido")
    payment_status: PaymentStatus = Field(default=PaymentStatus.UNPAID, description="Estado de deuda")
    pickup_date: Optional[datetime.date] = Field(None, description="Fecha de recojo")
    payment_date: Optional[datetime.date] = Field(None, description="Fecha de pago")
    amount: Decimal = Field(default=Decimal("0"), description="Monto del pedido")

    @field_validator("form_type", "company", mode="before")
    @classmethod
    def strip_names(cls, v: str) -> str:
        """Elimina espacios al inicio y al final de los nombres."""
        return v.strip() if isinstance(v, str) else v


class OrderCreate(OrderBase):
    """
    Schema para registrar un nuevo pedido.

    Si ``starting_number`` es None o 0 la numeración se asigna
    automáticamente al crear el pedido.
    """
    quantity: int = Field(..., description="Cantidad de formatos")
    starting_number: Optional[int] = Field(None, description="Numeración inicial (0/None = automática)")


class OrderUpdate(BaseModel):
    """
    Actualización parcial de un pedido.

    Cantidad, numeración, empresa y formato no se modifican tras la
    creación: definen el rango de formatos ya materializado.
    """
    order_date: Optional[datetime.date] = None
    status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None
    pickup_date: Optional[datetime.date] = None
    payment_date: Optional[datetime.date] = None
    amount: Optional[Decimal] = None


class OrderRead(OrderBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    quantity: int
    starting_number: int
    created_at: datetime.datetime
    updated_at: datetime.datetime

    @computed_field
    @property
    def ending_number(self) -> int:
        """Último número del rango del pedido."""
        return self.starting_number + self.quantity - 1

    @computed_field
    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID


class OrderFilter(BaseModel):
    """Filtros del listado de pedidos."""
    company: Optional[str] = Field(None, description="Texto contenido en el nombre de la empresa")
    form_type: Optional[str] = Field(None, description="Nombre exacto del tipo de formato")
    status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None
    date_from: Optional[datetime.date] = None
    date_to: Optional[datetime.date] = None


# ------------------------------------------------------------
# Schemas Unit (formato)
# ------------------------------------------------------------

class UnitRead(BaseModel):
    """Un formato numerado y su custodia actual."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    number: int
    order_id: str
    status: UnitStatus = UnitStatus.AVAILABLE
    current_location: str
    destination: Optional[str] = None
    recipient: Optional[str] = None
    notes: Optional[str] = None
    entry_date: datetime.date
    departure_date: Optional[datetime.date] = None
    created_at: datetime.datetime
    updated_at: datetime.datetime


class UnitUpdate(BaseModel):
    """
    Cambio de ubicación/estado de un formato.

    Solo se aplican los campos enviados: enviar None borra el valor.
    El número y el pedido no son editables.
    """
    status: Optional[UnitStatus] = None
    current_location: Optional[str] = Field(None, min_length=1, max_length=200)
    destination: Optional[str] = Field(None, max_length=200)
    recipient: Optional[str] = Field(None, max_length=200)
    notes: Optional[str] = None
    entry_date: Optional[datetime.date] = None
    departure_date: Optional[datetime.date] = None


class UnitFilter(BaseModel):
    """Filtros del listado de formatos."""
    order_id: Optional[str] = None
    status: Optional[UnitStatus] = None
    company: Optional[str] = None
    form_type: Optional[str] = None
    number_from: Optional[int] = None
    number_to: Optional[int] = None
