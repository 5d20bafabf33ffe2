"""
Modelos SQLAlchemy para Pedidos y Formatos
Proyecto: Control de Formatos (SGV)

Contiene:
- Order: Pedido de impresión
- Unit: Formato numerado generado por un pedido
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from control_formatos.models import Base
from control_formatos.models.mixins import StringIdMixin, TimestampMixin


# Los estados están definidos en control_formatos.schemas.order


class Order(Base, StringIdMixin, TimestampMixin):
    """
    Modelo de los pedidos.

    Referencia empresa y tipo de formato por nombre, no por id: el par
    (company, form_type) es la clave de numeración.

    Attributes:
        order_date: Fecha del pedido
        form_type: Nombre del tipo de formato
        company: Nombre de la empresa
        quantity: Cantidad de formatos (> 0)
        starting_number: Primer número del rango
        status: pending_pickup | picked_up
        payment_status: paid | unpaid
        pickup_date: Fecha de recojo
        payment_date: Fecha de pago
        amount: Monto
    """

    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_orders_quantity_positive"),
        CheckConstraint("starting_number >= 1", name="ck_orders_starting_number"),
        Index("ix_orders_company_form_type", "company", "form_type"),
    )

    order_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    form_type: Mapped[str] = mapped_column(String(200), nullable=False)
    company: Mapped[str] = mapped_column(String(200), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    starting_number: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="pending_pickup",
        index=True,
    )

    payment_status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="unpaid",
        index=True,
    )

    pickup_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("0"),
    )

    def __repr__(self) -> str:
        return (
            f"Order(company={self.company!r}, form_type={self.form_type!r}, "
            f"starting_number={self.starting_number}, quantity={self.quantity})"
        )


class Unit(Base, StringIdMixin, TimestampMixin):
    """
    Modelo de los formatos numerados.

    Se crean en bloque al registrar el pedido y se eliminan con él.
    """

    __tablename__ = "units"
    __table_args__ = (
        UniqueConstraint("order_id", "number", name="uq_units_order_number"),
    )

    number: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    order_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="available", index=True)
    current_location: Mapped[str] = mapped_column(String(200), nullable=False)
    destination: Mapped[str | None] = mapped_column(String(200), nullable=True)
    recipient: Mapped[str | None] = mapped_column(String(200), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    entry_date: Mapped[date] = mapped_column(Date, nullable=False)
    departure_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    def __repr__(self) -> str:
        return f"Unit(number={self.number}, status={self.status!r})"
