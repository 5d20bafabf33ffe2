"""
Modelos SQLAlchemy para Talonarios y numeración reservada
Proyecto: Control de Formatos (SGV)

Contiene:
- Batch: Talonario guardado de un par (empresa, formato)
- ReservedNumber: Número reservado pero no usado de un par
"""

from __future__ import annotations

from datetime import date

from sqlalchemy import CheckConstraint, Date, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from control_formatos.models import Base
from control_formatos.models.mixins import StringIdMixin, TimestampMixin


class Batch(Base, StringIdMixin, TimestampMixin):
    """
    Modelo de los talonarios guardados.

    Referencian un rango de numeración, no ids de formatos: son una vista
    sobre los formatos del par, conciliada en cada carga.
    """

    __tablename__ = "batches"
    __table_args__ = (
        CheckConstraint("number_to >= number_from", name="ck_batches_range"),
        Index("ix_batches_company_form_type", "company", "form_type"),
    )

    form_type: Mapped[str] = mapped_column(String(200), nullable=False)
    company: Mapped[str] = mapped_column(String(200), nullable=False)
    number_from: Mapped[int] = mapped_column(Integer, nullable=False)
    number_to: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    entry_date: Mapped[date] = mapped_column(Date, nullable=False)
    storage_location: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="available", index=True)
    departure_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    destination: Mapped[str | None] = mapped_column(String(200), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"Batch({self.company!r}, {self.form_type!r}, {self.number_from}-{self.number_to}, {self.status!r})"


class ReservedNumber(Base):
    """Número reservado pero no usado, consultado por el asignador de numeración."""

    __tablename__ = "reserved_numbers"

    company: Mapped[str] = mapped_column(String(200), primary_key=True)
    form_type: Mapped[str] = mapped_column(String(200), primary_key=True)
    number: Mapped[int] = mapped_column(Integer, primary_key=True)

    def __repr__(self) -> str:
        return f"ReservedNumber({self.company!r}, {self.form_type!r}, {self.number})"
