"""
Modelos SQLAlchemy para Empresas y Tipos de Formato
Proyecto: Control de Formatos (SGV)

Contiene:
- Company: Empresa cliente de la imprenta
- FormType: Tipo de formato impreso para una empresa
"""

from __future__ import annotations

from sqlalchemy import Boolean, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from control_formatos.models import Base
from control_formatos.models.mixins import StringIdMixin, TimestampMixin


class Company(Base, StringIdMixin, TimestampMixin):
    """
    Modelo de las empresas clientes.

    Las empresas no se eliminan mientras tengan pedidos: se desactivan.

    Attributes:
        id: Id opaco
        name: Razón social (clave de agrupación de los pedidos)
        tax_id: RUC
        is_active: Empresa activa
    """

    __tablename__ = "companies"

    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        index=True,
        doc="Razón social",
    )

    tax_id: Mapped[str | None] = mapped_column(String(20), nullable=True, doc="RUC")
    address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    contact: Mapped[str | None] = mapped_column(String(200), nullable=True)

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        index=True,
        doc="False = empresa desactivada",
    )

    def __repr__(self) -> str:
        return f"Company(name={self.name!r}, is_active={self.is_active})"


class FormType(Base, StringIdMixin, TimestampMixin):
    """
    Modelo de los tipos de formato.

    El nombre solo es único dentro de su empresa.
    """

    __tablename__ = "form_types"
    __table_args__ = (
        UniqueConstraint("company_id", "name", name="uq_form_types_company_name"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False, doc="Nombre del formato")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    company_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("companies.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
        doc="Empresa propietaria",
    )

    image: Mapped[str | None] = mapped_column(Text, nullable=True, doc="Referencia a la imagen")

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        index=True,
    )

    def __repr__(self) -> str:
        return f"FormType(name={self.name!r}, company_id={self.company_id!r})"
